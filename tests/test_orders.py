import pytest
from bson import ObjectId

import orders
from errors import InsufficientStock, InvalidRequest
from schemas import CreateOrderRequest

ADDRESS = {"street": "1 Main St", "city": "Pune", "state": "MH", "zip_code": "411001", "country": "India"}


def order_body(*lines):
    return {
        "items": [{"product_id": pid, "size": size, "quantity": qty} for pid, size, qty in lines],
        "shipping_address": ADDRESS,
    }


def place(client, headers, *lines):
    return client.post("/api/orders", json=order_body(*lines), headers=headers)


def test_create_order_totals_and_decrements_stock(client, user_headers, make_product, stock_of):
    jeans = make_product(price=3499, stock=10)
    kids = make_product(name="Kids' Straight Leg Classic", category="Kids", sizes=["S", "M"], price=1599, stock=4)

    res = place(client, user_headers, (jeans, "32", 2), (kids, "M", 1))
    assert res.status_code == 201
    order = res.json()["order"]
    assert order["status"] == "pending"
    assert order["total_amount"] == 3499 * 2 + 1599 * 1
    assert order["total_amount"] == sum(i["price"] * i["quantity"] for i in order["items"])
    assert order["shipping_address"]["city"] == "Pune"
    assert order["items"][0]["product"]["name"] == "Men's Slim Fit Dark Denim"
    assert order["items"][0]["size"] == "32"
    assert stock_of(jeans) == 8
    assert stock_of(kids) == 3


def test_order_keeps_price_captured_at_checkout(client, user_headers, admin_headers, make_product):
    pid = make_product(price=2000)
    order = place(client, user_headers, (pid, "30", 1)).json()["order"]

    client.put(f"/api/products/{pid}", json={"price": 2500}, headers=admin_headers)

    fetched = client.get(f"/api/orders/{order['id']}", headers=user_headers).json()
    assert fetched["items"][0]["price"] == 2000
    assert fetched["total_amount"] == 2000


def test_unavailable_size_is_rejected_without_touching_stock(client, db, user_headers, make_product, stock_of):
    pid = make_product(stock=5, sizes=["M", "L"], category="Women", name="Women's Straight Leg Classic")

    res = place(client, user_headers, (pid, "XS", 1))
    assert res.status_code == 400
    assert res.json()["message"] == "Size XS not available for Women's Straight Leg Classic"
    assert stock_of(pid) == 5
    assert db["order"].count_documents({}) == 0


def test_insufficient_stock_rejects_whole_order(client, db, user_headers, make_product, stock_of):
    first = make_product(stock=5)
    second = make_product(name="Men's Bootcut Vintage Wash", stock=1)

    res = place(client, user_headers, (first, "32", 2), (second, "32", 3))
    assert res.status_code == 400
    assert res.json()["message"] == "Insufficient stock for Men's Bootcut Vintage Wash. Available: 1, Requested: 3"
    assert stock_of(first) == 5
    assert stock_of(second) == 1
    assert db["order"].count_documents({}) == 0


def test_lines_sharing_a_product_are_reserved_together(client, db, user_headers, make_product, stock_of):
    pid = make_product(stock=5)

    # each line fits on its own, both together do not
    res = place(client, user_headers, (pid, "30", 3), (pid, "32", 3))
    assert res.status_code == 400
    assert stock_of(pid) == 5
    assert db["order"].count_documents({}) == 0


def test_unknown_and_malformed_product_ids(client, user_headers):
    missing = str(ObjectId())
    res = place(client, user_headers, (missing, "32", 1))
    assert res.status_code == 404
    assert res.json()["message"] == f"Product not found: {missing}"

    res = place(client, user_headers, ("not-an-id", "32", 1))
    assert res.status_code == 400


def test_order_request_validation(client, user_headers, make_product):
    pid = make_product()
    assert place(client, user_headers, (pid, "32", 0)).status_code == 400
    res = client.post("/api/orders", json={"items": [], "shipping_address": ADDRESS}, headers=user_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid request"


def test_orders_require_authentication(client, make_product):
    pid = make_product()
    assert place(client, {}, (pid, "32", 1)).status_code == 401
    assert client.get("/api/orders").status_code == 401
    res = client.get("/api/orders", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 401
    assert res.json()["message"] == "Token is not valid"


def test_racing_orders_cannot_oversell(db, user, other_user, make_product, stock_of, monkeypatch):
    pid = make_product(stock=5, sizes=["M", "L"], category="Women", name="Women's Mom Fit Vintage")
    request = CreateOrderRequest(**order_body((pid, "M", 3)))
    real_reserve = orders.reserve_stock
    raced = []

    def reserve_after_competitor(database, product_id, quantity):
        # the competing order lands after our validation pass, before our reservation
        if not raced:
            raced.append(None)
            raced[0] = orders.create_order(database, str(other_user["_id"]), request)
        return real_reserve(database, product_id, quantity)

    monkeypatch.setattr(orders, "reserve_stock", reserve_after_competitor)

    with pytest.raises(InsufficientStock):
        orders.create_order(db, str(user["_id"]), request)

    assert raced[0]["status"] == "pending"
    assert stock_of(pid) == 2
    assert db["order"].count_documents({}) == 1


def test_cancel_pending_order_restores_stock_once(client, user_headers, make_product, stock_of):
    a = make_product(stock=5)
    b = make_product(name="Men's Relaxed Fit Comfort Jeans", stock=3)
    order = place(client, user_headers, (a, "32", 3), (b, "34", 1)).json()["order"]
    assert (stock_of(a), stock_of(b)) == (2, 2)

    res = client.delete(f"/api/orders/{order['id']}", headers=user_headers)
    assert res.status_code == 200
    assert res.json()["order"]["status"] == "cancelled"
    assert (stock_of(a), stock_of(b)) == (5, 3)

    again = client.delete(f"/api/orders/{order['id']}", headers=user_headers)
    assert again.status_code == 400
    assert again.json()["message"] == "Cannot cancel order with status: cancelled"
    via_status = client.put(f"/api/orders/{order['id']}/status", json={"status": "cancelled"}, headers=user_headers)
    assert via_status.status_code == 400
    assert (stock_of(a), stock_of(b)) == (5, 3)


def test_cancel_shipped_order_is_rejected(client, user_headers, make_product, stock_of):
    pid = make_product(stock=5)
    order_id = place(client, user_headers, (pid, "32", 2)).json()["order"]["id"]
    for status in ("confirmed", "shipped"):
        res = client.put(f"/api/orders/{order_id}/status", json={"status": status}, headers=user_headers)
        assert res.status_code == 200

    res = client.delete(f"/api/orders/{order_id}", headers=user_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Cannot cancel order with status: shipped"
    assert stock_of(pid) == 3


def test_cancel_endpoint_rejects_confirmed_order(client, user_headers, make_product, stock_of):
    pid = make_product(stock=5)
    order_id = place(client, user_headers, (pid, "32", 2)).json()["order"]["id"]
    client.put(f"/api/orders/{order_id}/status", json={"status": "confirmed"}, headers=user_headers)

    res = client.delete(f"/api/orders/{order_id}", headers=user_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Cannot cancel order with status: confirmed"
    assert client.get(f"/api/orders/{order_id}", headers=user_headers).json()["status"] == "confirmed"
    assert stock_of(pid) == 3


def test_cancel_loses_race_against_confirmation(client, db, user, user_headers, make_product, stock_of, monkeypatch):
    pid = make_product(stock=5)
    order_id = place(client, user_headers, (pid, "32", 2)).json()["order"]["id"]
    real_find = orders._find_owned

    def confirm_after_read(database, oid, user_id):
        order = real_find(database, oid, user_id)
        database["order"].update_one({"_id": order["_id"]}, {"$set": {"status": "confirmed"}})
        return order

    monkeypatch.setattr(orders, "_find_owned", confirm_after_read)

    with pytest.raises(InvalidRequest) as exc:
        orders.cancel_order(db, order_id, str(user["_id"]))
    assert exc.value.message == "Cannot cancel order with status: confirmed"
    assert stock_of(pid) == 3


def test_confirmed_order_can_be_cancelled_through_status_update(client, user_headers, make_product, stock_of):
    pid = make_product(stock=5)
    order_id = place(client, user_headers, (pid, "32", 2)).json()["order"]["id"]
    client.put(f"/api/orders/{order_id}/status", json={"status": "confirmed"}, headers=user_headers)

    res = client.put(f"/api/orders/{order_id}/status", json={"status": "cancelled"}, headers=user_headers)
    assert res.status_code == 200
    assert res.json()["order"]["status"] == "cancelled"
    assert stock_of(pid) == 5


def test_status_transition_table(client, user_headers, make_product):
    pid = make_product()
    order_id = place(client, user_headers, (pid, "32", 1)).json()["order"]["id"]

    def set_status(status):
        return client.put(f"/api/orders/{order_id}/status", json={"status": status}, headers=user_headers)

    assert set_status("shipped").json()["message"] == "Cannot change order status from pending to shipped"
    for status in ("confirmed", "shipped", "delivered"):
        assert set_status(status).status_code == 200
    res = set_status("pending")
    assert res.status_code == 400
    assert res.json()["message"] == "Cannot change order status from delivered to pending"
    assert set_status("refunded").status_code == 400


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        ("pending", "confirmed", True),
        ("pending", "cancelled", True),
        ("confirmed", "cancelled", True),
        ("shipped", "cancelled", False),
        ("shipped", "delivered", True),
        ("delivered", "pending", False),
        ("cancelled", "pending", False),
    ],
)
def test_can_transition(current, target, allowed):
    assert orders.can_transition(current, target) is allowed


def test_stale_cancellation_does_not_restore_twice(client, db, user_headers, make_product, stock_of):
    pid = make_product(stock=5)
    order_id = place(client, user_headers, (pid, "32", 2)).json()["order"]["id"]
    stale = db["order"].find_one({"_id": ObjectId(order_id)})

    client.delete(f"/api/orders/{order_id}", headers=user_headers)
    assert stock_of(pid) == 5

    with pytest.raises(InvalidRequest) as exc:
        orders._apply_transition(db, stale, "cancelled")
    assert "cancelled" in exc.value.message
    assert stock_of(pid) == 5


def test_cancel_loses_race_against_shipping(client, db, user_headers, make_product, stock_of):
    pid = make_product(stock=5)
    order_id = place(client, user_headers, (pid, "32", 2)).json()["order"]["id"]
    client.put(f"/api/orders/{order_id}/status", json={"status": "confirmed"}, headers=user_headers)
    stale = db["order"].find_one({"_id": ObjectId(order_id)})
    client.put(f"/api/orders/{order_id}/status", json={"status": "shipped"}, headers=user_headers)

    with pytest.raises(InvalidRequest) as exc:
        orders._apply_transition(db, stale, "cancelled")
    assert exc.value.message == "Cannot cancel order with status: shipped"
    assert stock_of(pid) == 3


def test_orders_are_scoped_to_owner_and_newest_first(client, user_headers, other_headers, make_product):
    pid = make_product(stock=10)
    first = place(client, user_headers, (pid, "30", 1)).json()["order"]
    second = place(client, user_headers, (pid, "32", 1)).json()["order"]
    theirs = place(client, other_headers, (pid, "34", 1)).json()["order"]

    listed = client.get("/api/orders", headers=user_headers).json()
    assert [o["id"] for o in listed] == [second["id"], first["id"]]

    assert client.get(f"/api/orders/{theirs['id']}", headers=user_headers).status_code == 404
    assert client.delete(f"/api/orders/{theirs['id']}", headers=user_headers).status_code == 404
    assert client.get(f"/api/orders/{ObjectId()}", headers=user_headers).status_code == 404


def test_deleted_product_shows_no_details(client, user_headers, admin_headers, make_product):
    pid = make_product()
    order_id = place(client, user_headers, (pid, "32", 1)).json()["order"]["id"]
    client.delete(f"/api/products/{pid}", headers=admin_headers)

    fetched = client.get(f"/api/orders/{order_id}", headers=user_headers).json()
    assert fetched["items"][0]["product"] is None
    assert fetched["items"][0]["product_id"] == pid
