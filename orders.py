"""
Order lifecycle: placement with stock reservation, status transitions and
cancellation with stock restoration.

Stock is reserved with a conditional decrement (filter `stock >= quantity`
and `$inc` in one `find_one_and_update`), so two orders racing for the last
units cannot both succeed. A multi-line order either reserves every line or
releases what it already took.

Status changes go through TRANSITIONS and are applied with a compare-and-set
on the status the change was checked against, so the stock of a cancelled
order is restored exactly once even if two cancellations (or a cancellation
and a shipment) race.
"""

import logging
from typing import Dict, FrozenSet, List, Optional, Tuple

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_documents, now, serialize, to_object_id
from errors import InsufficientStock, InvalidRequest, NotFound
from schemas import CreateOrderRequest, Order, OrderItem

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"shipped", "cancelled"}),
    "shipped": frozenset({"delivered"}),
    "delivered": frozenset(),
    "cancelled": frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def check_transition(current: str, target: str) -> None:
    if can_transition(current, target):
        return
    if target == "cancelled":
        raise InvalidRequest(f"Cannot cancel order with status: {current}")
    raise InvalidRequest(f"Cannot change order status from {current} to {target}")


# Stock adjustments

def reserve_stock(db: Database, product_id: ObjectId, quantity: int) -> bool:
    """Take `quantity` units if that many are available. False otherwise."""
    doc = db["product"].find_one_and_update(
        {"_id": product_id, "stock": {"$gte": quantity}},
        {"$inc": {"stock": -quantity}, "$set": {"updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    return doc is not None


def release_stock(db: Database, product_id: ObjectId, quantity: int) -> None:
    # a deleted product has nothing to restore
    db["product"].update_one(
        {"_id": product_id},
        {"$inc": {"stock": quantity}, "$set": {"updated_at": now()}},
    )


def release_all(db: Database, reserved: List[Tuple[ObjectId, int]]) -> None:
    for product_id, quantity in reversed(reserved):
        release_stock(db, product_id, quantity)


def restore_order_stock(db: Database, order: dict) -> None:
    for item in order["items"]:
        release_stock(db, ObjectId(item["product_id"]), item["quantity"])


# Presentation

def attach_products(db: Database, orders: List[dict]) -> List[dict]:
    """Serialize orders and join {id, name, image} onto each line."""
    ids = {ObjectId(item["product_id"]) for o in orders for item in o.get("items", [])}
    products = {}
    if ids:
        for p in db["product"].find({"_id": {"$in": list(ids)}}, {"name": 1, "image": 1}):
            products[str(p["_id"])] = {"id": str(p["_id"]), "name": p.get("name"), "image": p.get("image")}
    result = []
    for o in orders:
        out = serialize(o)
        out["items"] = [
            {**item, "product": products.get(item["product_id"])}
            for item in o.get("items", [])
        ]
        result.append(out)
    return result


def _order_view(db: Database, order: dict) -> dict:
    return attach_products(db, [order])[0]


# Queries

def _find_owned(db: Database, order_id: str, user_id: str) -> dict:
    order = db["order"].find_one({"_id": to_object_id(order_id, "order id"), "user_id": user_id})
    if not order:
        raise NotFound("Order not found")
    return order


def list_orders(db: Database, user_id: str) -> List[dict]:
    return attach_products(db, get_documents(db, "order", {"user_id": user_id}))


def get_order(db: Database, order_id: str, user_id: str) -> dict:
    return _order_view(db, _find_owned(db, order_id, user_id))


# Commands

def create_order(db: Database, user_id: str, request: CreateOrderRequest) -> dict:
    items: List[OrderItem] = []
    total_amount = 0.0

    # Validation pass. Nothing is written until every line checks out.
    for line in request.items:
        oid = to_object_id(line.product_id, "product id")
        product = db["product"].find_one({"_id": oid})
        if not product:
            raise NotFound(f"Product not found: {line.product_id}")
        if line.size not in product.get("sizes", []):
            raise InvalidRequest(f"Size {line.size} not available for {product['name']}")
        if product.get("stock", 0) < line.quantity:
            raise InsufficientStock(
                f"Insufficient stock for {product['name']}. "
                f"Available: {product.get('stock', 0)}, Requested: {line.quantity}"
            )
        total_amount += product["price"] * line.quantity
        items.append(
            OrderItem(product_id=str(oid), quantity=line.quantity, size=line.size, price=product["price"])
        )

    reserved: List[Tuple[ObjectId, int]] = []
    for item in items:
        oid = ObjectId(item.product_id)
        if not reserve_stock(db, oid, item.quantity):
            release_all(db, reserved)
            current = db["product"].find_one({"_id": oid}, {"name": 1, "stock": 1}) or {}
            raise InsufficientStock(
                f"Insufficient stock for {current.get('name', item.product_id)}. "
                f"Available: {current.get('stock', 0)}, Requested: {item.quantity}"
            )
        reserved.append((oid, item.quantity))

    order = Order(
        user_id=user_id,
        items=items,
        total_amount=total_amount,
        status="pending",
        shipping_address=request.shipping_address,
    )
    try:
        order_id = create_document(db, "order", order)
    except Exception:
        logger.exception("Order insert failed for user %s; releasing reserved stock", user_id)
        release_all(db, reserved)
        raise

    logger.info("Order %s created for user %s (%d lines, total %.2f)", order_id, user_id, len(items), total_amount)
    return _order_view(db, db["order"].find_one({"_id": ObjectId(order_id)}))


def _check(current: str, target: str, only_from: Optional[str]) -> None:
    if only_from is not None and current != only_from:
        raise InvalidRequest(f"Cannot cancel order with status: {current}")
    check_transition(current, target)


def _apply_transition(db: Database, order: dict, target: str, only_from: Optional[str] = None) -> dict:
    current = order["status"]
    _check(current, target, only_from)
    updated = db["order"].find_one_and_update(
        {"_id": order["_id"], "status": current},
        {"$set": {"status": target, "updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        # someone else moved the order first
        latest = db["order"].find_one({"_id": order["_id"]}, {"status": 1})
        found = latest["status"] if latest else current
        _check(found, target, only_from)
        raise InvalidRequest(f"Order status changed to {found} while updating; try again")
    if target == "cancelled":
        restore_order_stock(db, updated)
    logger.info("Order %s: %s -> %s", order["_id"], current, target)
    return updated


def update_status(db: Database, order_id: str, user_id: str, status: str) -> dict:
    order = _find_owned(db, order_id, user_id)
    return _order_view(db, _apply_transition(db, order, status))


def cancel_order(db: Database, order_id: str, user_id: str) -> dict:
    """Customer cancellation: only a pending order can be withdrawn."""
    order = _find_owned(db, order_id, user_id)
    return _order_view(db, _apply_transition(db, order, "cancelled", only_from="pending"))
