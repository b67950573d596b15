"""
Thin HTTP client for the Denim Store API.

    api = StorefrontClient("http://localhost:8000")
    api.login("user@demo.com", "password123")
    api.get_products(category="Men", fit="Slim")
"""

import logging
from typing import Any, Optional

import requests

from cart import CartStore

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, message: str, status_code: int):
        super().__init__(f"{status_code}: {message}")
        self.message = message
        self.status_code = status_code


class StorefrontClient:
    def __init__(self, base_url: str, session: Optional[Any] = None, token: Optional[str] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        # anything with a requests-style .request(); tests pass a TestClient
        self.session = session or requests.Session()
        self.token = token
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        headers.setdefault("Content-Type", "application/json")
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        url = f"{self.base_url}/api{path}"
        resp = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        try:
            data = resp.json()
        except ValueError:
            data = None
        if resp.status_code >= 400:
            message = data.get("message") if isinstance(data, dict) else None
            raise ApiError(message or resp.text or "Request failed", resp.status_code)
        return data

    # Auth
    def signup(self, name: str, email: str, password: str) -> dict:
        data = self._request("POST", "/auth/signup", json={"name": name, "email": email, "password": password})
        self.token = data["token"]
        return data["user"]

    def login(self, email: str, password: str) -> dict:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = data["token"]
        return data["user"]

    def logout(self) -> None:
        self.token = None

    def me(self) -> dict:
        return self._request("GET", "/auth/me")["user"]

    # Products
    def get_products(self, category: Optional[str] = None, fit: Optional[str] = None) -> list:
        params = {k: v for k, v in (("category", category), ("fit", fit)) if v}
        return self._request("GET", "/products", params=params)

    def get_product(self, product_id: str) -> dict:
        return self._request("GET", f"/products/{product_id}")

    def add_product(self, product: dict) -> dict:
        return self._request("POST", "/products", json=product)["product"]

    def update_product(self, product_id: str, fields: dict) -> dict:
        return self._request("PUT", f"/products/{product_id}", json=fields)["product"]

    def delete_product(self, product_id: str) -> None:
        self._request("DELETE", f"/products/{product_id}")

    # Orders
    def create_order(self, payload: dict) -> dict:
        return self._request("POST", "/orders", json=payload)["order"]

    def get_orders(self) -> list:
        return self._request("GET", "/orders")

    def get_order(self, order_id: str) -> dict:
        return self._request("GET", f"/orders/{order_id}")

    def update_order_status(self, order_id: str, status: str) -> dict:
        return self._request("PUT", f"/orders/{order_id}/status", json={"status": status})["order"]

    def cancel_order(self, order_id: str) -> dict:
        return self._request("DELETE", f"/orders/{order_id}")["order"]

    def checkout(self, cart: CartStore, shipping_address: Optional[dict] = None) -> dict:
        """Place an order for everything in `cart`; the cart is cleared only on success."""
        order = self.create_order(cart.order_payload(shipping_address))
        cart.clear()
        logger.info("Checked out order %s", order["id"])
        return order
