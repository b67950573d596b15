"""
Shopping cart state for storefront clients.

The cart is a plain serializable value (CartState) changed only through
`reduce(state, action)`. CartStore owns the current state and writes it to a
local JSON file after every dispatch, so a cart survives restarts the way a
browser cart survives page reloads. Quantities are not checked against stock
here; the server checks them at checkout.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from schemas import ShippingAddress

logger = logging.getLogger(__name__)


class CartLine(BaseModel):
    product_id: str
    name: str
    price: float = Field(..., ge=0)
    image: Optional[str] = None
    size: str
    quantity: int = Field(..., ge=1)

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


class CartState(BaseModel):
    items: List[CartLine] = Field(default_factory=list)

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.items)

    @property
    def total_amount(self) -> float:
        return sum(line.line_total for line in self.items)

    def find(self, product_id: str, size: str) -> Optional[CartLine]:
        for line in self.items:
            if line.product_id == product_id and line.size == size:
                return line
        return None


@dataclass(frozen=True)
class AddItem:
    product_id: str
    name: str
    price: float
    size: str
    quantity: int = 1
    image: Optional[str] = None


@dataclass(frozen=True)
class RemoveItem:
    product_id: str
    size: str


@dataclass(frozen=True)
class UpdateQuantity:
    product_id: str
    size: str
    quantity: int


@dataclass(frozen=True)
class ClearCart:
    pass


CartAction = Union[AddItem, RemoveItem, UpdateQuantity, ClearCart]


def _same(line: CartLine, product_id: str, size: str) -> bool:
    return line.product_id == product_id and line.size == size


def reduce(state: CartState, action: CartAction) -> CartState:
    """Return the cart that results from applying `action` to `state`."""
    if isinstance(action, AddItem):
        if action.quantity < 1:
            raise ValueError("quantity must be at least 1")
        if state.find(action.product_id, action.size):
            items = [
                line.model_copy(update={"quantity": line.quantity + action.quantity})
                if _same(line, action.product_id, action.size) else line
                for line in state.items
            ]
        else:
            line = CartLine(
                product_id=action.product_id,
                name=action.name,
                price=action.price,
                image=action.image,
                size=action.size,
                quantity=action.quantity,
            )
            items = state.items + [line]
        return CartState(items=items)

    if isinstance(action, RemoveItem):
        return CartState(items=[line for line in state.items if not _same(line, action.product_id, action.size)])

    if isinstance(action, UpdateQuantity):
        if action.quantity <= 0:
            return reduce(state, RemoveItem(action.product_id, action.size))
        return CartState(items=[
            line.model_copy(update={"quantity": action.quantity})
            if _same(line, action.product_id, action.size) else line
            for line in state.items
        ])

    if isinstance(action, ClearCart):
        return CartState()

    raise TypeError(f"Unknown cart action: {action!r}")


class CartStore:
    """Owns one cart and persists it to `path` on every change."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.state = self._load()

    def _load(self) -> CartState:
        if not self.path.exists():
            return CartState()
        try:
            return CartState.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (ValidationError, ValueError, OSError) as e:
            logger.warning("Discarding unreadable cart at %s: %s", self.path, e)
            return CartState()

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(self.state.model_dump_json(), encoding="utf-8")

    def dispatch(self, action: CartAction) -> CartState:
        self.state = reduce(self.state, action)
        self._save()
        return self.state

    def add(self, product: dict, size: str, quantity: int = 1) -> CartState:
        """Add a product as returned by the catalog API."""
        if size not in product.get("sizes", [size]):
            raise ValueError(f"Size {size} not available for {product.get('name')}")
        return self.dispatch(AddItem(
            product_id=product["id"],
            name=product["name"],
            price=product["price"],
            image=product.get("image"),
            size=size,
            quantity=quantity,
        ))

    def remove(self, product_id: str, size: str) -> CartState:
        return self.dispatch(RemoveItem(product_id, size))

    def update_quantity(self, product_id: str, size: str, quantity: int) -> CartState:
        return self.dispatch(UpdateQuantity(product_id, size, quantity))

    def clear(self) -> CartState:
        return self.dispatch(ClearCart())

    def order_payload(self, shipping_address: Union[ShippingAddress, dict, None] = None) -> dict:
        """Body for POST /api/orders built from the current cart."""
        if not self.state.items:
            raise ValueError("Cart is empty")
        if isinstance(shipping_address, dict):
            shipping_address = ShippingAddress(**shipping_address)
        address = shipping_address or ShippingAddress()
        return {
            "items": [
                {"product_id": line.product_id, "size": line.size, "quantity": line.quantity}
                for line in self.state.items
            ],
            "shipping_address": address.model_dump(),
        }

