"""
Database Schemas for the Denim Store

Each Pydantic model correlates to a MongoDB collection. The collection name is the lowercase of the class name.
- User -> "user"
- Product -> "product"
- Order -> "order"

These models are used for request/response validation and for documenting schema via /schema endpoint.
"""

import re
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

Category = Literal["Men", "Women", "Kids"]
Size = Literal["XS", "S", "M", "L", "XL", "XXL", "28", "30", "32", "34", "36", "38", "40", "42"]
Fit = Literal["Straight", "Slim", "Regular", "Relaxed", "Skinny", "Bootcut", "Mom", "Flare"]
OrderStatus = Literal["pending", "confirmed", "shipped", "delivered", "cancelled"]

CATEGORIES = ("Men", "Women", "Kids")
FITS = ("Straight", "Slim", "Regular", "Relaxed", "Skinny", "Bootcut", "Mom", "Flare")


def fit_from_name(name: str) -> Optional[str]:
    """First fit word appearing in a product name, if any."""
    for fit in FITS:
        if re.search(rf"\b{fit}\b", name, re.IGNORECASE):
            return fit
    return None


def _unique(sizes: List[str]) -> List[str]:
    return list(dict.fromkeys(sizes))


class User(BaseModel):
    name: str = Field(..., min_length=1, description="Full name")
    email: EmailStr = Field(..., description="Email address (unique)")
    password_hash: str = Field(..., description="BCrypt password hash")
    is_admin: bool = Field(False, description="Is admin user")


class Product(BaseModel):
    name: str = Field(..., min_length=1, description="Product name")
    description: str = Field(..., description="Product description")
    price: float = Field(..., ge=0, description="Unit price")
    category: Category = Field(..., description="Product category")
    sizes: List[Size] = Field(default_factory=list, description="Available sizes")
    image: str = Field(..., description="Image URL")
    stock: int = Field(0, ge=0, description="Units in stock")
    fit: Optional[Fit] = Field(None, description="Garment cut")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @field_validator("sizes")
    @classmethod
    def dedupe_sizes(cls, v: List[str]) -> List[str]:
        return _unique(v)

    @model_validator(mode="after")
    def derive_fit(self):
        if self.fit is None:
            self.fit = fit_from_name(self.name)
        return self


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    category: Optional[Category] = None
    sizes: Optional[List[Size]] = None
    image: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)
    fit: Optional[Fit] = None

    @field_validator("sizes")
    @classmethod
    def dedupe_sizes(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _unique(v) if v is not None else v


class OrderItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    size: str
    price: float = Field(..., ge=0, description="Unit price captured at order time")


class ShippingAddress(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class Order(BaseModel):
    user_id: str = Field(..., description="User placing the order")
    items: List[OrderItem] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0)
    status: OrderStatus = "pending"
    shipping_address: ShippingAddress = Field(default_factory=ShippingAddress)


# Lightweight request models
class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class OrderLineRequest(BaseModel):
    product_id: str
    size: str
    quantity: int = Field(1, ge=1)


class CreateOrderRequest(BaseModel):
    items: List[OrderLineRequest] = Field(..., min_length=1)
    shipping_address: ShippingAddress = Field(default_factory=ShippingAddress)


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
