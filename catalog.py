"""
Product catalog queries and admin product management.
"""

import logging
import re
from typing import List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_documents, now, serialize, to_object_id
from errors import InvalidRequest, NotFound
from schemas import CATEGORIES, Product, ProductUpdate, fit_from_name

logger = logging.getLogger(__name__)


def product_filter(category: Optional[str] = None, fit: Optional[str] = None) -> dict:
    filt = {}
    if category:
        if category not in CATEGORIES:
            raise InvalidRequest(f"Unknown category: {category}")
        filt["category"] = category
    if fit:
        fit = fit.strip()
        # fit is a modeled field, but older products only mention it in the name
        filt["$or"] = [
            {"fit": {"$regex": f"^{re.escape(fit)}$", "$options": "i"}},
            {"name": {"$regex": re.escape(fit), "$options": "i"}},
        ]
    return filt


def list_products(db: Database, category: Optional[str] = None, fit: Optional[str] = None) -> List[dict]:
    products = get_documents(db, "product", product_filter(category, fit))
    return [serialize(p) for p in products]


def find_product(db: Database, product_id: str) -> Optional[dict]:
    return db["product"].find_one({"_id": to_object_id(product_id, "product id")})


def get_product(db: Database, product_id: str) -> dict:
    doc = find_product(db, product_id)
    if not doc:
        raise NotFound("Product not found")
    return serialize(doc)


def create_product(db: Database, payload: Product) -> dict:
    product_id = create_document(db, "product", payload)
    logger.info("Product created: %s (%s)", product_id, payload.name)
    return get_product(db, product_id)


def _refit(db: Database, product_id: str, new_name: str) -> Optional[str]:
    # a fit set by hand survives a rename; a derived one follows the name
    existing = find_product(db, product_id)
    if not existing:
        raise NotFound("Product not found")
    if existing.get("fit") not in (None, fit_from_name(existing.get("name", ""))):
        return existing["fit"]
    return fit_from_name(new_name)


def update_product(db: Database, product_id: str, payload: ProductUpdate) -> dict:
    # only fit may be cleared with an explicit null
    updates = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k == "fit"}
    if "name" in updates:
        updates["name"] = updates["name"].strip()
        if not updates["name"]:
            raise InvalidRequest("Product name must not be blank")
        if "fit" not in updates:
            updates["fit"] = _refit(db, product_id, updates["name"])
    updates["updated_at"] = now()
    doc = db["product"].find_one_and_update(
        {"_id": to_object_id(product_id, "product id")},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFound("Product not found")
    logger.info("Product updated: %s fields=%s", product_id, sorted(k for k in updates if k != "updated_at"))
    return serialize(doc)


def delete_product(db: Database, product_id: str) -> None:
    # Hard delete. Orders referencing the product keep their line items but
    # show no product details afterwards.
    res = db["product"].delete_one({"_id": to_object_id(product_id, "product id")})
    if res.deleted_count == 0:
        raise NotFound("Product not found")
    logger.info("Product deleted: %s", product_id)


def catalog_stats(db: Database) -> dict:
    return {
        "users": db["user"].count_documents({}),
        "products": db["product"].count_documents({}),
        "orders": db["order"].count_documents({}),
    }
