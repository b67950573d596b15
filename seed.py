"""
Sample data for the denim store.

Run directly (`python seed.py`) against the configured database, or through
POST /api/admin/seed.
"""

import argparse
import logging
from typing import Dict, List

from pymongo.database import Database

from auth import hash_password
from database import create_document, ensure_indexes, get_db
from schemas import Product, User

logger = logging.getLogger(__name__)

IMG = "https://images.unsplash.com/photo-{}?w=400&h=400&fit=crop"

WAIST_SIZES = ["28", "30", "32", "34", "36", "38", "40", "42"]

DEFAULT_SIZES: Dict[str, List[str]] = {
    "Men": WAIST_SIZES,
    "Women": ["XS", "S", "M", "L", "XL", "XXL"],
    "Kids": ["XS", "S", "M", "L", "XL"],
}

SAMPLE_PRODUCTS = [
    # Men
    {
        "name": "Men's Classic Straight Fit Jeans",
        "description": "Comfortable straight-fit jeans made from premium denim. Timeless design for casual and semi-formal occasions.",
        "price": 2999,
        "category": "Men",
        "sizes": ["30", "32", "34", "36", "38"],
        "image": IMG.format("1542272604-787c3835535d"),
        "stock": 25,
    },
    {
        "name": "Men's Slim Fit Dark Denim",
        "description": "Modern slim-fit jeans in stretch denim for better mobility.",
        "price": 3499,
        "category": "Men",
        "sizes": ["28", "30", "32", "34", "36"],
        "image": IMG.format("1624378439575-d8705ad7ae80"),
        "stock": 30,
    },
    {
        "name": "Men's Regular Fit Blue Jeans",
        "description": "Classic regular-fit jeans with a comfortable cut through the seat and thigh.",
        "price": 2599,
        "category": "Men",
        "sizes": ["32", "34", "36", "38", "40"],
        "image": IMG.format("1565084888279-aca607ecce0c"),
        "stock": 35,
    },
    {
        "name": "Men's Relaxed Fit Comfort Jeans",
        "description": "Extra room through the seat and thigh for all-day comfort.",
        "price": 2799,
        "category": "Men",
        "sizes": ["32", "34", "36", "38", "40", "42"],
        "image": IMG.format("1602810318383-e386cc2a3ccf"),
        "stock": 28,
    },
    {
        "name": "Men's Skinny Fit Black Jeans",
        "description": "Skinny-fit jeans in classic black with stretch for a form-fitting silhouette.",
        "price": 3699,
        "category": "Men",
        "sizes": ["28", "30", "32", "34", "36"],
        "image": IMG.format("1541099649105-f69ad21f3246"),
        "stock": 22,
    },
    {
        "name": "Men's Bootcut Vintage Wash",
        "description": "Bootcut jeans with a slight flare from the knee down and a vintage wash finish.",
        "price": 3199,
        "category": "Men",
        "sizes": ["30", "32", "34", "36", "38", "40"],
        "image": IMG.format("1584464491033-06628f3a6b7b"),
        "stock": 26,
    },
    # Women
    {
        "name": "Women's High-Waist Skinny Jeans",
        "description": "High-waist skinny jeans in premium stretch denim.",
        "price": 3799,
        "category": "Women",
        "sizes": ["XS", "S", "M", "L", "XL"],
        "image": IMG.format("1594633312681-425c7b97ccd1"),
        "stock": 35,
    },
    {
        "name": "Women's Straight Leg Classic",
        "description": "Straight leg jeans with a comfortable mid-rise fit.",
        "price": 3299,
        "category": "Women",
        "sizes": ["XS", "S", "M", "L", "XL", "XXL"],
        "image": IMG.format("1594633313593-bab3825d0caf"),
        "stock": 32,
    },
    {
        "name": "Women's Bootcut Flare Jeans",
        "description": "Bootcut jeans with a subtle flare and classic five-pocket styling.",
        "price": 3399,
        "category": "Women",
        "sizes": ["XS", "S", "M", "L", "XL"],
        "image": IMG.format("1515372039744-b8f02a3ae446"),
        "stock": 28,
    },
    {
        "name": "Women's Mom Fit Vintage",
        "description": "Vintage-inspired high-waisted mom jeans with a relaxed fit.",
        "price": 2899,
        "category": "Women",
        "sizes": ["S", "M", "L", "XL"],
        "image": IMG.format("1582418702059-97ebafb35d09"),
        "stock": 24,
    },
    {
        "name": "Women's Slim Fit Low Rise",
        "description": "Slim-fit jeans with a low-rise cut in stretch denim.",
        "price": 3499,
        "category": "Women",
        "sizes": ["XS", "S", "M", "L", "XL"],
        "image": IMG.format("1544966503-7cc5ac882d5c"),
        "stock": 30,
    },
    {
        "name": "Women's Regular Fit Comfort",
        "description": "Regular-fit jeans for all-day wear with a relaxed cut through hip and thigh.",
        "price": 2799,
        "category": "Women",
        "sizes": ["S", "M", "L", "XL", "XXL"],
        "image": IMG.format("1503944168903-c28ac023b9c6"),
        "stock": 33,
    },
    # Kids
    {
        "name": "Kids' Straight Leg Classic",
        "description": "Durable straight-leg jeans with reinforced knees for active kids.",
        "price": 1599,
        "category": "Kids",
        "sizes": ["XS", "S", "M", "L"],
        "image": IMG.format("1519238263530-99bdd11df2ea"),
        "stock": 40,
    },
    {
        "name": "Kids' Slim Fit Stretch",
        "description": "Slim-fit stretch jeans for school or play.",
        "price": 1799,
        "category": "Kids",
        "sizes": ["XS", "S", "M", "L", "XL"],
        "image": IMG.format("1584464491033-06628f3a6b7b"),
        "stock": 32,
    },
    {
        "name": "Kids' Regular Fit Blue Jeans",
        "description": "Easy-care regular-fit blue jeans for everyday adventures.",
        "price": 1399,
        "category": "Kids",
        "sizes": ["S", "M", "L"],
        "image": IMG.format("1565084888279-aca607ecce0c"),
        "stock": 38,
    },
    {
        "name": "Kids' Relaxed Fit Comfort",
        "description": "Relaxed-fit jeans with an adjustable waist for growing kids.",
        "price": 1699,
        "category": "Kids",
        "sizes": ["XS", "S", "M", "L", "XL"],
        "image": IMG.format("1624378439575-d8705ad7ae80"),
        "stock": 35,
    },
    {
        "name": "Kids' Skinny Fit Fashion",
        "description": "Skinny-fit stretch denim for comfort during active play.",
        "price": 1649,
        "category": "Kids",
        "sizes": ["S", "M", "L", "XL"],
        "image": IMG.format("1602810318383-e386cc2a3ccf"),
        "stock": 28,
    },
    {
        "name": "Kids' Bootcut Adventure",
        "description": "Durable bootcut jeans with a slight flare.",
        "price": 1499,
        "category": "Kids",
        "sizes": ["XS", "S", "M", "L"],
        "image": IMG.format("1541099649105-f69ad21f3246"),
        "stock": 30,
    },
]

SAMPLE_USERS = [
    {"name": "Admin User", "email": "admin@demo.com", "password": "password123", "is_admin": True},
    {"name": "John Doe", "email": "user@demo.com", "password": "password123", "is_admin": False},
]


def seed_database(db: Database, force: bool = False) -> dict:
    if db["product"].count_documents({}) > 0 and not force:
        return {"status": "already-seeded"}

    db["product"].delete_many({})
    ensure_indexes(db)

    users = 0
    for u in SAMPLE_USERS:
        if db["user"].find_one({"email": u["email"]}):
            continue
        user = User(
            name=u["name"],
            email=u["email"],
            password_hash=hash_password(u["password"]),
            is_admin=u["is_admin"],
        )
        create_document(db, "user", user)
        users += 1
    for p in SAMPLE_PRODUCTS:
        create_document(db, "product", Product(**p))

    logger.info("Seeded %d users and %d products", users, len(SAMPLE_PRODUCTS))
    return {"status": "seeded", "users": users, "count": len(SAMPLE_PRODUCTS)}


def backfill_sizes(db: Database) -> int:
    """Give products without sizes the defaults for their category."""
    missing = db["product"].find(
        {"$or": [{"sizes": {"$exists": False}}, {"sizes": None}, {"sizes": {"$size": 0}}]},
        {"category": 1, "name": 1},
    )
    updated = 0
    for product in list(missing):
        sizes = DEFAULT_SIZES.get(product.get("category"), ["S", "M", "L"])
        db["product"].update_one({"_id": product["_id"]}, {"$set": {"sizes": sizes}})
        logger.info("Backfilled sizes for %s: %s", product.get("name"), ", ".join(sizes))
        updated += 1
    return updated


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seed the denim store database")
    parser.add_argument("--force", action="store_true", help="replace existing products")
    parser.add_argument("--backfill-sizes", action="store_true", help="only fill in missing product sizes")
    return parser


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    args = build_parser().parse_args()

    database = get_db()
    if args.backfill_sizes:
        print(f"Updated {backfill_sizes(database)} products")
    else:
        print(seed_database(database, force=args.force))
