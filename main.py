import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pymongo.database import Database
from pymongo.errors import PyMongoError

import auth
import catalog
import database
import orders
import seed
from auth import get_current_user, require_admin
from database import get_db
from errors import StoreError
from schemas import (
    CreateOrderRequest,
    LoginRequest,
    Product,
    ProductUpdate,
    SignupRequest,
    StatusUpdateRequest,
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        database.ensure_indexes(database.db)
    yield


app = FastAPI(title="Denim Store API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Server error"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Server error"})


class TokenResponse(BaseModel):
    token: str
    user: dict


@app.get("/")
def root():
    return {"message": "Denim Store API is running!"}


@app.get("/schema")
def schema_overview():
    return {
        "collections": ["user", "product", "order"],
    }


# Auth Endpoints
@app.post("/api/auth/signup", response_model=TokenResponse, status_code=201)
def signup(payload: SignupRequest, db: Database = Depends(get_db)):
    return auth.signup(db, payload)


@app.post("/api/auth/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    return auth.login(db, payload)


@app.get("/api/auth/me")
def me(user=Depends(get_current_user)):
    return {"user": auth.public_user(user)}


# Product Endpoints
@app.get("/api/products")
def list_products(category: Optional[str] = None, fit: Optional[str] = None, db: Database = Depends(get_db)):
    return catalog.list_products(db, category=category, fit=fit)


@app.get("/api/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return catalog.get_product(db, product_id)


@app.post("/api/products", status_code=201)
def create_product(payload: Product, user=Depends(require_admin), db: Database = Depends(get_db)):
    product = catalog.create_product(db, payload)
    return {"message": "Product created successfully", "product": product}


@app.put("/api/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, user=Depends(require_admin), db: Database = Depends(get_db)):
    product = catalog.update_product(db, product_id, payload)
    return {"message": "Product updated successfully", "product": product}


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, user=Depends(require_admin), db: Database = Depends(get_db)):
    catalog.delete_product(db, product_id)
    return {"message": "Product deleted successfully"}


# Orders
@app.post("/api/orders", status_code=201)
def create_order(payload: CreateOrderRequest, user=Depends(get_current_user), db: Database = Depends(get_db)):
    order = orders.create_order(db, str(user["_id"]), payload)
    return {"message": "Order created successfully", "order": order}


@app.get("/api/orders")
def list_orders(user=Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.list_orders(db, str(user["_id"]))


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.get_order(db, order_id, str(user["_id"]))


@app.put("/api/orders/{order_id}/status")
def update_order_status(
    order_id: str,
    payload: StatusUpdateRequest,
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
):
    order = orders.update_status(db, order_id, str(user["_id"]), payload.status)
    return {"message": "Order status updated successfully", "order": order}


@app.delete("/api/orders/{order_id}")
def cancel_order(order_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    order = orders.cancel_order(db, order_id, str(user["_id"]))
    return {"message": "Order cancelled successfully and stock restored", "order": order}


# Admin
@app.get("/api/admin/stats")
def admin_stats(user=Depends(require_admin), db: Database = Depends(get_db)):
    return catalog.catalog_stats(db)


class SeedRequest(BaseModel):
    force: bool = False


@app.post("/api/admin/seed")
def seed_demo(payload: Optional[SeedRequest] = None, user=Depends(require_admin), db: Database = Depends(get_db)):
    return seed.seed_database(db, force=bool(payload and payload.force))


# Simple health
@app.get("/test")
def test_database():
    status = {
        "backend": "running",
        "database": "not-configured",
    }
    if database.db is None:
        return status
    try:
        database.db.list_collection_names()
        status["database"] = "connected"
    except PyMongoError:
        status["database"] = "error"
    return status


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
