import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, Header
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, serialize
from errors import Forbidden, InvalidRequest, Unauthorized
from schemas import LoginRequest, SignupRequest, User

logger = logging.getLogger(__name__)

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
JWT_EXPIRES_DAYS = int(os.getenv("JWT_EXPIRES_DAYS", "7"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

INVALID_CREDENTIALS = "Invalid credentials"


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # malformed stored hash
        return False


def create_token(user_doc: dict) -> str:
    payload = {
        "sub": str(user_doc["_id"]),
        "email": user_doc["email"],
        "name": user_doc["name"],
        "is_admin": user_doc.get("is_admin", False),
        "exp": datetime.now(timezone.utc) + timedelta(days=JWT_EXPIRES_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGO)


def decode_token(token: str) -> str:
    """Return the user id a token was issued for."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    except jwt.PyJWTError:
        raise Unauthorized("Token is not valid")
    user_id = payload.get("sub")
    if not user_id:
        raise Unauthorized("Token is not valid")
    return user_id


def public_user(user_doc: dict) -> dict:
    user = serialize(user_doc)
    user.pop("password_hash", None)
    return user


def _auth_response(user_doc: dict) -> dict:
    return {"token": create_token(user_doc), "user": public_user(user_doc)}


def signup(db: Database, payload: SignupRequest) -> dict:
    email = payload.email.lower()
    if db["user"].find_one({"email": email}):
        raise InvalidRequest("User already exists")
    user = User(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        is_admin=False,
    )
    try:
        user_id = create_document(db, "user", user)
    except DuplicateKeyError:
        raise InvalidRequest("User already exists")
    logger.info("New user signed up: %s", user_id)
    user_doc = db["user"].find_one({"_id": ObjectId(user_id)})
    return _auth_response(user_doc)


def login(db: Database, payload: LoginRequest) -> dict:
    user = db["user"].find_one({"email": payload.email.lower()})
    # Same message for unknown email and wrong password
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        logger.info("Failed login attempt")
        raise Unauthorized(INVALID_CREDENTIALS)
    return _auth_response(user)


def user_from_token(db: Database, token: str) -> dict:
    user_id = decode_token(token)
    try:
        user = db["user"].find_one({"_id": ObjectId(user_id)}, {"password_hash": 0})
    except InvalidId:
        raise Unauthorized("Token is not valid")
    if not user:
        raise Unauthorized("Token is not valid")
    return user


def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Database = Depends(get_db),
) -> dict:
    if not authorization:
        raise Unauthorized("No token, authorization denied")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise Unauthorized("No token, authorization denied")
    return user_from_token(db, token.strip())


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if not user.get("is_admin"):
        raise Forbidden("Admin access required")
    return user
