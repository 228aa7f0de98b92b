import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Optional, Tuple

import jwt
from bson import ObjectId
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from pcdungeon import config
from pcdungeon.database import create_document, db, utcnow
from pcdungeon.errors import AuthenticationError, PermissionDeniedError

logger = logging.getLogger(__name__)

STAFF_ROLES = ("admin", "sub-admin")

security = HTTPBearer(auto_error=False)
password_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return password_ctx.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return password_ctx.verify(password, hashed)


def permissions_for_role(role: str) -> dict:
    if role == "admin":
        return {
            "can_view_costs": True,
            "can_edit_products": True,
            "can_manage_purchases": True,
            "can_manage_sales": True,
            "can_manage_users": True,
            "can_view_reports": True,
        }
    if role == "sub-admin":
        return {
            "can_view_costs": False,
            "can_edit_products": True,
            "can_manage_purchases": False,
            "can_manage_sales": True,
            "can_manage_users": False,
            "can_view_reports": False,
        }
    return {
        "can_view_costs": False,
        "can_edit_products": False,
        "can_manage_purchases": False,
        "can_manage_sales": False,
        "can_manage_users": False,
        "can_view_reports": False,
    }


def create_token(user: dict) -> str:
    now = utcnow()
    payload = {
        "sub": str(user["_id"]),
        "role": user.get("role", "customer"),
        "exp": now + timedelta(minutes=config.JWT_EXPIRES_MIN),
        "iat": now,
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm="HS256")


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")


def new_reset_token() -> Tuple[str, str]:
    """Return ``(raw_token, sha256_hex)``; only the hash is persisted."""
    raw = secrets.token_hex(32)
    return raw, hash_reset_token(raw)


def hash_reset_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _user_from_credentials(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[dict]:
    if credentials is None:
        return None
    payload = decode_token(credentials.credentials)
    uid = payload.get("sub")
    if not uid or not ObjectId.is_valid(uid):
        raise AuthenticationError("Invalid token")
    user = db["user"].find_one({"_id": ObjectId(uid)})
    if not user:
        raise AuthenticationError("The user belonging to this token no longer exists.")
    if user.get("status") == "suspended":
        raise PermissionDeniedError("Account suspended")
    return user


async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> dict:
    user = _user_from_credentials(credentials)
    if user is None:
        raise AuthenticationError("You are not logged in! Please log in to get access.")
    return user


async def get_optional_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Optional[dict]:
    return _user_from_credentials(credentials)


def require_roles(*roles: str):
    async def checker(user: dict = Depends(get_current_user)) -> dict:
        if user.get("role") not in roles:
            raise PermissionDeniedError("You do not have permission to perform this action")
        return user
    return checker


require_staff = require_roles(*STAFF_ROLES)


def public_user(user: dict) -> dict:
    return {
        "id": str(user["_id"]),
        "username": user.get("username"),
        "email": user.get("email"),
        "role": user.get("role", "customer"),
    }


def ensure_admin_account(email: str, password: str, username: str = "admin") -> Optional[dict]:
    """Create the first admin from configuration; existing accounts are left alone."""
    if not email or not password:
        return None
    email = email.lower()
    existing = db["user"].find_one({"email": email})
    if existing:
        if existing.get("role") != "admin":
            logger.warning("Configured admin %s exists with role %s", email, existing.get("role"))
        return existing
    user_id = create_document("user", {
        "username": username,
        "email": email,
        "hashed_password": hash_password(password),
        "role": "admin",
        "status": "active",
        "permissions": permissions_for_role("admin"),
    })
    logger.info("Created admin account %s", email)
    return db["user"].find_one({"_id": ObjectId(user_id)})
