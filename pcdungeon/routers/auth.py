import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException

from pcdungeon import config, mailer
from pcdungeon.database import create_document, db, find_by_id, utcnow
from pcdungeon.errors import AuthenticationError, PermissionDeniedError
from pcdungeon.responses import success
from pcdungeon.schemas import ForgotPasswordRequest, LoginRequest, RegisterRequest, ResetPasswordRequest
from pcdungeon.security import (
    create_token,
    get_current_user,
    hash_password,
    hash_reset_token,
    new_reset_token,
    permissions_for_role,
    public_user,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _token_response(user: dict, status_message: str = None) -> dict:
    return success({"user": public_user(user)}, message=status_message, token=create_token(user))


def _authenticate(payload: LoginRequest) -> dict:
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("hashed_password", "")):
        raise AuthenticationError("Incorrect email or password")
    if user.get("status", "active") != "active":
        raise AuthenticationError("Your account is not active")
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"last_login": utcnow()}})
    return user


@router.post("/register", status_code=201)
def register(payload: RegisterRequest):
    email = payload.email.lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="Email already registered")
    if db["user"].find_one({"username": payload.username}):
        raise HTTPException(status_code=400, detail="Username already taken")
    # self-registration never grants staff roles
    doc = {
        "username": payload.username,
        "email": email,
        "hashed_password": hash_password(payload.password),
        "role": "customer",
        "status": "active",
        "permissions": permissions_for_role("customer"),
    }
    user = find_by_id("user", create_document("user", doc))
    return _token_response(user)


@router.post("/login")
def login(payload: LoginRequest):
    return _token_response(_authenticate(payload))


@router.post("/admin/login")
def admin_login(payload: LoginRequest):
    user = _authenticate(payload)
    if user.get("role") != "admin":
        raise PermissionDeniedError("Access denied. Admin privileges required.")
    return _token_response(user)


@router.get("/me")
async def me(current_user: dict = Depends(get_current_user)):
    user = public_user(current_user)
    user["status"] = current_user.get("status", "active")
    user["permissions"] = permissions_for_role(user["role"])
    return success({"user": user})


@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordRequest):
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user:
        raise HTTPException(status_code=404, detail="There is no user with that email address.")

    raw, hashed = new_reset_token()
    expires = utcnow() + timedelta(minutes=config.PASSWORD_RESET_EXPIRES_MIN)
    db["user"].update_one({"_id": user["_id"]},
                          {"$set": {"password_reset_token": hashed, "password_reset_expires": expires}})

    reset_url = f"{config.PASSWORD_RESET_URL.rstrip('/')}/{raw}"
    try:
        mailer.send_password_reset(user["email"], user.get("username"), reset_url)
    except mailer.MailError as exc:
        logger.error("Password reset mail to %s failed: %s", user["email"], exc)
        db["user"].update_one({"_id": user["_id"]},
                              {"$unset": {"password_reset_token": "", "password_reset_expires": ""}})
        raise HTTPException(status_code=500, detail="There was an error sending the email. Try again later!")
    return success(message="Token sent to email!")


@router.patch("/reset-password/{token}")
def reset_password(token: str, payload: ResetPasswordRequest):
    if payload.password != payload.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")
    if len(payload.password) < 6:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters long")

    user = db["user"].find_one({
        "password_reset_token": hash_reset_token(token),
        "password_reset_expires": {"$gt": utcnow()},
    })
    if not user:
        raise HTTPException(status_code=400, detail="Token is invalid or has expired")

    db["user"].update_one(
        {"_id": user["_id"]},
        {
            "$set": {"hashed_password": hash_password(payload.password),
                     "password_changed_at": utcnow(), "updated_at": utcnow()},
            "$unset": {"password_reset_token": "", "password_reset_expires": ""},
        },
    )
    return _token_response(db["user"].find_one({"_id": user["_id"]}), "Password reset successful")
