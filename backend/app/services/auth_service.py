"""
backend/app/services/auth_service.py

Purpose:
    Admin request guard. Token issuance lives with the identity service; this
    backend only verifies HS256 access tokens (cookie or bearer header) and
    resolves the admin account they name.

Dependencies:
    - PyJWT
    - app.database
"""

import logging

import jwt
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, HTTPException, Request, status
from jwt.exceptions import InvalidTokenError as JWTError

from app.config import settings
from app.database import get_db

logger = logging.getLogger("matchsync.auth")

ALGORITHM = "HS256"


def decode_jwt(token: str) -> dict:
    if not settings.JWT_SECRET:
        raise JWTError("JWT_SECRET is not configured")
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM])


def _extract_token(request: Request) -> str | None:
    header = request.headers.get("authorization") or ""
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get("access_token")


async def get_admin_user(request: Request, db=Depends(get_db)) -> dict:
    """FastAPI dependency: requires an authenticated, active admin account."""
    token = _extract_token(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    try:
        payload = decode_jwt(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    if payload.get("type", "access") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")

    try:
        admin_id = ObjectId(str(payload.get("sub") or ""))
    except InvalidId:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    admin = await db.admin_users.find_one({"_id": admin_id})
    if admin is None or admin.get("is_active") is False:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown or inactive account")
    if not admin.get("is_admin"):
        logger.warning("Non-admin account %s tried an admin endpoint %s", admin_id, request.url.path)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrators only.")
    return admin
