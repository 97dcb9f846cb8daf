from datetime import datetime, timedelta, timezone
import os
from typing import Optional

import jwt
from fastapi import HTTPException, Request
from pydantic import BaseModel
from sqlalchemy import text

from backend.database.dbconnect import session_scope
from backend.modules.logger import current_username, error, info

TOKEN_TTL_MINUTES = int(os.getenv("TOKEN_TTL_MINUTES", "60"))


class User(BaseModel):
    id: int
    username: str
    email: Optional[str] = None
    admin: bool = False


def _secret_key() -> str:
    return os.getenv("JWT_SECRET_KEY", "change-me")


def create_access_token(user_id: int, expires_minutes: int = TOKEN_TTL_MINUTES) -> str:
    payload = {
        "user_id": user_id,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, _secret_key(), algorithm="HS256")


def _extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ")[1]
    return request.cookies.get("token")


def get_user_from_token(request: Request) -> User:
    """
    Decode the JWT from the Authorization header or the ``token`` cookie and
    return the matching user.
    """
    token = _extract_token(request)
    if not token:
        error("Authentication failed: No token provided")
        raise HTTPException(status_code=401, detail="Authentication required")

    try:
        data = jwt.decode(token, _secret_key(), algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        error("Authentication failed: Token has expired")
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.InvalidTokenError:
        error("Authentication failed: Invalid token")
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = data.get("user_id")
    with session_scope() as session:
        row = session.execute(
            text("SELECT id, username, email, admin FROM users WHERE id = :user_id"),
            {"user_id": user_id},
        ).fetchone()

    if not row:
        error(f"Authentication failed: User ID {user_id} not found")
        raise HTTPException(status_code=401, detail="User not found")

    user = User(id=row.id, username=row.username, email=row.email, admin=bool(row.admin))
    current_username.set(user.username)
    info(f"User {user.username} authenticated successfully")
    return user


def get_current_user(request: Request) -> User:
    """FastAPI dependency for the authenticated user."""
    return get_user_from_token(request)
