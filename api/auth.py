"""Bearer-token authentication for REST routes and the interview socket."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, WebSocket, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from config.settings import settings
from storage.users import UserRecord, get_user


logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, *, expires_delta: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.JWT_EXPIRE_MINUTES))
    claims = {"sub": user_id, "iat": now, "exp": expire, "type": "access"}
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the verified claims, or ``None`` for a bad or expired token."""

    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        logger.debug("Rejected access token: %s", exc)
        return None


def resolve_user(token: Optional[str]) -> Optional[UserRecord]:  # Token -> stored user
    if not token:
        return None
    claims = decode_access_token(token)
    if not claims or not claims.get("sub"):
        return None
    return get_user(str(claims["sub"]))


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> UserRecord:
    if credentials is None:
        raise _unauthorized("Authentication required")
    user = resolve_user(credentials.credentials)
    if user is None:
        raise _unauthorized("Invalid or expired token")
    return user


def socket_token(websocket: WebSocket) -> Optional[str]:
    """Token from the ``token`` query parameter, else the Authorization header."""

    token = websocket.query_params.get("token")
    if token:
        return token
    header = websocket.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


__all__ = [
    "bearer_scheme",
    "create_access_token",
    "decode_access_token",
    "get_current_user",
    "resolve_user",
    "socket_token",
]
