"""Bearer token verification for chat sockets and HTTP endpoints."""

from __future__ import annotations

from typing import Any, Dict

import jwt
from fastapi import HTTPException, status

from app.config import get_settings
from spotlink.realtime.connection import TrustedIdentity

settings = get_settings()


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT access token."""

    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials") from exc
    return payload


def identity_from_token(token: str) -> TrustedIdentity:
    """Resolve the trusted chat identity carried by a bearer token."""

    payload = decode_access_token(token)
    subject = payload.get("sub")
    if subject is None or not str(subject).strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return TrustedIdentity(
        user_id=str(subject).strip(),
        nickname=payload.get("nickname") or None,
        profile_image=payload.get("profile_image") or None,
    )
