"""Bearer-token authentication: supplies the acting user to every route.

The ledger trusts whatever user this module resolves; it never re-checks.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
import uuid
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.db.engine import get_session
from src.db.repository import Repository
from src.db.user_tables import UserRow

# ---- Password hashing (PBKDF2) ----

_ITERATIONS = 260_000
_SALT_LEN = 32


def hash_password(password: str) -> str:
    salt = uuid.uuid4().hex[:_SALT_LEN]
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _ITERATIONS)
    return f"{salt}${dk.hex()}"


def verify_password(password: str, stored: str) -> bool:
    salt, _, dk_hex = stored.partition("$")
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _ITERATIONS)
    return hmac.compare_digest(dk.hex(), dk_hex)


# ---- Tokens (HS256 JWT) ----

_JWT_ALGO = "HS256"
_DEFAULT_TTL = 3600 * 24  # 1 day

_TTL_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_expires_in(value: str | int | None) -> int:
    """Accept seconds or strings like "1d", "12h", "30m"."""
    if value is None or value == "":
        return _DEFAULT_TTL
    if isinstance(value, int):
        return value
    value = value.strip()
    if value.isdigit():
        return int(value)
    unit = _TTL_UNITS.get(value[-1:])
    if unit is None or not value[:-1].isdigit():
        raise ValueError(f"Unrecognized expiry: {value!r}")
    return int(value[:-1]) * unit


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64url_decode(s: str) -> bytes:
    s += "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode(s)


def _sign(payload: dict) -> str:
    header = _b64url(json.dumps({"alg": _JWT_ALGO, "typ": "JWT"}).encode())
    body = _b64url(json.dumps(payload).encode())
    sig_input = f"{header}.{body}".encode()
    sig = hmac.new(settings.JWT_SECRET.encode(), sig_input, hashlib.sha256).digest()
    return f"{header}.{body}.{_b64url(sig)}"


def verify_token(token: str) -> Optional[dict]:
    parts = token.split(".")
    if len(parts) != 3:
        return None
    sig_input = f"{parts[0]}.{parts[1]}".encode()
    expected = hmac.new(settings.JWT_SECRET.encode(), sig_input, hashlib.sha256).digest()
    try:
        actual = _b64url_decode(parts[2])
        if not hmac.compare_digest(expected, actual):
            return None
        payload = json.loads(_b64url_decode(parts[1]))
    except (binascii.Error, ValueError):
        return None
    if payload.get("exp", 0) < time.time():
        return None
    return payload


def create_token(user_id: str, username: str, expires_in: str | int | None = None) -> str:
    now = int(time.time())
    return _sign({
        "sub": user_id,
        "username": username,
        "iat": now,
        "exp": now + parse_expires_in(expires_in),
        "jti": uuid.uuid4().hex[:8],
    })


# ---- FastAPI dependency ----

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    session: AsyncSession = Depends(get_session),
) -> Optional[UserRow]:
    if not creds:
        return None
    payload = verify_token(creds.credentials)
    if not payload:
        return None
    return await Repository(session).find_one(UserRow, UserRow.id == payload["sub"])


async def require_user(user: Optional[UserRow] = Depends(get_current_user)) -> UserRow:
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="You are not logged in")
    return user
