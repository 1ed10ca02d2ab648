from __future__ import annotations

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext


DEFAULT_BCRYPT_ROUNDS = 10
_JWT_ALG = "HS256"


@lru_cache(maxsize=None)
def _pwd(rounds: int = DEFAULT_BCRYPT_ROUNDS) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=int(rounds))


def hash_password(password: str, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd(rounds).hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd().verify(password, password_hash)
    except ValueError:
        # Stored value is not a recognizable hash.
        return False


def dummy_verify(*, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
    """Spend the time of a real verification at cost `rounds` against a throwaway hash."""
    _pwd(int(rounds)).dummy_verify()


def token_expiry(expires_minutes: int, *, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now + timedelta(minutes=max(1, int(expires_minutes)))


def create_access_token(
    *,
    secret: str,
    email: str,
    expires_minutes: int,
    now: Optional[datetime] = None,
) -> str:
    if not secret:
        raise ValueError("jwt_secret_blank")

    now = now or datetime.now(timezone.utc)
    exp = token_expiry(expires_minutes, now=now)

    # Identity claim only; the password hash never goes into the token.
    payload: Dict[str, Any] = {
        "sub": email,
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def decode_access_token(*, token: str, secret: str) -> Dict[str, Any]:
    """Verify signature and expiry. Raises jwt.InvalidTokenError on any failure."""
    if not token:
        raise ValueError("token_blank")
    if not secret:
        raise ValueError("jwt_secret_blank")
    return jwt.decode(
        token,
        secret,
        algorithms=[_JWT_ALG],
        options={"require": ["exp", "sub"]},
    )
