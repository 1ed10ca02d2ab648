from __future__ import annotations

from typing import Any, Dict

import jwt
from fastapi import Request

from jwt_auth_sample.errors import AuthenticationError, StorageError

from .security import decode_access_token


def require_session(request: Request) -> Dict[str, Any]:
    """Gate a route on a valid session cookie.

    Reads the JWT from the session cookie, verifies signature and expiry, and
    stores the decoded claims on ``request.state.account``. Rejects with 403
    otherwise.
    """

    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise StorageError("server_config_missing")

    token = request.cookies.get(cfg.AUTH_COOKIE_NAME)
    if not token:
        raise AuthenticationError("No access token provided")

    try:
        payload = decode_access_token(token=token, secret=cfg.JWT_SECRET)
    except jwt.InvalidTokenError:
        # Covers bad signature, malformed token and expiry.
        raise AuthenticationError("Invalid access token")

    request.state.account = payload
    return payload
