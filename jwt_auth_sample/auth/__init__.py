"""Authentication / authorization.

Deliberately small:

- ``account`` table (email + bcrypt password hash)
- JWT session tokens carried in an httpOnly cookie
- One gate: a route is either public or requires a valid token
"""

from .deps import require_session
from .service import AuthService, SignInResult
from .store import AccountStore

__all__ = [
    "AccountStore",
    "AuthService",
    "SignInResult",
    "require_session",
]
