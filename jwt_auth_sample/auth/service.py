from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from jwt_auth_sample.config import Config
from jwt_auth_sample.errors import AuthenticationError, NotFoundError, ValidationError

from .security import create_access_token, dummy_verify, hash_password, verify_password
from .store import AccountStore


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


@dataclass(frozen=True)
class SignInResult:
    token: str


def require_credentials(email: Optional[str], password: Optional[str]) -> None:
    """Email is checked before password."""
    if not email:
        raise ValidationError("Missing email")
    if not password:
        raise ValidationError("Missing password")


class AuthService:
    """Sign-up and sign-in on top of an ``AccountStore``.

    Hashing and verification are CPU-bound and slow on purpose; the API calls
    these methods from sync handlers, which FastAPI runs in its threadpool.
    """

    def __init__(self, store: AccountStore, cfg: Config):
        self.store = store
        self.cfg = cfg

    def sign_up(self, email: Optional[str], password: Optional[str]) -> None:
        """Create an account. Raises ValidationError or ConflictError."""
        require_credentials(email, password)
        assert email is not None and password is not None

        # Hash before touching storage; the plaintext never leaves this method.
        password_hash = hash_password(password, rounds=int(self.cfg.BCRYPT_ROUNDS))
        self.store.create_account({"email": email, "password": password_hash})
        _debug(f"Account created: email={email}")

    def sign_in(self, email: Optional[str], password: Optional[str]) -> SignInResult:
        """Check credentials and issue a session token.

        Unknown email and wrong password produce the same error, and both paths
        pay for one bcrypt verification.
        """
        require_credentials(email, password)
        assert email is not None and password is not None

        records = self.store.find_by_email(email)
        if not records:
            dummy_verify(rounds=int(self.cfg.BCRYPT_ROUNDS))
            _debug(f"Sign-in rejected (no account): email={email}")
            raise NotFoundError("Incorrect password")

        record = records[0]
        if not verify_password(password, str(record.get("password") or "")):
            _debug(f"Sign-in rejected (bad password): email={email}")
            raise AuthenticationError("Incorrect password")

        token = create_access_token(
            secret=self.cfg.JWT_SECRET,
            email=str(record["email"]),
            expires_minutes=int(self.cfg.AUTH_TOKEN_EXPIRE_MINUTES),
        )
        _debug(f"Signed in: email={email}")
        return SignInResult(token=token)
