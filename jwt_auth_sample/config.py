import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from dotenv import load_dotenv

# Load a local .env file if present.
load_dotenv()


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


def _default_dsn() -> str:
    """Pick the storage DSN.

    Order: explicit URL, then discrete PG_* credentials (only when PG_PASSWORD
    is set), then a local SQLite file.
    """

    url = os.environ.get("JWT_AUTH_DATABASE_URL") or os.environ.get("DATABASE_URL")
    if url:
        return url

    password = os.environ.get("PG_PASSWORD")
    if password:
        user = os.environ.get("PG_USER", "postgres")
        host = os.environ.get("PG_HOST", "localhost")
        port = os.environ.get("PG_PORT", "5432")
        database = os.environ.get("PG_DATABASE", "jwt-auth-sample")
        return f"postgresql://{quote(user)}:{quote(password)}@{host}:{port}/{database}"

    return os.environ.get("JWT_AUTH_DB_PATH", "./jwt_auth_sample.sqlite")


# Values of ENVIRONMENT that turn off the Secure cookie flag.
LOCAL_ENVIRONMENTS = ("local", "dev", "development")


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Storage
    # -----------------
    # Postgres URL (postgres:// or postgresql://) or a SQLite file path.
    DB_DSN: str = _default_dsn()
    DB_POOL_MIN: int = int(os.environ.get("DB_POOL_MIN", "1"))
    DB_POOL_MAX: int = int(os.environ.get("DB_POOL_MAX", "10"))

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set JWT_SECRET to a strong random value.
    JWT_SECRET: str = os.environ.get("JWT_SECRET", "dev_change_me")
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_MINUTES", "1440"))  # 24 hours

    # bcrypt cost factor
    BCRYPT_ROUNDS: int = int(os.environ.get("BCRYPT_ROUNDS", "10"))

    # Session cookie
    AUTH_COOKIE_NAME: str = os.environ.get("AUTH_COOKIE_NAME", "jwt-auth")
    AUTH_COOKIE_SAMESITE: str = os.environ.get("AUTH_COOKIE_SAMESITE", "lax")  # lax|strict|none
    AUTH_COOKIE_PATH: str = os.environ.get("AUTH_COOKIE_PATH", "/")

    # Cookies are Secure unless ENVIRONMENT names a local/dev environment.
    # AUTH_COOKIE_SECURE=0/1 overrides that.
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "")
    AUTH_COOKIE_SECURE: Optional[bool] = _env_bool("AUTH_COOKIE_SECURE", None)

    # -----------------
    # HTTP
    # -----------------
    API_PREFIX: str = os.environ.get("API_PREFIX", "/api/auth")

    # Comma-separated origins; empty disables the CORS middleware.
    CORS_ALLOW_ORIGINS: str = os.environ.get("CORS_ALLOW_ORIGINS", "")

    @property
    def is_local(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in LOCAL_ENVIRONMENTS


def load_config() -> Config:
    return Config()
