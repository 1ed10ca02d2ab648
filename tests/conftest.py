import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1]))

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from jwt_auth_sample.api.server import create_app
from jwt_auth_sample.auth import AccountStore, AuthService
from jwt_auth_sample.config import Config
from jwt_auth_sample.db import ConnectionPool, init_db

TEST_SECRET = "test-secret-not-for-production-0123456789"


def make_config(db_path: Path, **overrides) -> Config:
    """Config pinned to test values so the ambient environment cannot leak in."""
    values = dict(
        DB_DSN=str(db_path),
        DB_POOL_MIN=1,
        DB_POOL_MAX=4,
        JWT_SECRET=TEST_SECRET,
        AUTH_TOKEN_EXPIRE_MINUTES=1440,
        # Minimum bcrypt cost keeps the suite fast.
        BCRYPT_ROUNDS=4,
        AUTH_COOKIE_NAME="jwt-auth",
        AUTH_COOKIE_SAMESITE="lax",
        AUTH_COOKIE_PATH="/",
        ENVIRONMENT="",
        AUTH_COOKIE_SECURE=None,
        API_PREFIX="/api/auth",
        CORS_ALLOW_ORIGINS="",
    )
    values.update(overrides)
    return Config(**values)


@pytest.fixture()
def cfg(tmp_path: Path) -> Config:
    return make_config(tmp_path / "auth.sqlite")


@pytest.fixture()
def pool(cfg: Config):
    p = ConnectionPool(cfg.DB_DSN, minconn=cfg.DB_POOL_MIN, maxconn=cfg.DB_POOL_MAX)
    init_db(p)
    yield p
    p.close()


@pytest.fixture()
def store(pool: ConnectionPool) -> AccountStore:
    return AccountStore(pool)


@pytest.fixture()
def service(store: AccountStore, cfg: Config) -> AuthService:
    return AuthService(store, cfg)


@pytest.fixture()
def client(cfg: Config, pool: ConnectionPool):
    # https so the client jar sends back the Secure session cookie.
    app = create_app(cfg, pool=pool)
    with TestClient(app, base_url="https://testserver") as c:
        yield c


def count_accounts(pool: ConnectionPool, email: str) -> int:
    with pool.connection() as conn:
        row = conn.execute("SELECT COUNT(*) AS n FROM account WHERE email = ?", (email,)).fetchone()
    return int(row["n"])
