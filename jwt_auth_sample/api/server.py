from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from jwt_auth_sample.auth import AccountStore, AuthService, require_session
from jwt_auth_sample.auth.security import token_expiry
from jwt_auth_sample.config import Config, load_config
from jwt_auth_sample.db import ConnectionPool, init_db
from jwt_auth_sample.errors import AuthError, StorageError


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


# -----------------------------
# Session cookie
# -----------------------------


def _cookie_secure(cfg: Config) -> bool:
    """Return whether the session cookie should be marked Secure."""
    samesite = str(cfg.AUTH_COOKIE_SAMESITE or "lax").lower()
    # Browsers require Secure when SameSite=None
    if samesite == "none":
        return True
    if cfg.AUTH_COOKIE_SECURE is not None:
        return bool(cfg.AUTH_COOKIE_SECURE)
    return not cfg.is_local


def _set_auth_cookie(response: Response, *, token: str, cfg: Config) -> None:
    """Attach the session token as an httpOnly cookie that lives as long as the token."""
    minutes = max(1, int(cfg.AUTH_TOKEN_EXPIRE_MINUTES))
    response.set_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        value=str(token),
        expires=token_expiry(minutes),
        max_age=minutes * 60,
        httponly=True,
        samesite=str(cfg.AUTH_COOKIE_SAMESITE or "lax").lower(),
        secure=_cookie_secure(cfg),
        path=str(cfg.AUTH_COOKIE_PATH or "/"),
    )


# -----------------------------
# Auth routes
# -----------------------------


class CredentialsRequest(BaseModel):
    """Body of /signup and /signin.

    Both fields are optional here so a missing one is reported by the service
    as 400 "Missing ..." rather than as a schema error.
    """

    email: Optional[str] = None
    password: Optional[str] = None


def get_service(request: Request) -> AuthService:
    return request.app.state.service


router = APIRouter()


# Handlers are sync on purpose: FastAPI runs them in its threadpool, so bcrypt
# never blocks the event loop.
@router.post("/signup", response_class=PlainTextResponse)
def signup(
    payload: Optional[CredentialsRequest] = None,
    service: AuthService = Depends(get_service),
) -> PlainTextResponse:
    body = payload or CredentialsRequest()
    service.sign_up(body.email, body.password)
    return PlainTextResponse("Account created successfully", status_code=201)


@router.post("/signin", response_class=PlainTextResponse)
def signin(
    request: Request,
    payload: Optional[CredentialsRequest] = None,
    service: AuthService = Depends(get_service),
) -> PlainTextResponse:
    body = payload or CredentialsRequest()
    result = service.sign_in(body.email, body.password)

    response = PlainTextResponse("Account logged in", status_code=200)
    _set_auth_cookie(response, token=result.token, cfg=request.app.state.cfg)
    return response


@router.get("/test-public", response_class=PlainTextResponse)
def test_public() -> PlainTextResponse:
    return PlainTextResponse("Success", status_code=200)


@router.get("/test-private", response_class=PlainTextResponse)
def test_private(_account: Dict[str, Any] = Depends(require_session)) -> PlainTextResponse:
    return PlainTextResponse("Success with access token", status_code=200)


# -----------------------------
# Error handling
# -----------------------------


def _auth_error_handler(request: Request, exc: Exception) -> PlainTextResponse:
    assert isinstance(exc, AuthError)
    if isinstance(exc, StorageError):
        _debug(f"Storage error on {request.method} {request.url.path}: {exc.detail}")
    return PlainTextResponse(exc.message, status_code=exc.status_code)


def _request_validation_handler(request: Request, exc: Exception) -> PlainTextResponse:
    # FastAPI's default 422 body echoes the submitted input, passwords included.
    _debug(f"Malformed request on {request.method} {request.url.path}")
    return PlainTextResponse("Bad request", status_code=400)


def _unexpected_error_handler(request: Request, exc: Exception) -> PlainTextResponse:
    # Never leak internals to the client.
    _debug(f"Unhandled error on {request.method} {request.url.path}: {type(exc).__name__}: {exc}")
    return PlainTextResponse("Internal server error", status_code=500)


# -----------------------------
# App
# -----------------------------


def create_app(cfg: Optional[Config] = None, pool: Optional[ConnectionPool] = None) -> FastAPI:
    """Build the application.

    ``pool`` may be injected (tests, embedding). Otherwise one is created on
    startup from ``cfg.DB_DSN`` and closed on shutdown.
    """

    cfg = cfg or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = pool is None
        active = pool or ConnectionPool(
            cfg.DB_DSN,
            minconn=int(cfg.DB_POOL_MIN),
            maxconn=int(cfg.DB_POOL_MAX),
        )

        try:
            # Ensure schema exists.
            init_db(active)

            app.state.pool = active
            app.state.service = AuthService(AccountStore(active), cfg)
            _debug("Running...")
            yield
        finally:
            if owned:
                active.close()

    app = FastAPI(title="JWT Auth Sample", version="0.1.0", lifespan=lifespan)
    # Make config available to auth deps.
    app.state.cfg = cfg

    # CORS is only needed when a browser frontend is served from another origin.
    cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(AuthError, _auth_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok"}

    @app.get("/api/")
    def welcome() -> Dict[str, Any]:
        return {"message": "Welcome to the sample auth application."}

    app.include_router(router, prefix=cfg.API_PREFIX.rstrip("/"))
    return app


app = create_app()
