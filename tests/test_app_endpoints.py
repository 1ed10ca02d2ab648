from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from conftest import TEST_SECRET, count_accounts, make_config
from jwt_auth_sample.api.server import create_app
from jwt_auth_sample.auth.security import create_access_token, decode_access_token

PREFIX = "/api/auth"
CREDS = {"email": "a@x.com", "password": "p"}


def signup(client, body=CREDS):
    return client.post(f"{PREFIX}/signup", json=body)


def signin(client, body=CREDS):
    return client.post(f"{PREFIX}/signin", json=body)


def test_welcome_and_health(client):
    r = client.get("/api/")
    assert r.status_code == 200
    assert r.json() == {"message": "Welcome to the sample auth application."}

    assert client.get("/health").json() == {"status": "ok"}


def test_signup_created(client, pool):
    r = signup(client)
    assert r.status_code == 201
    assert r.text == "Account created successfully"
    assert r.headers["content-type"].startswith("text/plain")
    assert count_accounts(pool, "a@x.com") == 1


def test_signup_twice_is_conflict_without_second_row(client, pool):
    assert signup(client).status_code == 201

    r = signup(client)
    assert r.status_code == 409
    assert r.text == "Email already exists"
    assert count_accounts(pool, "a@x.com") == 1


@pytest.mark.parametrize("path", ["signup", "signin"])
@pytest.mark.parametrize(
    "body, message",
    [
        (None, "Missing email"),
        ({}, "Missing email"),
        ({"password": "p"}, "Missing email"),
        ({"email": "", "password": "p"}, "Missing email"),
        ({"email": "a@x.com"}, "Missing password"),
        ({"email": "a@x.com", "password": ""}, "Missing password"),
    ],
)
def test_missing_fields_are_bad_request(client, path, body, message):
    if body is None:
        r = client.post(f"{PREFIX}/{path}")
    else:
        r = client.post(f"{PREFIX}/{path}", json=body)
    assert r.status_code == 400
    assert r.text == message


def test_signin_sets_session_cookie(client):
    signup(client)

    r = signin(client)
    assert r.status_code == 200
    assert r.text == "Account logged in"

    set_cookie = r.headers["set-cookie"]
    attrs = [a.strip().lower() for a in set_cookie.split(";")]
    assert set_cookie.startswith("jwt-auth=")
    assert "httponly" in attrs
    assert "secure" in attrs
    assert "samesite=lax" in attrs
    assert "max-age=86400" in attrs
    assert any(a.startswith("expires=") for a in attrs)

    token = client.cookies.get("jwt-auth")
    claims = decode_access_token(token=token, secret=TEST_SECRET)
    assert claims["sub"] == "a@x.com"
    assert "password" not in claims


def test_signin_cookie_not_secure_in_local_environment(tmp_path, pool):
    cfg = make_config(tmp_path / "auth.sqlite", ENVIRONMENT="Local")
    with TestClient(create_app(cfg, pool=pool)) as local_client:
        signup(local_client)
        r = signin(local_client)

    attrs = [a.strip().lower() for a in r.headers["set-cookie"].split(";")]
    assert r.status_code == 200
    assert "secure" not in attrs
    assert "httponly" in attrs


def test_signin_wrong_password_and_unknown_email_look_the_same(client):
    signup(client)

    wrong = signin(client, {"email": "a@x.com", "password": "nope"})
    unknown = signin(client, {"email": "ghost@x.com", "password": "p"})

    assert wrong.status_code == unknown.status_code == 403
    assert wrong.text == unknown.text == "Incorrect password"
    assert "set-cookie" not in wrong.headers
    assert "set-cookie" not in unknown.headers


def test_public_route(client):
    r = client.get(f"{PREFIX}/test-public")
    assert r.status_code == 200
    assert r.text == "Success"


def test_private_route_without_cookie(client):
    r = client.get(f"{PREFIX}/test-private")
    assert r.status_code == 403
    assert r.text == "No access token provided"


@pytest.mark.parametrize(
    "token",
    [
        "garbage",
        create_access_token(
            secret="some-other-secret-that-is-long-enough", email="a@x.com", expires_minutes=60
        ),
        create_access_token(
            secret=TEST_SECRET,
            email="a@x.com",
            expires_minutes=1440,
            now=datetime.now(timezone.utc) - timedelta(days=2),
        ),
    ],
    ids=["malformed", "wrong-secret", "expired"],
)
def test_private_route_with_invalid_token(client, token):
    client.cookies.set("jwt-auth", token)
    r = client.get(f"{PREFIX}/test-private")
    assert r.status_code == 403
    assert r.text == "Invalid access token"


def test_private_route_after_signin(client):
    signup(client)
    assert signin(client).status_code == 200

    r = client.get(f"{PREFIX}/test-private")
    assert r.status_code == 200
    assert r.text == "Success with access token"


def test_storage_failure_is_generic_500(client, pool):
    with pool.connection() as conn:
        conn.execute("DROP TABLE account")

    r = signin(client)
    assert r.status_code == 500
    assert r.text == "Internal server error"
    assert "account" not in r.text


def test_unexpected_error_is_generic_500(cfg, pool, monkeypatch):
    app = create_app(cfg, pool=pool)
    with TestClient(app, base_url="https://testserver", raise_server_exceptions=False) as c:
        def boom(email, password):
            raise RuntimeError("secret internals")

        monkeypatch.setattr(app.state.service, "sign_up", boom)
        r = signup(c)

    assert r.status_code == 500
    assert r.text == "Internal server error"


@pytest.mark.parametrize("path", ["signup", "signin"])
def test_wrong_typed_field_is_plain_bad_request(client, path):
    r = client.post(f"{PREFIX}/{path}", json={"email": "a@x.com", "password": 12345678})
    assert r.status_code == 400
    assert r.text == "Bad request"
    assert r.headers["content-type"].startswith("text/plain")
    assert "12345678" not in r.text


def test_form_encoded_body_is_plain_bad_request(client, pool):
    r = client.post(f"{PREFIX}/signup", data={"email": "a@x.com", "password": "hunter2"})
    assert r.status_code == 400
    assert r.text == "Bad request"
    assert r.headers["content-type"].startswith("text/plain")
    assert "hunter2" not in r.text
    assert count_accounts(pool, "a@x.com") == 0


def test_owned_pool_closed_when_schema_setup_fails(cfg, monkeypatch):
    import jwt_auth_sample.api.server as server_module

    created = []

    class RecordingPool:
        def __init__(self, dsn, *, minconn, maxconn):
            self.dsn = dsn
            self.closed = False
            created.append(self)

        def close(self):
            self.closed = True

    def failing_init_db(pool):
        raise RuntimeError("schema setup failed")

    monkeypatch.setattr(server_module, "ConnectionPool", RecordingPool)
    monkeypatch.setattr(server_module, "init_db", failing_init_db)

    with pytest.raises(Exception):
        with TestClient(server_module.create_app(cfg)):
            pass

    assert len(created) == 1
    assert created[0].closed
