import re
import time

import pytest

from api import create_app
from utils.security import encode_token, generate_jti

from conftest import SECRET, COOKIE_NAME, refresh_cookie_from

TOKEN_URL = "/api/v1/jwt/token"
REFRESH_URL = "/api/v1/jwt/refresh"
VERIFY_URL = "/api/v1/jwt/verify"
LOGOUT_URL = "/api/v1/jwt/logout"
SESSIONS_URL = "/api/v1/jwt/sessions"

JWT_FORMAT = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$")


def _login(client, username="alice", password="correct-pw"):
    return client.post(TOKEN_URL, json={"username": username, "password": password})


def _with_cookie(value):
    return {"Cookie": f"{COOKIE_NAME}={value}"}


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_login_returns_token_and_cookie(client, app_alice):
    resp = _login(client)
    assert resp.status_code == 200
    body = resp.get_json()
    assert JWT_FORMAT.match(body["access_token"])
    assert body["token_type"] == "Bearer"
    assert body["expires_in"] == 3600
    assert body["user"]["username"] == "alice"
    assert "password_hash" not in body["user"]

    header = next(h for h in resp.headers.getlist("Set-Cookie") if h.startswith(COOKIE_NAME))
    assert "HttpOnly" in header
    assert "SameSite=Lax" in header
    assert re.fullmatch(r"[0-9a-f]{64}", refresh_cookie_from(resp))


def test_refresh_rotates_cookie_and_token(client, app_alice):
    login = _login(client)
    original_cookie = refresh_cookie_from(login)

    resp = client.post(REFRESH_URL, headers=_with_cookie(original_cookie))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["access_token"] != login.get_json()["access_token"]
    assert body["token_type"] == "Bearer"
    assert body["expires_in"] == 3600
    new_cookie = refresh_cookie_from(resp)
    assert new_cookie and new_cookie != original_cookie


def test_reusing_rotated_cookie_is_rejected(client, app_alice):
    original_cookie = refresh_cookie_from(_login(client))
    assert client.post(REFRESH_URL, headers=_with_cookie(original_cookie)).status_code == 200

    resp = client.post(REFRESH_URL, headers=_with_cookie(original_cookie))
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "refresh_token_reused"


def test_verify_with_expired_token(client, app_alice):
    now = int(time.time())
    token = encode_token(
        {"iss": "jwt-session-api", "sub": str(app_alice.id), "iat": now - 7200, "exp": now - 3600, "jti": generate_jti()},
        SECRET,
    )
    resp = client.get(VERIFY_URL, headers=_bearer(token))
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "invalid_token"


def test_logout_then_refresh_fails(client, app_alice):
    cookie = refresh_cookie_from(_login(client))

    resp = client.post(LOGOUT_URL, headers=_with_cookie(cookie))
    assert resp.status_code == 200
    cleared = next(h for h in resp.headers.getlist("Set-Cookie") if h.startswith(COOKIE_NAME))
    assert "Max-Age=0" in cleared
    assert refresh_cookie_from(resp) == ""

    assert client.post(REFRESH_URL, headers=_with_cookie(cookie)).status_code == 401


def test_logout_without_cookie(client):
    resp = client.post(LOGOUT_URL)
    assert resp.status_code == 200
    assert "Max-Age=0" in resp.headers["Set-Cookie"]


def test_verify_valid_token(client, app_alice):
    token = _login(client).get_json()["access_token"]
    resp = client.get(VERIFY_URL, headers=_bearer(token))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["valid"] is True
    assert body["user"]["id"] == app_alice.id
    assert body["user"]["email"] == "alice@example.com"


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer "}])
def test_verify_not_authenticated(client, headers):
    resp = client.get(VERIFY_URL, headers=headers)
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "not_authenticated"


@pytest.mark.parametrize(
    "payload,status,code",
    [
        ({}, 400, "missing_credentials"),
        ({"username": "alice"}, 400, "missing_credentials"),
        ({"username": None, "password": "correct-pw"}, 400, "missing_credentials"),
        ({"username": "alice", "password": None}, 400, "missing_credentials"),
        ({"username": 42, "password": ["correct-pw"]}, 400, "missing_credentials"),
        ({"username": "   ", "password": "correct-pw"}, 400, "missing_credentials"),
        ({"username": "alice", "password": "nope"}, 403, "invalid_credentials"),
    ],
)
def test_login_failures(client, app_alice, payload, status, code):
    resp = client.post(TOKEN_URL, json=payload)
    assert resp.status_code == status
    body = resp.get_json()
    assert body["error"] == code
    assert body["status"] == status
    assert "Set-Cookie" not in resp.headers


def test_refresh_without_cookie(client):
    resp = client.post(REFRESH_URL)
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "missing_refresh_token"


def test_refresh_with_unknown_cookie(client):
    resp = client.post(REFRESH_URL, headers=_with_cookie("f" * 64))
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "invalid_refresh_token"


def test_sessions_listing_and_revocation(client, app_alice):
    first = _login(client)
    second = _login(client)
    token = second.get_json()["access_token"]

    resp = client.get(SESSIONS_URL, headers=_bearer(token))
    assert resp.status_code == 200
    sessions = resp.get_json()["data"]
    assert len(sessions) == 2
    assert all("token_hash" not in s for s in sessions)
    assert all(s["active"] for s in sessions)

    oldest = sessions[-1]["id"]
    resp = client.delete(f"{SESSIONS_URL}/{oldest}", headers=_bearer(token))
    assert resp.status_code == 200
    assert client.post(REFRESH_URL, headers=_with_cookie(refresh_cookie_from(first))).status_code == 401

    resp = client.delete(f"{SESSIONS_URL}/{oldest}", headers=_bearer(token))
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "session_not_found"


def test_session_activity_follows_app_clock(app, client, app_alice, clock):
    _login(client)
    clock.advance(app.extensions["session_auth"].settings.refresh_ttl + 1)
    token = _login(client).get_json()["access_token"]

    resp = client.get(SESSIONS_URL, headers=_bearer(token))
    assert resp.status_code == 200
    assert [s["active"] for s in resp.get_json()["data"]] == [True, False]


def test_revoke_all_sessions(client, app_alice):
    _login(client)
    token = _login(client).get_json()["access_token"]
    resp = client.delete(SESSIONS_URL, headers=_bearer(token))
    assert resp.status_code == 200
    assert resp.get_json()["revoked"] == 2


def test_sessions_require_bearer(client):
    assert client.get(SESSIONS_URL).status_code == 401


def test_health(client):
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.get_json()["secret_configured"] is True


def test_missing_secret_is_a_server_error():
    app = create_app("testing")
    try:
        client = app.test_client(use_cookies=False)
        resp = client.post(TOKEN_URL, json={"username": "alice", "password": "correct-pw"})
        assert resp.status_code == 500
        assert resp.get_json()["error"] == "jwt_secret_missing"

        resp = client.get(VERIFY_URL, headers=_bearer("a.b.c"))
        assert resp.status_code == 500

        assert client.post(LOGOUT_URL).status_code == 200
        assert client.get("/api/v1/health").get_json()["secret_configured"] is False
    finally:
        app.extensions["storage"].dispose()


def test_purge_tokens_command(app, app_alice, clock):
    client = app.test_client(use_cookies=False)
    _login(client)
    clock.advance(app.config["JWT_REFRESH_TTL"] + 1)

    result = app.test_cli_runner().invoke(args=["purge-tokens"])
    assert result.exit_code == 0
    assert "Deleted 1 expired refresh tokens" in result.output


def test_create_user_command(app, client):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["create-user", "carol", "carol@example.com", "--password", "s3cret-pw", "--role", "author"])
    assert result.exit_code == 0, result.output
    assert _login(client, "carol", "s3cret-pw").status_code == 200
