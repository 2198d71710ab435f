"""HTTP-level tests for login, renewal, logout and revocation."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from admin_session.auth.authenticator import ACCESS_TOKEN_HEADER, NEW_ACCESS_TOKEN_HEADER
from admin_session.config import Settings
from admin_session.auth.credentials import PasswordEncoder
from admin_session.auth.session import InMemorySessionStore, SessionManager
from admin_session.auth.tokens import TokenCodec
from admin_session.main import build_user_directory, create_app

from conftest import ADMIN_ID, ADMIN_PASSWORD, ALICE_ID, ALICE_PASSWORD, TEST_SECRET


def login(client, username="alice", password=ALICE_PASSWORD) -> str:
    resp = client.post("/login", json={"username": username, "password": password})
    assert resp.status_code == 200
    return resp.json()["data"]


def auth(token: str) -> dict:
    return {ACCESS_TOKEN_HEADER: token}


class TestLogin:
    def test_login_success(self, client, codec):
        resp = client.post("/login", json={"username": "alice", "password": ALICE_PASSWORD})

        assert resp.status_code == 200
        body = resp.json()
        assert body["code"] == "200"
        assert body["msg"] == "Login successful"
        assert codec.verify(body["data"]).subject == ALICE_ID

    def test_login_wrong_password(self, client):
        resp = client.post("/login", json={"username": "alice", "password": "nope"})

        assert resp.status_code == 401
        assert resp.json() == {"code": "30000", "msg": "Authentication failed", "data": None}

    def test_login_unknown_user(self, client):
        resp = client.post("/login", json={"username": "mallory", "password": "nope"})

        assert resp.status_code == 401
        assert resp.json()["code"] == "30000"

    def test_login_missing_field(self, client):
        resp = client.post("/login", json={"username": "alice"})

        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "20001"
        assert "password" in body["msg"]

    def test_login_ignores_stale_token_header(self, client):
        resp = client.post(
            "/login",
            json={"username": "alice", "password": ALICE_PASSWORD},
            headers=auth("garbage"),
        )
        assert resp.status_code == 200


class TestProtectedRoutes:
    def test_health_is_public(self, client):
        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    def test_missing_token(self, client):
        resp = client.get("/me")

        assert resp.status_code == 401
        assert resp.json() == {"code": "30003", "msg": "Token missing", "data": None}

    def test_invalid_token(self, client):
        resp = client.get("/me", headers=auth("garbage"))

        assert resp.status_code == 401
        assert resp.json()["code"] == "30002"

    def test_unknown_path_still_requires_token(self, client):
        assert client.get("/no/such/route").status_code == 401

    def test_skipped_unknown_path_is_not_found(self, client):
        resp = client.get("/public/ping")

        assert resp.status_code == 404
        assert resp.json()["code"] == "20002"

    def test_me_with_valid_token(self, client):
        token = login(client)

        resp = client.get("/me", headers=auth(token))

        assert resp.status_code == 200
        assert NEW_ACCESS_TOKEN_HEADER not in resp.headers
        user = resp.json()["data"]
        assert user["user_id"] == ALICE_ID
        assert user["display_name"] == "Alice"
        assert user["authorities"] == ["common", "ROLE_USER"]
        assert "password_hash" not in user

    def test_valid_token_without_session(self, client, codec):
        resp = client.get("/me", headers=auth(codec.issue(ALICE_ID, 60_000).value))

        assert resp.status_code == 401
        assert resp.json()["code"] == "30005"


class TestSilentRenewal:
    def test_expired_token_is_renewed_in_header(self, client, clock, settings, codec):
        token = login(client)
        clock.advance(settings.access_expire_millis / 1000 + 1)

        resp = client.get("/me", headers=auth(token))

        assert resp.status_code == 200
        assert resp.json()["data"]["user_id"] == ALICE_ID
        renewed = resp.headers[NEW_ACCESS_TOKEN_HEADER]
        assert renewed != token
        assert codec.verify(renewed).subject == ALICE_ID

        follow_up = client.get("/me", headers=auth(renewed))
        assert follow_up.status_code == 200
        assert NEW_ACCESS_TOKEN_HEADER not in follow_up.headers

    def test_replayed_expired_token_is_rejected(self, client, clock, settings):
        token = login(client)
        clock.advance(settings.access_expire_millis / 1000 + 1)
        assert client.get("/me", headers=auth(token)).status_code == 200

        resp = client.get("/me", headers=auth(token))

        assert resp.status_code == 401
        assert resp.json()["code"] == "30004"
        assert NEW_ACCESS_TOKEN_HEADER not in resp.headers

    def test_pre_expired_token_with_matching_session_is_renewed(self, client, codec, directory, session_manager):
        stale = codec.issue(ALICE_ID, -1_000)
        principal = asyncio.run(directory.find_principal_by_username("alice"))
        asyncio.run(session_manager.create_session(principal, ["common"], stale.token_id))

        resp = client.get("/me", headers=auth(stale.value))

        assert resp.status_code == 200
        renewed = resp.headers[NEW_ACCESS_TOKEN_HEADER]
        follow_up = client.get("/me", headers=auth(renewed))
        assert follow_up.status_code == 200
        assert NEW_ACCESS_TOKEN_HEADER not in follow_up.headers

    def test_pre_expired_token_with_other_fingerprint_is_rejected(self, client, codec, directory, session_manager):
        stale = codec.issue(ALICE_ID, -1_000)
        principal = asyncio.run(directory.find_principal_by_username("alice"))
        asyncio.run(session_manager.create_session(principal, ["common"], "some-other-fingerprint"))
        before = asyncio.run(session_manager.get_session(ALICE_ID))

        resp = client.get("/me", headers=auth(stale.value))

        assert resp.status_code == 401
        assert resp.json()["code"] == "30004"
        assert asyncio.run(session_manager.get_session(ALICE_ID)) == before

    def test_renewal_header_is_exposed_to_browsers(self, client, clock, settings):
        token = login(client)
        clock.advance(settings.access_expire_millis / 1000 + 1)

        resp = client.get(
            "/me",
            headers={**auth(token), "Origin": "http://localhost:3000"},
        )

        assert NEW_ACCESS_TOKEN_HEADER in resp.headers["access-control-expose-headers"]

    def test_session_timeout_requires_login(self, client, clock, settings):
        token = login(client)
        clock.advance(settings.refresh_expire_millis / 1000 + 1)

        resp = client.get("/me", headers=auth(token))

        assert resp.status_code == 401
        assert resp.json()["code"] == "30005"


class TestLogout:
    def test_logout_invalidates_token(self, client):
        token = login(client)

        resp = client.post("/logout", headers=auth(token))
        assert resp.status_code == 200
        assert resp.json()["msg"] == "Logout successful"

        after = client.get("/me", headers=auth(token))
        assert after.status_code == 401
        assert after.json()["code"] == "30005"

    def test_logout_requires_token(self, client):
        assert client.post("/logout").status_code == 401


class TestSessions:
    def test_user_can_view_own_session(self, client):
        token = login(client)

        resp = client.get(f"/sessions/{ALICE_ID}", headers=auth(token))

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["user_id"] == ALICE_ID
        assert data["username"] == "alice"
        assert "current_token_fingerprint" not in data

    def test_user_cannot_view_other_session(self, client):
        login(client, "admin", ADMIN_PASSWORD)
        token = login(client)

        resp = client.get(f"/sessions/{ADMIN_ID}", headers=auth(token))

        assert resp.status_code == 403
        assert resp.json()["code"] == "30001"

    def test_admin_views_missing_session(self, client):
        token = login(client, "admin", ADMIN_PASSWORD)

        resp = client.get(f"/sessions/{ALICE_ID}", headers=auth(token))

        assert resp.status_code == 404
        assert resp.json()["code"] == "20002"

    def test_admin_revokes_user(self, client):
        alice_token = login(client)
        admin_token = login(client, "admin", ADMIN_PASSWORD)

        resp = client.delete(f"/sessions/{ALICE_ID}", headers=auth(admin_token))
        assert resp.status_code == 200
        assert resp.json()["msg"] == "Session revoked"

        after = client.get("/me", headers=auth(alice_token))
        assert after.status_code == 401
        assert after.json()["code"] == "30005"

    def test_revoke_without_session_succeeds(self, client):
        admin_token = login(client, "admin", ADMIN_PASSWORD)

        resp = client.delete("/sessions/nobody", headers=auth(admin_token))

        assert resp.status_code == 200

    def test_non_admin_cannot_revoke(self, client):
        login(client, "admin", ADMIN_PASSWORD)
        alice_token = login(client)

        resp = client.delete(f"/sessions/{ADMIN_ID}", headers=auth(alice_token))

        assert resp.status_code == 403
        assert resp.json() == {"code": "30001", "msg": "Insufficient permissions", "data": None}


class FailingStore(InMemorySessionStore):
    async def get_session(self, user_id):
        raise ConnectionError("session store unreachable")


class TestSystemErrors:
    @pytest.fixture
    def failing_client(self, settings, directory, codec):
        app = create_app(settings, directory=directory, session_store=FailingStore(), codec=codec)
        with TestClient(app, raise_server_exceptions=False) as client:
            yield client

    def test_store_failure_is_generic_system_error(self, failing_client, codec):
        resp = failing_client.get("/me", headers=auth(codec.issue(ALICE_ID, 60_000).value))

        assert resp.status_code == 500
        assert resp.json() == {"code": "10000", "msg": "Internal system error", "data": None}

    def test_login_still_works_when_reads_fail(self, failing_client):
        resp = failing_client.post("/login", json={"username": "alice", "password": ALICE_PASSWORD})
        assert resp.status_code == 200


class TestWallClock:
    """Same app wiring as production: default clocks, nothing faked."""

    @pytest.fixture
    def store(self):
        return InMemorySessionStore()

    @pytest.fixture
    def codec(self, settings):
        return TokenCodec(settings)

    @pytest.fixture
    def session_manager(self, settings, store):
        return SessionManager(settings, store)

    @pytest.fixture
    def real_client(self, settings, directory, store, codec):
        app = create_app(settings, directory=directory, session_store=store, codec=codec)
        with TestClient(app, raise_server_exceptions=False) as client:
            yield client

    def test_expired_token_is_renewed(self, real_client, codec, directory, session_manager):
        stale = codec.issue(ALICE_ID, -1_000)
        principal = asyncio.run(directory.find_principal_by_username("alice"))
        asyncio.run(session_manager.create_session(principal, ["common"], stale.token_id))

        resp = real_client.get("/me", headers=auth(stale.value))

        assert resp.status_code == 200
        renewed = resp.headers[NEW_ACCESS_TOKEN_HEADER]
        follow_up = real_client.get("/me", headers=auth(renewed))
        assert follow_up.status_code == 200
        assert NEW_ACCESS_TOKEN_HEADER not in follow_up.headers

    def test_superseded_expired_token_is_mismatch(self, real_client, codec, directory, session_manager):
        stale = codec.issue(ALICE_ID, -1_000)
        principal = asyncio.run(directory.find_principal_by_username("alice"))
        asyncio.run(session_manager.create_session(principal, ["common"], "some-other-fingerprint"))

        resp = real_client.get("/me", headers=auth(stale.value))

        assert resp.status_code == 401
        assert resp.json()["code"] == "30004"


def test_bootstrap_admin_gets_configured_authority():
    settings = Settings(
        _env_file=None,
        token_secret_key=TEST_SECRET,
        bootstrap_admin_username="root",
        bootstrap_admin_password="Root-Password-789!",
    )
    directory = build_user_directory(settings, PasswordEncoder())

    principal = asyncio.run(directory.find_principal_by_username("root"))

    assert asyncio.run(directory.load_authorities(principal.user_id)) == [settings.admin_authority]
