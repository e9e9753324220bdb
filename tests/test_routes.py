"""
End-to-end tests for the Drive routes: connect flow, replay rejection,
account listing and the reconnect-required response.
"""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest
import pytest_asyncio

from auth.session_tokens import create_session_token
from connectors import routes
from connectors.oauth_state import NonceLedger, StateTokenCodec
from database.session import get_db_session
from main import create_app
from tests.factories import add_files, make_account, make_user


class FakeOAuthConnector:
    provider_name = "google_drive"

    def __init__(self):
        self.built = 0

    def get_auth_url(self, state):
        return f"https://accounts.example/auth?state={state}"

    async def handle_callback(self, code):
        return {
            "access_token": f"access-{code}",
            "refresh_token": "refresh-1",
            "expires_in": 3600,
            "scopes": ["https://www.googleapis.com/auth/drive"],
            "provider_account_id": "google-123",
            "email": "linked@gmail.com",
            "name": "Linked",
            "profile_image": None,
        }

    def build_client(self, **kwargs):
        self.built += 1
        raise AssertionError("no provider call expected")


@pytest_asyncio.fixture
async def api(store, session_factory):
    connector = FakeOAuthConnector()
    app = create_app()

    async def _session():
        async with session_factory() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_db_session] = _session
    app.dependency_overrides[routes.get_store] = lambda: store
    app.dependency_overrides[routes.get_connector] = lambda: connector
    app.dependency_overrides[routes.get_state_codec] = lambda: StateTokenCodec(secret="route-secret")
    ledger = NonceLedger(retention_seconds=3600)
    app.dependency_overrides[routes.get_nonce_ledger] = lambda: ledger

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        client.connector = connector
        yield client


def _auth(user_id):
    return {"Authorization": f"Bearer {create_session_token(user_id)}"}


class TestConnectFlow:
    @pytest.mark.asyncio
    async def test_connect_then_replay(self, api, store, session_factory):
        user_id = await make_user(session_factory)

        resp = await api.get("/api/v1/drive/auth-url", headers=_auth(user_id))
        assert resp.status_code == 200
        state = parse_qs(urlparse(resp.json()["auth_url"]).query)["state"][0]

        callback = await api.get("/api/v1/drive/callback", params={"state": state, "code": "c1"})
        assert callback.status_code == 302
        assert "status=connected" in callback.headers["location"]
        [account] = await store.find_by_user(user_id)
        assert account.email == "linked@gmail.com"
        assert account.access_token == "access-c1"

        replay = await api.get("/api/v1/drive/callback", params={"state": state, "code": "c1"})
        assert replay.status_code == 400
        assert replay.json()["reason"] == "replayed_nonce"

    @pytest.mark.asyncio
    async def test_tampered_state_rejected_before_exchange(self, api, session_factory):
        user_id = await make_user(session_factory)
        resp = await api.get("/api/v1/drive/auth-url", headers=_auth(user_id))
        state = parse_qs(urlparse(resp.json()["auth_url"]).query)["state"][0]
        payload, signature = state.split(".")
        forged = ("A" if payload[0] != "A" else "B") + payload[1:]

        callback = await api.get("/api/v1/drive/callback", params={"state": f"{forged}.{signature}", "code": "c"})
        assert callback.status_code == 400
        assert callback.json()["reason"] == "signature_mismatch"

    @pytest.mark.asyncio
    async def test_reconnect_reactivates_revoked_record(self, api, store, session_factory):
        user_id = await make_user(session_factory)
        account = await make_account(store, user_id, google_id="google-123")
        await store.mark_revoked(account.account_id)

        resp = await api.get("/api/v1/drive/auth-url", headers=_auth(user_id))
        state = parse_qs(urlparse(resp.json()["auth_url"]).query)["state"][0]
        await api.get("/api/v1/drive/callback", params={"state": state, "code": "again"})

        [found] = await store.find_by_user(user_id)
        assert found.account_id == account.account_id
        assert found.status == "active"
        assert found.access_token == "access-again"


class TestAccounts:
    @pytest.mark.asyncio
    async def test_list_with_stats(self, api, store, session_factory):
        user_id = await make_user(session_factory)
        account = await make_account(store, user_id)
        await add_files(session_factory, account, [(100, False), (50, True)])

        resp = await api.get("/api/v1/drive/accounts", headers=_auth(user_id))

        assert resp.status_code == 200
        [body] = resp.json()
        assert body["stats"] == {"totalFiles": 2, "duplicateFiles": 1, "totalSize": 150}
        assert "access_token" not in body

    @pytest.mark.asyncio
    async def test_revoked_account_asks_for_reconnect(self, api, store, session_factory):
        user_id = await make_user(session_factory)
        account = await make_account(store, user_id, email="gone@gmail.com")
        await store.mark_revoked(account.account_id)

        resp = await api.get(f"/api/v1/drive/accounts/{account.account_id}/quota", headers=_auth(user_id))

        assert resp.status_code == 401
        assert resp.json() == {
            "error": "Drive account is disconnected. Please reconnect your Google Drive account.",
            "needsReconnect": True,
            "accountId": str(account.account_id),
            "accountEmail": "gone@gmail.com",
        }
        assert api.connector.built == 0

    @pytest.mark.asyncio
    async def test_other_users_account_is_not_found(self, api, store, session_factory):
        owner = await make_user(session_factory)
        intruder = await make_user(session_factory)
        account = await make_account(store, owner)

        resp = await api.get(f"/api/v1/drive/accounts/{account.account_id}/quota", headers=_auth(intruder))
        assert resp.status_code == 404
