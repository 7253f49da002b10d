"""End-to-end scenario: startup, login, identity resolution, gateway call, forced logout.

Wires the real SessionStore, the real resolve_identity (its HTTP session
patched), an in-memory ClientStorage, and a Gateway built with for_store().
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from auth.session import SessionStore
from core.errors import AuthInvalidError
from core.models import Identity, SessionStatus
from gateway.client import Gateway


@pytest.mark.asyncio
async def test_login_resolve_then_forbidden_call_logs_out(settings, storage, make_response):
    store = SessionStore(storage=storage, credential_key=settings.credential_key)
    api = MagicMock(spec=requests.Session)
    api.request.return_value = make_response(403, {"code": "rest_forbidden", "message": "Sorry, you are not allowed."})
    gateway = Gateway.for_store(store, settings=settings, http=api)

    assert store.get_snapshot().status == "Initializing"
    store.start()
    assert store.get_snapshot().status == "Unauthenticated"

    with patch("auth.identity._session") as identity_http:
        identity_http.get.return_value = make_response(200, {"id": 7, "name": "Ada"})
        store.login("tok-1")
        assert store.get_snapshot().status == "Resolving"
        session = await store.wait_until_settled()

    assert session.status == "Authenticated"
    assert session.identity.id == 7
    assert session.identity.display_name == "Ada"

    with pytest.raises(AuthInvalidError):
        await gateway.request("companies")

    sent = api.request.call_args
    assert sent.args[0] == "GET"
    assert sent.kwargs["headers"]["Authorization"] == "Bearer tok-1"

    after = store.get_snapshot()
    assert after.status is SessionStatus.UNAUTHENTICATED
    assert after.credential is None
    assert after.identity is None
    assert storage.get(settings.credential_key) is None


@pytest.mark.asyncio
async def test_calls_after_forced_logout_go_out_anonymous(settings, storage, make_response):
    store = SessionStore(storage=storage, resolver=lambda c: Identity(7, "Ada"), credential_key=settings.credential_key)
    api = MagicMock(spec=requests.Session)
    gateway = Gateway.for_store(store, settings=settings, http=api)
    storage.set(settings.credential_key, "tok-1")
    store.start()
    await store.wait_until_settled()

    api.request.return_value = make_response(401, {"message": "Expired token"})
    with pytest.raises(AuthInvalidError):
        await gateway.request("companies")

    api.request.return_value = make_response(200, [])
    assert await gateway.request("public/ping") == []
    assert "Authorization" not in api.request.call_args.kwargs["headers"]


@pytest.mark.asyncio
async def test_credential_survives_restart(settings, storage, make_response):
    with patch("auth.identity._session") as identity_http:
        identity_http.get.return_value = make_response(200, {"id": 7, "name": "Ada"})

        first = SessionStore(storage=storage, credential_key=settings.credential_key)
        first.start()
        first.login("tok-1")
        await first.wait_until_settled()

        second = SessionStore(storage=storage, credential_key=settings.credential_key)
        second.start()
        session = await second.wait_until_settled()

    assert session.status is SessionStatus.AUTHENTICATED
    assert session.credential == "tok-1"
