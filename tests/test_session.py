"""Tests for the auth session against a mocked auth endpoint."""

import json
import time

import httpx
import pytest

from linkverse.core.errors import AuthRequired, NetworkOrServiceError
from linkverse.services.session import AuthSession

TOKEN_RESPONSE = {
    "access_token": "new-access",
    "refresh_token": "new-refresh",
    "expires_in": 3600,
    "user": {"id": "user-1", "email": "owner@example.com", "role": "authenticated"},
}


def make_session(settings, handler) -> AuthSession:
    return AuthSession(settings, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_sign_in_stores_tokens(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=TOKEN_RESPONSE)

    session = make_session(settings, handler)
    user = await session.sign_in(" Owner@Example.com ", "secret1")

    assert user.id == "user-1"
    assert session.is_authenticated
    assert seen[0].url.path == "/auth/v1/token"
    assert seen[0].url.params["grant_type"] == "password"
    assert json.loads(seen[0].content)["email"] == "owner@example.com"
    assert (await session.auth_headers())["Authorization"] == "Bearer new-access"


@pytest.mark.asyncio
async def test_bad_credentials_raise_auth_required(settings):
    session = make_session(settings, lambda request: httpx.Response(
        400, json={"error_description": "Invalid login credentials"}))

    with pytest.raises(AuthRequired, match="Invalid login credentials"):
        await session.sign_in("owner@example.com", "wrong")
    assert not session.is_authenticated


@pytest.mark.asyncio
async def test_server_error_is_service_error(settings):
    session = make_session(settings, lambda request: httpx.Response(500))

    with pytest.raises(NetworkOrServiceError):
        await session.sign_in("owner@example.com", "secret1")


@pytest.mark.asyncio
async def test_sign_up_pending_confirmation(settings):
    session = make_session(settings, lambda request: httpx.Response(
        200, json={"id": "user-2", "email": "new@example.com"}))

    assert await session.sign_up("new@example.com", "secret1", "New User") is None
    assert not session.is_authenticated


@pytest.mark.asyncio
async def test_expiring_token_is_refreshed(settings):
    grants = []

    def handler(request):
        grants.append(request.url.params["grant_type"])
        return httpx.Response(200, json=TOKEN_RESPONSE)

    session = make_session(settings, handler)
    session._store({**TOKEN_RESPONSE, "access_token": "old-access",
                    "refresh_token": "old-refresh", "expires_in": 10})
    assert session.expires_at < time.time() + 60

    headers = await session.auth_headers()

    assert grants == ["refresh_token"]
    assert headers["Authorization"] == "Bearer new-access"


@pytest.mark.asyncio
async def test_sign_out_is_local_even_if_server_fails(settings):
    session = make_session(settings, lambda request: httpx.Response(503))
    session._store(TOKEN_RESPONSE)

    await session.sign_out()

    assert not session.is_authenticated
    with pytest.raises(AuthRequired):
        await session.auth_headers()
