import time

import jwt
import pytest

from conftest import FakePortalClient

from knue_portal.config import JWT_ALGORITHM, REFRESH_KEY_PREFIX, TOKEN_KEY_PREFIX
from knue_portal.exceptions import (
    AuthenticationError,
    RefreshExpiredError,
    RefreshNotFoundError,
    TokenExpiredError,
    TokenInvalidError,
    TokenRevokedError,
    UpstreamUnavailableError,
)
from knue_portal.models import Cookie, LoginResult
from knue_portal.session import SessionBridge, is_login_success
from knue_portal.storage import MemoryStore

SECRET = "test-secret"


@pytest.fixture
def bridge(fake_client: FakePortalClient) -> SessionBridge:
    return SessionBridge(fake_client, MemoryStore(), secret_key=SECRET)


@pytest.mark.asyncio
async def test_login_verify_logout_end_to_end(bridge: SessionBridge, fake_client):
    tokens = await bridge.login("12345", "secret")

    assert fake_client.login_calls == [("12345", "secret")]
    assert tokens.access_token and tokens.refresh_token
    assert tokens.expires_in == bridge.access_ttl
    assert await bridge.verify(tokens.access_token) == "12345"

    await bridge.logout(tokens.access_token, tokens.refresh_token)

    with pytest.raises(TokenRevokedError):
        await bridge.verify(tokens.access_token)
    assert await bridge.store.get(REFRESH_KEY_PREFIX + tokens.refresh_token) is None


@pytest.mark.asyncio
async def test_login_stores_cookie_jar_under_bearer(bridge: SessionBridge):
    tokens = await bridge.login("12345", "secret")

    stored = await bridge.store.get(TOKEN_KEY_PREFIX + tokens.access_token)
    assert [c["name"] for c in stored] == ["JSESSIONID", "WMONID"]
    assert await bridge.store.ttl(TOKEN_KEY_PREFIX + tokens.access_token) <= bridge.access_ttl

    jar = await bridge.resolve_cookies(tokens.access_token)
    assert jar[0].value == "abc123"


@pytest.mark.asyncio
async def test_login_stores_refresh_record(bridge: SessionBridge):
    tokens = await bridge.login("12345", "secret")

    info = await bridge.store.get(REFRESH_KEY_PREFIX + tokens.refresh_token)
    assert info["userId"] == "12345"
    assert info["token"] == tokens.refresh_token
    assert info["expiresAt"] - info["createdAt"] == bridge.refresh_ttl


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "result",
    [
        LoginResult(status=200, cookies=(Cookie("JSESSIONID", "abc", "JSESSIONID=abc"),)),
        LoginResult(status=303, cookies=()),
        LoginResult(status=302, cookies=(Cookie("JSESSIONID", "", "JSESSIONID="),)),
        LoginResult(status=401, cookies=()),
    ],
)
async def test_login_rejected(bridge: SessionBridge, fake_client, result):
    fake_client.login_result = result
    with pytest.raises(AuthenticationError):
        await bridge.login("12345", "wrong")
    assert bridge.store._entries == {}, "Nothing is stored for a failed login"


@pytest.mark.asyncio
async def test_login_upstream_failure_propagates(bridge: SessionBridge, fake_client):
    fake_client.login_result = UpstreamUnavailableError("timeout")
    with pytest.raises(UpstreamUnavailableError):
        await bridge.login("12345", "secret")


def test_is_login_success_accepts_any_redirect():
    jar = (Cookie("a", "1", "a=1"),)
    assert is_login_success(LoginResult(status=303, cookies=jar))
    assert is_login_success(LoginResult(status=302, cookies=jar))
    assert not is_login_success(LoginResult(status=200, cookies=jar))


@pytest.mark.asyncio
async def test_verify_expired_is_distinct_from_revoked(bridge: SessionBridge):
    now = int(time.time())
    expired = jwt.encode(
        {"userId": "12345", "type": "access", "iat": now - 100, "exp": now - 10},
        SECRET,
        algorithm=JWT_ALGORITHM,
    )
    await bridge.store.set(TOKEN_KEY_PREFIX + expired, [])

    with pytest.raises(TokenExpiredError):
        await bridge.verify(expired)

    tokens = await bridge.login("12345", "secret")
    await bridge.store.delete(TOKEN_KEY_PREFIX + tokens.access_token)
    with pytest.raises(TokenRevokedError):
        await bridge.verify(tokens.access_token)


@pytest.mark.asyncio
async def test_verify_rejects_foreign_signature(bridge: SessionBridge):
    tokens = await bridge.login("12345", "secret")
    other = SessionBridge(bridge.client, bridge.store, secret_key="another-secret")

    with pytest.raises(TokenInvalidError):
        await other.verify(tokens.access_token)


@pytest.mark.asyncio
@pytest.mark.parametrize("bearer", ["", "not-a-jwt", "a.b.c"])
async def test_verify_rejects_garbage(bridge: SessionBridge, bearer: str):
    with pytest.raises(TokenInvalidError):
        await bridge.verify(bearer)


@pytest.mark.asyncio
async def test_verify_rejects_token_without_access_type(bridge: SessionBridge):
    now = int(time.time())
    token = jwt.encode({"userId": "12345", "exp": now + 60}, SECRET, algorithm=JWT_ALGORITHM)
    await bridge.store.set(TOKEN_KEY_PREFIX + token, [])
    with pytest.raises(TokenInvalidError):
        await bridge.verify(token)


@pytest.mark.asyncio
async def test_refresh_issues_new_pair_for_same_user(bridge: SessionBridge, fake_client):
    tokens = await bridge.login("12345", "secret")

    renewed = await bridge.refresh(tokens.refresh_token, "12345", "secret")

    assert renewed.refresh_token != tokens.refresh_token
    assert await bridge.verify(renewed.access_token) == "12345"
    assert fake_client.login_calls[-1] == ("12345", "secret")


@pytest.mark.asyncio
async def test_refresh_handle_rejected_for_other_user(bridge: SessionBridge, fake_client):
    victim = await bridge.login("12345", "secret")
    # Another user's own credentials would log in fine upstream
    fake_client.login_result = LoginResult(
        status=303, cookies=(Cookie("JSESSIONID", "other", "JSESSIONID=other"),)
    )

    with pytest.raises(AuthenticationError):
        await bridge.refresh(victim.refresh_token, "99999", "other-password")

    assert fake_client.login_calls == [("12345", "secret")], "No upstream login for a mismatched user"
    # The handle stays usable by its owner
    assert await bridge.store.get(REFRESH_KEY_PREFIX + victim.refresh_token) is not None


@pytest.mark.asyncio
async def test_refresh_record_outlives_expiry_so_expired_is_reported(
    bridge: SessionBridge, fake_client, monkeypatch
):
    tokens = await bridge.login("12345", "secret")
    key = REFRESH_KEY_PREFIX + tokens.refresh_token
    assert await bridge.store.ttl(key) > bridge.refresh_ttl

    # Session code reads time.time(); the store keeps its own clock reference
    real_now = time.time()
    monkeypatch.setattr(time, "time", lambda: real_now + bridge.refresh_ttl + 5)

    with pytest.raises(RefreshExpiredError):
        await bridge.refresh(tokens.refresh_token, "12345", "secret")
    assert key not in bridge.store._entries
    assert fake_client.login_calls == [("12345", "secret")]


@pytest.mark.asyncio
async def test_refresh_unknown_handle(bridge: SessionBridge, fake_client):
    with pytest.raises(RefreshNotFoundError):
        await bridge.refresh("no-such-handle", "12345", "secret")
    assert fake_client.login_calls == []


@pytest.mark.asyncio
async def test_refresh_expired_handle_is_deleted(bridge: SessionBridge, fake_client):
    now = int(time.time())
    key = REFRESH_KEY_PREFIX + "stale"
    await bridge.store.set(
        key,
        {"id": "x", "userId": "12345", "token": "stale", "createdAt": now - 100, "expiresAt": now - 1},
    )

    with pytest.raises(RefreshExpiredError):
        await bridge.refresh("stale", "12345", "secret")
    assert await bridge.store.get(key) is None
    assert fake_client.login_calls == []


@pytest.mark.asyncio
async def test_refresh_with_failed_relogin(bridge: SessionBridge, fake_client):
    tokens = await bridge.login("12345", "secret")
    fake_client.login_result = LoginResult(status=200, cookies=())

    with pytest.raises(AuthenticationError):
        await bridge.refresh(tokens.refresh_token, "12345", "changed")


@pytest.mark.asyncio
async def test_logout_is_idempotent(bridge: SessionBridge):
    tokens = await bridge.login("12345", "secret")
    await bridge.logout(tokens.access_token, None)
    await bridge.logout(tokens.access_token, tokens.refresh_token)
    await bridge.logout(None, None)

    with pytest.raises(RefreshNotFoundError):
        await bridge.refresh(tokens.refresh_token, "12345", "secret")
