import pytest
from types import SimpleNamespace
from unittest.mock import MagicMock

from core.exceptions import NotAuthenticated
from core.identity import BearerTokenSessionProvider, IdentityResolver, SupabaseSessionProvider
from core.models import Session


def supabase_with_session(session):
    client = MagicMock()
    client.auth.get_session.return_value = session
    return client


# --- SupabaseSessionProvider ---

@pytest.mark.asyncio
async def test_supabase_session_provider_returns_session():
    raw = SimpleNamespace(access_token="jwt-1", user=SimpleNamespace(id="user-1"))
    provider = SupabaseSessionProvider(supabase_with_session(raw))

    assert await provider.get_current_session() == Session(user_id="user-1", access_token="jwt-1")


@pytest.mark.asyncio
async def test_supabase_session_provider_no_session():
    provider = SupabaseSessionProvider(supabase_with_session(None))
    assert await provider.get_current_session() is None


@pytest.mark.asyncio
async def test_supabase_session_provider_uninitialized_client():
    with pytest.raises(NotAuthenticated):
        await SupabaseSessionProvider(None).get_current_session()
    with pytest.raises(NotAuthenticated):
        await SupabaseSessionProvider(SimpleNamespace()).get_current_session()


# --- BearerTokenSessionProvider ---

@pytest.mark.asyncio
async def test_bearer_provider_validates_token():
    client = MagicMock()
    client.auth.get_user.return_value = SimpleNamespace(user=SimpleNamespace(id="user-9"))
    provider = BearerTokenSessionProvider(client, "jwt-9")

    assert await provider.get_current_session() == Session(user_id="user-9", access_token="jwt-9")
    client.auth.get_user.assert_called_once_with("jwt-9")


@pytest.mark.asyncio
async def test_bearer_provider_missing_token_skips_auth_call():
    client = MagicMock()
    assert await BearerTokenSessionProvider(client, None).get_current_session() is None
    client.auth.get_user.assert_not_called()


@pytest.mark.asyncio
async def test_bearer_provider_rejected_token():
    client = MagicMock()
    client.auth.get_user.side_effect = RuntimeError("invalid JWT")
    assert await BearerTokenSessionProvider(client, "expired").get_current_session() is None


# --- IdentityResolver ---

@pytest.mark.asyncio
async def test_resolve_returns_identity(identity):
    resolved = await identity.resolve()
    assert resolved.user_id == "user-123"
    assert resolved.credential == "token-abc"


@pytest.mark.asyncio
async def test_resolve_is_not_cached(identity, session_provider):
    await identity.resolve()
    await identity.resolve()
    assert session_provider.calls == 2


@pytest.mark.asyncio
async def test_resolve_without_session_raises(session_provider):
    session_provider.session = None
    with pytest.raises(NotAuthenticated):
        await IdentityResolver(session_provider).resolve()


@pytest.mark.asyncio
async def test_resolve_without_provider_raises():
    with pytest.raises(NotAuthenticated):
        await IdentityResolver(None).resolve()


@pytest.mark.asyncio
async def test_current_user_id_never_raises(session_provider):
    resolver = IdentityResolver(session_provider)
    assert await resolver.current_user_id() == "user-123"
    session_provider.session = None
    assert await resolver.current_user_id() is None
