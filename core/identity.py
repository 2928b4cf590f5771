# core/identity.py
"""
Identity Resolver.

Turns whatever the auth collaborator knows about the current user into an
``Identity`` (user id + bearer credential), or fails with ``NotAuthenticated``.
Nothing is cached: callers resolve again before every step that needs it, so
a session that expires halfway through a save is caught at the next step.
"""
import asyncio
from typing import Any, Optional

from core.config import logger as core_logger
from core.exceptions import NotAuthenticated
from core.models import Identity, Session

logger = core_logger.getChild("Identity")


class SupabaseSessionProvider:
    """Reads the signed-in session held by a Supabase client (``auth.get_session()``)."""

    def __init__(self, client: Any):
        self.client = client

    async def get_current_session(self) -> Optional[Session]:
        auth = getattr(self.client, "auth", None) if self.client is not None else None
        if auth is None:
            raise NotAuthenticated("Auth client is not initialized.")

        session = await asyncio.to_thread(auth.get_session)
        if not session or not getattr(session, "user", None) or not session.access_token:
            return None
        return Session(user_id=str(session.user.id), access_token=session.access_token)


class BearerTokenSessionProvider:
    """Validates a caller-supplied access token against Supabase Auth (``auth.get_user(jwt)``)."""

    def __init__(self, client: Any, access_token: Optional[str]):
        self.client = client
        self.access_token = access_token

    async def get_current_session(self) -> Optional[Session]:
        if not self.access_token:
            return None
        auth = getattr(self.client, "auth", None) if self.client is not None else None
        if auth is None:
            raise NotAuthenticated("Auth client is not initialized.")

        try:
            response = await asyncio.to_thread(auth.get_user, self.access_token)
        except Exception as e:
            # Supabase raises AuthApiError for expired/invalid tokens
            logger.warning(f"Access token rejected by auth provider: {e}")
            return None

        user = getattr(response, "user", None) if response else None
        if not user:
            return None
        return Session(user_id=str(user.id), access_token=self.access_token)


class IdentityResolver:
    def __init__(self, session_provider: Any):
        self.session_provider = session_provider

    async def resolve(self) -> Identity:
        """Returns the current identity; raises NotAuthenticated if there is none."""
        if self.session_provider is None:
            raise NotAuthenticated("Auth client is not initialized.")
        session = await self.session_provider.get_current_session()
        if session is None:
            logger.warning("No active session; refusing to continue.")
            raise NotAuthenticated("Please sign in.")
        return Identity(user_id=session.user_id, credential=session.access_token)

    async def current_user_id(self) -> Optional[str]:
        """Like resolve(), but answers None instead of raising."""
        try:
            identity = await self.resolve()
        except NotAuthenticated:
            return None
        return identity.user_id
