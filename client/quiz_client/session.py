# Session resolution: decide whether the caller is logged in.
import logging
from typing import Optional

from quiz_client.api_client import QuizApiClient
from quiz_client.errors import ApiError, Classification, QuizClientError
from quiz_client.schemas import Identity

logger = logging.getLogger("quiz_client.session")

LOGIN_PROVIDERS = ("google", "linkedin", "github")


# Read /api/me once; None means not authenticated. Nothing is cached.
async def resolve_identity(api: QuizApiClient) -> Optional[Identity]:
    try:
        return await api.me()
    except ApiError as exc:
        if exc.kind in (Classification.AUTH_REQUIRED, Classification.MALFORMED_RESPONSE):
            logger.info("Not authenticated (%s)", exc.kind.value)
            return None
        raise


# Build the OAuth entry point the browser should be sent to.
def login_url(base_url: str, provider: str) -> str:
    if provider not in LOGIN_PROVIDERS:
        raise ValueError(f"unknown login provider: {provider}")
    return f"{base_url.rstrip('/')}/oauth2/authorization/{provider}"


class IdentityView:
    """Identity holder for one view (home page, admin layout, ...).

    Each view resolves independently. Once ``close()`` has been called, a
    resolution that completes later leaves the view untouched.
    """

    def __init__(self, api: QuizApiClient):
        self.api = api
        self.identity: Optional[Identity] = None
        self.checking = False
        self.error: Optional[str] = None
        self.closed = False
        self._generation = 0

    @property
    def is_logged_in(self) -> bool:
        return self.identity is not None

    async def refresh(self) -> Optional[Identity]:
        generation = self._generation
        self.checking = True
        identity = None
        error = None
        try:
            identity = await resolve_identity(self.api)
        except QuizClientError as exc:
            error = str(exc)
        if self.closed or generation != self._generation:
            logger.debug("Discarding superseded identity resolution")
            return identity
        self.identity = identity
        self.error = error
        self.checking = False
        return identity

    # Forget the identity locally first; the backend call cannot undo that.
    # A refresh still in flight is superseded.
    async def logout(self) -> None:
        self._generation += 1
        self.identity = None
        self.checking = False
        try:
            await self.api.logout()
        except ApiError as exc:
            logger.warning("Logout request failed: %s", exc)

    def close(self) -> None:
        self.closed = True
