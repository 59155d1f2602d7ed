"""Bearer credential providers injected into the grading API client"""
import inspect
import logging
from typing import Callable, Optional

from utils.errors import NotAuthenticatedError

logger = logging.getLogger(__name__)


class CredentialProvider:
    """Supplies the access token for each outgoing request"""

    async def get_token(self) -> str:
        raise NotImplementedError

    async def auth_headers(self) -> dict:
        token = await self.get_token()
        if not token:
            raise NotAuthenticatedError()
        return {"Authorization": f"Bearer {token}"}


class StaticTokenProvider(CredentialProvider):
    def __init__(self, token: Optional[str]):
        self.token = token

    async def get_token(self) -> str:
        if not self.token:
            raise NotAuthenticatedError()
        return self.token


class CallableTokenProvider(CredentialProvider):
    """
    Asks a callable for the current session token on every request.

    The callable may be sync or async (e.g. an identity provider's session
    lookup) and should return None when there is no active session.
    """

    def __init__(self, fetch_token: Callable):
        self.fetch_token = fetch_token

    async def get_token(self) -> str:
        token = self.fetch_token()
        if inspect.isawaitable(token):
            token = await token
        if not token:
            logger.warning("Identity provider returned no active session")
            raise NotAuthenticatedError()
        return token
