"""Shared HTTP session for the hosted backend"""

import aiohttp
from typing import Dict, Optional

from filedrive.config import settings
from filedrive.utils.logger import get_logger

logger = get_logger(__name__)


class BackendUnavailableError(Exception):
    """Raised when the backend cannot be reached or is not configured"""
    pass


class BackendClient:
    """
    Owns the aiohttp session used by the storage and table clients.

    Every request carries the project's public API key and a bearer token.
    A total timeout is applied to each request.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.base_url = (base_url or settings.backend_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.backend_api_key
        self.access_token = access_token or settings.access_token
        self.timeout = timeout or settings.backend_timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def storage_url(self) -> str:
        return f"{self.base_url}/storage/v1"

    @property
    def rest_url(self) -> str:
        return f"{self.base_url}/rest/v1"

    def headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Auth headers for a backend request"""
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["apikey"] = self.api_key
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        if extra:
            headers.update(extra)
        return headers

    def set_access_token(self, token: Optional[str]):
        """Switch to a user session token after sign-in"""
        self.access_token = token or self.api_key

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session"""
        if not self.base_url:
            raise BackendUnavailableError("Backend URL is not configured")
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            logger.debug(f"Opened backend session for {self.base_url}")
        return self._session

    async def close(self):
        """Close HTTP session"""
        if self._session:
            await self._session.close()
            self._session = None
