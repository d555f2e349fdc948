"""
HTTP transport for the TransitKit network layer.

This module defines the exception taxonomy shared by every network
operation, the request/response containers, and the aiohttp-backed
client the operations send their requests through.
"""

import asyncio
import aiohttp
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from version import get_user_agent

logger = logging.getLogger(__name__)


class APIException(Exception):
    """Base exception for API-related errors."""

    pass


class NetworkException(APIException):
    """Exception for connectivity and timeout errors."""

    pass


class HTTPStatusException(APIException):
    """Exception for responses outside the 2xx range."""

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        super().__init__(message or f"HTTP status {status_code}")


class ParseException(APIException):
    """Exception for malformed or unexpected payloads."""

    pass


@dataclass(frozen=True)
class APIRequest:
    """Description of a single HTTP request."""

    url: str
    method: str = "GET"
    params: Dict[str, Any] = field(default_factory=dict)
    form: Optional[Dict[str, Any]] = None


@dataclass
class APIResponse:
    """Container for raw API response data."""

    status_code: int
    data: Any
    timestamp: datetime
    url: str


class HTTPClient(ABC):
    """Abstract HTTP client interface for dependency injection."""

    @abstractmethod
    async def send(self, request: APIRequest) -> APIResponse:
        """Send a request and return the decoded response."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close HTTP client."""
        pass


class AioHttpClient(HTTPClient):
    """
    Concrete HTTP client implementation using aiohttp.

    Transport failures and timeouts are raised as NetworkException; bodies
    that are not JSON are raised as ParseException. Status codes are left
    for the caller to judge.
    """

    def __init__(self, timeout_seconds: int = 10):
        """Initialize HTTP client with timeout."""
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session is created."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"User-Agent": get_user_agent()},
            )
        return self._session

    async def send(self, request: APIRequest) -> APIResponse:
        """Send the request and decode its JSON body."""
        session = await self._ensure_session()
        logger.debug(f"{request.method} {request.url}")

        try:
            async with session.request(
                request.method,
                request.url,
                params=request.params or None,
                data=request.form,
            ) as response:
                text = await response.text()
                return APIResponse(
                    status_code=response.status,
                    data=self._decode_body(text),
                    timestamp=datetime.now(),
                    url=str(response.url),
                )
        except asyncio.TimeoutError as e:
            raise NetworkException(f"Request timed out: {request.url}") from e
        except aiohttp.ClientError as e:
            raise NetworkException(f"Network error: {e}") from e

    @staticmethod
    def _decode_body(text: str) -> Any:
        """Decode a JSON body; an empty body decodes to None."""
        if not text.strip():
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            raise ParseException(f"Response is not valid JSON: {e}") from e

    async def close(self) -> None:
        """Close HTTP client."""
        if self._session and not self._session.closed:
            await self._session.close()
            logger.debug("HTTP client session closed")
        self._session = None
