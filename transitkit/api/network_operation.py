"""
Typed network operations.

A NetworkOperation performs one HTTP request through an HTTPClient, parses
the body into a typed value, and exposes ``then``/``on_failure`` helpers on
top of the plain completion continuation. Transport, status and parse
failures all finish the operation with an error result.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .http_client import (
    APIException,
    APIRequest,
    HTTPClient,
    HTTPStatusException,
    ParseException,
)
from .operations import AsyncOperation, OperationResult

logger = logging.getLogger(__name__)


class NetworkOperation(AsyncOperation):
    """Operation that sends one request and parses its response."""

    def __init__(self, http_client: HTTPClient, request: APIRequest):
        super().__init__()
        self._http_client = http_client
        self.request = request

    @property
    def value(self) -> Any:
        """Parsed value, or None if the operation has not succeeded."""
        if self.result is None or not self.result.is_success:
            return None
        return self.result.value

    async def execute(self) -> None:
        try:
            value = await self.perform()
        except HTTPStatusException as e:
            logger.warning(f"{self!r} received status {e.status_code}")
            self.result = OperationResult(error=e, status_code=e.status_code)
            return
        except APIException as e:
            logger.warning(f"{self!r} failed: {e}")
            self.result = OperationResult(error=e)
            return

        self.result = OperationResult(value=value)

    async def perform(self) -> Any:
        """Fetch ``self.request`` and parse it. Subclasses may fan out."""
        data = await self.fetch(self.request)
        return self._parse(data)

    async def fetch(self, request: APIRequest) -> Any:
        """
        Send a request and return its decoded body.

        Raises:
            HTTPStatusException: If the status code is outside 2xx
            NetworkException: For transport errors
            ParseException: If the body cannot be decoded
        """
        response = await self._http_client.send(request)
        if not 200 <= response.status_code < 300:
            raise HTTPStatusException(response.status_code)
        return response.data

    def parse_response(self, data: Any) -> Any:
        """Convert a decoded body into this operation's typed value."""
        return data

    def _parse(self, data: Any) -> Any:
        try:
            return self.parse_response(data)
        except ParseException:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ParseException(f"Unexpected payload for {type(self).__name__}: {e}") from e

    def then(self, callback: Callable[[Any], Any]) -> "NetworkOperation":
        """Call ``callback(value)`` once the operation finishes successfully."""

        def _on_success(operation: AsyncOperation) -> None:
            if operation.result is not None and operation.result.is_success:
                callback(operation.result.value)

        self.on_complete(_on_success)
        return self

    def on_failure(self, callback: Callable[[Exception], Any]) -> "NetworkOperation":
        """Call ``callback(error)`` once the operation finishes with an error."""

        def _on_error(operation: AsyncOperation) -> None:
            if operation.result is not None and not operation.result.is_success:
                callback(operation.result.error)

        self.on_complete(_on_error)
        return self


@dataclass
class RESTAPIResponse:
    """Decoded OneBusAway response envelope."""

    code: int
    current_time: Optional[int] = None
    entries: List[Dict[str, Any]] = field(default_factory=list)
    references: Dict[str, Any] = field(default_factory=dict)

    def reference_list(self, name: str) -> List[Dict[str, Any]]:
        """Get a reference list such as 'agencies' or 'stops'."""
        return self.references.get(name) or []


class RESTAPIOperation(NetworkOperation):
    """
    Operation against the REST API.

    The REST API wraps every payload in an envelope with its own ``code``;
    a non-2xx envelope code fails the operation like an HTTP status would.
    """

    def parse_response(self, data: Any) -> Any:
        return self.decode(self.decode_envelope(data))

    @staticmethod
    def decode_envelope(data: Any) -> RESTAPIResponse:
        if not isinstance(data, dict):
            raise ParseException("REST response is not an object")

        code = int(data.get("code", 200))
        if not 200 <= code < 300:
            raise HTTPStatusException(code, data.get("text") or f"REST API code {code}")

        payload = data.get("data") or {}
        if "entry" in payload:
            entries = [payload["entry"]]
        else:
            entries = list(payload.get("list") or [])

        return RESTAPIResponse(
            code=code,
            current_time=data.get("currentTime"),
            entries=entries,
            references=payload.get("references") or {},
        )

    def decode(self, response: RESTAPIResponse) -> Any:
        """Map the decoded envelope to a typed value."""
        return response
