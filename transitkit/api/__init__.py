"""
Network layer for the TransitKit client.

Cancelable operations, the operation queue, and the REST and Obaco
services that build them.
"""

from .http_client import (
    APIException,
    HTTPStatusException,
    NetworkException,
    ParseException,
)
from .operations import AsyncOperation, OperationResult, OperationState, OperationStateError
from .operation_queue import OperationQueue

__all__ = [
    "APIException",
    "HTTPStatusException",
    "NetworkException",
    "ParseException",
    "AsyncOperation",
    "OperationResult",
    "OperationState",
    "OperationStateError",
    "OperationQueue",
]
