"""
Cancelable asynchronous operations.

An operation is one unit of asynchronous work with an explicit lifecycle:

    CREATED -> READY -> EXECUTING -> FINISHED | CANCELED

FINISHED and CANCELED are terminal. Completion continuations run exactly
once when the operation finishes and never when it is canceled first;
cancel handlers run exactly once when it is canceled. A failure inside the
work finishes the operation with an error result, so callers inspect
``result`` to tell success from failure.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationState(Enum):
    """Lifecycle states of an operation."""

    CREATED = "created"
    READY = "ready"
    EXECUTING = "executing"
    FINISHED = "finished"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationState.FINISHED, OperationState.CANCELED)


class OperationStateError(Exception):
    """Raised when an operation is asked to make an illegal transition."""

    pass


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of a finished operation."""

    value: Optional[T] = None
    error: Optional[Exception] = None
    status_code: Optional[int] = None

    @property
    def is_success(self) -> bool:
        if self.error is not None:
            return False
        return self.status_code is None or 200 <= self.status_code < 300


class AsyncOperation(ABC):
    """
    Base class for cancelable asynchronous work.

    Subclasses implement ``execute`` and store their outcome in ``result``.
    Operations are normally started by an OperationQueue, which marks them
    ready and calls ``start`` from inside the running event loop.
    """

    def __init__(self):
        self.identifier = str(uuid.uuid4())
        self.result: Optional[OperationResult] = None
        self._state = OperationState.CREATED
        self._continuations: List[Callable[["AsyncOperation"], Any]] = []
        self._cancel_handlers: List[Callable[["AsyncOperation"], Any]] = []
        self._task: Optional[asyncio.Task] = None
        self._done = asyncio.Event()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.identifier[:8]} {self._state.value}>"

    @property
    def state(self) -> OperationState:
        return self._state

    @property
    def is_cancelled(self) -> bool:
        return self._state is OperationState.CANCELED

    @property
    def is_finished(self) -> bool:
        return self._state is OperationState.FINISHED

    def mark_ready(self) -> None:
        """Move a newly created operation into the READY state."""
        if self._state is not OperationState.CREATED:
            raise OperationStateError(f"Cannot ready {self!r}")
        self._state = OperationState.READY

    def start(self) -> None:
        """
        Begin executing the operation on the running event loop.

        Raises:
            OperationStateError: If the operation is not READY
        """
        if self._state is not OperationState.READY:
            raise OperationStateError(f"Cannot start {self!r}")
        self._state = OperationState.EXECUTING
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        """
        Cancel the operation. In-flight work is aborted and continuations
        are dropped. Has no effect once the operation is terminal.
        """
        if self._state.is_terminal:
            return

        self._state = OperationState.CANCELED
        self._continuations.clear()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._done.set()
        self._run_cancel_handlers()
        logger.debug(f"Canceled {self!r}")

    def on_complete(self, continuation: Callable[["AsyncOperation"], Any]) -> None:
        """
        Register a continuation to receive this operation once it finishes.

        A continuation registered after the operation finished runs
        immediately; one registered after cancellation never runs.
        """
        if self._state is OperationState.FINISHED:
            self._invoke(continuation)
        elif self._state is not OperationState.CANCELED:
            self._continuations.append(continuation)

    def on_cancel(self, handler: Callable[["AsyncOperation"], Any]) -> None:
        """
        Register a handler to receive this operation if it is canceled.

        Runs immediately when the operation is already canceled; never runs
        for an operation that finishes.
        """
        if self._state is OperationState.CANCELED:
            self._invoke(handler)
        elif self._state is not OperationState.FINISHED:
            self._cancel_handlers.append(handler)

    async def wait(self) -> None:
        """Wait until the operation reaches a terminal state."""
        await self._done.wait()

    @abstractmethod
    async def execute(self) -> None:
        """Perform the work and set ``result``."""
        pass

    async def _run(self) -> None:
        try:
            await self.execute()
        except asyncio.CancelledError:
            self._state = OperationState.CANCELED
            self._continuations.clear()
            self._done.set()
            self._run_cancel_handlers()
            raise
        except Exception as e:
            logger.error(f"{self!r} failed: {e}")
            self.result = OperationResult(error=e)

        if self._state is OperationState.EXECUTING:
            self._finish()

    def _finish(self) -> None:
        self._state = OperationState.FINISHED
        self._cancel_handlers.clear()
        if self.result is None:
            self.result = OperationResult()

        continuations, self._continuations = self._continuations, []
        for continuation in continuations:
            self._invoke(continuation)
        self._done.set()

    def _run_cancel_handlers(self) -> None:
        handlers, self._cancel_handlers = self._cancel_handlers, []
        for handler in handlers:
            self._invoke(handler)

    def _invoke(self, continuation: Callable[["AsyncOperation"], Any]) -> None:
        try:
            continuation(self)
        except Exception as e:
            logger.error(f"Continuation for {self!r} failed: {e}")
