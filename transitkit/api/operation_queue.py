"""
Bounded operation queue for network I/O.

Operations added to the queue are marked ready and started as soon as one
of a fixed number of lanes is free.
"""

import asyncio
import logging
from typing import List, Set

from .operations import AsyncOperation

logger = logging.getLogger(__name__)


class OperationQueue:
    """Runs operations on a small fixed pool of concurrent lanes."""

    def __init__(self, max_concurrent_operations: int = 4, name: str = "network"):
        """
        Initialize operation queue.

        Args:
            max_concurrent_operations: Number of operations allowed to execute at once
            name: Queue name used in log messages
        """
        if max_concurrent_operations < 1:
            raise ValueError("max_concurrent_operations must be at least 1")

        self.name = name
        self.max_concurrent_operations = max_concurrent_operations
        self._lanes = asyncio.Semaphore(max_concurrent_operations)
        self._operations: List[AsyncOperation] = []
        self._dispatchers: Set[asyncio.Task] = set()

    @property
    def operation_count(self) -> int:
        """Number of operations that have not reached a terminal state."""
        return len(self._operations)

    def add_operation(self, operation: AsyncOperation) -> None:
        """
        Enqueue an operation. Must be called from the running event loop.
        """
        operation.mark_ready()
        self._operations.append(operation)
        dispatcher = asyncio.get_running_loop().create_task(self._dispatch(operation))
        self._dispatchers.add(dispatcher)
        dispatcher.add_done_callback(self._dispatchers.discard)
        logger.debug(f"Queue '{self.name}' accepted {operation!r}")

    async def _dispatch(self, operation: AsyncOperation) -> None:
        try:
            async with self._lanes:
                if operation.is_cancelled:
                    return
                operation.start()
                await operation.wait()
        finally:
            if operation in self._operations:
                self._operations.remove(operation)

    def cancel_all_operations(self) -> None:
        """Cancel every queued or executing operation."""
        operations = list(self._operations)
        for operation in operations:
            operation.cancel()
        if operations:
            logger.info(f"Queue '{self.name}' canceled {len(operations)} operations")
