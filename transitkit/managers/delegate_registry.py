"""
Weakly-held delegate registry.

Observers register themselves without the registry extending their
lifetime; observers that have been garbage collected simply disappear.
Notifications are always delivered on one foreground event loop, after the
call that triggered them has returned.
"""

import asyncio
import logging
import threading
import weakref
from typing import List, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class AgencyAlertsDelegate(Protocol):
    """
    Observer of agency alert changes.

    The notification carries no payload; delegates re-read the store's
    views. Delegates may also define ``agency_alerts_update_failed(error)``
    to hear about failed fetches.
    """

    def agency_alerts_updated(self) -> None:
        """Called when the set of stored alerts changed."""
        ...


class DelegateRegistry:
    """Weak set of delegates with fan-out on a fixed event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Initialize registry.

        Args:
            loop: Foreground loop notifications run on. Defaults to the loop
                running when the registry is created, if any.
        """
        self._delegates: "weakref.WeakSet[AgencyAlertsDelegate]" = weakref.WeakSet()
        self._lock = threading.Lock()
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        self._loop = loop

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the loop notifications are delivered on."""
        self._loop = loop

    def add(self, delegate: AgencyAlertsDelegate) -> None:
        """Add a delegate. Adding it again has no effect."""
        with self._lock:
            self._delegates.add(delegate)
        logger.debug(f"Delegate added: {type(delegate).__name__}")

    def remove(self, delegate: AgencyAlertsDelegate) -> None:
        """Remove a delegate if present."""
        with self._lock:
            self._delegates.discard(delegate)
        logger.debug(f"Delegate removed: {type(delegate).__name__}")

    def clear(self) -> None:
        with self._lock:
            self._delegates = weakref.WeakSet()

    @property
    def count(self) -> int:
        """Number of live delegates."""
        with self._lock:
            return len(self._delegates)

    def snapshot(self) -> List[AgencyAlertsDelegate]:
        """Strong references to the live delegates; safe from any thread."""
        with self._lock:
            return list(self._delegates)

    def notify_all(self) -> None:
        """Schedule ``agency_alerts_updated`` on every live delegate."""
        delegates = self.snapshot()
        if not delegates:
            return
        if self._schedule(self._deliver_updated, delegates):
            logger.debug(f"Scheduled alert update for {len(delegates)} delegates")

    def notify_failure(self, error: Exception) -> None:
        """Schedule ``agency_alerts_update_failed`` on delegates that define it."""
        delegates = [d for d in self.snapshot() if hasattr(d, "agency_alerts_update_failed")]
        if delegates:
            self._schedule(self._deliver_failure, delegates, error)

    def _schedule(self, callback, *args) -> bool:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.warning("No foreground loop bound; dropping delegate notification")
            return False
        loop.call_soon_threadsafe(callback, *args)
        return True

    @staticmethod
    def _deliver_updated(delegates: List[AgencyAlertsDelegate]) -> None:
        for delegate in delegates:
            try:
                delegate.agency_alerts_updated()
            except Exception as e:
                logger.error(f"Delegate notification failed: {e}")

    @staticmethod
    def _deliver_failure(delegates: List[AgencyAlertsDelegate], error: Exception) -> None:
        for delegate in delegates:
            try:
                delegate.agency_alerts_update_failed(error)
            except Exception as e:
                logger.error(f"Delegate failure notification failed: {e}")
