"""
Deduplicating agency alert storage.

Alerts are kept in a set, so merging the same alert twice is structurally a
no-op. Merges run one at a time on a dedicated single-worker lane; the
views are computed from a snapshot and may trail a pending merge.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import FrozenSet, Iterable, List, Optional, Set, Union

from ..models.agency_data import AgencyAlert
from .delegate_registry import DelegateRegistry
from .preferences import KeyValueStore

logger = logging.getLogger(__name__)


class PreferenceKeys:
    """Keys used in the durable key-value store."""

    DISPLAY_REGIONAL_TEST_ALERTS = "displayRegionalTestAlerts"
    READ_AGENCY_ALERT_IDS = "readAgencyAlertIDs"


class AlertsStateStore:
    """
    Identity-keyed alert set with derived views and persisted read-state.

    Alerts and read ids are never pruned; both live for the session and
    grow with what the backends serve.
    """

    DEFAULT_RECENT_WINDOW = timedelta(hours=8)

    def __init__(
        self,
        preferences: KeyValueStore,
        delegates: DelegateRegistry,
        recent_window: timedelta = DEFAULT_RECENT_WINDOW,
    ):
        self._preferences = preferences
        self._delegates = delegates
        self.recent_window = recent_window

        self._lock = threading.RLock()
        self._alerts: Set[AgencyAlert] = set()
        self._closed = False
        self._merge_lane = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="agency-alerts-merge"
        )

        self._preferences.register_defaults(
            {PreferenceKeys.DISPLAY_REGIONAL_TEST_ALERTS: False}
        )
        stored_ids = self._preferences.get(PreferenceKeys.READ_AGENCY_ALERT_IDS) or []
        self._read_alert_ids: Set[str] = set(stored_ids)

    # Merging

    def submit_merge(self, alerts: Iterable[AgencyAlert]) -> Future:
        """
        Queue a merge on the serial merge lane.

        Returns:
            Future: Resolves to True if the merge changed the alert set
        """
        batch = list(alerts)
        return self._merge_lane.submit(self.merge, batch)

    def merge(self, alerts: Iterable[AgencyAlert]) -> bool:
        """
        Insert a batch of alerts and notify delegates once if anything changed.

        Returns:
            bool: True if the set of stored alerts changed
        """
        with self._lock:
            if self._closed:
                return False
            before = len(self._alerts)
            self._alerts.update(alerts)
            changed = len(self._alerts) != before

        if changed:
            logger.info(f"Merged alerts: {before} -> {len(self._alerts)}")
            if not self._closed:
                self._delegates.notify_all()
        return changed

    def close(self) -> None:
        """Stop accepting merges and shut the merge lane down."""
        with self._lock:
            self._closed = True
        self._merge_lane.shutdown(wait=False, cancel_futures=True)

    @property
    def is_closed(self) -> bool:
        return self._closed

    # Views

    def snapshot(self) -> FrozenSet[AgencyAlert]:
        with self._lock:
            return frozenset(self._alerts)

    @property
    def agency_alerts(self) -> List[AgencyAlert]:
        """All alerts, newest start date first."""
        return sorted(self.snapshot(), key=AgencyAlert.sort_key, reverse=True)

    def recent_high_severity_alerts(self, now: Optional[datetime] = None) -> List[AgencyAlert]:
        """WARNING and SEVERE alerts whose start date is within the recent window."""
        return [
            alert
            for alert in self.agency_alerts
            if alert.is_high_severity and alert.started_within(self.recent_window, now)
        ]

    def recent_unread_high_severity_alerts(
        self, now: Optional[datetime] = None
    ) -> List[AgencyAlert]:
        """Filters ``recent_high_severity_alerts`` to the unread items."""
        return [
            alert for alert in self.recent_high_severity_alerts(now) if self.is_alert_unread(alert)
        ]

    # Read state

    def mark_alert_read(self, alert: Union[AgencyAlert, str]) -> None:
        """Record an alert as read and persist the read ids."""
        alert_id = alert.id if isinstance(alert, AgencyAlert) else alert
        with self._lock:
            self._read_alert_ids.add(alert_id)
            read_ids = sorted(self._read_alert_ids)
        self._preferences.set(PreferenceKeys.READ_AGENCY_ALERT_IDS, read_ids)

    def is_alert_unread(self, alert: Union[AgencyAlert, str]) -> bool:
        alert_id = alert.id if isinstance(alert, AgencyAlert) else alert
        with self._lock:
            return alert_id not in self._read_alert_ids

    # Feature flag

    @property
    def display_regional_test_alerts(self) -> bool:
        return bool(self._preferences.get(PreferenceKeys.DISPLAY_REGIONAL_TEST_ALERTS))

    @display_regional_test_alerts.setter
    def display_regional_test_alerts(self, enabled: bool) -> None:
        self._preferences.set(PreferenceKeys.DISPLAY_REGIONAL_TEST_ALERTS, bool(enabled))
