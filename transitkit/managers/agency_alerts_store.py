"""
Agency alerts aggregation.

AgencyAlertsStore looks up the agencies the backend covers, then fetches
alerts for them from the REST API and from Obaco in parallel, merging each
source's alerts into an AlertsStateStore as soon as it arrives.

    check_for_updates()
        agencies (only while the agency cache is empty)
            -> regional alerts -> merge
            -> obaco alerts    -> merge

Each fetch kind is single-flight: a kind that is already in flight is not
issued again. Failures are logged, recorded in ``last_errors`` and fanned
out to delegates; nothing is retried here.
"""

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Set, Union

from ..api.network_operation import NetworkOperation
from ..api.operations import AsyncOperation
from ..models.agency_data import AgencyAlert, AgencyWithCoverage
from .alerts_state_store import AlertsStateStore
from .delegate_registry import AgencyAlertsDelegate, DelegateRegistry

if TYPE_CHECKING:
    from ..api.services import ObacoService, RESTAPIService

logger = logging.getLogger(__name__)


class FetchKind(Enum):
    """Operation kinds issued by the store."""

    AGENCIES = "agencies"
    REGIONAL_ALERTS = "regional_alerts"
    OBACO_ALERTS = "obaco_alerts"


class FetchState(Enum):
    """Lifecycle of one fetch kind."""

    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"


class AgencyAlertsStore:
    """
    Orchestrates agency and alert fetches into a shared alert state.

    Must be driven from the foreground event loop: ``check_for_updates``
    enqueues operations and delegate notifications are delivered there.
    """

    def __init__(
        self,
        state: AlertsStateStore,
        delegates: DelegateRegistry,
        rest_service: Optional["RESTAPIService"] = None,
        obaco_service: Optional["ObacoService"] = None,
    ):
        self.state = state
        self.delegates = delegates
        self.rest_service = rest_service
        self.obaco_service = obaco_service

        self._agencies: List[AgencyWithCoverage] = []
        self._fetch_states: Dict[FetchKind, FetchState] = {kind: FetchState.IDLE for kind in FetchKind}
        self._operations: Dict[FetchKind, NetworkOperation] = {}
        self._pending_merges: Set[asyncio.Future] = set()
        self.last_errors: Dict[FetchKind, Exception] = {}
        self._shut_down = False

    # Updates

    @property
    def agencies(self) -> List[AgencyWithCoverage]:
        return list(self._agencies)

    def fetch_state(self, kind: FetchKind) -> FetchState:
        return self._fetch_states[kind]

    def check_for_updates(self) -> None:
        """Refresh alerts, looking up agencies first if none are cached."""
        if self._shut_down:
            logger.warning("check_for_updates called after shutdown")
            return
        if self.rest_service is None:
            logger.debug("No REST service configured; skipping alert update")
            return

        if self._agencies:
            self._fetch_alerts()
            return

        if self._fetch_states[FetchKind.AGENCIES] is FetchState.IN_FLIGHT:
            logger.debug("Agencies lookup already in flight")
            return

        operation = self.rest_service.get_agencies_with_coverage()
        self._track(FetchKind.AGENCIES, operation)
        operation.then(self._agencies_loaded)

    def _agencies_loaded(self, agencies: List[AgencyWithCoverage]) -> None:
        self._agencies = list(agencies)
        if not self._agencies:
            logger.info("Agency lookup returned no agencies; no alerts to fetch")
            return
        logger.info(f"Cached {len(self._agencies)} agencies")
        self._fetch_alerts()

    def _fetch_alerts(self) -> None:
        self._fetch_regional_alerts()
        self._fetch_obaco_alerts()

    def _fetch_regional_alerts(self) -> None:
        if self._fetch_states[FetchKind.REGIONAL_ALERTS] is FetchState.IN_FLIGHT:
            return

        operation = self.rest_service.get_regional_alerts(
            self._agencies, include_test_alerts=self.state.display_regional_test_alerts
        )
        self._track(FetchKind.REGIONAL_ALERTS, operation)
        operation.then(self._store_agency_alerts)

    def _fetch_obaco_alerts(self) -> None:
        if self.obaco_service is None:
            return
        if self._fetch_states[FetchKind.OBACO_ALERTS] is FetchState.IN_FLIGHT:
            return

        operation = self.obaco_service.get_alerts(self._agencies)
        self._track(FetchKind.OBACO_ALERTS, operation)
        operation.then(self._store_agency_alerts)

    def _track(self, kind: FetchKind, operation: NetworkOperation) -> None:
        """Hold the operation until it completes or is canceled and record its outcome."""
        self._operations[kind] = operation
        self._fetch_states[kind] = FetchState.IN_FLIGHT

        def _completed(op: AsyncOperation) -> None:
            if self._operations.get(kind) is op:
                del self._operations[kind]
            self._fetch_states[kind] = FetchState.COMPLETED
            if op.result.is_success:
                self.last_errors.pop(kind, None)

        def _canceled(op: AsyncOperation) -> None:
            if self._operations.get(kind) is op:
                del self._operations[kind]
                self._fetch_states[kind] = FetchState.IDLE
                logger.debug(f"Fetching {kind.value} was canceled")

        operation.on_complete(_completed)
        operation.on_cancel(_canceled)
        operation.on_failure(lambda error: self._fetch_failed(kind, error))

    def _fetch_failed(self, kind: FetchKind, error: Exception) -> None:
        logger.warning(f"Fetching {kind.value} failed: {error}")
        self.last_errors[kind] = error
        self.delegates.notify_failure(error)

    # Data storage

    def _store_agency_alerts(self, alerts: List[AgencyAlert]) -> None:
        if self._shut_down:
            return
        future = asyncio.wrap_future(self.state.submit_merge(alerts))
        self._pending_merges.add(future)
        future.add_done_callback(self._pending_merges.discard)

    async def wait_until_idle(self) -> None:
        """Wait for every in-flight operation and pending merge to settle."""
        while True:
            pending = [op.wait() for op in self._operations.values()]
            pending.extend(self._pending_merges)
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # Views

    @property
    def agency_alerts(self) -> List[AgencyAlert]:
        return self.state.agency_alerts

    @property
    def recent_high_severity_alerts(self) -> List[AgencyAlert]:
        return self.state.recent_high_severity_alerts()

    @property
    def recent_unread_high_severity_alerts(self) -> List[AgencyAlert]:
        return self.state.recent_unread_high_severity_alerts()

    def mark_alert_read(self, alert: Union[AgencyAlert, str]) -> None:
        self.state.mark_alert_read(alert)

    def is_alert_unread(self, alert: Union[AgencyAlert, str]) -> bool:
        return self.state.is_alert_unread(alert)

    # Delegates

    def add_delegate(self, delegate: AgencyAlertsDelegate) -> None:
        self.delegates.add(delegate)

    def remove_delegate(self, delegate: AgencyAlertsDelegate) -> None:
        self.delegates.remove(delegate)

    # Teardown

    def shutdown(self) -> None:
        """Cancel in-flight fetches and merges; no continuation runs afterwards."""
        if self._shut_down:
            return
        self._shut_down = True

        for operation in list(self._operations.values()):
            operation.cancel()
        self._operations.clear()
        self._fetch_states = {kind: FetchState.IDLE for kind in FetchKind}

        for future in list(self._pending_merges):
            future.cancel()
        self._pending_merges.clear()

        self.state.close()
        logger.info("AgencyAlertsStore shutdown complete")
