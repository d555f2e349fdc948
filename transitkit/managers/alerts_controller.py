"""
Qt integration for agency alerts.

This module bridges the asyncio-driven AgencyAlertsStore to Qt-based UI
code: it registers as a store delegate, re-emits changes as Qt signals,
and triggers periodic refreshes from a QTimer.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Union

from PySide6.QtCore import QObject, QTimer, Signal

from ..api.http_client import (
    APIException,
    HTTPStatusException,
    NetworkException,
    ParseException,
)
from ..models.agency_data import AgencyAlert
from .agency_alerts_store import AgencyAlertsStore
from .config_manager import AlertsConfig

logger = logging.getLogger(__name__)


class AlertsErrorHandler:
    """
    Maps fetch errors to user-friendly messages.

    Strategies are checked in order, most specific first.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger
        self._error_strategies = [
            (NetworkException, self._handle_network_error),
            (HTTPStatusException, self._handle_status_error),
            (ParseException, self._handle_data_error),
            (APIException, self._handle_api_error),
        ]

    def handle_error(self, error: Exception) -> str:
        """Handle error and return user-friendly message."""
        for exception_type, handler in self._error_strategies:
            if isinstance(error, exception_type):
                return handler(error)
        return self._handle_generic_error(error)

    def _handle_network_error(self, error: NetworkException) -> str:
        self._logger.error(f"Alerts network error: {error}")
        return "Network connection error. Please check your internet connection."

    def _handle_status_error(self, error: HTTPStatusException) -> str:
        self._logger.error(f"Alerts server error ({error.status_code}): {error}")
        return "The transit server is unavailable. Please try again later."

    def _handle_data_error(self, error: ParseException) -> str:
        self._logger.error(f"Alerts data error: {error}")
        return "Service alerts are temporarily unavailable."

    def _handle_api_error(self, error: APIException) -> str:
        self._logger.error(f"Alerts API error: {error}")
        return "Unable to fetch service alerts. Please try again later."

    def _handle_generic_error(self, error: Exception) -> str:
        self._logger.error(f"Unexpected alerts error: {error}")
        return "An unexpected error occurred while fetching service alerts."


class AgencyAlertsController(QObject):
    """
    Qt-facing controller for agency alerts.

    The store calls back on the asyncio loop; Qt signals fan the change out
    to widgets. Refreshes requested from Qt are marshalled onto the loop.
    """

    alerts_updated = Signal()
    update_failed = Signal(str)

    def __init__(
        self,
        store: AgencyAlertsStore,
        config: AlertsConfig,
        loop: asyncio.AbstractEventLoop,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._store = store
        self._config = config
        self._loop = loop
        self._error_handler = AlertsErrorHandler(logger)
        self._update_count = 0
        self._error_count = 0

        self._refresh_timer = QTimer()
        self._refresh_timer.timeout.connect(self._on_refresh_timer)

        self._store.add_delegate(self)
        logger.info("AgencyAlertsController initialized")

        if config.auto_refresh_enabled:
            self.start_auto_refresh()

    # Delegate callbacks, delivered on the asyncio loop

    def agency_alerts_updated(self) -> None:
        self._update_count += 1
        self.alerts_updated.emit()

    def agency_alerts_update_failed(self, error: Exception) -> None:
        self._error_count += 1
        self.update_failed.emit(self._error_handler.handle_error(error))

    # Refresh

    def start_auto_refresh(self) -> None:
        """Start periodic alert refreshes."""
        interval_ms = self._config.get_refresh_interval_seconds() * 1000
        self._refresh_timer.start(interval_ms)
        logger.info(
            f"Alert auto-refresh started with {self._config.refresh_interval_minutes}min interval"
        )

    def stop_auto_refresh(self) -> None:
        self._refresh_timer.stop()
        logger.info("Alert auto-refresh stopped")

    def is_auto_refresh_active(self) -> bool:
        return self._refresh_timer.isActive()

    def refresh_now(self) -> None:
        """Request an alert refresh on the store's event loop."""
        if self._loop.is_closed():
            logger.warning("Cannot refresh alerts: event loop is closed")
            return
        self._loop.call_soon_threadsafe(self._store.check_for_updates)

    def _on_refresh_timer(self) -> None:
        logger.debug("Alert auto-refresh timer triggered")
        self.refresh_now()

    # Views

    def recent_unread_alerts(self) -> List[AgencyAlert]:
        return self._store.recent_unread_high_severity_alerts

    def mark_alert_read(self, alert: Union[AgencyAlert, str]) -> None:
        self._store.mark_alert_read(alert)
        self.alerts_updated.emit()

    def get_statistics(self) -> Dict[str, object]:
        return {
            "update_count": self._update_count,
            "error_count": self._error_count,
            "alert_count": len(self._store.agency_alerts),
            "unread_count": len(self._store.recent_unread_high_severity_alerts),
            "auto_refresh_active": self.is_auto_refresh_active(),
        }

    def shutdown(self) -> None:
        """Stop refreshing and detach from the store."""
        self.stop_auto_refresh()
        self._store.remove_delegate(self)
        logger.info("AgencyAlertsController shutdown complete")
