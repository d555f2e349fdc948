"""
Main entry point for the TransitKit client.

This module sets up logging, loads the configuration, builds the backend
services and the agency alerts store, runs one update cycle and reports
the recent high-severity alerts.
"""

import asyncio
import logging
import os
import sys
from datetime import timedelta
from pathlib import Path

from version import get_version_string
from transitkit.api.services import APIServiceFactory
from transitkit.managers.agency_alerts_store import AgencyAlertsStore, FetchKind
from transitkit.managers.alerts_state_store import AlertsStateStore
from transitkit.managers.config_manager import ConfigData, ConfigManager, ConfigurationError
from transitkit.managers.delegate_registry import DelegateRegistry
from transitkit.managers.preferences import JSONFileKeyValueStore


def setup_logging(level: int = logging.INFO) -> None:
    """Setup application logging with file and console output."""
    if sys.platform == "darwin":
        log_dir = Path.home() / "Library" / "Logs" / "TransitKit"
    elif sys.platform == "win32":
        log_dir = Path(os.environ.get("APPDATA", Path.home())) / "TransitKit" / "logs"
    else:
        log_dir = Path.home() / ".local" / "share" / "transitkit" / "logs"

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "transitkit.log"

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler(str(log_file)), logging.StreamHandler()],
    )

    # Per-request detail stays out of the console by default
    logging.getLogger("transitkit.api").setLevel(logging.WARNING)
    logging.getLogger("transitkit.managers").setLevel(level)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def build_alerts_store(config: ConfigData, preferences_path: Path, http_client) -> AgencyAlertsStore:
    """Wire services, state store and delegate registry together."""
    queue = APIServiceFactory.create_network_queue(config)
    rest_service = APIServiceFactory.create_rest_service(config, http_client, queue)
    obaco_service = APIServiceFactory.create_obaco_service(config, http_client, queue)

    delegates = DelegateRegistry(asyncio.get_running_loop())
    state = AlertsStateStore(
        JSONFileKeyValueStore(preferences_path),
        delegates,
        recent_window=timedelta(hours=config.alerts.recent_window_hours),
    )
    return AgencyAlertsStore(state, delegates, rest_service, obaco_service)


async def run_update_cycle(config: ConfigData, preferences_path: Path) -> int:
    """Run one check_for_updates cycle and log recent alerts."""
    logger = logging.getLogger(__name__)
    http_client = APIServiceFactory.create_http_client(config)
    store = build_alerts_store(config, preferences_path, http_client)

    try:
        store.check_for_updates()
        await store.wait_until_idle()

        if FetchKind.AGENCIES in store.last_errors:
            logger.error(f"Agency lookup failed: {store.last_errors[FetchKind.AGENCIES]}")
            return 1

        alerts = store.recent_unread_high_severity_alerts
        logger.info(
            f"{len(store.agency_alerts)} alerts stored, "
            f"{len(alerts)} recent unread high-severity"
        )
        for alert in alerts:
            logger.info(f"[{alert.severity.value.upper()}] {alert.title}")
        return 0
    finally:
        store.shutdown()
        store.rest_service.network_queue.cancel_all_operations()
        await http_client.close()


def main() -> int:
    """Main application entry point."""
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info(f"Starting {get_version_string()}")

    config_manager = ConfigManager()
    try:
        config = config_manager.load_config()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    return asyncio.run(run_update_cycle(config, config_manager.get_preferences_path()))


if __name__ == "__main__":
    sys.exit(main())
