"""
Global pytest configuration and fixtures.
"""

import asyncio
import pytest
from PySide6.QtCore import QCoreApplication
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from transitkit.api.http_client import APIRequest, APIResponse, HTTPClient
from transitkit.api.operation_queue import OperationQueue
from transitkit.api.services import ObacoService, RESTAPIService
from transitkit.managers.agency_alerts_store import AgencyAlertsStore
from transitkit.managers.alerts_state_store import AlertsStateStore
from transitkit.managers.config_manager import (
    AlertsConfig,
    ConfigData,
    NetworkConfig,
    ObacoConfig,
    RESTAPIConfig,
)
from transitkit.managers.delegate_registry import DelegateRegistry
from transitkit.managers.preferences import InMemoryKeyValueStore
from transitkit.models.agency_data import AgencyAlert, AgencyWithCoverage, SeverityLevel

REST_BASE_URL = "https://api.example.org"
OBACO_BASE_URL = "https://obaco.example.org"


@dataclass
class FakeRoute:
    """Scripted response for every request whose URL contains a fragment."""

    data: Any = None
    status: int = 200
    error: Optional[Exception] = None
    gate: Optional[asyncio.Event] = None


class FakeHTTPClient(HTTPClient):
    """HTTPClient that answers from scripted routes and records requests."""

    def __init__(self):
        self.routes: Dict[str, FakeRoute] = {}
        self.requests: List[APIRequest] = []
        self.closed = False

    def add_route(self, fragment: str, data: Any = None, status: int = 200,
                  error: Optional[Exception] = None, gate: Optional[asyncio.Event] = None) -> None:
        self.routes[fragment] = FakeRoute(data=data, status=status, error=error, gate=gate)

    def count(self, fragment: str) -> int:
        return sum(1 for request in self.requests if fragment in request.url)

    async def send(self, request: APIRequest) -> APIResponse:
        self.requests.append(request)
        for fragment, route in self.routes.items():
            if fragment in request.url:
                if route.gate is not None:
                    await route.gate.wait()
                if route.error is not None:
                    raise route.error
                return APIResponse(route.status, route.data, datetime.now(), request.url)
        return APIResponse(404, None, datetime.now(), request.url)

    async def close(self) -> None:
        self.closed = True


class RecordingDelegate:
    """Delegate that counts the notifications it receives."""

    def __init__(self):
        self.updates = 0
        self.failures: List[Exception] = []

    def agency_alerts_updated(self) -> None:
        self.updates += 1

    def agency_alerts_update_failed(self, error: Exception) -> None:
        self.failures.append(error)


async def settle(iterations: int = 5) -> None:
    """Let scheduled callbacks and dispatched tasks run."""
    for _ in range(iterations):
        await asyncio.sleep(0)


def make_alert(alert_id: str, severity: SeverityLevel = SeverityLevel.SEVERE,
               start_date: Optional[datetime] = None, title: str = "Service disruption",
               agency_id: Optional[str] = "1") -> AgencyAlert:
    return AgencyAlert(
        id=alert_id,
        severity=severity,
        title=title,
        body="Buses are rerouted.",
        start_date=start_date,
        agency_id=agency_id,
    )


def millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


@pytest.fixture(scope="session")
def qapp():
    """Create QCoreApplication instance for Qt object tests."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def test_config():
    """Provide a test configuration."""
    return ConfigData(
        rest_api=RESTAPIConfig(
            base_url=REST_BASE_URL,
            api_key="test_key",
            app_uid="test_uid",
            app_version="1.0",
            timeout_seconds=5,
        ),
        obaco=ObacoConfig(enabled=True, base_url=OBACO_BASE_URL, region_id="1"),
        network=NetworkConfig(max_concurrent_operations=4),
        alerts=AlertsConfig(recent_window_hours=8, refresh_interval_minutes=15),
    )


@pytest.fixture
def sample_agency():
    return AgencyWithCoverage(
        agency_id="1", name="Metro Transit", lat=47.6, lon=-122.3, lat_span=0.5, lon_span=0.6
    )


@pytest.fixture
def test_api_responses(now):
    """Provide test REST API and Obaco response data."""
    return {
        "agencies_success": {
            "code": 200,
            "currentTime": millis(now),
            "text": "OK",
            "data": {
                "list": [
                    {"agencyId": "1", "lat": 47.6, "lon": -122.3, "latSpan": 0.5, "lonSpan": 0.6}
                ],
                "references": {"agencies": [{"id": "1", "name": "Metro Transit"}]},
            },
        },
        "agencies_empty": {"code": 200, "data": {"list": [], "references": {}}},
        "regional_alerts_success": {
            "code": 200,
            "data": {
                "list": [
                    {
                        "id": "1_situation_a",
                        "severity": "severe",
                        "summary": {"value": "Tunnel closed"},
                        "description": {"value": "Use surface routes."},
                        "url": {"value": "https://example.org/alerts/a"},
                        "activeWindows": [{"from": millis(now - timedelta(hours=1)), "to": 0}],
                    }
                ],
                "references": {},
            },
        },
        "regional_alerts_empty": {"code": 200, "data": {"list": [], "references": {}}},
        "obaco_alerts_success": [
            {
                "id": "obaco_x",
                "title": "Snow routes",
                "body": "Snow routes in effect.",
                "severity": "warning",
                "agency_id": "1",
                "starts_at": (now - timedelta(hours=2)).isoformat(),
            },
            {
                "id": "obaco_y",
                "title": "Elevator outage",
                "body": "Station elevator out of service.",
                "severity": "info",
                "agency_id": None,
                "starts_at": (now - timedelta(hours=3)).isoformat(),
            },
        ],
    }


@pytest.fixture
def fake_http_client():
    return FakeHTTPClient()


@pytest.fixture
def service_factory(fake_http_client):
    """
    Build REST and Obaco services over the fake client.

    Call the returned factory from inside a running event loop.
    """

    def _build(max_concurrent_operations: int = 4):
        queue = OperationQueue(max_concurrent_operations)
        rest = RESTAPIService(REST_BASE_URL, "test_key", "test_uid", "1.0", fake_http_client, queue)
        obaco = ObacoService(OBACO_BASE_URL, "1", "test_uid", "1.0", fake_http_client, queue)
        return rest, obaco, queue

    return _build


@pytest.fixture
def store_factory(service_factory):
    """
    Build an AgencyAlertsStore with in-memory preferences.

    Call the returned factory from inside a running event loop.
    """

    def _build(with_obaco: bool = True, preferences: Optional[InMemoryKeyValueStore] = None):
        rest, obaco, _ = service_factory()
        delegates = DelegateRegistry()
        state = AlertsStateStore(preferences or InMemoryKeyValueStore(), delegates)
        return AgencyAlertsStore(state, delegates, rest, obaco if with_obaco else None)

    return _build
