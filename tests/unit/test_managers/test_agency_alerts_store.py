"""
Unit tests for AgencyAlertsStore orchestration.
"""

import asyncio
import pytest

from transitkit.api.http_client import HTTPStatusException, NetworkException
from transitkit.managers.agency_alerts_store import AgencyAlertsStore, FetchKind, FetchState
from transitkit.managers.alerts_state_store import AlertsStateStore
from transitkit.managers.delegate_registry import DelegateRegistry
from transitkit.managers.preferences import InMemoryKeyValueStore
from conftest import RecordingDelegate, settle

AGENCIES = "agencies-with-coverage"
REGIONAL = "alerts-for-agency"
OBACO = "/alerts.json"


@pytest.fixture
def routes(fake_http_client, test_api_responses):
    """Script a fully successful backend."""
    fake_http_client.add_route(AGENCIES, data=test_api_responses["agencies_success"])
    fake_http_client.add_route(REGIONAL, data=test_api_responses["regional_alerts_success"])
    fake_http_client.add_route(OBACO, data=test_api_responses["obaco_alerts_success"])
    return fake_http_client


async def run_cycle(store):
    store.check_for_updates()
    await store.wait_until_idle()
    await settle()


class TestCheckForUpdates:
    """Test the agencies-then-alerts flow."""

    @pytest.mark.asyncio
    async def test_full_cycle(self, store_factory, routes):
        store = store_factory()
        delegate = RecordingDelegate()
        store.add_delegate(delegate)

        await run_cycle(store)

        assert {alert.id for alert in store.agency_alerts} == {"1_situation_a", "obaco_x", "obaco_y"}
        assert [agency.agency_id for agency in store.agencies] == ["1"]
        assert delegate.updates == 2
        assert store.last_errors == {}
        assert store.fetch_state(FetchKind.AGENCIES) is FetchState.COMPLETED
        store.shutdown()

    @pytest.mark.asyncio
    async def test_agencies_lookup_is_single_flight(self, store_factory, routes, test_api_responses):
        gate = asyncio.Event()
        routes.add_route(AGENCIES, data=test_api_responses["agencies_success"], gate=gate)
        store = store_factory()

        store.check_for_updates()
        store.check_for_updates()
        await settle()

        assert routes.count(AGENCIES) == 1
        assert store.fetch_state(FetchKind.AGENCIES) is FetchState.IN_FLIGHT

        gate.set()
        await store.wait_until_idle()
        assert routes.count(REGIONAL) == 1
        store.shutdown()

    @pytest.mark.asyncio
    async def test_secondary_fetches_are_single_flight(self, store_factory, routes, test_api_responses):
        gate = asyncio.Event()
        routes.add_route(REGIONAL, data=test_api_responses["regional_alerts_success"], gate=gate)
        store = store_factory()
        await run_cycle_until_in_flight(store, FetchKind.REGIONAL_ALERTS)
        await wait_for_state(store, FetchKind.OBACO_ALERTS, FetchState.COMPLETED)

        store.check_for_updates()
        await settle()

        assert routes.count(REGIONAL) == 1
        assert routes.count(OBACO) == 2
        gate.set()
        await store.wait_until_idle()
        store.shutdown()

    @pytest.mark.asyncio
    async def test_cached_agencies_are_reused(self, store_factory, routes):
        store = store_factory()

        await run_cycle(store)
        await run_cycle(store)

        assert routes.count(AGENCIES) == 1
        assert routes.count(REGIONAL) == 2
        assert routes.count(OBACO) == 2
        store.shutdown()

    @pytest.mark.asyncio
    async def test_repeat_cycle_without_new_alerts_does_not_notify(self, store_factory, routes):
        store = store_factory()
        delegate = RecordingDelegate()
        store.add_delegate(delegate)

        await run_cycle(store)
        await run_cycle(store)

        assert delegate.updates == 2
        store.shutdown()

    @pytest.mark.asyncio
    async def test_agencies_failure_halts_cycle(self, store_factory, routes, test_api_responses):
        routes.add_route(AGENCIES, status=500)
        store = store_factory()
        delegate = RecordingDelegate()
        store.add_delegate(delegate)

        await run_cycle(store)

        assert isinstance(store.last_errors[FetchKind.AGENCIES], HTTPStatusException)
        assert routes.count(REGIONAL) == 0
        assert routes.count(OBACO) == 0
        assert store.agency_alerts == []
        assert delegate.updates == 0
        assert len(delegate.failures) == 1

        routes.add_route(AGENCIES, data=test_api_responses["agencies_success"])
        await run_cycle(store)

        assert routes.count(AGENCIES) == 2
        assert FetchKind.AGENCIES not in store.last_errors
        assert len(store.agency_alerts) == 3
        store.shutdown()

    @pytest.mark.asyncio
    async def test_empty_agency_list_fetches_nothing(self, store_factory, routes, test_api_responses):
        routes.add_route(AGENCIES, data=test_api_responses["agencies_empty"])
        store = store_factory()

        await run_cycle(store)

        assert routes.count(REGIONAL) == 0
        assert routes.count(OBACO) == 0
        assert store.last_errors == {}
        store.shutdown()

    @pytest.mark.asyncio
    async def test_one_provider_failing(self, store_factory, routes):
        routes.add_route(REGIONAL, error=NetworkException("offline"))
        store = store_factory()
        delegate = RecordingDelegate()
        store.add_delegate(delegate)

        await run_cycle(store)

        assert {alert.id for alert in store.agency_alerts} == {"obaco_x", "obaco_y"}
        assert isinstance(store.last_errors[FetchKind.REGIONAL_ALERTS], NetworkException)
        assert delegate.updates == 1
        assert len(delegate.failures) == 1
        store.shutdown()

    @pytest.mark.asyncio
    async def test_empty_provider_adds_no_notification(self, store_factory, routes, now):
        routes.add_route(OBACO, data=[])
        store = store_factory()
        delegate = RecordingDelegate()
        store.add_delegate(delegate)

        await run_cycle(store)

        assert [alert.id for alert in store.agency_alerts] == ["1_situation_a"]
        assert [alert.id for alert in store.recent_unread_high_severity_alerts] == ["1_situation_a"]
        assert delegate.updates == 1
        store.shutdown()

    @pytest.mark.asyncio
    async def test_without_obaco_service(self, store_factory, routes):
        store = store_factory(with_obaco=False)

        await run_cycle(store)

        assert routes.count(OBACO) == 0
        assert [alert.id for alert in store.agency_alerts] == ["1_situation_a"]
        store.shutdown()

    @pytest.mark.asyncio
    async def test_without_rest_service(self, fake_http_client):
        delegates = DelegateRegistry()
        store = AgencyAlertsStore(AlertsStateStore(InMemoryKeyValueStore(), delegates), delegates)

        store.check_for_updates()
        await settle()

        assert fake_http_client.requests == []
        store.shutdown()

    @pytest.mark.asyncio
    async def test_include_test_alerts_follows_preference(self, store_factory, routes):
        store = store_factory()
        store.state.display_regional_test_alerts = True

        await run_cycle(store)

        regional = [r for r in routes.requests if REGIONAL in r.url]
        assert "includeTestAlerts=true" in regional[0].url
        store.shutdown()


class TestQueueCancellation:
    """Test fetches canceled from outside the store."""

    @pytest.mark.asyncio
    async def test_queue_cancel_releases_fetch_kind(self, store_factory, routes, test_api_responses):
        gate = asyncio.Event()
        routes.add_route(AGENCIES, data=test_api_responses["agencies_success"], gate=gate)
        store = store_factory()
        store.check_for_updates()
        await settle()

        store.rest_service.network_queue.cancel_all_operations()
        gate.set()

        assert store.fetch_state(FetchKind.AGENCIES) is FetchState.IDLE
        await asyncio.wait_for(store.wait_until_idle(), timeout=1)

        await asyncio.wait_for(run_cycle(store), timeout=1)

        assert routes.count(AGENCIES) == 2
        assert store.fetch_state(FetchKind.AGENCIES) is FetchState.COMPLETED
        assert len(store.agency_alerts) == 3
        store.shutdown()

    @pytest.mark.asyncio
    async def test_queue_cancel_of_secondary_fetch(self, store_factory, routes, test_api_responses):
        gate = asyncio.Event()
        routes.add_route(REGIONAL, data=test_api_responses["regional_alerts_success"], gate=gate)
        store = store_factory()
        await run_cycle_until_in_flight(store, FetchKind.REGIONAL_ALERTS)

        store.rest_service.network_queue.cancel_all_operations()
        gate.set()
        await asyncio.wait_for(store.wait_until_idle(), timeout=1)

        assert store.fetch_state(FetchKind.REGIONAL_ALERTS) is FetchState.IDLE
        assert FetchKind.REGIONAL_ALERTS not in store.last_errors
        store.check_for_updates()
        await store.wait_until_idle()
        assert routes.count(REGIONAL) == 2
        store.shutdown()


class TestShutdown:
    """Test teardown while fetches are in flight."""

    @pytest.mark.asyncio
    async def test_shutdown_drops_secondary_results(self, store_factory, routes, test_api_responses):
        gate = asyncio.Event()
        routes.add_route(REGIONAL, data=test_api_responses["regional_alerts_success"], gate=gate)
        routes.add_route(OBACO, data=test_api_responses["obaco_alerts_success"], gate=gate)
        store = store_factory()
        delegate = RecordingDelegate()
        store.add_delegate(delegate)
        await run_cycle_until_in_flight(store, FetchKind.OBACO_ALERTS)

        store.shutdown()
        gate.set()
        await settle(20)

        assert store.agency_alerts == []
        assert delegate.updates == 0
        assert all(store.fetch_state(kind) is FetchState.IDLE for kind in FetchKind)
        assert store.state.is_closed

    @pytest.mark.asyncio
    async def test_check_after_shutdown_is_ignored(self, store_factory, routes):
        store = store_factory()
        store.shutdown()
        store.shutdown()

        store.check_for_updates()
        await settle()

        assert routes.requests == []


class TestReadState:
    """Test read-state pass-through."""

    @pytest.mark.asyncio
    async def test_mark_alert_read(self, store_factory, routes):
        preferences = InMemoryKeyValueStore()
        store = store_factory(preferences=preferences)
        await run_cycle(store)

        store.mark_alert_read("1_situation_a")

        assert not store.is_alert_unread("1_situation_a")
        assert [a.id for a in store.recent_unread_high_severity_alerts] == ["obaco_x"]
        assert [a.id for a in store.recent_high_severity_alerts] == ["1_situation_a", "obaco_x"]
        assert "1_situation_a" in {a.id for a in store.agency_alerts}
        assert preferences.get("readAgencyAlertIDs") == ["1_situation_a"]
        store.shutdown()

    @pytest.mark.asyncio
    async def test_remove_delegate(self, store_factory, routes):
        store = store_factory()
        delegate = RecordingDelegate()
        store.add_delegate(delegate)
        store.remove_delegate(delegate)

        await run_cycle(store)

        assert delegate.updates == 0
        store.shutdown()


async def wait_for_state(store, kind, state, attempts=100):
    """Yield to the loop until ``kind`` reaches ``state``."""
    for _ in range(attempts):
        if store.fetch_state(kind) is state:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"{kind.value} never reached {state.value}")


async def run_cycle_until_in_flight(store, kind):
    """Start a cycle and wait until ``kind`` has been issued."""
    store.check_for_updates()
    await wait_for_state(store, kind, FetchState.IN_FLIGHT)
    await settle()
