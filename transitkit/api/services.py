"""
Backend services that build, enqueue and return network operations.

Callers receive the operation immediately and attach continuations with
``then``/``on_failure``/``on_complete``. Every method must be called from
the running event loop because enqueueing schedules work on it.
"""

import logging
from typing import Dict, Iterable, List, Optional

from ..managers.config_manager import ConfigData
from ..models.agency_data import AgencyWithCoverage
from .http_client import AioHttpClient, APIRequest, HTTPClient
from .network_operation import NetworkOperation
from .obaco_operations import (
    CreateAlarmOperation,
    MatchingVehiclesOperation,
    ObacoAlertsOperation,
    WeatherOperation,
    delete_request,
)
from .operation_queue import OperationQueue
from .rest_operations import (
    AgenciesWithCoverageOperation,
    RegionalAlertsOperation,
    TripArrivalDepartureOperation,
    TripDetailsOperation,
)
from .url_builder import RESTAPIURLBuilder

logger = logging.getLogger(__name__)


class APIService:
    """Shared plumbing for backend services."""

    def __init__(
        self,
        base_url: str,
        http_client: HTTPClient,
        network_queue: OperationQueue,
        default_query_items: Optional[Dict[str, str]] = None,
    ):
        self.base_url = base_url
        self.http_client = http_client
        self.network_queue = network_queue
        self.url_builder = RESTAPIURLBuilder(base_url, default_query_items)

    def enqueue(self, operation: NetworkOperation) -> NetworkOperation:
        self.network_queue.add_operation(operation)
        return operation


class RESTAPIService(APIService):
    """OneBusAway REST API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        app_uid: str,
        app_version: str,
        http_client: HTTPClient,
        network_queue: OperationQueue,
    ):
        query_items = {"key": api_key, "app_uid": app_uid, "app_ver": app_version, "version": "2"}
        super().__init__(base_url, http_client, network_queue, query_items)

    def get_agencies_with_coverage(self) -> AgenciesWithCoverageOperation:
        url = AgenciesWithCoverageOperation.build_url(self.url_builder)
        return self.enqueue(AgenciesWithCoverageOperation(self.http_client, APIRequest(url=url)))

    def get_regional_alerts(
        self, agencies: List[AgencyWithCoverage], include_test_alerts: bool = False
    ) -> RegionalAlertsOperation:
        requests = RegionalAlertsOperation.build_requests(
            self.url_builder, agencies, include_test_alerts
        )
        return self.enqueue(RegionalAlertsOperation(self.http_client, requests))

    def get_trip(
        self, trip_id: str, vehicle_id: Optional[str] = None, service_date: Optional[int] = None
    ) -> TripDetailsOperation:
        url = TripDetailsOperation.build_url(self.url_builder, trip_id, vehicle_id, service_date)
        return self.enqueue(TripDetailsOperation(self.http_client, APIRequest(url=url)))

    def get_trip_arrival_departure(
        self,
        stop_id: str,
        trip_id: str,
        service_date: int,
        vehicle_id: Optional[str] = None,
        stop_sequence: int = 0,
    ) -> TripArrivalDepartureOperation:
        url = TripArrivalDepartureOperation.build_url(
            self.url_builder, stop_id, trip_id, service_date, vehicle_id, stop_sequence
        )
        return self.enqueue(TripArrivalDepartureOperation(self.http_client, APIRequest(url=url)))


class ObacoService(APIService):
    """Obaco alerts, weather, alarms and vehicle search for one region."""

    def __init__(
        self,
        base_url: str,
        region_id: str,
        app_uid: str,
        app_version: str,
        http_client: HTTPClient,
        network_queue: OperationQueue,
    ):
        query_items = {"app_uid": app_uid, "app_ver": app_version}
        super().__init__(base_url, http_client, network_queue, query_items)
        self.region_id = region_id

    def get_alerts(self, agencies: Iterable[AgencyWithCoverage]) -> ObacoAlertsOperation:
        url = ObacoAlertsOperation.build_url(self.url_builder, self.region_id)
        agency_ids = [agency.agency_id for agency in agencies]
        return self.enqueue(
            ObacoAlertsOperation(self.http_client, APIRequest(url=url), agency_ids)
        )

    def get_weather(self) -> WeatherOperation:
        url = WeatherOperation.build_url(self.url_builder, self.region_id)
        return self.enqueue(WeatherOperation(self.http_client, APIRequest(url=url)))

    def post_alarm(
        self,
        seconds_before: int,
        stop_id: str,
        trip_id: str,
        service_date: int,
        vehicle_id: str,
        stop_sequence: int,
        user_push_id: str,
    ) -> CreateAlarmOperation:
        request = CreateAlarmOperation.build_request(
            self.url_builder,
            self.region_id,
            seconds_before,
            stop_id,
            trip_id,
            service_date,
            vehicle_id,
            stop_sequence,
            user_push_id,
        )
        return self.enqueue(CreateAlarmOperation(self.http_client, request))

    def delete_alarm(self, url: str) -> NetworkOperation:
        params = dict(self.url_builder.default_query_items)
        return self.enqueue(NetworkOperation(self.http_client, delete_request(url, params)))

    def get_vehicles(self, query: str) -> MatchingVehiclesOperation:
        url = MatchingVehiclesOperation.build_url(self.url_builder, self.region_id, query)
        return self.enqueue(MatchingVehiclesOperation(self.http_client, APIRequest(url=url)))


class APIServiceFactory:
    """
    Factory for creating backend services from configuration.

    The REST and Obaco services share one HTTP client and one queue.
    """

    @staticmethod
    def create_http_client(config: ConfigData) -> AioHttpClient:
        return AioHttpClient(timeout_seconds=config.rest_api.timeout_seconds)

    @staticmethod
    def create_network_queue(config: ConfigData) -> OperationQueue:
        return OperationQueue(config.network.max_concurrent_operations)

    @staticmethod
    def create_rest_service(
        config: ConfigData, http_client: HTTPClient, network_queue: OperationQueue
    ) -> RESTAPIService:
        api = config.rest_api
        return RESTAPIService(
            base_url=api.base_url,
            api_key=api.api_key,
            app_uid=api.app_uid,
            app_version=api.app_version,
            http_client=http_client,
            network_queue=network_queue,
        )

    @staticmethod
    def create_obaco_service(
        config: ConfigData, http_client: HTTPClient, network_queue: OperationQueue
    ) -> Optional[ObacoService]:
        if not config.obaco.enabled:
            logger.info("Obaco service disabled in configuration")
            return None
        return ObacoService(
            base_url=config.obaco.base_url,
            region_id=config.obaco.region_id,
            app_uid=config.rest_api.app_uid,
            app_version=config.rest_api.app_version,
            http_client=http_client,
            network_queue=network_queue,
        )
