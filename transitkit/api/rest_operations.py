"""
REST API endpoint operations.

Each operation knows its endpoint path and how to turn the decoded
response envelope into models.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..models.agency_data import (
    AgencyAlert,
    AgencyWithCoverage,
    SeverityLevel,
    datetime_from_millis,
)
from .http_client import APIRequest, HTTPClient
from .network_operation import RESTAPIOperation, RESTAPIResponse
from .url_builder import RESTAPIURLBuilder, escape_path_variable

logger = logging.getLogger(__name__)


class AgenciesWithCoverageOperation(RESTAPIOperation):
    """Loads `/api/where/agencies-with-coverage.json`."""

    API_PATH = "/api/where/agencies-with-coverage.json"

    @classmethod
    def build_url(cls, builder: RESTAPIURLBuilder) -> str:
        return builder.generate_url(cls.API_PATH)

    def decode(self, response: RESTAPIResponse) -> List[AgencyWithCoverage]:
        names = {
            agency["id"]: agency.get("name", "")
            for agency in response.reference_list("agencies")
        }

        agencies = []
        for entry in response.entries:
            agency_id = str(entry["agencyId"])
            agencies.append(
                AgencyWithCoverage(
                    agency_id=agency_id,
                    name=names.get(agency_id, agency_id),
                    lat=float(entry.get("lat", 0.0)),
                    lon=float(entry.get("lon", 0.0)),
                    lat_span=float(entry.get("latSpan", 0.0)),
                    lon_span=float(entry.get("lonSpan", 0.0)),
                )
            )

        logger.info(f"Decoded {len(agencies)} agencies with coverage")
        return agencies


class RegionalAlertsOperation(RESTAPIOperation):
    """
    Loads `/api/where/alerts-for-agency/{id}.json` for every agency.

    The per-agency requests run concurrently. An agency whose request fails
    is skipped; the operation only fails when every request fails.
    """

    API_PATH = "/api/where/alerts-for-agency/{agency_id}.json"

    def __init__(self, http_client: HTTPClient, requests: List[APIRequest]):
        super().__init__(http_client, requests[0] if requests else APIRequest(url=""))
        self.requests = requests

    @classmethod
    def build_requests(
        cls,
        builder: RESTAPIURLBuilder,
        agencies: List[AgencyWithCoverage],
        include_test_alerts: bool = False,
    ) -> List[APIRequest]:
        params = {"includeTestAlerts": "true"} if include_test_alerts else None
        return [
            APIRequest(
                url=builder.generate_url(
                    cls.API_PATH.format(agency_id=escape_path_variable(agency.agency_id)),
                    params,
                )
            )
            for agency in agencies
        ]

    async def perform(self) -> List[AgencyAlert]:
        if not self.requests:
            return []

        outcomes = await asyncio.gather(
            *(self._fetch_alerts(request) for request in self.requests),
            return_exceptions=True,
        )

        alerts: List[AgencyAlert] = []
        errors: List[BaseException] = []
        for request, outcome in zip(self.requests, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.warning(f"Regional alerts request failed for {request.url}: {outcome}")
                errors.append(outcome)
            else:
                alerts.extend(outcome)

        if errors and len(errors) == len(self.requests):
            raise errors[0]

        return alerts

    async def _fetch_alerts(self, request: APIRequest) -> List[AgencyAlert]:
        data = await self.fetch(request)
        return self._parse(data)

    def decode(self, response: RESTAPIResponse) -> List[AgencyAlert]:
        return [self.decode_situation(entry) for entry in response.entries]

    @staticmethod
    def decode_situation(entry: Dict[str, Any]) -> AgencyAlert:
        """Convert a REST API situation element into an AgencyAlert."""
        windows = entry.get("activeWindows") or []
        window = windows[0] if windows else {}

        return AgencyAlert(
            id=str(entry["id"]),
            severity=SeverityLevel.from_string(entry.get("severity")),
            title=_translated(entry.get("summary")),
            body=_translated(entry.get("description")),
            start_date=datetime_from_millis(window.get("from")),
            end_date=datetime_from_millis(window.get("to")),
            url=_translated(entry.get("url")) or None,
            agency_id=entry.get("agencyId"),
        )


class TripDetailsOperation(RESTAPIOperation):
    """Loads `/api/where/trip-details/{id}.json`."""

    API_PATH = "/api/where/trip-details/{trip_id}.json"

    @classmethod
    def build_api_path(cls, trip_id: str) -> str:
        return cls.API_PATH.format(trip_id=escape_path_variable(trip_id))

    @classmethod
    def build_url(
        cls,
        builder: RESTAPIURLBuilder,
        trip_id: str,
        vehicle_id: Optional[str] = None,
        service_date: Optional[int] = None,
    ) -> str:
        params = {"vehicleId": vehicle_id, "serviceDate": service_date}
        return builder.generate_url(cls.build_api_path(trip_id), params)


class TripArrivalDepartureOperation(RESTAPIOperation):
    """Loads `/api/where/arrival-and-departure-for-stop/{id}.json`."""

    API_PATH = "/api/where/arrival-and-departure-for-stop/{stop_id}.json"

    @classmethod
    def build_api_path(cls, stop_id: str) -> str:
        return cls.API_PATH.format(stop_id=escape_path_variable(stop_id))

    @classmethod
    def build_url(
        cls,
        builder: RESTAPIURLBuilder,
        stop_id: str,
        trip_id: str,
        service_date: int,
        vehicle_id: Optional[str] = None,
        stop_sequence: int = 0,
    ) -> str:
        params: Dict[str, Any] = {"serviceDate": service_date, "tripId": trip_id}
        if vehicle_id:
            params["vehicleId"] = vehicle_id
        if stop_sequence > 0:
            params["stopSequence"] = stop_sequence
        return builder.generate_url(cls.build_api_path(stop_id), params)


def _translated(value: Any) -> str:
    """Read a REST API translated-string element."""
    if isinstance(value, dict):
        return value.get("value") or ""
    return value or ""
