"""
Obaco service endpoint operations.
"""

import logging
from typing import Any, Iterable, List, Optional, Set

from ..models.agency_data import AgencyAlert, SeverityLevel, datetime_from_iso
from ..models.obaco_data import AgencyVehicle, Alarm, RegionalWeather
from .http_client import APIRequest, HTTPClient, ParseException
from .network_operation import NetworkOperation
from .url_builder import RESTAPIURLBuilder, escape_path_variable

logger = logging.getLogger(__name__)


def _region_path(template: str, region_id: str) -> str:
    return template.format(region_id=escape_path_variable(region_id))


class ObacoAlertsOperation(NetworkOperation):
    """
    Loads `/api/v1/regions/{region}/alerts.json`.

    Alerts tied to an agency outside the known agency list are dropped;
    region-wide alerts without an agency are kept. A record whose timestamps
    cannot be parsed is skipped rather than failing the batch.
    """

    API_PATH = "/api/v1/regions/{region_id}/alerts.json"

    def __init__(self, http_client: HTTPClient, request: APIRequest, agency_ids: Iterable[str]):
        super().__init__(http_client, request)
        self.agency_ids: Set[str] = set(agency_ids)

    @classmethod
    def build_url(cls, builder: RESTAPIURLBuilder, region_id: str) -> str:
        return builder.generate_url(_region_path(cls.API_PATH, region_id))

    def parse_response(self, data: Any) -> List[AgencyAlert]:
        if not isinstance(data, list):
            raise ParseException("Obaco alerts response is not a list")

        alerts = []
        for entry in data:
            agency_id = entry.get("agency_id")
            if agency_id is not None and str(agency_id) not in self.agency_ids:
                continue
            try:
                start_date = datetime_from_iso(entry.get("starts_at"))
                end_date = datetime_from_iso(entry.get("ends_at"))
            except ValueError as e:
                logger.warning(f"Skipping Obaco alert {entry.get('id')} with bad timestamp: {e}")
                continue

            alerts.append(
                AgencyAlert(
                    id=str(entry["id"]),
                    severity=SeverityLevel.from_string(entry.get("severity")),
                    title=entry.get("title") or "",
                    body=entry.get("body") or "",
                    start_date=start_date,
                    end_date=end_date,
                    url=entry.get("url"),
                    agency_id=str(agency_id) if agency_id is not None else None,
                )
            )

        skipped = len(data) - len(alerts)
        if skipped:
            logger.debug(f"Skipped {skipped} Obaco alerts")
        return alerts


class WeatherOperation(NetworkOperation):
    """Loads `/api/v1/regions/{region}/weather.json`."""

    API_PATH = "/api/v1/regions/{region_id}/weather.json"

    @classmethod
    def build_url(cls, builder: RESTAPIURLBuilder, region_id: str) -> str:
        return builder.generate_url(_region_path(cls.API_PATH, region_id))

    def parse_response(self, data: Any) -> RegionalWeather:
        current = data["current_forecast"]
        return RegionalWeather(
            region_identifier=int(data["region_identifier"]),
            region_name=data.get("region_name", ""),
            today_summary=data.get("today_summary", ""),
            temperature=float(current["temperature"]),
            summary=current.get("summary", ""),
            icon=current.get("icon", ""),
            retrieved_at=datetime_from_iso(data.get("retrieved_at")),
        )


class CreateAlarmOperation(NetworkOperation):
    """Posts to `/api/v1/regions/{region}/alarms`."""

    API_PATH = "/api/v1/regions/{region_id}/alarms"

    @classmethod
    def build_request(
        cls,
        builder: RESTAPIURLBuilder,
        region_id: str,
        seconds_before: int,
        stop_id: str,
        trip_id: str,
        service_date: int,
        vehicle_id: str,
        stop_sequence: int,
        user_push_id: str,
    ) -> APIRequest:
        form = {
            "seconds_before": int(seconds_before),
            "stop_id": stop_id,
            "trip_id": trip_id,
            "service_date": service_date,
            "vehicle_id": vehicle_id,
            "stop_sequence": stop_sequence,
            "user_push_id": user_push_id,
        }
        return APIRequest(
            url=builder.generate_url(_region_path(cls.API_PATH, region_id)),
            method="POST",
            form=form,
        )

    def parse_response(self, data: Any) -> Alarm:
        return Alarm(url=data["url"])


class MatchingVehiclesOperation(NetworkOperation):
    """Loads `/api/v1/regions/{region}/vehicles` for a search query."""

    API_PATH = "/api/v1/regions/{region_id}/vehicles"

    @classmethod
    def build_url(cls, builder: RESTAPIURLBuilder, region_id: str, query: str) -> str:
        return builder.generate_url(_region_path(cls.API_PATH, region_id), {"query": query})

    def parse_response(self, data: Any) -> List[AgencyVehicle]:
        return [
            AgencyVehicle(vehicle_id=str(item["id"]), agency_name=item.get("name"))
            for item in data
        ]


def delete_request(url: str, params: Optional[dict] = None) -> APIRequest:
    """Build a DELETE request for a resource URL such as an Alarm."""
    return APIRequest(url=url, method="DELETE", params=params or {})
