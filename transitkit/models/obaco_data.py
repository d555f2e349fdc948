"""
Obaco service data models.

Weather, alarm and vehicle records returned by the Obaco service.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class RegionalWeather:
    """Current weather and today's outlook for a region."""

    region_identifier: int
    region_name: str
    today_summary: str
    temperature: float
    summary: str
    icon: str
    retrieved_at: Optional[datetime] = None

    @property
    def temperature_display(self) -> str:
        """Get temperature rounded for display."""
        return f"{round(self.temperature)}°"


@dataclass(frozen=True)
class Alarm:
    """An arrival alarm registered with Obaco, addressed by its URL."""

    url: str


@dataclass(frozen=True)
class AgencyVehicle:
    """A vehicle matching a search query."""

    vehicle_id: str
    agency_name: Optional[str] = None
