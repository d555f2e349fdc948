"""
Agency and agency alert data models.

This module defines the core data structures for agencies served by the
backend and the service alerts they publish.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional


class SeverityLevel(Enum):
    """GTFS-RT style alert severity."""

    INFO = "info"
    WARNING = "warning"
    SEVERE = "severe"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "SeverityLevel":
        """
        Parse a severity string from either backend.

        Unrecognized or missing values are treated as informational.
        """
        if not value:
            return cls.INFO

        normalized = value.strip().lower()
        if normalized in ("severe", "verysevere"):
            return cls.SEVERE
        if normalized == "warning":
            return cls.WARNING
        return cls.INFO


@dataclass(frozen=True)
class AgencyWithCoverage:
    """
    A transit agency together with the region its service covers.
    """

    agency_id: str
    name: str
    lat: float
    lon: float
    lat_span: float
    lon_span: float


@dataclass(frozen=True)
class AgencyAlert:
    """
    Immutable data class representing one agency service alert.

    Alerts compare and hash by every field, so a set of alerts drops exact
    duplicates while keeping revised copies of the same alert.
    """

    id: str
    severity: SeverityLevel
    title: str
    body: str = ""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    url: Optional[str] = None
    agency_id: Optional[str] = None

    @property
    def is_high_severity(self) -> bool:
        """Check if the alert is a WARNING or SEVERE alert."""
        return self.severity in (SeverityLevel.WARNING, SeverityLevel.SEVERE)

    def started_within(self, window: timedelta, now: Optional[datetime] = None) -> bool:
        """Check if the alert's start date lies within ``window`` of ``now``."""
        if self.start_date is None:
            return False
        now = now or datetime.now(timezone.utc)
        return abs(now - self.start_date) < window

    def sort_key(self) -> datetime:
        """Start date used for newest-first ordering; undated alerts sort last."""
        return self.start_date or datetime.min.replace(tzinfo=timezone.utc)


def datetime_from_millis(value: Optional[int]) -> Optional[datetime]:
    """Convert a millisecond epoch timestamp into an aware UTC datetime."""
    if not value:
        return None
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


def datetime_from_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is given."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
