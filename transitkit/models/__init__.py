"""
Data models for the TransitKit client.

This module contains the immutable data structures produced by the
network layer and held by the alert store.
"""

from .agency_data import AgencyAlert, AgencyWithCoverage, SeverityLevel
from .obaco_data import AgencyVehicle, Alarm, RegionalWeather

__all__ = [
    "AgencyAlert",
    "AgencyWithCoverage",
    "SeverityLevel",
    "AgencyVehicle",
    "Alarm",
    "RegionalWeather",
]
