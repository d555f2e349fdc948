"""
Business logic managers for the TransitKit client.

Configuration, preference storage, and agency alert aggregation.
"""

from .config_manager import ConfigManager, ConfigData, ConfigurationError
from .preferences import InMemoryKeyValueStore, JSONFileKeyValueStore, KeyValueStore
# Note: AgencyAlertsStore not imported here to avoid circular import with api.services

__all__ = [
    "ConfigManager",
    "ConfigData",
    "ConfigurationError",
    "InMemoryKeyValueStore",
    "JSONFileKeyValueStore",
    "KeyValueStore",
]
