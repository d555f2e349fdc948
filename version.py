"""
Version information for the TransitKit client core.

Centralized version management for the application, including the
backend providers the network layer talks to.
"""

# Core application information
__version__ = "1.2.0"
__version_info__ = (1, 2, 0)
__app_name__ = "TransitKit"
__app_display_name__ = "TransitKit - Transit Arrivals & Agency Alerts"
__description__ = "Transit information client with aggregated agency service alerts"
__copyright__ = "© 2025 TransitKit contributors"

# REST API information
__rest_api_version__ = "2"
__rest_api_provider__ = "OneBusAway REST API"
__rest_api_url__ = "https://api.pugetsound.onebusaway.org/"

# Obaco information
__obaco_api_provider__ = "Obaco"
__obaco_api_url__ = "https://alerts.onebusaway.org/"

__features__ = [
    "Agency discovery with coverage metadata",
    "Regional and Obaco agency alerts, deduplicated",
    "Recent high-severity alert views with read tracking",
    "Trip details and arrival/departure lookups",
    "Regional weather and arrival alarms",
]

__python_version_required__ = "3.10+"
__license__ = "GPL v3"


def get_version_string() -> str:
    """Get formatted version string."""
    return f"{__app_name__} v{__version__}"


def get_user_agent() -> str:
    """Get the User-Agent header sent with every request."""
    return f"{__app_name__}/{__version__}"


def get_full_version_info() -> str:
    """Get comprehensive version information."""
    return f"""
{__app_display_name__}
Version: {__version__}
REST Provider: {__rest_api_provider__} (v{__rest_api_version__})
Alerts Provider: {__obaco_api_provider__}
"""


def get_provider_info() -> dict:
    """Get backend provider information."""
    return {
        "rest_provider": __rest_api_provider__,
        "rest_url": __rest_api_url__,
        "rest_version": __rest_api_version__,
        "obaco_provider": __obaco_api_provider__,
        "obaco_url": __obaco_api_url__,
    }
