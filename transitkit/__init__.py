"""
TransitKit transit information client core.

Fetches agency, alert, trip and arrival data from a OneBusAway-style REST
backend and the Obaco alerts service.

Features:
- Cancelable, chainable asynchronous network operations
- Bounded operation queue for network I/O
- Aggregated, deduplicated agency alerts with read tracking
- Weakly-held delegate notifications on the foreground event loop
"""

__version__ = "1.2.0"
__description__ = "TransitKit transit information client core"
