"""
URL construction for backend endpoints.
"""

from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode


def escape_path_variable(value: str) -> str:
    """Percent-escape a value for use as a single path segment."""
    return quote(str(value), safe="")


class RESTAPIURLBuilder:
    """Joins endpoint paths onto a base URL and appends default query items."""

    def __init__(self, base_url: str, default_query_items: Optional[Dict[str, Any]] = None):
        self.base_url = base_url.rstrip("/")
        self.default_query_items = dict(default_query_items or {})

    def generate_url(self, path: str, params: Optional[Dict[str, Any]] = None) -> str:
        """
        Build a full URL for ``path``.

        Args:
            path: Endpoint path, already escaped, starting with '/'
            params: Endpoint query parameters; None values are dropped

        Returns:
            str: Absolute URL including default and endpoint query items
        """
        query = dict(self.default_query_items)
        for key, value in (params or {}).items():
            if value is not None:
                query[key] = value

        url = f"{self.base_url}/{path.lstrip('/')}"
        if query:
            url = f"{url}?{urlencode(query)}"
        return url
