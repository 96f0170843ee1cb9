"""
Base connector class for all external APIs
"""
from typing import Any, Dict, NamedTuple, Optional
from datetime import datetime
import aiohttp
from shiprecon.utils.logger import log


class ApiResponse(NamedTuple):
    """Status, decoded JSON body (or None) and headers of one HTTP call."""
    status: int
    data: Any
    headers: Dict[str, str]


class ApiError(aiohttp.ClientError):
    """Non-success HTTP status returned by an external API."""

    def __init__(self, source: str, status: int, url: str, data: Any = None):
        self.source = source
        self.status = status
        self.url = url
        self.data = data
        super().__init__(f"{source} returned HTTP {status} for {url}")


class BaseConnector:
    """Base class for all external API connectors"""

    # Per-request timeout in seconds (can be overridden by subclasses)
    REQUEST_TIMEOUT = 30

    def __init__(self, name: str):
        self.name = name
        self.last_call = None
        self.call_count = 0
        self.error_count = 0

    async def _request_json(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        data: Any = None,
        auth: Optional[aiohttp.BasicAuth] = None,
        timeout: Optional[float] = None,
    ) -> ApiResponse:
        """
        Issue one HTTP request and decode the JSON body.

        Transport failures (connection errors, timeouts) propagate to the
        caller. Non-JSON bodies decode to None.
        """
        client_timeout = aiohttp.ClientTimeout(total=timeout or self.REQUEST_TIMEOUT)
        self.last_call = datetime.utcnow()
        self.call_count += 1

        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json,
                data=data,
                auth=auth,
            ) as response:
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = None
                return ApiResponse(response.status, body, dict(response.headers))

    def _raise_for_status(self, response: ApiResponse, url: str):
        """Raise ApiError for any non-2xx response."""
        if response.status >= 400:
            self.error_count += 1
            log.debug(f"{self.name} HTTP {response.status} for {url}")
            raise ApiError(self.name, response.status, url, response.data)

    def get_status(self) -> Dict[str, Any]:
        """Get connector status"""
        return {
            "name": self.name,
            "last_call": self.last_call,
            "call_count": self.call_count,
            "error_count": self.error_count,
            "error_rate": self.error_count / max(self.call_count, 1),
        }
