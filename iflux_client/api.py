"""iFLUX REST API client used by the provisioning scenario."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from .config import API_TIMEOUT
from .exceptions import IfluxConnectionError, IfluxHTTPError

log = logging.getLogger(__name__)

RequestFilter = Callable[[Dict[str, Any]], Dict[str, Any]]


@dataclass
class ApiResponse:
    """Decoded response of a single iFLUX API call.

    Header names are stored lower-cased so lookups do not depend on how the
    server spells them.
    """

    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None

    @property
    def location(self) -> Optional[str]:
        return self.headers.get("location")

    def is_singleton(self) -> bool:
        """Whether this is a lookup answer matching exactly one entity."""
        return self.status_code == 200 and isinstance(self.body, list) and len(self.body) == 1

    def message(self) -> Optional[str]:
        if isinstance(self.body, dict):
            return self.body.get("message")
        return None


def extract_id(response: ApiResponse) -> int:
    """Extract the id of a created entity from the Location header.

    Example:
        >>> extract_id(ApiResponse(201, {"location": "/v1/rules/17"}))
        17
    """
    location = response.location
    if not location:
        raise IfluxHTTPError("Created entity has no Location header", response.status_code)
    return int(location.rstrip("/").split("/")[-1])


def bearer_filter(token: str) -> RequestFilter:
    """Build a request filter injecting the JWT token of a signed in user."""

    def _filter(options: Dict[str, Any]) -> Dict[str, Any]:
        headers = dict(options.get("headers") or {})
        headers["Authorization"] = f"bearer {token}"
        options["headers"] = headers

        # the filter function must return the updated request options
        return options

    return _filter


class ApiClient:
    """Client for interacting with the iFLUX REST API."""

    def __init__(self, base_url: Optional[str] = None, timeout: int = API_TIMEOUT):
        """Initialize the iFLUX API client.

        Args:
            base_url: Base URL of the iFLUX API (e.g., "http://localhost:3000/v1").
                      Can be set later with configure().
            timeout: Request timeout in seconds (default: 30)
        """
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self.request_filters: List[RequestFilter] = []
        self._session = requests.Session()
        self._session.headers.update({"Accept": "application/json"})

    def configure(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")

    def add_request_filter(self, request_filter: RequestFilter) -> None:
        """Install a function applied to the options of every later request."""
        self.request_filters.append(request_filter)

    def get(self, url: str, expect: Optional[Dict[str, Any]] = None) -> ApiResponse:
        return self.request("GET", url, expect=expect)

    def post(self, url: str, body: Any = None, expect: Optional[Dict[str, Any]] = None) -> ApiResponse:
        return self.request("POST", url, body=body, expect=expect)

    def patch(self, url: str, body: Any = None, expect: Optional[Dict[str, Any]] = None) -> ApiResponse:
        return self.request("PATCH", url, body=body, expect=expect)

    def request(
        self,
        method: str,
        url: str,
        body: Any = None,
        expect: Optional[Dict[str, Any]] = None,
    ) -> ApiResponse:
        """Send a request and decode its response.

        Args:
            method: HTTP method
            url: Path relative to the base URL (e.g., "/rules?name=foo")
            body: Optional JSON body
            expect: Optional expectations, currently {"status_code": int}

        Returns:
            ApiResponse with status code, lower-cased headers and decoded body

        Raises:
            IfluxConnectionError: If the base URL is missing or the request fails
            IfluxHTTPError: If the status code does not match the expectation
        """
        if not self.base_url:
            raise IfluxConnectionError("Base URL is not configured")

        options: Dict[str, Any] = {
            "method": method,
            "url": f"{self.base_url}{url}",
            "headers": {},
            "json": body,
        }
        for request_filter in self.request_filters:
            options = request_filter(options)

        log.debug("%s %s", method, options["url"])

        try:
            raw = self._session.request(timeout=self.timeout, **options)
        except requests.exceptions.RequestException as e:
            raise IfluxConnectionError(f"{method} {url} failed: {str(e)}")

        response = ApiResponse(
            status_code=raw.status_code,
            headers={key.lower(): value for key, value in raw.headers.items()},
            body=self._decode(raw),
        )

        expected_status = (expect or {}).get("status_code")
        if expected_status is not None and response.status_code != expected_status:
            raise IfluxHTTPError(
                f"{method} {url} returned {response.status_code}, expected {expected_status}",
                response.status_code,
                raw.text,
            )

        return response

    @staticmethod
    def _decode(raw: requests.Response) -> Any:
        if not raw.content:
            return None
        try:
            return raw.json()
        except ValueError:
            return raw.text
