"""Sequential execution context shared by the runner and the entity managers."""

import logging
from typing import Any, Callable, Dict, Optional, TypeVar

from .api import ApiClient, ApiResponse, RequestFilter
from .models import lookup_param

log = logging.getLogger(__name__)

T = TypeVar("T")


class Scenario:
    """Runs named steps one after another against a single API client.

    Each step either runs local logic or issues one request and waits for
    its response before the next step starts.
    """

    def __init__(self, client: Optional[ApiClient] = None, **options: Any):
        self.client = client or ApiClient(**options)
        self.params: Dict[str, Any] = {}
        self.steps_run = 0

    def add_param(self, name: str, value: Any) -> None:
        self.params[name] = value

    def param(self, name: str) -> Any:
        return lookup_param(self.params, name)

    def step(self, label: str, fn: Callable[[], T]) -> T:
        self.steps_run += 1
        log.debug("step %s: %s", self.steps_run, label)
        return fn()

    def configure(self, base_url: str) -> None:
        self.client.configure(base_url)

    def add_request_filter(self, request_filter: RequestFilter) -> None:
        self.client.add_request_filter(request_filter)

    def get(self, url: str, expect: Optional[Dict[str, Any]] = None) -> ApiResponse:
        return self.client.get(url, expect=expect)

    def post(self, url: str, body: Any = None, expect: Optional[Dict[str, Any]] = None) -> ApiResponse:
        return self.client.post(url, body=body, expect=expect)

    def patch(self, url: str, body: Any = None, expect: Optional[Dict[str, Any]] = None) -> ApiResponse:
        return self.client.patch(url, body=body, expect=expect)
