"""
Find-or-create/update driver for the iFLUX entity collections.

Every entity kind is described by a Stage (collection name, REST path and
the foreign key it inherits from its template item). One EntityManager per
stage walks the items of its collection and, for each of them:

1. Looks the entity up by name (GET /<path>?name=...)
2. Updates it when exactly one match exists (PATCH /<path>/<id>)
3. Creates it otherwise (POST /<path>)

Search-only items are looked up and never created or updated. Items whose
template or linked items have no remote id are skipped without a request.

The remote answers 500 "Unable to configure the remote action target." when
an action target could not be reached yet. That error restarts the lookup of
the item, up to max_retries times.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from rich.console import Console
from rich.markup import escape

from .api import ApiResponse, extract_id
from .config import MAX_RETRIES
from .exceptions import ProvisioningError, ProvisioningHalted, RetryExhaustedError
from .models import Item, ItemIterator, ProvisioningContext, flatten_references, unresolved_references
from .scenario import Scenario

log = logging.getLogger(__name__)

REMOTE_ACTION_TARGET_ERROR = "Unable to configure the remote action target."


@dataclass(frozen=True)
class Stage:
    """Descriptor binding an entity kind to its collection and REST path."""

    collection: str
    item_name: str
    path: str
    template_key: Optional[str] = None


# Order matters: later entities reference ids assigned to earlier ones
STAGES: tuple[Stage, ...] = (
    Stage("EventSourceTemplates", "event source template", "eventSourceTemplates"),
    Stage("EventTypes", "event type", "eventTypes"),
    Stage("EventSources", "event source", "eventSources", template_key="eventSourceTemplateId"),
    Stage("ActionTargetTemplates", "action target template", "actionTargetTemplates"),
    Stage("ActionTypes", "action type", "actionTypes"),
    Stage("ActionTargets", "action target", "actionTargets", template_key="actionTargetTemplateId"),
    Stage("Rules", "rule", "rules"),
)


class Outcome(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not found"
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class FailurePolicy(str, Enum):
    """What to do when an entity cannot be created."""

    HALT = "halt"
    SKIP = "skip"


class EntityManager:
    """Drives the find → create/update sequence for one entity collection."""

    def __init__(
        self,
        stage: Stage,
        iterator: ItemIterator,
        scenario: Scenario,
        context: ProvisioningContext,
        console: Console,
        failure_policy: FailurePolicy = FailurePolicy.HALT,
        max_retries: int = MAX_RETRIES,
    ):
        self.stage = stage
        self.iterator = iterator
        self.scenario = scenario
        self.context = context
        self.console = console
        self.failure_policy = FailurePolicy(failure_policy)
        self.max_retries = max_retries
        self.outcomes: Dict[str, Outcome] = {}

    @property
    def item_name(self) -> str:
        return self.stage.item_name

    def iterate(self) -> Dict[str, Outcome]:
        """Process every remaining item of the collection in order."""
        while self.iterator.has_next():
            key = self.iterator.peek_key()
            self.outcomes[key] = self.find(self.iterator.next())
        return self.outcomes

    # ========================================================================
    # FIND
    # ========================================================================

    def lookup_url(self, item: Item) -> str:
        query: Dict[str, Any] = {"name": item.name}
        if self.stage.template_key:
            query[self.stage.template_key] = self._template_id(item)
        return f"/{self.stage.path}?{urlencode(query)}"

    def unprovisioned_dependencies(self, item: Item) -> List[Item]:
        """Template and linked items that never got a remote id."""
        pending: List[Item] = []
        if self.stage.template_key and item.template is not None and item.template.id is None:
            pending.append(item.template)
        pending.extend(unresolved_references(item.data))
        return pending

    def find(self, item: Item, retry: int = 0) -> Outcome:
        pending = self.unprovisioned_dependencies(item)
        if pending:
            self.console.print(
                f"  [red]✗[/red] {self.item_name} {item.name} skipped, "
                f"not provisioned: {', '.join(dependency.name for dependency in pending)}"
            )
            return Outcome.FAILED

        retry_text = "retry: " if retry else ""

        response = self.scenario.step(
            f"{retry_text}find {self.item_name}: {item.name}",
            lambda: self.scenario.get(self.lookup_url(item)),
        )

        if response.is_singleton():
            item.assign_id(response.body[0].get("id"))
            self.console.print(f"  [green]✓[/green] {self.item_name} found with id: {item.id}")
            if item.search_only:
                return Outcome.FOUND
            return self.update(item, retry)

        self.console.print(f"  [yellow]→[/yellow] {self.item_name}: {item.name} not found.")
        if item.search_only:
            return Outcome.NOT_FOUND
        return self.create(item, retry)

    # ========================================================================
    # CREATE / UPDATE
    # ========================================================================

    def payload(self, item: Item) -> Dict[str, Any]:
        """Build the request body, adding organization and template ids."""
        data = flatten_references(item.data)
        data["organizationId"] = self.context.organization_id
        if self.stage.template_key:
            data[self.stage.template_key] = self._template_id(item)
        return data

    def create(self, item: Item, retry: int = 0) -> Outcome:
        payload = self.payload(item)

        response = self.scenario.step(
            f"try to create {self.item_name}: {item.name}",
            lambda: self.scenario.post(f"/{self.stage.path}", body=payload),
        )

        if response.status_code == 201:
            item.assign_id(extract_id(response))
            self.console.print(f"  [green]✓[/green] {self.item_name} created with id: {item.id}")
            return Outcome.CREATED

        if self._is_remote_configuration_error(response):
            return self._retry(item, retry, response)

        self.console.print(f"  [red]✗[/red] An error has occurred in the creation of {item.name}")
        self.console.print(payload)
        self.console.print(f"  [dim]{escape(str(response.body))}[/dim]")

        if self.failure_policy is FailurePolicy.SKIP:
            return Outcome.FAILED

        raise ProvisioningHalted(
            f"Unable to create {self.item_name} {item.name}: status {response.status_code}",
            item.name,
            response.status_code,
        )

    def update(self, item: Item, retry: int = 0) -> Outcome:
        payload = self.payload(item)

        response = self.scenario.step(
            f"try to update {self.item_name}: {item.name}",
            lambda: self.scenario.patch(f"/{self.stage.path}/{item.id}", body=payload),
        )

        if response.status_code == 201:
            self.console.print(f"  [green]✓[/green] {self.item_name} {item.name} updated.")
            return Outcome.UPDATED

        if response.status_code == 304:
            self.console.print(f"  [yellow]→[/yellow] nothing updated on {self.item_name} {item.name}")
            return Outcome.UNCHANGED

        if self._is_remote_configuration_error(response):
            return self._retry(item, retry, response)

        self.console.print(f"  [red]✗[/red] There is an error: {response.status_code}")
        self.console.print(f"  [dim]{escape(str(response.body))}[/dim]")
        return Outcome.FAILED

    # ========================================================================
    # INTERNAL HELPERS
    # ========================================================================

    @staticmethod
    def _is_remote_configuration_error(response: ApiResponse) -> bool:
        return response.status_code == 500 and response.message() == REMOTE_ACTION_TARGET_ERROR

    def _retry(self, item: Item, retry: int, response: ApiResponse) -> Outcome:
        self.console.print(f"  [yellow]→[/yellow] An error has occurred in the configuration of {item.name}")
        self.console.print(f"  [yellow]{escape(str(response.message()))}[/yellow]")

        if retry >= self.max_retries:
            raise RetryExhaustedError(
                f"{self.item_name} {item.name}: remote action target still not configured "
                f"after {retry + 1} attempts",
                item.name,
                retry + 1,
            )

        self.console.print("  [dim]The iFLUX system may not behave as you expected.[/dim]")
        return self.find(item, retry + 1)

    def _template_id(self, item: Item) -> Optional[int]:
        if item.template is None:
            raise ProvisioningError(f"{self.item_name} {item.name} has no template")
        return item.template.id
