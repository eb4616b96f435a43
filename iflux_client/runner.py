"""
Provision an iFLUX organization with its event and action entities.

Execution Flow:
===============
1. Build one EntityManager per stage (fixed order, see manager.STAGES)
2. Configure the API base URL from a run parameter
3. Sign in, registering the user first when sign in answers 401
4. Find the organization by name, create it when missing
5. Resolve deferred payload fields and stamp the organization id
6. Walk the stages; rules are prepared (references → ids) right before
   their own stage because they point at entities created earlier
7. Print every collection with the ids it ended up with

Usage:
======
    runner = create_runner(base_url="http://localhost:3000/v1")
    runner.add_params({"iflux_url": "...", "iflux_user": "...", "iflux_password": "..."})
    for name, collection in load_collections("data/provisioning.yml").items():
        runner.add_collection(name, collection)
    report = runner.run(orga_name="My Org")
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlencode

from rich import box
from rich.console import Console
from rich.table import Table

from .api import ApiResponse, bearer_filter, extract_id
from .config import (
    BASE_URL_PARAM,
    CREATE_FAILURE_POLICY,
    IFLUX_ORGANIZATION,
    MAX_RETRIES,
    PASSWORD_PARAM,
    SLACK_ACTIVE_PARAM,
    USER_PARAM,
)
from .exceptions import ConfigurationError, IfluxHTTPError
from .manager import STAGES, EntityManager, FailurePolicy, Outcome
from .models import Collection, Item, ItemIterator, ProvisioningContext
from .scenario import Scenario

log = logging.getLogger(__name__)

COLLECTIONS = tuple(stage.collection for stage in STAGES)

RULE_CONDITION_REFERENCES = ("eventSourceId", "eventTypeId")
RULE_TRANSFORMATION_REFERENCES = ("actionTargetId", "actionTypeId", "eventTypeId")


@dataclass
class RunReport:
    """Summary of a provisioning run."""

    organization_id: Optional[int] = None
    stages_run: List[str] = field(default_factory=list)
    outcomes: Dict[str, Dict[str, Outcome]] = field(default_factory=dict)

    def failed(self) -> List[str]:
        """Return "<collection>.<key>" for every item that was not provisioned."""
        return [
            f"{collection}.{key}"
            for collection, items in self.outcomes.items()
            for key, outcome in items.items()
            if outcome in (Outcome.FAILED, Outcome.NOT_FOUND)
        ]

    @property
    def succeeded(self) -> bool:
        return len(self.stages_run) == len(STAGES) and not self.failed()


class Runner:
    """Registers the entity collections and provisions them in order."""

    def __init__(
        self,
        console: Optional[Console] = None,
        failure_policy: str = CREATE_FAILURE_POLICY,
        max_retries: int = MAX_RETRIES,
        **options: Any,
    ):
        self.scenario = Scenario(**options)
        self.console = console or Console()
        self.failure_policy = FailurePolicy(failure_policy)
        self.max_retries = max_retries
        self.context = ProvisioningContext(params=self.scenario.params)
        self.data_collections: Dict[str, ItemIterator] = {}
        self.managers: Dict[str, EntityManager] = {}

    # ========================================================================
    # COLLECTION REGISTRATION
    # ========================================================================

    def add_collection(self, name: str, collection: Collection) -> None:
        """Register the items of one stage.

        Raises:
            ConfigurationError: If no stage provisions a collection with that name
        """
        if name not in COLLECTIONS:
            raise ConfigurationError(
                f"Unknown data collection: {name} (expected one of {', '.join(COLLECTIONS)})"
            )
        if name in self.data_collections:
            log.warning("Data collection %s registered twice, keeping the first one", name)
            self.console.print(f"[yellow]Data collection: {name} already defined.[/yellow]")
            return
        self.data_collections[name] = ItemIterator(collection)

    def add_event_source_templates(self, collection: Collection) -> None:
        self.add_collection("EventSourceTemplates", collection)

    def add_event_types(self, collection: Collection) -> None:
        self.add_collection("EventTypes", collection)

    def add_event_sources(self, collection: Collection) -> None:
        self.add_collection("EventSources", collection)

    def add_action_target_templates(self, collection: Collection) -> None:
        self.add_collection("ActionTargetTemplates", collection)

    def add_action_types(self, collection: Collection) -> None:
        self.add_collection("ActionTypes", collection)

    def add_action_targets(self, collection: Collection) -> None:
        self.add_collection("ActionTargets", collection)

    def add_rules(self, collection: Collection) -> None:
        self.add_collection("Rules", collection)

    def add_params(self, params: Mapping[str, Any]) -> None:
        for name, value in params.items():
            self.scenario.add_param(name, value)

    # ========================================================================
    # RUN
    # ========================================================================

    def run(
        self,
        base_url_param: str = BASE_URL_PARAM,
        user_param: str = USER_PARAM,
        password_param: str = PASSWORD_PARAM,
        orga_name: Optional[str] = None,
    ) -> RunReport:
        """Provision every registered collection.

        Returns:
            RunReport with the organization id and the outcome of every item

        Raises:
            ConfigurationError: If a parameter or the organization name is missing
            IfluxAPIError: If authentication or organization setup fails
            ProvisioningError: If an entity cannot be created (halt policy) or
                               the remote keeps failing to configure it
        """
        orga_name = orga_name or IFLUX_ORGANIZATION
        if not orga_name:
            raise ConfigurationError("An organization name is required")

        self._before_run()
        report = RunReport()

        self.scenario.step(
            "configure base URL",
            lambda: self.scenario.configure(self.scenario.param(base_url_param)),
        )

        self._authenticate(user_param, password_param)
        report.organization_id = self._resolve_organization(orga_name)

        self.scenario.step("make sure all the data are well prepared.", self._prepare_payloads)

        for stage in STAGES:
            if stage.collection == "Rules":
                self.scenario.step("prepare the rules.", self._prepare_rules)

            self.console.print(f"\n[cyan]→[/cyan] Provisioning {stage.item_name}s...")
            report.outcomes[stage.collection] = self.managers[stage.collection].iterate()
            report.stages_run.append(stage.collection)

        self.scenario.step("logging", lambda: self._logging(report))
        return report

    def _before_run(self) -> None:
        for stage in STAGES:
            if stage.collection not in self.data_collections:
                self.data_collections[stage.collection] = ItemIterator({})

            self.managers[stage.collection] = EntityManager(
                stage,
                self.data_collections[stage.collection],
                self.scenario,
                self.context,
                self.console,
                failure_policy=self.failure_policy,
                max_retries=self.max_retries,
            )

    # ========================================================================
    # AUTHENTICATION
    # ========================================================================

    def _signin(self, label: str, user_param: str, password_param: str) -> ApiResponse:
        return self.scenario.step(
            label,
            lambda: self.scenario.post(
                "/auth/signin",
                body={
                    "email": self.scenario.param(user_param),
                    "password": self.scenario.param(password_param),
                },
            ),
        )

    def _register(self, user_param: str, password_param: str) -> None:
        self.scenario.step(
            "register user",
            lambda: self.scenario.post(
                "/auth/register",
                body={
                    "lastName": "Admin",
                    "firstName": "Admin",
                    "email": self.scenario.param(user_param),
                    "password": self.scenario.param(password_param),
                    "passwordConfirmation": self.scenario.param(password_param),
                },
                expect={"status_code": 201},
            ),
        )
        self.console.print(f"[green]✓[/green] user {self.scenario.param(user_param)} registered")

    def _authenticate(self, user_param: str, password_param: str) -> None:
        response = self._signin("first attempt to signin", user_param, password_param)

        if response.status_code == 401:
            self.console.print("[yellow]→[/yellow] unable to sign in, registering the user")
            self._register(user_param, password_param)
            response = self._signin("second try to signin after registration", user_param, password_param)

        token = response.body.get("token") if isinstance(response.body, dict) else None
        if not token:
            raise IfluxHTTPError("Authentication failed", response.status_code, str(response.body))

        self.scenario.add_request_filter(bearer_filter(token))
        self.console.print("[green]✓[/green] authenticated")

    # ========================================================================
    # ORGANIZATION
    # ========================================================================

    def _resolve_organization(self, orga_name: str) -> int:
        response = self.scenario.step(
            f"try to retrieve the organization {orga_name}",
            lambda: self.scenario.get(f"/organizations?{urlencode({'name': orga_name})}"),
        )

        if response.is_singleton():
            self.context.organization_id = int(response.body[0]["id"])
            self.console.print(f"[green]✓[/green] organization found with id: {self.context.organization_id}")
            return self.context.organization_id

        self.console.print(f"[yellow]→[/yellow] unable to retrieve the organization: {orga_name}")

        response = self.scenario.step(
            "try to create organization",
            lambda: self.scenario.post("/organizations", body={"name": orga_name}, expect={"status_code": 201}),
        )
        self.context.organization_id = extract_id(response)
        self.console.print(f"[green]✓[/green] organization created with id: {self.context.organization_id}")
        return self.context.organization_id

    # ========================================================================
    # PAYLOAD PREPARATION
    # ========================================================================

    def _prepare_payloads(self) -> None:
        for stage in STAGES:
            if stage.collection == "Rules":
                continue
            for item in self.data_collections[stage.collection].data.values():
                item.prepare(self.context)

    def _prepare_rules(self) -> None:
        """Point rule conditions and transformations at the provisioned ids."""
        for key, rule in self.data_collections["Rules"].data.items():
            if rule.resolver is not None:
                rule.data = rule.resolver(self.context)
                rule.resolver = None

            if "slack" in key.lower():
                rule.data["active"] = self.context.param(SLACK_ACTIVE_PARAM)

            for condition in rule.data.get("conditions") or []:
                _replace_references(condition, RULE_CONDITION_REFERENCES)

            for transformation in rule.data.get("transformations") or []:
                _replace_references(transformation, RULE_TRANSFORMATION_REFERENCES)

                sample = (transformation.get("fn") or {}).get("sample")
                if isinstance(sample, dict):
                    _replace_references(sample, ("eventSourceTemplateId",))

    # ========================================================================
    # LOGGING
    # ========================================================================

    def _logging(self, report: RunReport) -> None:
        for name, iterator in self.data_collections.items():
            outcomes = report.outcomes.get(name, {})

            table = Table(title=name, box=box.SIMPLE, show_header=True, header_style="bold cyan")
            table.add_column("Key", style="green", no_wrap=True)
            table.add_column("Name", style="white")
            table.add_column("Id", style="bright_cyan")
            table.add_column("Outcome", style="dim")

            for key, item in iterator.data.items():
                outcome = outcomes.get(key)
                table.add_row(
                    key,
                    item.name,
                    str(item.id) if item.id is not None else "-",
                    outcome.value if outcome else "-",
                )

            self.console.print(table)


def _replace_references(entry: Dict[str, Any], fields: tuple[str, ...]) -> None:
    # Items without id stay linked so the rule manager can skip the rule
    for name in fields:
        reference = entry.get(name)
        if isinstance(reference, Item) and reference.id is not None:
            entry[name] = reference.id
