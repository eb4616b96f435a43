"""Shared fixtures for the iflux-client tests."""

import io
from unittest.mock import Mock

import pytest
from rich.console import Console

from iflux_client.api import ApiClient
from iflux_client.models import ProvisioningContext
from iflux_client.scenario import Scenario


@pytest.fixture
def console() -> Console:
    """Console recording its output so tests can inspect it."""
    return Console(file=io.StringIO(), record=True, width=200)


@pytest.fixture
def api() -> Mock:
    return Mock(spec=ApiClient)


@pytest.fixture
def scenario(api: Mock) -> Scenario:
    return Scenario(client=api)


@pytest.fixture
def context() -> ProvisioningContext:
    return ProvisioningContext(params={"slack_active": True}, organization_id=5)
