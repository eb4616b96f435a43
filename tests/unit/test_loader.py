"""Unit tests for the YAML provisioning loader."""

from pathlib import Path

import pytest

from iflux_client.exceptions import ConfigurationError, LoaderError
from iflux_client.loader import load_collections, load_params, parse_collections
from iflux_client.models import ProvisioningContext

EXAMPLE_DATA = Path(__file__).resolve().parents[2] / "data" / "provisioning.example.yml"


class TestParseCollections:
    """Test building items from a provisioning document."""

    def test_collections_use_runner_names(self) -> None:
        """Test REST paths map to the runner collection names."""
        collections = parse_collections(
            {
                "eventTypes": {"issue": {"data": {"name": "Issue"}}},
                "rules": {"r1": {"data": {"name": "Rule"}}},
            }
        )

        assert set(collections) == {"EventTypes", "Rules"}
        assert collections["EventTypes"]["issue"].data == {"name": "Issue"}

    def test_templates_are_linked(self) -> None:
        """Test template keys point at the parent collection item."""
        collections = parse_collections(
            {
                "actionTargetTemplates": {"slack": {"searchOnly": True, "data": {"name": "Slack"}}},
                "actionTargets": {"ops": {"template": "slack", "data": {"name": "Ops"}}},
            }
        )

        template = collections["ActionTargetTemplates"]["slack"]
        assert template.search_only is True
        assert collections["ActionTargets"]["ops"].template is template

    def test_references_are_linked(self) -> None:
        """Test $ref mappings become the referenced items."""
        collections = parse_collections(
            {
                "eventSources": {},
                "eventTypes": {"issue": {"data": {"name": "Issue"}}},
                "rules": {
                    "r1": {
                        "data": {
                            "name": "Rule",
                            "conditions": [{"eventTypeId": {"$ref": "eventTypes.issue"}}],
                        }
                    }
                },
            }
        )

        condition = collections["Rules"]["r1"].data["conditions"][0]
        assert condition["eventTypeId"] is collections["EventTypes"]["issue"]
        assert collections["EventSources"] == {}

    def test_placeholders_become_resolver(self) -> None:
        """Test ${param} strings are resolved from the run context."""
        collections = parse_collections(
            {
                "eventTypes": {
                    "issue": {
                        "data": {
                            "name": "Issue",
                            "type": "${iflux_url}/schemas/issue",
                            "public": "${public}",
                        }
                    }
                }
            }
        )
        item = collections["EventTypes"]["issue"]
        assert item.resolver is not None

        context = ProvisioningContext(params={"iflux_url": "http://iflux", "public": True})
        assert item.resolver(context) == {"name": "Issue", "type": "http://iflux/schemas/issue", "public": True}

    def test_plain_braces_are_not_placeholders(self) -> None:
        """Test code snippets with braces are left untouched."""
        collections = parse_collections(
            {"rules": {"r1": {"data": {"name": "Rule", "fn": {"expression": "return {a: 1};"}}}}}
        )

        assert collections["Rules"]["r1"].resolver is None

    def test_missing_placeholder_param_raises(self) -> None:
        """Test unresolvable placeholders are configuration errors."""
        collections = parse_collections({"eventTypes": {"issue": {"data": {"name": "Issue", "type": "${nope}"}}}})

        with pytest.raises(ConfigurationError):
            collections["EventTypes"]["issue"].prepare(ProvisioningContext(organization_id=1))

    @pytest.mark.parametrize(
        "document",
        [
            [],
            {"widgets": {}},
            {"rules": ["r1"]},
            {"rules": {"r1": {"name": "Rule"}}},
            {"rules": {"r1": {"data": {"active": True}}}},
            {"eventSources": {"s": {"template": "missing", "data": {"name": "S"}}}},
            {"rules": {"r1": {"template": "x", "data": {"name": "R"}}}},
            {"rules": {"r1": {"data": {"name": "R", "x": {"$ref": "eventTypes.missing"}}}}},
        ],
    )
    def test_malformed_documents_raise(self, document) -> None:
        """Test malformed documents are rejected."""
        with pytest.raises(LoaderError):
            parse_collections(document)


class TestFiles:
    """Test reading YAML files."""

    def test_example_file_loads(self) -> None:
        """Test the bundled example is a valid provisioning file."""
        collections = load_collections(EXAMPLE_DATA)

        assert set(collections) == {
            "EventSourceTemplates",
            "EventTypes",
            "EventSources",
            "ActionTargetTemplates",
            "ActionTypes",
            "ActionTargets",
            "Rules",
        }
        assert collections["EventSources"]["citizenSource"].template is collections["EventSourceTemplates"]["citizen"]

    def test_load_params(self, tmp_path: Path) -> None:
        """Test a flat parameter file loads as a dict."""
        params_file = tmp_path / "params.yml"
        params_file.write_text("iflux_url: http://iflux\nslack_active: true\n")

        assert load_params(params_file) == {"iflux_url": "http://iflux", "slack_active": True}

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        """Test a missing file is a loader error."""
        with pytest.raises(LoaderError):
            load_collections(tmp_path / "missing.yml")

    def test_invalid_yaml_raises(self, tmp_path: Path) -> None:
        """Test broken YAML is a loader error."""
        broken = tmp_path / "broken.yml"
        broken.write_text("rules: [unclosed\n")

        with pytest.raises(LoaderError):
            load_collections(broken)

    def test_params_must_be_mapping(self, tmp_path: Path) -> None:
        """Test a parameter file must hold a mapping."""
        params_file = tmp_path / "params.yml"
        params_file.write_text("- a\n- b\n")

        with pytest.raises(LoaderError):
            load_params(params_file)
