"""
Load provisioning collections and run parameters from YAML files.

A provisioning file maps each REST path of the chain to its items:

    eventSourceTemplates:
      citizen:
        data:
          name: Citizen Engagement
          configuration:
            url: ${iflux_url}/configure
    eventSources:
      citizenSource:
        template: citizen
        data:
          name: Citizen source
    rules:
      slackRule:
        data:
          name: Notify slack
          conditions:
            - eventSourceId: {$ref: eventSources.citizenSource}

- template: key of the item in the parent template collection
- searchOnly: only look the entity up
- {$ref: <path>.<key>}: link to another item, replaced by its id once known
- ${param}: run parameter, substituted when the payloads are prepared
"""

import re
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import yaml

from .exceptions import ConfigurationError, LoaderError
from .manager import STAGES
from .models import Collection, Item, ProvisioningContext, Resolver

PLACEHOLDER_PATTERN = re.compile(r"\$\{(\w+)\}")

# Collection holding the template of each item of the keyed collection
TEMPLATE_COLLECTIONS = {
    "eventSources": "eventSourceTemplates",
    "actionTargets": "actionTargetTemplates",
}

COLLECTION_NAMES = {stage.path: stage.collection for stage in STAGES}


def load_collections(path: Union[str, Path]) -> Dict[str, Collection]:
    """Read a provisioning file.

    Returns:
        Collections keyed by runner collection name (e.g., "EventSources")

    Raises:
        LoaderError: If the file is missing, not valid YAML or malformed
    """
    return parse_collections(_read_yaml(path))


def load_params(path: Union[str, Path]) -> Dict[str, Any]:
    document = _read_yaml(path)
    if not isinstance(document, dict):
        raise LoaderError(f"{path}: parameters must be a mapping")
    return {str(name): value for name, value in document.items()}


def parse_collections(document: Any) -> Dict[str, Collection]:
    if not isinstance(document, dict):
        raise LoaderError("Provisioning document must be a mapping of collections")

    unknown = set(document) - set(COLLECTION_NAMES)
    if unknown:
        raise LoaderError(f"Unknown collections: {', '.join(sorted(unknown))}")

    # First pass: plain items, so that references can point anywhere
    by_path: Dict[str, Collection] = {}
    entries_by_path: Dict[str, Dict[str, Any]] = {}
    for path, entries in document.items():
        if entries is None:
            entries = {}
        if not isinstance(entries, dict):
            raise LoaderError(f"{path}: expected a mapping of items")
        entries_by_path[path] = {str(key): entry for key, entry in entries.items()}
        by_path[path] = {key: _build_item(path, key, entry) for key, entry in entries_by_path[path].items()}

    # Second pass: templates, references and deferred fields
    for path, collection in by_path.items():
        for key, item in collection.items():
            entry = entries_by_path[path][key]
            template_key = entry.get("template")
            if template_key is not None:
                item.template = _lookup_template(by_path, path, key, str(template_key))

            item.data = _link_references(item.data, by_path, f"{path}.{key}")
            if _has_placeholders(item.data):
                item.resolver = placeholder_resolver(item.data)

    return {COLLECTION_NAMES[path]: collection for path, collection in by_path.items()}


def placeholder_resolver(template: Dict[str, Any]) -> Resolver:
    """Build a resolver substituting ${param} placeholders from the run parameters."""

    def _resolve(context: ProvisioningContext) -> Dict[str, Any]:
        return _substitute(template, context)

    return _resolve


# ============================================================================
# INTERNAL HELPERS
# ============================================================================


def _read_yaml(path: Union[str, Path]) -> Any:
    try:
        with open(path, encoding="utf-8") as file:
            return yaml.safe_load(file)
    except OSError as e:
        raise LoaderError(f"Unable to read {path}: {e}")
    except yaml.YAMLError as e:
        raise LoaderError(f"Invalid YAML in {path}: {e}")


def _build_item(path: str, key: str, entry: Any) -> Item:
    if not isinstance(entry, dict) or not isinstance(entry.get("data"), dict):
        raise LoaderError(f"{path}.{key}: an item needs a 'data' mapping")
    if "name" not in entry["data"]:
        raise LoaderError(f"{path}.{key}: data.name is required")
    return Item(data=entry["data"], search_only=bool(entry.get("searchOnly", False)))


def _lookup_template(by_path: Mapping[str, Collection], path: str, key: str, template_key: str) -> Item:
    parent = TEMPLATE_COLLECTIONS.get(path)
    if parent is None:
        raise LoaderError(f"{path}.{key}: {path} items do not have templates")
    template = by_path.get(parent, {}).get(template_key)
    if template is None:
        raise LoaderError(f"{path}.{key}: unknown template {parent}.{template_key}")
    return template


def _link_references(value: Any, by_path: Mapping[str, Collection], where: str) -> Any:
    if isinstance(value, dict):
        if set(value) == {"$ref"}:
            return _lookup_reference(by_path, str(value["$ref"]), where)
        return {key: _link_references(nested, by_path, where) for key, nested in value.items()}
    if isinstance(value, list):
        return [_link_references(nested, by_path, where) for nested in value]
    return value


def _lookup_reference(by_path: Mapping[str, Collection], reference: str, where: str) -> Item:
    path, _, key = reference.partition(".")
    item = by_path.get(path, {}).get(key)
    if item is None:
        raise LoaderError(f"{where}: unknown reference {reference}")
    return item


def _has_placeholders(value: Any) -> bool:
    if isinstance(value, str):
        return PLACEHOLDER_PATTERN.search(value) is not None
    if isinstance(value, dict):
        return any(_has_placeholders(nested) for nested in value.values())
    if isinstance(value, list):
        return any(_has_placeholders(nested) for nested in value)
    return False


def _substitute(value: Any, context: ProvisioningContext) -> Any:
    if isinstance(value, str):
        # A lone placeholder keeps the parameter's type (booleans, numbers)
        whole = PLACEHOLDER_PATTERN.fullmatch(value)
        if whole:
            return _param(context, whole.group(1))
        return PLACEHOLDER_PATTERN.sub(lambda match: str(_param(context, match.group(1))), value)
    if isinstance(value, dict):
        return {key: _substitute(nested, context) for key, nested in value.items()}
    if isinstance(value, list):
        return [_substitute(nested, context) for nested in value]
    return value


def _param(context: ProvisioningContext, name: str) -> Any:
    try:
        return context.param(name)
    except ConfigurationError as e:
        raise ConfigurationError(f"Unable to resolve placeholder: {e}")
