"""Provisioning data model: items, collections and the run context."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from .exceptions import ConfigurationError


def lookup_param(params: Mapping[str, Any], name: str) -> Any:
    """Resolve a named run parameter.

    Raises:
        ConfigurationError: If the parameter was never provided
    """
    if name not in params:
        raise ConfigurationError(f"Parameter '{name}' is not defined")
    return params[name]


@dataclass
class ProvisioningContext:
    """State shared by every step of a provisioning run.

    The organization id is resolved once, right after authentication, and
    read by every payload built afterwards.
    """

    params: Mapping[str, Any] = field(default_factory=dict)
    organization_id: Optional[int] = None

    def param(self, name: str) -> Any:
        return lookup_param(self.params, name)


Resolver = Callable[[ProvisioningContext], Dict[str, Any]]


@dataclass(eq=False)
class Item:
    """One entity to provision and, once known, its remote id.

    Attributes:
        data: Payload template sent to the API
        id: Remote id, set when the entity is found or created
        template: Item this one depends on (e.g., an event source's template)
        search_only: Only look the entity up, never create or update it
        resolver: Builds the concrete payload from the run context
    """

    data: Dict[str, Any]
    id: Optional[int] = None
    template: Optional["Item"] = None
    search_only: bool = False
    resolver: Optional[Resolver] = None

    @property
    def name(self) -> str:
        return str(self.data.get("name", ""))

    def assign_id(self, remote_id: Any) -> None:
        if remote_id is not None:
            self.id = int(remote_id)

    def prepare(self, context: ProvisioningContext) -> None:
        """Resolve deferred fields and stamp the organization on the payload."""
        if self.search_only:
            return
        if self.resolver is not None:
            self.data = self.resolver(context)
            self.resolver = None
        self.data["organizationId"] = context.organization_id


Collection = Dict[str, Item]


def flatten_references(value: Any) -> Any:
    """Copy a payload, replacing every referenced Item by its remote id."""
    if isinstance(value, Item):
        return value.id
    if isinstance(value, dict):
        return {key: flatten_references(nested) for key, nested in value.items()}
    if isinstance(value, list):
        return [flatten_references(nested) for nested in value]
    return value


def unresolved_references(value: Any) -> List[Item]:
    """Return the linked items of a payload that have no remote id yet."""
    if isinstance(value, Item):
        return [value] if value.id is None else []
    if isinstance(value, dict):
        return [item for nested in value.values() for item in unresolved_references(nested)]
    if isinstance(value, list):
        return [item for nested in value for item in unresolved_references(nested)]
    return []


class ItemIterator:
    """Cursor over a collection, following the insertion order of its keys.

    Not restartable: once exhausted it stays exhausted.
    """

    def __init__(self, data: Collection):
        self.data = data
        self.keys: List[str] = list(data)
        self.position = 0

    def has_next(self) -> bool:
        return self.position < len(self.keys)

    def peek_key(self) -> str:
        return self.keys[self.position]

    def next(self) -> Item:
        if not self.has_next():
            raise StopIteration
        self.position += 1
        return self.data[self.keys[self.position - 1]]

    __next__ = next

    def __iter__(self) -> Iterator[Item]:
        return self

    def __len__(self) -> int:
        return len(self.keys)
