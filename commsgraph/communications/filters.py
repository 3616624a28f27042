"""
Composable filters for communications queries.

A CommunicationsFilter is a conjunction (AND) of SubFilters. Each SubFilter
is a disjunction (OR) over its own values:

    CommunicationsFilter([
        DeviceFilter(["dev1", "dev2"]),          device in (dev1, dev2)
        AccountTypeFilter([PHONE]),              AND account type = PHONE
    ])

SubFilters are a closed set of variants, each tagged with a FilterKind. Every
query declares the kinds it can honour; build_filter_sql keeps only those and
skips the rest without complaint. A filter that contributes nothing yields an
empty fragment, which callers treat as "no restriction".

Fragments reference these table aliases, which the applicable queries join:
    DEVICE             data_source_info
    ACCOUNT_TYPE       accounts
    RELATIONSHIP_TYPE  artifacts
"""

from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, Any, ClassVar, Iterable, List, Optional, Tuple, Union

from commsgraph.blackboard import ArtifactType
from commsgraph.queries import placeholders
from commsgraph.communications.account_types import AccountTypeRegistry
from commsgraph.communications.models import AccountType

SqlFragment = Tuple[str, List[Any]]


class FilterKind(Enum):
    DEVICE = "device"
    ACCOUNT_TYPE = "account_type"
    RELATIONSHIP_TYPE = "relationship_type"


def _as_tuple(values: Iterable[Any], field_name: str) -> Tuple[Any, ...]:
    # A bare string is iterable but would split into characters
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a collection of values, not a string")
    return tuple(values)


@dataclass(frozen=True)
class DeviceFilter:
    """Restrict to accounts/communications observed on any of the given devices."""

    device_ids: Tuple[str, ...] = ()
    kind: ClassVar[FilterKind] = FilterKind.DEVICE

    def __post_init__(self) -> None:
        object.__setattr__(self, "device_ids", _as_tuple(self.device_ids, "device_ids"))

    def get_sql(self, registry: AccountTypeRegistry) -> SqlFragment:
        if not self.device_ids:
            return "", []
        return (
            f"data_source_info.device_id IN ({placeholders(self.device_ids)})",
            list(self.device_ids),
        )


@dataclass(frozen=True)
class AccountTypeFilter:
    """Restrict to accounts of any of the given types."""

    account_types: Tuple[AccountType, ...] = ()
    kind: ClassVar[FilterKind] = FilterKind.ACCOUNT_TYPE

    def __post_init__(self) -> None:
        object.__setattr__(self, "account_types", _as_tuple(self.account_types, "account_types"))

    def get_sql(self, registry: AccountTypeRegistry) -> SqlFragment:
        if not self.account_types:
            return "", []
        # Unknown types map to id 0, which matches no account
        type_ids = registry.get_type_ids(list(self.account_types))
        return (f"accounts.account_type_id IN ({placeholders(type_ids)})", type_ids)


@dataclass(frozen=True)
class RelationshipTypeFilter:
    """Restrict to communications evidenced by any of the given artifact types."""

    relationship_types: Tuple[ArtifactType, ...] = ()
    kind: ClassVar[FilterKind] = FilterKind.RELATIONSHIP_TYPE

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "relationship_types", _as_tuple(self.relationship_types, "relationship_types")
        )

    def get_sql(self, registry: AccountTypeRegistry) -> SqlFragment:
        if not self.relationship_types:
            return "", []
        type_ids = [int(artifact_type) for artifact_type in self.relationship_types]
        return (f"artifacts.artifact_type_id IN ({placeholders(type_ids)})", type_ids)


SubFilter = Union[DeviceFilter, AccountTypeFilter, RelationshipTypeFilter]


class CommunicationsFilter:
    """An ordered conjunction of SubFilters."""

    def __init__(self, and_filters: Optional[Iterable[SubFilter]] = None):
        self._and_filters: List[SubFilter] = list(and_filters or [])

    @property
    def and_filters(self) -> List[SubFilter]:
        return list(self._and_filters)

    def add_and_filter(self, sub_filter: SubFilter) -> "CommunicationsFilter":
        self._and_filters.append(sub_filter)
        return self

    def is_empty(self) -> bool:
        return not self._and_filters

    def __repr__(self) -> str:
        return f"CommunicationsFilter({self._and_filters!r})"


def build_filter_sql(
    comm_filter: Optional[CommunicationsFilter],
    applicable_kinds: AbstractSet[FilterKind],
    registry: AccountTypeRegistry,
) -> SqlFragment:
    """
    Combine the applicable SubFilters of a filter into one SQL fragment.

    Each contributing SubFilter is parenthesized and ANDed with the others;
    the whole is wrapped in one more pair of parentheses.

    Args:
        comm_filter: Filter to apply, or None.
        applicable_kinds: Kinds the calling query can honour.
        registry: Registry used to translate account types to ids.

    Returns:
        (SQL fragment, parameters); ("", []) means no restriction.
    """
    if comm_filter is None or comm_filter.is_empty():
        return "", []

    parts: List[str] = []
    params: List[Any] = []
    for sub_filter in comm_filter.and_filters:
        if sub_filter.kind not in applicable_kinds:
            continue
        sql, sub_params = sub_filter.get_sql(registry)
        if sql:
            parts.append(f"( {sql} )")
            params.extend(sub_params)

    if not parts:
        return "", []
    return "( " + " AND ".join(parts) + " )", params
