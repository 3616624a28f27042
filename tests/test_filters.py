"""
Tests for communications filter composition.
"""

import pytest

from commsgraph.blackboard import ArtifactType
from commsgraph.communications.account_types import AccountTypeRegistry
from commsgraph.communications.filters import (
    AccountTypeFilter,
    CommunicationsFilter,
    DeviceFilter,
    FilterKind,
    RelationshipTypeFilter,
    build_filter_sql,
)
from commsgraph.communications.manager import CommunicationsManager
from commsgraph.communications.models import AccountType, EMAIL, PHONE

ALL_KINDS = frozenset(FilterKind)


@pytest.fixture
def registry(manager: CommunicationsManager) -> AccountTypeRegistry:
    return manager.registry


class TestSubFilters:
    """Tests for individual SubFilter fragments."""

    def test_device_filter(self, registry: AccountTypeRegistry):
        sql, params = DeviceFilter(["dev1", "dev2"]).get_sql(registry)
        assert sql == "data_source_info.device_id IN (?, ?)"
        assert params == ["dev1", "dev2"]

    def test_account_type_filter_uses_ids(self, registry: AccountTypeRegistry):
        sql, params = AccountTypeFilter([PHONE, EMAIL]).get_sql(registry)
        assert sql == "accounts.account_type_id IN (?, ?)"
        assert params == [registry.get_type_id(PHONE), registry.get_type_id(EMAIL)]

    def test_unknown_account_type_matches_nothing(self, registry: AccountTypeRegistry):
        _, params = AccountTypeFilter([AccountType("NOPE")]).get_sql(registry)
        assert params == [0]

    def test_relationship_type_filter(self, registry: AccountTypeRegistry):
        sql, params = RelationshipTypeFilter([ArtifactType.TSK_CALLLOG]).get_sql(registry)
        assert sql == "artifacts.artifact_type_id IN (?)"
        assert params == [int(ArtifactType.TSK_CALLLOG)]

    @pytest.mark.parametrize("sub_filter", [DeviceFilter(), AccountTypeFilter(), RelationshipTypeFilter()])
    def test_empty_value_set_is_no_restriction(self, sub_filter, registry: AccountTypeRegistry):
        assert sub_filter.get_sql(registry) == ("", [])

    def test_values_frozen_as_tuple(self):
        sub_filter = DeviceFilter(["dev1"])
        assert sub_filter.device_ids == ("dev1",)
        assert hash(sub_filter) == hash(DeviceFilter(("dev1",)))

    @pytest.mark.parametrize("filter_class", [DeviceFilter, AccountTypeFilter, RelationshipTypeFilter])
    def test_bare_string_rejected(self, filter_class):
        with pytest.raises(TypeError):
            filter_class("dev1")

    def test_kind_tags(self):
        assert DeviceFilter.kind is FilterKind.DEVICE
        assert AccountTypeFilter.kind is FilterKind.ACCOUNT_TYPE
        assert RelationshipTypeFilter.kind is FilterKind.RELATIONSHIP_TYPE


class TestBuildFilterSql:
    """Tests for build_filter_sql."""

    def test_none_filter(self, registry: AccountTypeRegistry):
        assert build_filter_sql(None, ALL_KINDS, registry) == ("", [])

    def test_empty_filter(self, registry: AccountTypeRegistry):
        assert CommunicationsFilter().is_empty()
        assert build_filter_sql(CommunicationsFilter(), ALL_KINDS, registry) == ("", [])

    def test_single_sub_filter_wrapped(self, registry: AccountTypeRegistry):
        sql, params = build_filter_sql(
            CommunicationsFilter([DeviceFilter(["dev1"])]), ALL_KINDS, registry
        )
        assert sql == "( ( data_source_info.device_id IN (?) ) )"
        assert params == ["dev1"]

    def test_sub_filters_anded(self, registry: AccountTypeRegistry):
        comm_filter = CommunicationsFilter().add_and_filter(DeviceFilter(["dev1"])).add_and_filter(
            AccountTypeFilter([PHONE])
        )
        sql, params = build_filter_sql(comm_filter, ALL_KINDS, registry)
        assert sql == (
            "( ( data_source_info.device_id IN (?) ) AND ( accounts.account_type_id IN (?) ) )"
        )
        assert params == ["dev1", registry.get_type_id(PHONE)]

    def test_inapplicable_kinds_skipped(self, registry: AccountTypeRegistry):
        comm_filter = CommunicationsFilter(
            [DeviceFilter(["dev1"]), RelationshipTypeFilter([ArtifactType.TSK_MESSAGE])]
        )
        sql, params = build_filter_sql(comm_filter, frozenset({FilterKind.RELATIONSHIP_TYPE}), registry)
        assert sql == "( ( artifacts.artifact_type_id IN (?) ) )"
        assert params == [int(ArtifactType.TSK_MESSAGE)]

    def test_only_inapplicable_is_no_restriction(self, registry: AccountTypeRegistry):
        comm_filter = CommunicationsFilter([DeviceFilter(["dev1"])])
        assert build_filter_sql(comm_filter, frozenset({FilterKind.RELATIONSHIP_TYPE}), registry) == ("", [])

    def test_empty_sub_filter_skipped(self, registry: AccountTypeRegistry):
        comm_filter = CommunicationsFilter([DeviceFilter([]), DeviceFilter(["dev2"])])
        sql, params = build_filter_sql(comm_filter, ALL_KINDS, registry)
        assert sql == "( ( data_source_info.device_id IN (?) ) )"
        assert params == ["dev2"]

    def test_and_filters_is_a_copy(self):
        comm_filter = CommunicationsFilter([DeviceFilter(["dev1"])])
        comm_filter.and_filters.append(DeviceFilter(["dev2"]))
        assert len(comm_filter.and_filters) == 1
