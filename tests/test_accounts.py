"""
Tests for AccountStore get-or-create semantics.
"""

import sqlite3
import threading
from typing import List

import pytest

from commsgraph.database import CaseDatabase
from commsgraph.exceptions import (
    CommunicationsStoreError,
    DuplicateRowError,
    UnknownAccountTypeError,
)
from commsgraph.communications import accounts
from commsgraph.communications.account_types import AccountTypeRegistry
from commsgraph.communications.accounts import AccountStore
from commsgraph.communications.models import Account, AccountType, EMAIL, PHONE


@pytest.fixture
def store(case_db: CaseDatabase) -> AccountStore:
    registry = AccountTypeRegistry(case_db)
    registry.init_predefined_types()
    return AccountStore(case_db, registry)


class TestGetOrCreateAccount:
    """Tests for get_or_create_account."""

    def test_creates_with_normalized_id(self, store: AccountStore):
        account = store.get_or_create_account(PHONE, "+1 (555) 010-0001")
        assert account.type_specific_id == "+15550100001"
        assert account.account_type == PHONE

    def test_same_normalized_id_same_account(self, store: AccountStore):
        first = store.get_or_create_account(EMAIL, "Alice@EXAMPLE.com")
        second = store.get_or_create_account(EMAIL, "alice@example.com ")
        assert first == second
        assert store.count_accounts() == 1

    def test_same_identifier_different_types(self, store: AccountStore):
        phone = store.get_or_create_account(PHONE, "5550100001")
        other = store.get_or_create_account(AccountType("WHATSAPP"), "5550100001")
        assert phone.account_id != other.account_id

    def test_unregistered_type_raises(self, store: AccountStore):
        with pytest.raises(UnknownAccountTypeError):
            store.get_or_create_account(AccountType("NOPE"), "x")
        assert store.count_accounts() == 0

    def test_concurrent_creation_yields_one_account(self, store: AccountStore):
        raw_ids = ["+1 (555) 010-0001", "+15550100001", "+1 555 010 0001", "+1-555-010-0001"] * 4
        results: List[Account] = []
        errors: List[BaseException] = []
        barrier = threading.Barrier(len(raw_ids))

        def create(raw_id: str) -> None:
            barrier.wait()
            try:
                results.append(store.get_or_create_account(PHONE, raw_id))
            except BaseException as e:
                errors.append(e)

        threads = [threading.Thread(target=create, args=(raw_id,)) for raw_id in raw_ids]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len({account.account_id for account in results}) == 1
        assert store.count_accounts() == 1


class TestCreatedByOtherWriter:
    """
    get_or_create_account when another writer commits the account first.

    The first two reads (cache-free lookup, in-transaction re-check) are made
    to miss, as they would if the other writer committed just before the insert.
    """

    @staticmethod
    def _miss_reads(monkeypatch, misses: int) -> None:
        real_select = accounts.select_account
        calls = []

        def select(conn, account_type, type_id, normalized_id):
            calls.append(normalized_id)
            if len(calls) <= misses:
                return None
            return real_select(conn, account_type, type_id, normalized_id)

        monkeypatch.setattr(accounts, "select_account", select)

    def test_stored_account_is_returned(
        self, store: AccountStore, case_db: CaseDatabase, monkeypatch
    ):
        other = AccountStore(case_db, AccountTypeRegistry(case_db))
        other.registry.init_predefined_types()
        stored = other.get_or_create_account(PHONE, "+15550100001")
        self._miss_reads(monkeypatch, misses=2)

        account = store.get_or_create_account(PHONE, "+1 555 010 0001")

        assert account == stored
        assert store.count_accounts() == 1

    def test_duplicate_without_stored_row_propagates(
        self, store: AccountStore, monkeypatch
    ):
        store.get_or_create_account(PHONE, "+15550100001")
        self._miss_reads(monkeypatch, misses=10)

        with pytest.raises(DuplicateRowError):
            store.get_or_create_account(PHONE, "+15550100001")

    def test_other_integrity_error_propagates(self, store: AccountStore, monkeypatch):
        monkeypatch.setattr(accounts, "normalize_account_id", lambda account_type, raw_id: None)

        with pytest.raises(CommunicationsStoreError) as exc_info:
            store.get_or_create_account(PHONE, "+15550100001")

        assert not isinstance(exc_info.value, DuplicateRowError)
        assert isinstance(exc_info.value.cause, sqlite3.IntegrityError)
        assert store.count_accounts() == 0


class TestLookups:
    """Tests for the read side of AccountStore."""

    def test_get_account_missing(self, store: AccountStore):
        assert store.get_account(PHONE, "5550100001") is None

    def test_get_account_normalizes(self, store: AccountStore):
        created = store.get_or_create_account(PHONE, "5550100001")
        assert store.get_account(PHONE, "(555) 010-0001") == created

    def test_get_account_by_id(self, store: AccountStore):
        created = store.get_or_create_account(EMAIL, "bob@x.com")
        found = store.get_account_by_id(created.account_id)
        assert found == created
        assert found.account_type.display_name == "Email"

    def test_get_account_by_id_missing(self, store: AccountStore):
        assert store.get_account_by_id(999) is None

    def test_get_accounts_by_ids_skips_missing(self, store: AccountStore):
        a = store.get_or_create_account(EMAIL, "a@x.com")
        b = store.get_or_create_account(EMAIL, "b@x.com")
        assert store.get_accounts_by_ids([b.account_id, 999, a.account_id]) == [b, a]

    def test_get_accounts_by_type(self, store: AccountStore):
        a = store.get_or_create_account(EMAIL, "a@x.com")
        store.get_or_create_account(PHONE, "5550100001")
        b = store.get_or_create_account(EMAIL, "b@x.com")
        assert store.get_accounts(EMAIL) == [a, b]

    def test_get_accounts_unknown_type(self, store: AccountStore):
        assert store.get_accounts(AccountType("NOPE")) == []
