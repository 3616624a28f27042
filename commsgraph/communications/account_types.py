"""
Account type registration and caching.

AccountTypeRegistry owns the mapping between AccountType values and their
numeric ids in account_types. One registry is created per CaseDatabase
session and handed to every component that needs id translation; there is no
process-wide cache.

Cache Semantics:
    - Write-through: every row this registry inserts or reads is cached.
    - Read-through: get_account_type falls back to the store on a miss.
    - get_type_id never touches the store and answers 0 for unknown types.
    - The cache is not transactional with the store. A type committed by
      another writer becomes visible on the next store read.
"""

import sqlite3
import threading
from typing import Dict, List, Optional, Tuple
import logging

from commsgraph.database import CaseDatabase
from commsgraph.exceptions import DuplicateRowError, UnknownAccountTypeError
from commsgraph.communications.models import AccountType, PREDEFINED_ACCOUNT_TYPES

logger = logging.getLogger(__name__)

UNKNOWN_TYPE_ID = 0


def _select_by_name(conn: sqlite3.Connection, type_name: str) -> Optional[sqlite3.Row]:
    return conn.execute(
        "SELECT account_type_id, type_name, display_name FROM account_types WHERE type_name = ?;",
        (type_name,),
    ).fetchone()


class AccountTypeRegistry:
    """Bidirectional, cached mapping between account types and their ids."""

    def __init__(self, db: CaseDatabase):
        self.db = db
        self._lock = threading.Lock()
        self._type_to_id: Dict[AccountType, int] = {}
        self._name_to_type: Dict[str, AccountType] = {}

    def _remember(self, account_type: AccountType, type_id: int) -> AccountType:
        with self._lock:
            # First writer wins: keep the cached display name if already known
            existing = self._name_to_type.setdefault(account_type.type_name, account_type)
            self._type_to_id[existing] = type_id
        return existing

    def _remember_row(self, row: sqlite3.Row) -> AccountType:
        return self._remember(
            AccountType(row["type_name"], row["display_name"]), row["account_type_id"]
        )

    def remember(self, account_type: AccountType, type_id: int) -> AccountType:
        """
        Cache a type read by another component (e.g. from a join).

        Returns:
            The cached AccountType instance for that name.
        """
        return self._remember(account_type, type_id)

    def init_predefined_types(self) -> int:
        """
        Seed any missing predefined types, then load the whole catalogue.

        Runs on every call, in one transaction: a catalogue left partial by an
        earlier session is completed, and a failure here adds no rows.

        Returns:
            Number of account types cached afterwards.
        """
        with self.db.transaction("seeding predefined account types") as conn:
            before = conn.total_changes
            conn.executemany(
                "INSERT OR IGNORE INTO account_types (type_name, display_name) VALUES (?, ?);",
                [(t.type_name, t.display_name) for t in PREDEFINED_ACCOUNT_TYPES],
            )
            seeded = conn.total_changes - before
            rows = conn.execute(
                "SELECT account_type_id, type_name, display_name FROM account_types;"
            ).fetchall()

        for row in rows:
            self._remember_row(row)

        if seeded:
            logger.info(f"Seeded {seeded} predefined account types")
        logger.debug(f"Loaded {len(rows)} account types")
        return len(self._name_to_type)

    def add_account_type(self, type_name: str, display_name: str) -> AccountType:
        """
        Register an account type, or return the existing one.

        If type_name is already known the stored type is returned unchanged
        and display_name is ignored.

        Args:
            type_name: Stable unique key of the type.
            display_name: Human-readable name.

        Returns:
            The registered AccountType.

        Raises:
            CommunicationsStoreError: If the store write fails.
        """
        cached = self._name_to_type.get(type_name)
        if cached is not None and cached in self._type_to_id:
            return cached

        try:
            with self.db.transaction("adding account type") as conn:
                row = _select_by_name(conn, type_name)
                if row is None:
                    conn.execute(
                        "INSERT INTO account_types (type_name, display_name) VALUES (?, ?);",
                        (type_name, display_name),
                    )
                    # Read back the generated id within the same transaction
                    row = _select_by_name(conn, type_name)
                    logger.debug(f"Added account type {type_name}")
        except DuplicateRowError:
            with self.db.read("reading account type") as conn:
                row = _select_by_name(conn, type_name)
            if row is None:
                raise
            logger.info(f"Account type {type_name} was added concurrently, using stored row")

        return self._remember_row(row)

    def get_account_type(self, type_name: str) -> Optional[AccountType]:
        """
        Get an account type by name.

        Returns:
            The AccountType, or None if it is neither cached nor stored.
        """
        cached = self._name_to_type.get(type_name)
        if cached is not None:
            return cached

        with self.db.read("getting account type") as conn:
            row = _select_by_name(conn, type_name)
        if row is None:
            return None
        return self._remember_row(row)

    def get_type_id(self, account_type: AccountType) -> int:
        """
        Get the cached id of an account type.

        Returns:
            The id, or 0 if the type is not cached.
        """
        return self._type_to_id.get(account_type, UNKNOWN_TYPE_ID)

    def require_type_id(self, account_type: AccountType) -> int:
        """
        Get the id of an account type, reading the store on a cache miss.

        Raises:
            UnknownAccountTypeError: If the type is not registered.
        """
        type_id = self.get_type_id(account_type)
        if type_id != UNKNOWN_TYPE_ID:
            return type_id

        if self.get_account_type(account_type.type_name) is None:
            raise UnknownAccountTypeError(account_type.type_name)
        return self.get_type_id(account_type)

    def get_type_ids(self, account_types: List[AccountType]) -> List[int]:
        """Cached ids for several types, 0 for the unknown ones."""
        return [self.get_type_id(account_type) for account_type in account_types]

    def cached_types(self) -> List[Tuple[AccountType, int]]:
        """Snapshot of the cache as (type, id) pairs, sorted by id."""
        with self._lock:
            return sorted(self._type_to_id.items(), key=lambda item: item[1])
