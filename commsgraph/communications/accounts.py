"""
Account identity storage.

Accounts are the deduplicated identities of the communications graph: one row
per (account type, normalized identifier). Creation is always get-or-create,
never a bare insert.

Concurrency:
    get_or_create_account re-checks for the row inside its exclusive
    transaction, so threads of this process never race. Another process can
    still win the insert; the resulting uniqueness violation rolls the
    transaction back, and the row that process created is returned instead.
    If no such row exists the error propagates and the caller decides whether
    to retry.
"""

import sqlite3
from typing import List, Optional
import logging

from commsgraph.database import CaseDatabase
from commsgraph.exceptions import CommunicationsStoreError, DuplicateRowError
from commsgraph.communications.account_types import AccountTypeRegistry
from commsgraph.communications.models import Account, AccountType
from commsgraph.communications.normalizers import normalize_account_id

logger = logging.getLogger(__name__)


def select_account(
    conn: sqlite3.Connection,
    account_type: AccountType,
    type_id: int,
    normalized_id: str,
) -> Optional[Account]:
    """Read an account by type id and normalized identifier, or None."""
    row = conn.execute(
        """
        SELECT account_id, account_unique_identifier
        FROM accounts
        WHERE account_type_id = ? AND account_unique_identifier = ?;
        """,
        (type_id, normalized_id),
    ).fetchone()
    if row is None:
        return None
    return Account(row["account_id"], account_type, row["account_unique_identifier"])


def select_account_by_id(conn: sqlite3.Connection, account_id: int) -> Optional[sqlite3.Row]:
    """Read an account row joined with its type, or None."""
    return conn.execute(
        """
        SELECT account_types.account_type_id AS account_type_id,
               account_types.type_name AS type_name,
               account_types.display_name AS display_name,
               accounts.account_id AS account_id,
               accounts.account_unique_identifier AS account_unique_identifier
        FROM accounts AS accounts
        JOIN account_types AS account_types
            ON accounts.account_type_id = account_types.account_type_id
        WHERE accounts.account_id = ?;
        """,
        (account_id,),
    ).fetchone()


class AccountStore:
    """Get-or-create access to the accounts table."""

    def __init__(self, db: CaseDatabase, registry: AccountTypeRegistry):
        self.db = db
        self.registry = registry

    def row_to_account(self, row: sqlite3.Row) -> Account:
        account_type = self.registry.remember(
            AccountType(row["type_name"], row["display_name"]), row["account_type_id"]
        )
        return Account(row["account_id"], account_type, row["account_unique_identifier"])

    def get_account(self, account_type: AccountType, raw_id: str) -> Optional[Account]:
        """
        Get the account for a type and identifier.

        Args:
            account_type: Account type.
            raw_id: Identifier, normalized before lookup.

        Returns:
            The Account, or None if none matches.
        """
        type_id = self.registry.get_type_id(account_type)
        normalized_id = normalize_account_id(account_type, raw_id)
        with self.db.read("getting account") as conn:
            return select_account(conn, account_type, type_id, normalized_id)

    def get_account_by_id(self, account_id: int) -> Optional[Account]:
        """
        Get an account by its numeric id.

        Returns:
            The Account, or None if none matches.
        """
        with self.db.read("getting account from account_id") as conn:
            row = select_account_by_id(conn, account_id)
        return self.row_to_account(row) if row else None

    def get_accounts_by_ids(self, account_ids: List[int]) -> List[Account]:
        """Get several accounts in one read, in the order given. Missing ids are skipped."""
        accounts = []
        with self.db.read("getting accounts by id") as conn:
            rows = [select_account_by_id(conn, account_id) for account_id in account_ids]
        for row in rows:
            if row is not None:
                accounts.append(self.row_to_account(row))
        return accounts

    def get_or_create_account(self, account_type: AccountType, raw_id: str) -> Account:
        """
        Get the account for a type and identifier, creating it if needed.

        Args:
            account_type: Registered account type.
            raw_id: Identifier, normalized before lookup and storage.

        Returns:
            The existing or new Account.

        Raises:
            UnknownAccountTypeError: If account_type is not registered.
            CommunicationsStoreError: If the store write fails.
        """
        account = self.get_account(account_type, raw_id)
        if account is not None:
            return account

        type_id = self.registry.require_type_id(account_type)
        normalized_id = normalize_account_id(account_type, raw_id)

        try:
            with self.db.transaction("adding an account") as conn:
                account = select_account(conn, account_type, type_id, normalized_id)
                if account is None:
                    conn.execute(
                        """
                        INSERT INTO accounts (account_type_id, account_unique_identifier)
                        VALUES (?, ?);
                        """,
                        (type_id, normalized_id),
                    )
                    account = select_account(conn, account_type, type_id, normalized_id)
                    logger.debug(f"Created account {account_type.type_name}:{normalized_id}")
        except DuplicateRowError:
            account = self.get_account(account_type, normalized_id)
            if account is None:
                raise
            logger.info(
                f"Account {account_type.type_name}:{normalized_id} was created concurrently"
            )

        if account is None:
            # The insert succeeded but the row could not be read back
            raise CommunicationsStoreError("reading back a new account")
        return account

    def get_accounts(self, account_type: AccountType) -> List[Account]:
        """Get every account of a type, ordered by id."""
        type_id = self.registry.get_type_id(account_type)
        with self.db.read("getting accounts by type") as conn:
            rows = conn.execute(
                """
                SELECT account_id, account_unique_identifier
                FROM accounts
                WHERE account_type_id = ?
                ORDER BY account_id;
                """,
                (type_id,),
            ).fetchall()
        return [
            Account(row["account_id"], account_type, row["account_unique_identifier"])
            for row in rows
        ]

    def get_account_instance_ids(self, account_id: int) -> List[int]:
        """Get the artifact ids of every instance of an account."""
        with self.db.read("getting account instance ids") as conn:
            rows = conn.execute(
                """
                SELECT account_instance_id FROM account_to_instances_map
                WHERE account_id = ?
                ORDER BY account_instance_id;
                """,
                (account_id,),
            ).fetchall()
        return [row["account_instance_id"] for row in rows]

    def count_accounts(self) -> int:
        """Total number of accounts of all types."""
        with self.db.read("counting accounts") as conn:
            row = conn.execute("SELECT COUNT(*) FROM accounts;").fetchone()
        return row[0] if row else 0
