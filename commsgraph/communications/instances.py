"""
Linking discovered accounts to the evidence they were found in.

Every time an analysis module sees an account identifier inside a piece of
content, it asks for an account instance. The instance is a TSK_ACCOUNT marker
artifact on that content carrying two attributes:

    TSK_ACCOUNT_TYPE  account type name
    TSK_ID            normalized account identifier

A marker is reused when one already exists for (account type, normalized id,
content), so repeating a call is harmless. Different content always gets its
own marker, even for the same account. Accounts are merged; instances are not.
"""

import sqlite3
from typing import Dict, List, Optional
import logging

from commsgraph.blackboard import (
    ARTIFACT_COLUMNS,
    Artifact,
    ArtifactType,
    Attribute,
    AttributeType,
    Content,
    fetch_attribute_text,
    insert_artifact,
    insert_attributes,
    row_to_artifact,
)
from commsgraph.database import CaseDatabase
from commsgraph.communications.account_types import AccountTypeRegistry
from commsgraph.communications.accounts import AccountStore
from commsgraph.communications.models import Account, AccountInstance, AccountType
from commsgraph.communications.normalizers import normalize_account_id

logger = logging.getLogger(__name__)


def select_account_marker(
    conn: sqlite3.Connection,
    account_type: AccountType,
    normalized_id: str,
    source_obj_id: int,
) -> Optional[Artifact]:
    """Find the TSK_ACCOUNT marker for an account on one piece of content, or None."""
    row = conn.execute(
        f"""
        SELECT {ARTIFACT_COLUMNS}
        FROM blackboard_artifacts AS artifacts
        JOIN blackboard_attributes AS attr_account_type
            ON artifacts.artifact_id = attr_account_type.artifact_id
            AND attr_account_type.attribute_type_id = ?
            AND attr_account_type.value_text = ?
        JOIN blackboard_attributes AS attr_account_id
            ON artifacts.artifact_id = attr_account_id.artifact_id
            AND attr_account_id.attribute_type_id = ?
            AND attr_account_id.value_text = ?
        WHERE artifacts.artifact_type_id = ?
            AND artifacts.obj_id = ?
        ORDER BY artifacts.artifact_id
        LIMIT 1;
        """,
        (
            int(AttributeType.TSK_ACCOUNT_TYPE),
            account_type.type_name,
            int(AttributeType.TSK_ID),
            normalized_id,
            int(ArtifactType.TSK_ACCOUNT),
            source_obj_id,
        ),
    ).fetchone()
    return row_to_artifact(row) if row else None


class AccountInstanceLinker:
    """Creates and resolves account instances."""

    def __init__(
        self,
        db: CaseDatabase,
        registry: AccountTypeRegistry,
        accounts: AccountStore,
    ):
        self.db = db
        self.registry = registry
        self.accounts = accounts

    def create_account_instance(
        self,
        account_type: AccountType,
        raw_id: str,
        module_name: str,
        source: Content,
    ) -> AccountInstance:
        """
        Get or create the instance of an account within a piece of content.

        Args:
            account_type: Registered account type.
            raw_id: Identifier as found in the evidence.
            module_name: Name of the analysis module reporting the account.
            source: Content the account was found in.

        Returns:
            AccountInstance for (account type, normalized id, source).

        Raises:
            UnknownAccountTypeError: If account_type is not registered.
            CommunicationsStoreError: If a store write fails.
        """
        normalized_id = normalize_account_id(account_type, raw_id)
        account = self.accounts.get_or_create_account(account_type, normalized_id)

        with self.db.transaction("creating account instance") as conn:
            marker = select_account_marker(conn, account_type, normalized_id, source.obj_id)
            if marker is None:
                marker = insert_artifact(conn, ArtifactType.TSK_ACCOUNT, source)
                insert_attributes(
                    conn,
                    marker.artifact_id,
                    [
                        Attribute(AttributeType.TSK_ACCOUNT_TYPE, account_type.type_name, module_name),
                        Attribute(AttributeType.TSK_ID, normalized_id, module_name),
                    ],
                )
                logger.debug(
                    f"Created account instance {marker.artifact_id} for "
                    f"{account_type.type_name}:{normalized_id} on content {source.obj_id}"
                )

            conn.execute(
                """
                INSERT OR IGNORE INTO account_to_instances_map (account_id, account_instance_id)
                VALUES (?, ?);
                """,
                (account.account_id, marker.artifact_id),
            )

        return AccountInstance(artifact=marker, account=account)

    def get_account_instance(self, artifact: Artifact) -> Optional[AccountInstance]:
        """
        Rebuild the account instance evidenced by a TSK_ACCOUNT artifact.

        Returns:
            The AccountInstance, or None if the artifact is not a TSK_ACCOUNT
            marker or names an unknown account.
        """
        if artifact.artifact_type != ArtifactType.TSK_ACCOUNT:
            return None

        with self.db.read("getting account instance") as conn:
            type_name = fetch_attribute_text(conn, artifact.artifact_id, AttributeType.TSK_ACCOUNT_TYPE)
            account_id = fetch_attribute_text(conn, artifact.artifact_id, AttributeType.TSK_ID)

        if type_name is None or account_id is None:
            logger.warning(f"Account artifact {artifact.artifact_id} is missing its attributes")
            return None

        account_type = self.registry.get_account_type(type_name)
        if account_type is None:
            return None

        account = self.accounts.get_account(account_type, account_id)
        if account is None:
            return None
        return AccountInstance(artifact=artifact, account=account)

    def get_account_instances(self, account_type: AccountType) -> List[AccountInstance]:
        """Get every instance of every account of a type."""
        type_id = self.registry.get_type_id(account_type)
        with self.db.read("getting account instances") as conn:
            rows = conn.execute(
                f"""
                SELECT accounts.account_id AS account_id,
                       accounts.account_unique_identifier AS account_unique_identifier,
                       {ARTIFACT_COLUMNS}
                FROM accounts AS accounts
                JOIN account_to_instances_map AS account_to_instances_map
                    ON accounts.account_id = account_to_instances_map.account_id
                JOIN blackboard_artifacts AS artifacts
                    ON account_to_instances_map.account_instance_id = artifacts.artifact_id
                WHERE accounts.account_type_id = ?
                ORDER BY accounts.account_id, artifacts.artifact_id;
                """,
                (type_id,),
            ).fetchall()

        accounts: Dict[int, Account] = {}
        instances = []
        for row in rows:
            account = accounts.get(row["account_id"])
            if account is None:
                account = Account(row["account_id"], account_type, row["account_unique_identifier"])
                accounts[row["account_id"]] = account
            instances.append(AccountInstance(artifact=row_to_artifact(row), account=account))
        return instances

    def get_account_types_in_use(self) -> List[AccountType]:
        """
        Get the account types that have at least one instance in the case.

        Type names that are not registered are skipped.
        """
        with self.db.read("getting account types in use") as conn:
            rows = conn.execute(
                """
                SELECT DISTINCT attributes.value_text AS type_name
                FROM blackboard_attributes AS attributes
                JOIN blackboard_artifacts AS artifacts
                    ON attributes.artifact_id = artifacts.artifact_id
                WHERE attributes.attribute_type_id = ?
                    AND artifacts.artifact_type_id = ?
                ORDER BY attributes.value_text;
                """,
                (int(AttributeType.TSK_ACCOUNT_TYPE), int(ArtifactType.TSK_ACCOUNT)),
            ).fetchall()

        types_in_use = []
        for row in rows:
            account_type = self.registry.get_account_type(row["type_name"])
            if account_type is None:
                logger.warning(f"Account type in use but not registered: {row['type_name']}")
                continue
            types_in_use.append(account_type)
        return types_in_use
