"""
Relationship graph storage.

A relationship is an undirected edge between two accounts, evidenced by one
communication artifact. A message from S to R1 and R2 links all three
participants pairwise:

    S ── R1
    │  ╱
    R2

Direction (sender vs. recipient) is not kept.

Design Decisions:
    1. Pairs are generated with combinations, so (A, B) and (B, A) are one
       edge; an account appearing twice in a call contributes one endpoint.
    2. Rows store the smaller account id first.
    3. An edge is unique per (pair, artifact): re-running ingestion for the
       same communication adds nothing. Different artifacts between the same
       pair are different edges.
    4. All edges of one communication are inserted in one transaction.
"""

import sqlite3
from itertools import combinations
from typing import Iterable, List, Optional, Sequence, Set
import logging

from commsgraph.blackboard import (
    ARTIFACT_COLUMNS,
    Artifact,
    ArtifactType,
    RELATIONSHIP_ARTIFACT_TYPES,
    row_to_artifact,
)
from commsgraph.database import CaseDatabase
from commsgraph.queries import placeholders
from commsgraph.communications.models import AccountInstance, UnorderedAccountPair

logger = logging.getLogger(__name__)


def to_unordered_pairs(account_ids: Iterable[int]) -> Set[UnorderedAccountPair]:
    """
    Every unordered pair of distinct account ids.

    Examples:
        >>> sorted((p.first, p.second) for p in to_unordered_pairs([3, 1, 2]))
        [(1, 2), (1, 3), (2, 3)]
    """
    distinct_ids = list(dict.fromkeys(account_ids))
    return {UnorderedAccountPair(a, b) for a, b in combinations(distinct_ids, 2)}


def _select_relationship_artifacts(
    conn: sqlite3.Connection,
    pair: UnorderedAccountPair,
    artifact_type: Optional[ArtifactType] = None,
) -> List[Artifact]:
    query = f"""
        SELECT DISTINCT {ARTIFACT_COLUMNS}
        FROM blackboard_artifacts AS artifacts
        JOIN relationships AS relationships
            ON artifacts.artifact_id = relationships.communication_artifact_id
        WHERE relationships.account1_id = ?
            AND relationships.account2_id = ?
    """
    params: List[int] = [pair.first, pair.second]
    if artifact_type is not None:
        query += " AND artifacts.artifact_type_id = ?"
        params.append(int(artifact_type))
    query += " ORDER BY artifacts.artifact_id;"

    return [row_to_artifact(row) for row in conn.execute(query, params).fetchall()]


class RelationshipGraphStore:
    """Persists and reads relationship edges."""

    def __init__(self, db: CaseDatabase):
        self.db = db

    def add_relationships(
        self,
        sender: Optional[AccountInstance],
        recipients: Sequence[AccountInstance],
        communication_artifact: Artifact,
    ) -> int:
        """
        Record the edges evidenced by one communication.

        Args:
            sender: Sending account instance, or None if unknown.
            recipients: Receiving account instances.
            communication_artifact: The message, email, call or contact
                that links the accounts.

        Returns:
            Number of new edges inserted.

        Raises:
            CommunicationsStoreError: If the store write fails; no edge of
                this communication is kept in that case.
        """
        account_ids = [recipient.account.account_id for recipient in recipients]
        if sender is not None:
            account_ids.insert(0, sender.account.account_id)

        pairs = to_unordered_pairs(account_ids)
        if not pairs:
            return 0

        inserted = 0
        with self.db.transaction("adding accounts relationship") as conn:
            for pair in sorted(pairs, key=lambda p: (p.first, p.second)):
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO relationships
                        (account1_id, account2_id, communication_artifact_id)
                    VALUES (?, ?, ?);
                    """,
                    (pair.first, pair.second, communication_artifact.artifact_id),
                )
                inserted += cursor.rowcount

        logger.debug(
            f"Recorded {inserted} of {len(pairs)} edges for artifact "
            f"{communication_artifact.artifact_id}"
        )
        return inserted

    def relationships_between(self, account1_id: int, account2_id: int) -> List[Artifact]:
        """Communication artifacts linking two accounts."""
        pair = UnorderedAccountPair(account1_id, account2_id)
        with self.db.read("getting relationships between accounts") as conn:
            return _select_relationship_artifacts(conn, pair)

    def relationships_of_type(
        self, account1_id: int, account2_id: int, artifact_type: ArtifactType
    ) -> List[Artifact]:
        """Communication artifacts of one type linking two accounts."""
        pair = UnorderedAccountPair(account1_id, account2_id)
        with self.db.read("getting relationships of type between accounts") as conn:
            return _select_relationship_artifacts(conn, pair, artifact_type)

    def relationship_types_between(self, account1_id: int, account2_id: int) -> List[ArtifactType]:
        """Distinct artifact types of the communications linking two accounts."""
        pair = UnorderedAccountPair(account1_id, account2_id)
        with self.db.read("getting relationship types") as conn:
            rows = conn.execute(
                """
                SELECT DISTINCT artifacts.artifact_type_id AS artifact_type_id
                FROM blackboard_artifacts AS artifacts
                JOIN relationships AS relationships
                    ON artifacts.artifact_id = relationships.communication_artifact_id
                WHERE relationships.account1_id = ?
                    AND relationships.account2_id = ?
                ORDER BY artifacts.artifact_type_id;
                """,
                (pair.first, pair.second),
            ).fetchall()
        return [ArtifactType(row["artifact_type_id"]) for row in rows]

    def accounts_related_to(self, account_id: int) -> List[int]:
        """
        The other endpoint of every edge touching an account.

        An account linked by several communications appears once per edge.
        """
        with self.db.read("getting relationships by account") as conn:
            rows = conn.execute(
                """
                SELECT account1_id, account2_id
                FROM relationships
                WHERE account1_id = ? OR account2_id = ?
                ORDER BY rowid;
                """,
                (account_id, account_id),
            ).fetchall()
        return [
            row["account2_id"] if row["account1_id"] == account_id else row["account1_id"]
            for row in rows
        ]

    def relationships_count_by_data_sources(self, data_source_obj_ids: Sequence[int]) -> int:
        """Number of edges evidenced by relationship artifacts from the given data sources."""
        if not data_source_obj_ids:
            return 0

        query = f"""
            SELECT COUNT(*) AS count
            FROM blackboard_artifacts AS artifacts
            JOIN relationships AS relationships
                ON artifacts.artifact_id = relationships.communication_artifact_id
            WHERE artifacts.data_source_obj_id IN ({placeholders(data_source_obj_ids)})
                AND artifacts.artifact_type_id IN ({placeholders(RELATIONSHIP_ARTIFACT_TYPES)});
        """
        params = [*data_source_obj_ids, *(int(t) for t in RELATIONSHIP_ARTIFACT_TYPES)]
        with self.db.read("getting relationships count for data sources") as conn:
            row = conn.execute(query, params).fetchone()
        return row["count"] if row else 0

    def count_relationships(self) -> int:
        """Total number of edges in the case."""
        with self.db.read("counting relationships") as conn:
            row = conn.execute("SELECT COUNT(*) FROM relationships;").fetchone()
        return row[0] if row else 0

    def edges(self) -> List[UnorderedAccountPair]:
        """Every edge as an account pair, one entry per communication."""
        with self.db.read("listing relationships") as conn:
            rows = conn.execute(
                "SELECT account1_id, account2_id FROM relationships ORDER BY rowid;"
            ).fetchall()
        return [UnorderedAccountPair(row["account1_id"], row["account2_id"]) for row in rows]
