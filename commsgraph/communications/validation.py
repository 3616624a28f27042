"""
Case integrity validation.

Read-only checks over the communications tables of a case database. Run them
after ingestion to confirm the graph is consistent.

Validation Checks:
    1. Every predefined account type is registered
    2. Stored phone and email identifiers are already normalized
    3. No duplicate account identities
    4. No relationship edge points at a missing artifact
    5. Every instance mapping points at a TSK_ACCOUNT artifact
    6. No edge links an account to itself
"""

import sqlite3
from contextlib import closing
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import logging

from commsgraph.blackboard import ArtifactType
from commsgraph.communications.models import EMAIL, PHONE, PREDEFINED_ACCOUNT_TYPES
from commsgraph.communications.normalizers import normalize_account_id

logger = logging.getLogger(__name__)


@dataclass
class ValidationCheck:
    """Result of a single validation check."""

    name: str
    passed: bool
    message: str
    details: Optional[str] = None


@dataclass
class ValidationResult:
    """Result of all validation checks."""

    passed: bool
    checks: List[ValidationCheck] = field(default_factory=list)
    summary: str = ""

    def __str__(self) -> str:
        lines = []
        for check in self.checks:
            icon = "✓" if check.passed else "✗"
            lines.append(f"{icon} {check.name}: {check.message}")
            if check.details and not check.passed:
                lines.append(f"  → {check.details}")

        status = "All checks passed" if self.passed else "Some checks failed"
        lines.append(f"\n{status}.")
        return "\n".join(lines)


def _open_case_db(path: Path) -> sqlite3.Connection:
    """Open the case database for queries only."""
    if not path.exists():
        raise sqlite3.OperationalError(f"unable to open database file: {path}")
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA query_only = ON;")
    return conn


def check_predefined_types(conn: sqlite3.Connection) -> ValidationCheck:
    """
    Verify every predefined account type has a row in account_types.

    Args:
        conn: Connection to the case database.

    Returns:
        ValidationCheck result.
    """
    with closing(conn.cursor()) as cursor:
        cursor.execute("SELECT type_name FROM account_types;")
        stored = {row[0] for row in cursor.fetchall()}

    missing = [t.type_name for t in PREDEFINED_ACCOUNT_TYPES if t.type_name not in stored]
    passed = not missing

    return ValidationCheck(
        name="Predefined account types",
        passed=passed,
        message=f"{len(stored)} account types registered",
        details=f"Missing: {', '.join(missing)}" if not passed else None,
    )


def check_identifier_normalization(conn: sqlite3.Connection) -> ValidationCheck:
    """
    Verify phone and email identifiers are stored in normalized form.

    Args:
        conn: Connection to the case database.

    Returns:
        ValidationCheck result.
    """
    query = """
        SELECT account_types.type_name, accounts.account_unique_identifier
        FROM accounts
        JOIN account_types ON accounts.account_type_id = account_types.account_type_id
        WHERE account_types.type_name IN (?, ?);
    """

    with closing(conn.cursor()) as cursor:
        cursor.execute(query, (PHONE.type_name, EMAIL.type_name))
        rows = cursor.fetchall()

    if not rows:
        return ValidationCheck(
            name="Identifier normalization",
            passed=True,
            message="No phone or email accounts to validate",
        )

    type_by_name = {PHONE.type_name: PHONE, EMAIL.type_name: EMAIL}
    bad = [
        identifier
        for type_name, identifier in rows
        if normalize_account_id(type_by_name[type_name], identifier) != identifier
    ]
    passed = not bad

    return ValidationCheck(
        name="Identifier normalization",
        passed=passed,
        message=f"{len(rows) - len(bad)}/{len(rows)} identifiers normalized",
        details=f"Not normalized: {bad[:5]}" if not passed else None,
    )


def check_unique_identities(conn: sqlite3.Connection) -> ValidationCheck:
    """
    Verify no (account type, identifier) appears twice.

    Args:
        conn: Connection to the case database.

    Returns:
        ValidationCheck result.
    """
    query = """
        SELECT COUNT(*) FROM (
            SELECT account_type_id, account_unique_identifier
            FROM accounts
            GROUP BY account_type_id, account_unique_identifier
            HAVING COUNT(*) > 1
        );
    """

    with closing(conn.cursor()) as cursor:
        cursor.execute(query)
        duplicates = cursor.fetchone()[0]

    passed = duplicates == 0
    message = "All identities unique" if passed else f"{duplicates} duplicated identities"

    return ValidationCheck(name="Unique identities", passed=passed, message=message)


def check_no_orphan_relationships(conn: sqlite3.Connection) -> ValidationCheck:
    """
    Verify every edge references an existing communication artifact.

    Args:
        conn: Connection to the case database.

    Returns:
        ValidationCheck result.
    """
    query = """
        SELECT COUNT(*) FROM relationships
        WHERE communication_artifact_id NOT IN (SELECT artifact_id FROM blackboard_artifacts);
    """

    with closing(conn.cursor()) as cursor:
        cursor.execute(query)
        orphan_count = cursor.fetchone()[0]

    passed = orphan_count == 0
    message = "No orphaned relationships" if passed else f"{orphan_count} orphaned relationships"

    return ValidationCheck(
        name="No orphan relationships",
        passed=passed,
        message=message,
        details="Relationships reference non-existent artifacts" if not passed else None,
    )


def check_instance_markers(conn: sqlite3.Connection) -> ValidationCheck:
    """Verify every account instance mapping points at a TSK_ACCOUNT artifact."""
    query = """
        SELECT COUNT(*) FROM account_to_instances_map AS map
        LEFT JOIN blackboard_artifacts AS artifacts
            ON map.account_instance_id = artifacts.artifact_id
        WHERE artifacts.artifact_id IS NULL OR artifacts.artifact_type_id != ?;
    """

    with closing(conn.cursor()) as cursor:
        cursor.execute(query, (int(ArtifactType.TSK_ACCOUNT),))
        bad_count = cursor.fetchone()[0]

    passed = bad_count == 0
    message = "All instances are account markers" if passed else f"{bad_count} invalid instances"

    return ValidationCheck(name="Instance markers", passed=passed, message=message)


def check_no_self_relationships(conn: sqlite3.Connection) -> ValidationCheck:
    """Verify no edge links an account to itself."""
    with closing(conn.cursor()) as cursor:
        cursor.execute("SELECT COUNT(*) FROM relationships WHERE account1_id = account2_id;")
        self_loops = cursor.fetchone()[0]

    passed = self_loops == 0
    message = "No self relationships" if passed else f"{self_loops} self relationships"

    return ValidationCheck(name="No self relationships", passed=passed, message=message)


def validate_case(case_db_path: Path) -> ValidationResult:
    """
    Run all integrity checks against a case database.

    Args:
        case_db_path: Path to the case database.

    Returns:
        ValidationResult with all check results.
    """
    checks: List[ValidationCheck] = []

    try:
        with closing(_open_case_db(case_db_path)) as conn:
            checks.append(check_predefined_types(conn))
            checks.append(check_identifier_normalization(conn))
            checks.append(check_unique_identities(conn))
            checks.append(check_no_orphan_relationships(conn))
            checks.append(check_instance_markers(conn))
            checks.append(check_no_self_relationships(conn))
    except sqlite3.Error as e:
        checks.append(
            ValidationCheck(
                name="Connection",
                passed=False,
                message=f"Failed to read case database: {e}",
            )
        )

    all_passed = all(check.passed for check in checks)
    passed_count = sum(1 for c in checks if c.passed)

    result = ValidationResult(
        passed=all_passed,
        checks=checks,
        summary=f"{passed_count}/{len(checks)} checks passed",
    )

    logger.info(f"Validation complete: {result.summary}")
    return result
