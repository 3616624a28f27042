"""
Schema definitions for the case database.

The case database holds two groups of tables:

    Evidence (owned by the case store, consumed here):
    ├── data_source_info        one row per data source, tagged with its device
    ├── content                 files/streams, each belonging to a data source
    ├── blackboard_artifacts    typed findings attached to content
    └── blackboard_attributes   typed values attached to artifacts

    Communications graph:
    ├── account_types           catalogue of account types
    ├── accounts                one row per (type, normalized identifier)
    ├── account_to_instances_map  account -> TSK_ACCOUNT marker artifacts
    └── relationships           undirected account pairs per communication

Design Decisions:
    1. Uniqueness is enforced by the database, not only by callers:
       type_name, (account_type_id, account_unique_identifier), the instance
       mapping pair and the relationship triple are all UNIQUE.
    2. Relationship rows store the smaller account id first, so an unordered
       pair has exactly one representation.
    3. db_info records the schema version.
"""

import sqlite3
from pathlib import Path
from typing import List
import logging

logger = logging.getLogger(__name__)

# Schema version for migration tracking
SCHEMA_VERSION = "1.0.0"

SCHEMA_DDL = """
-- =============================================================================
-- Evidence tables
-- =============================================================================
CREATE TABLE IF NOT EXISTS data_source_info (
    obj_id INTEGER PRIMARY KEY,
    device_id TEXT NOT NULL,
    time_zone TEXT
);

CREATE INDEX IF NOT EXISTS idx_data_source_device
    ON data_source_info(device_id);

CREATE TABLE IF NOT EXISTS content (
    obj_id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    data_source_obj_id INTEGER
);

CREATE TABLE IF NOT EXISTS blackboard_artifacts (
    artifact_id INTEGER PRIMARY KEY AUTOINCREMENT,
    obj_id INTEGER NOT NULL REFERENCES content(obj_id),
    data_source_obj_id INTEGER NOT NULL,
    artifact_type_id INTEGER NOT NULL,
    review_status_id INTEGER NOT NULL DEFAULT 3
);

CREATE INDEX IF NOT EXISTS idx_artifacts_obj
    ON blackboard_artifacts(obj_id);

CREATE INDEX IF NOT EXISTS idx_artifacts_type
    ON blackboard_artifacts(artifact_type_id);

CREATE INDEX IF NOT EXISTS idx_artifacts_data_source
    ON blackboard_artifacts(data_source_obj_id);

CREATE TABLE IF NOT EXISTS blackboard_attributes (
    artifact_id INTEGER NOT NULL REFERENCES blackboard_artifacts(artifact_id),
    attribute_type_id INTEGER NOT NULL,
    source TEXT,
    value_text TEXT,
    value_int64 INTEGER
);

CREATE INDEX IF NOT EXISTS idx_attributes_artifact
    ON blackboard_attributes(artifact_id);

CREATE INDEX IF NOT EXISTS idx_attributes_type_text
    ON blackboard_attributes(attribute_type_id, value_text);

-- =============================================================================
-- Communications tables
-- =============================================================================
CREATE TABLE IF NOT EXISTS account_types (
    account_type_id INTEGER PRIMARY KEY AUTOINCREMENT,
    type_name TEXT NOT NULL UNIQUE,
    display_name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS accounts (
    account_id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_type_id INTEGER NOT NULL REFERENCES account_types(account_type_id),
    account_unique_identifier TEXT NOT NULL,
    UNIQUE (account_type_id, account_unique_identifier)
);

CREATE TABLE IF NOT EXISTS account_to_instances_map (
    account_id INTEGER NOT NULL REFERENCES accounts(account_id),
    account_instance_id INTEGER NOT NULL REFERENCES blackboard_artifacts(artifact_id),
    UNIQUE (account_id, account_instance_id)
);

CREATE TABLE IF NOT EXISTS relationships (
    account1_id INTEGER NOT NULL REFERENCES accounts(account_id),
    account2_id INTEGER NOT NULL REFERENCES accounts(account_id),
    communication_artifact_id INTEGER NOT NULL REFERENCES blackboard_artifacts(artifact_id),
    UNIQUE (account1_id, account2_id, communication_artifact_id)
);

CREATE INDEX IF NOT EXISTS idx_relationships_account1
    ON relationships(account1_id);

CREATE INDEX IF NOT EXISTS idx_relationships_account2
    ON relationships(account2_id);

CREATE INDEX IF NOT EXISTS idx_relationships_artifact
    ON relationships(communication_artifact_id);

-- =============================================================================
-- Schema metadata
-- =============================================================================
CREATE TABLE IF NOT EXISTS db_info (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

INSERT OR REPLACE INTO db_info (key, value)
VALUES ('schema_version', '{schema_version}');
""".format(
    schema_version=SCHEMA_VERSION
)

REQUIRED_TABLES = frozenset(
    {
        "data_source_info",
        "content",
        "blackboard_artifacts",
        "blackboard_attributes",
        "account_types",
        "accounts",
        "account_to_instances_map",
        "relationships",
        "db_info",
    }
)


def create_schema(db_path: Path) -> None:
    """
    Create the case database schema if it doesn't exist.

    This function is idempotent - safe to call multiple times.

    Args:
        db_path: Path to the case database. Parent directory will be created
                 if it doesn't exist.

    Raises:
        sqlite3.Error: If schema creation fails.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Creating/verifying schema at: {db_path}")

    conn = sqlite3.connect(str(db_path))
    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        # WAL lets readers proceed while a writer holds the reserved lock
        conn.execute("PRAGMA journal_mode = WAL;")
        conn.executescript(SCHEMA_DDL)
        conn.commit()

        logger.info(f"Schema created/verified successfully (version {SCHEMA_VERSION})")
    except sqlite3.Error as e:
        logger.error(f"Schema creation failed: {e}")
        raise
    finally:
        conn.close()


def get_table_names(db_path: Path) -> List[str]:
    """
    Get all table names in the case database.

    Args:
        db_path: Path to the case database.

    Returns:
        Sorted list of table names.
    """
    conn = sqlite3.connect(str(db_path))
    try:
        cursor = conn.execute(
            "SELECT name FROM sqlite_master "
            "WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name;"
        )
        return [row[0] for row in cursor.fetchall()]
    finally:
        conn.close()


def verify_schema(db_path: Path) -> bool:
    """
    Verify that the schema exists and has all required tables.

    Args:
        db_path: Path to the case database.

    Returns:
        True if schema is valid, False otherwise.
    """
    if not db_path.exists():
        return False

    existing_tables = set(get_table_names(db_path))
    return REQUIRED_TABLES.issubset(existing_tables)
