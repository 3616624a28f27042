"""
SQL query definitions for the communications graph.

Query builders return (SQL string, parameters). Values are always bound as ?
parameters; only fixed column names and placeholder lists are ever formatted
into the SQL text.
"""

import re
from typing import Any, List, Optional, Sequence, Tuple

from commsgraph.blackboard import (
    ARTIFACT_COLUMNS,
    ArtifactType,
    AttributeType,
    COMMUNICATION_ARTIFACT_TYPES,
)

Query = Tuple[str, List[Any]]

_SQLITE_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def require_sqlite_identifier(value: str, *, field_name: str) -> str:
    """
    Validate an identifier (e.g. table name) to prevent SQL injection.

    SQLite does not support binding identifiers as parameters, so we must validate
    before safely interpolating into SQL.
    """
    if not _SQLITE_IDENTIFIER_RE.fullmatch(value):
        raise ValueError(f"Invalid {field_name}: {value!r}")
    return value


def placeholders(values: Sequence[Any]) -> str:
    """
    Placeholder list for an IN clause.

    Raises:
        ValueError: If values is empty (IN () is not valid SQL).
    """
    if not values:
        raise ValueError("IN clause needs at least one value")
    return ", ".join("?" for _ in values)


def _communication_type_ids() -> List[int]:
    return [int(artifact_type) for artifact_type in COMMUNICATION_ARTIFACT_TYPES]


def _append_filter(query: str, params: List[Any], filter_sql: str, filter_params: Sequence[Any]) -> str:
    if filter_sql:
        query += f" AND {filter_sql}"
        params.extend(filter_params)
    return query


def account_device_instances_with_communications(
    filter_sql: str = "", filter_params: Sequence[Any] = ()
) -> Query:
    """
    Query for (account_id, device_id) of accounts with at least one communication.

    Joins accounts, account_types, their instances and the devices of the
    instances' data sources, so DEVICE and ACCOUNT_TYPE filters apply.

    Returns:
        (SQL query string, parameters).
    """
    type_ids = _communication_type_ids()
    query = f"""
        SELECT DISTINCT accounts.account_id AS account_id,
               data_source_info.device_id AS device_id
        FROM accounts AS accounts
        JOIN account_types AS account_types
            ON accounts.account_type_id = account_types.account_type_id
        JOIN account_to_instances_map AS account_to_instances_map
            ON accounts.account_id = account_to_instances_map.account_id
        JOIN blackboard_artifacts AS artifacts
            ON account_to_instances_map.account_instance_id = artifacts.artifact_id
        JOIN data_source_info AS data_source_info
            ON artifacts.data_source_obj_id = data_source_info.obj_id
        WHERE accounts.account_id IN (
            SELECT relationships1.account1_id
            FROM relationships AS relationships1
            JOIN blackboard_artifacts AS artifacts1
                ON artifacts1.artifact_id = relationships1.communication_artifact_id
            WHERE artifacts1.artifact_type_id IN ({placeholders(type_ids)})
            UNION
            SELECT relationships2.account2_id
            FROM relationships AS relationships2
            JOIN blackboard_artifacts AS artifacts2
                ON artifacts2.artifact_id = relationships2.communication_artifact_id
            WHERE artifacts2.artifact_type_id IN ({placeholders(type_ids)})
        )
    """
    params: List[Any] = [*type_ids, *type_ids]
    query = _append_filter(query, params, filter_sql, filter_params)
    query += " ORDER BY accounts.account_id, data_source_info.device_id;"
    return query, params


def _communications_base() -> Query:
    type_ids = _communication_type_ids()
    query = f"""
        SELECT DISTINCT {ARTIFACT_COLUMNS}
        FROM blackboard_artifacts AS artifacts
        JOIN relationships AS relationships
            ON artifacts.artifact_id = relationships.communication_artifact_id
        WHERE artifacts.artifact_type_id IN ({placeholders(type_ids)})
    """
    return query, list(type_ids)


def _account_device_clause(account_id: int, data_source_obj_ids: Sequence[int]) -> Query:
    clause = (
        "( ( relationships.account1_id = ? OR relationships.account2_id = ? )"
        f" AND artifacts.data_source_obj_id IN ({placeholders(data_source_obj_ids)}) )"
    )
    return clause, [account_id, account_id, *data_source_obj_ids]


def communications_count(
    account_id: int,
    data_source_obj_ids: Sequence[int],
    filter_sql: str = "",
    filter_params: Sequence[Any] = (),
) -> Query:
    """
    Query counting distinct communication artifacts of one account on some data sources.

    Returns:
        (SQL query string, parameters); the single result column is "count".
    """
    inner, params = _communications_base()
    clause, clause_params = _account_device_clause(account_id, data_source_obj_ids)
    inner += f" AND {clause}"
    params.extend(clause_params)
    inner = _append_filter(inner, params, filter_sql, filter_params)
    return f"SELECT COUNT(*) AS count FROM ( {inner} ) AS internal_query;", params


def communications(
    account_data_sources: Sequence[Tuple[int, Sequence[int]]],
    filter_sql: str = "",
    filter_params: Sequence[Any] = (),
) -> Query:
    """
    Query for distinct communication artifacts of several (account, data sources) pairs.

    Args:
        account_data_sources: (account_id, data source obj ids) pairs; pairs
            with no data sources must be dropped by the caller.
        filter_sql: Optional RELATIONSHIP_TYPE restriction.
        filter_params: Parameters of filter_sql.

    Returns:
        (SQL query string, parameters).
    """
    query, params = _communications_base()
    clauses = []
    for account_id, data_source_obj_ids in account_data_sources:
        clause, clause_params = _account_device_clause(account_id, data_source_obj_ids)
        clauses.append(clause)
        params.extend(clause_params)
    if clauses:
        query += " AND ( " + " OR ".join(clauses) + " )"
    query = _append_filter(query, params, filter_sql, filter_params)
    query += " ORDER BY artifacts.artifact_id;"
    return query, params


def message_folders(source_obj_id: int, parent_folder: Optional[str] = None) -> Query:
    """
    Query for distinct email folder paths within one email source file.

    Args:
        source_obj_id: Object id of the PST/mbox content.
        parent_folder: Optional folder; only paths below it are returned.

    Returns:
        (SQL query string, parameters); the result column is "folder_path".
    """
    query = """
        SELECT DISTINCT attributes.value_text AS folder_path
        FROM blackboard_artifacts AS artifacts
        JOIN blackboard_attributes AS attributes
            ON artifacts.artifact_id = attributes.artifact_id
        WHERE artifacts.obj_id = ?
            AND artifacts.artifact_type_id = ?
            AND attributes.attribute_type_id = ?
    """
    params: List[Any] = [source_obj_id, int(ArtifactType.TSK_EMAIL_MSG), int(AttributeType.TSK_PATH)]
    if parent_folder is not None:
        prefix = parent_folder.rstrip("/") + "/"
        query += " AND attributes.value_text LIKE ? ESCAPE '\\'"
        params.append(escape_like(prefix) + "%")
    query += " ORDER BY folder_path;"
    return query, params


def messages_in_folder(source_obj_id: int, folder_path: str) -> Query:
    """
    Query for email message artifacts filed directly in one folder.

    Returns:
        (SQL query string, parameters).
    """
    query = f"""
        SELECT DISTINCT {ARTIFACT_COLUMNS}
        FROM blackboard_artifacts AS artifacts
        JOIN blackboard_attributes AS attributes
            ON artifacts.artifact_id = attributes.artifact_id
        WHERE artifacts.obj_id = ?
            AND artifacts.artifact_type_id = ?
            AND attributes.attribute_type_id = ?
            AND attributes.value_text = ?
        ORDER BY artifacts.artifact_id;
    """
    params: List[Any] = [
        source_obj_id,
        int(ArtifactType.TSK_EMAIL_MSG),
        int(AttributeType.TSK_PATH),
        folder_path,
    ]
    return query, params


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so value matches literally (ESCAPE '\\')."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def row_counts(table_names: Sequence[str]) -> str:
    """
    Generate a query returning the row count of each table in one row.

    Args:
        table_names: Table names; each is validated as an identifier.

    Returns:
        SQL query string.
    """
    if not table_names:
        return "SELECT 0;"
    counts = [
        f"(SELECT COUNT(*) FROM `{require_sqlite_identifier(name, field_name='table_name')}`)"
        for name in table_names
    ]
    return "SELECT " + ", ".join(counts) + ";"
