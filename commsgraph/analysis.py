"""
Analysis functions over the communications graph.

Provides high-level summaries of accounts, devices and communications.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from commsgraph.queries import row_counts
from commsgraph.schema import get_table_names
from commsgraph.communications.filters import CommunicationsFilter
from commsgraph.communications.manager import CommunicationsManager

logger = logging.getLogger(__name__)


def get_case_summary(manager: CommunicationsManager) -> Dict[str, Any]:
    """
    Get a summary of the case database.

    Args:
        manager: Communications manager of the case.

    Returns:
        Dictionary with keys: table_count, row_counts, device_ids,
        account_count, relationship_count, account_types_in_use.
    """
    table_names = get_table_names(manager.db.config.case_db_path)
    counts = manager.db.execute_query(row_counts(table_names))[0] if table_names else ()

    device_ids = manager.blackboard.get_device_ids()
    summary = {
        "table_count": len(table_names),
        "row_counts": dict(zip(table_names, counts)),
        "device_ids": device_ids,
        "account_count": manager.accounts.count_accounts(),
        "relationship_count": manager.graph.count_relationships(),
        "account_types_in_use": [t.type_name for t in manager.get_account_types_in_use()],
    }

    logger.info(
        f"Case summary: {len(device_ids)} devices, {summary['account_count']} accounts, "
        f"{summary['relationship_count']} relationships"
    )
    return summary


def get_device_activity(
    manager: CommunicationsManager,
    comm_filter: Optional[CommunicationsFilter] = None,
) -> List[Dict[str, Any]]:
    """
    Get the communication count of every account on every device.

    Args:
        manager: Communications manager of the case.
        comm_filter: Optional filter applied to both the account listing and
            the counts.

    Returns:
        List of dictionaries with keys: account_id, account_type, identifier,
        device_id, communications_count; busiest first.
    """
    activity = []
    for instance in manager.get_account_device_instances_with_communications(comm_filter):
        activity.append(
            {
                "account_id": instance.account.account_id,
                "account_type": instance.account.account_type.type_name,
                "identifier": instance.account.type_specific_id,
                "device_id": instance.device_id,
                "communications_count": manager.get_communications_count(instance, comm_filter),
            }
        )

    activity.sort(key=lambda row: (-row["communications_count"], row["account_id"], row["device_id"]))
    logger.info(f"Retrieved activity for {len(activity)} account/device pairs")
    return activity


def get_relationship_edges(manager: CommunicationsManager) -> List[Tuple[str, str, int]]:
    """
    Get the graph as weighted edges between account identifiers.

    Returns:
        (identifier, identifier, number of communications) tuples, heaviest first.
    """
    weights: Dict[Tuple[int, int], int] = {}
    for pair in manager.graph.edges():
        key = (pair.first, pair.second)
        weights[key] = weights.get(key, 0) + 1

    account_ids = list(dict.fromkeys(i for key in weights for i in key))
    labels = {a.account_id: a.type_specific_id for a in manager.accounts.get_accounts_by_ids(account_ids)}

    edges = [
        (labels.get(first, str(first)), labels.get(second, str(second)), weight)
        for (first, second), weight in weights.items()
    ]
    edges.sort(key=lambda edge: (-edge[2], edge[0], edge[1]))
    return edges
