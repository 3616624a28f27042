"""
Read surface over accounts, devices and communications.

Each query declares which SubFilter kinds it honours:

    account_device_instances_with_communications   DEVICE, ACCOUNT_TYPE
    communications_count / communications          RELATIONSHIP_TYPE

Devices are resolved to their data sources through the case store; a device
with no data sources matches nothing.
"""

from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple
import logging

from commsgraph import queries
from commsgraph.blackboard import Artifact, fetch_data_source_obj_ids, row_to_artifact
from commsgraph.database import CaseDatabase
from commsgraph.communications.account_types import AccountTypeRegistry
from commsgraph.communications.accounts import AccountStore, select_account_by_id
from commsgraph.communications.filters import CommunicationsFilter, FilterKind, build_filter_sql
from commsgraph.communications.models import AccountDeviceInstance, MessageFolder
from commsgraph.communications.relationships import RelationshipGraphStore

logger = logging.getLogger(__name__)

DEVICE_INSTANCE_FILTERS: FrozenSet[FilterKind] = frozenset(
    {FilterKind.DEVICE, FilterKind.ACCOUNT_TYPE}
)
COMMUNICATION_FILTERS: FrozenSet[FilterKind] = frozenset({FilterKind.RELATIONSHIP_TYPE})


class CommunicationsQueryEngine:
    """Filtered queries over the communications graph."""

    def __init__(
        self,
        db: CaseDatabase,
        registry: AccountTypeRegistry,
        accounts: AccountStore,
        graph: RelationshipGraphStore,
    ):
        self.db = db
        self.registry = registry
        self.accounts = accounts
        self.graph = graph

    def account_device_instances_with_communications(
        self, comm_filter: Optional[CommunicationsFilter] = None
    ) -> List[AccountDeviceInstance]:
        """
        Accounts with at least one communication, per device they were seen on.

        Args:
            comm_filter: Optional filter; DEVICE and ACCOUNT_TYPE apply.

        Returns:
            AccountDeviceInstances ordered by account id, then device id.
        """
        filter_sql, filter_params = build_filter_sql(
            comm_filter, DEVICE_INSTANCE_FILTERS, self.registry
        )
        query, params = queries.account_device_instances_with_communications(
            filter_sql, filter_params
        )
        logger.debug(f"Device instance filter: {filter_sql or '(none)'}")

        with self.db.read("getting account device instances") as conn:
            rows = conn.execute(query, params).fetchall()
            account_rows = {
                account_id: select_account_by_id(conn, account_id)
                for account_id in {row["account_id"] for row in rows}
            }

        instances = []
        for row in rows:
            account_row = account_rows[row["account_id"]]
            if account_row is None:
                continue
            instances.append(
                AccountDeviceInstance(self.accounts.row_to_account(account_row), row["device_id"])
            )
        return instances

    def relationships_count_by_device(self, device_id: str) -> int:
        """Number of relationship edges evidenced on a device."""
        with self.db.read("getting data sources for device") as conn:
            data_source_obj_ids = fetch_data_source_obj_ids(conn, device_id)
        return self.graph.relationships_count_by_data_sources(data_source_obj_ids)

    def communications_count(
        self,
        account_device_instance: AccountDeviceInstance,
        comm_filter: Optional[CommunicationsFilter] = None,
    ) -> int:
        """
        Number of distinct communications of an account on a device.

        Args:
            account_device_instance: The (account, device) to count for.
            comm_filter: Optional filter; RELATIONSHIP_TYPE applies.

        Returns:
            Count of distinct communication artifacts.
        """
        filter_sql, filter_params = build_filter_sql(
            comm_filter, COMMUNICATION_FILTERS, self.registry
        )

        with self.db.read("getting communications count for account device instance") as conn:
            data_source_obj_ids = fetch_data_source_obj_ids(conn, account_device_instance.device_id)
            if not data_source_obj_ids:
                return 0
            query, params = queries.communications_count(
                account_device_instance.account.account_id,
                data_source_obj_ids,
                filter_sql,
                filter_params,
            )
            row = conn.execute(query, params).fetchone()
        return row["count"] if row else 0

    def communications(
        self,
        account_device_instances: Iterable[AccountDeviceInstance],
        comm_filter: Optional[CommunicationsFilter] = None,
    ) -> Set[Artifact]:
        """
        Distinct communications of several accounts, each restricted to its device.

        Args:
            account_device_instances: The (account, device) pairs to search.
            comm_filter: Optional filter; RELATIONSHIP_TYPE applies.

        Returns:
            Set of communication artifacts; empty if no pair has data sources.
        """
        filter_sql, filter_params = build_filter_sql(
            comm_filter, COMMUNICATION_FILTERS, self.registry
        )

        with self.db.read("getting communications for account device instances") as conn:
            device_sources: Dict[str, List[int]] = {}
            account_data_sources: List[Tuple[int, List[int]]] = []
            for instance in account_device_instances:
                if instance.device_id not in device_sources:
                    device_sources[instance.device_id] = fetch_data_source_obj_ids(
                        conn, instance.device_id
                    )
                data_source_obj_ids = device_sources[instance.device_id]
                if data_source_obj_ids:
                    account_data_sources.append((instance.account.account_id, data_source_obj_ids))

            if not account_data_sources:
                return set()

            query, params = queries.communications(account_data_sources, filter_sql, filter_params)
            rows = conn.execute(query, params).fetchall()

        return {row_to_artifact(row) for row in rows}

    def message_folders(
        self, source_obj_id: int, parent_folder: Optional[MessageFolder] = None
    ) -> List[MessageFolder]:
        """
        Email folders within an email source file.

        Args:
            source_obj_id: Object id of the PST/mbox content.
            parent_folder: If given, only folders below it are returned.

        Returns:
            MessageFolders ordered by path.
        """
        query, params = queries.message_folders(
            source_obj_id, parent_folder.name if parent_folder else None
        )
        with self.db.read("getting message folders") as conn:
            paths = [row["folder_path"] for row in conn.execute(query, params).fetchall()]

        folders = []
        for path in paths:
            prefix = path.rstrip("/") + "/"
            has_subfolders = any(other.startswith(prefix) for other in paths if other != path)
            folders.append(MessageFolder(path, source_obj_id, has_subfolders))
        return folders

    def messages(self, folder: MessageFolder) -> List[Artifact]:
        """Email message artifacts filed directly in a folder."""
        query, params = queries.messages_in_folder(folder.source_obj_id, folder.name)
        with self.db.read("getting messages") as conn:
            return [row_to_artifact(row) for row in conn.execute(query, params).fetchall()]
