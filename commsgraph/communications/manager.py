"""
Public entry point to the communications graph of one case.

CommunicationsManager wires the components together around one open
CaseDatabase. It is safe to share between threads.

Example:
    >>> with CaseDatabase(get_config()) as db:
    ...     manager = CommunicationsManager(db)
    ...     phone = manager.create_account_instance(PHONE, "+1 555 010 0001", "sms", content)
"""

from typing import Iterable, List, Optional, Sequence, Set
import logging

from commsgraph.blackboard import Artifact, ArtifactType, Blackboard, Content
from commsgraph.database import CaseDatabase
from commsgraph.communications.account_types import AccountTypeRegistry
from commsgraph.communications.accounts import AccountStore
from commsgraph.communications.filters import CommunicationsFilter
from commsgraph.communications.instances import AccountInstanceLinker
from commsgraph.communications.models import (
    Account,
    AccountDeviceInstance,
    AccountInstance,
    AccountType,
    MessageFolder,
)
from commsgraph.communications.query_engine import CommunicationsQueryEngine
from commsgraph.communications.relationships import RelationshipGraphStore

logger = logging.getLogger(__name__)


class CommunicationsManager:
    """Accounts, account instances and the relationships between them."""

    def __init__(self, db: CaseDatabase):
        self.db = db
        self.registry = AccountTypeRegistry(db)
        self.registry.init_predefined_types()

        self.blackboard = Blackboard(db)
        self.accounts = AccountStore(db, self.registry)
        self.linker = AccountInstanceLinker(db, self.registry, self.accounts)
        self.graph = RelationshipGraphStore(db)
        self.query_engine = CommunicationsQueryEngine(db, self.registry, self.accounts, self.graph)

        logger.debug(f"Communications manager ready on {db.config.case_db_path_str}")

    # Account types

    def add_account_type(self, type_name: str, display_name: str) -> AccountType:
        """Register a custom account type, or return the existing one of that name."""
        return self.registry.add_account_type(type_name, display_name)

    def get_account_type(self, type_name: str) -> Optional[AccountType]:
        return self.registry.get_account_type(type_name)

    def get_account_types_in_use(self) -> List[AccountType]:
        """Account types with at least one instance in the case."""
        return self.linker.get_account_types_in_use()

    # Accounts and instances

    def create_account_instance(
        self,
        account_type: AccountType,
        account_id: str,
        module_name: str,
        source: Content,
    ) -> AccountInstance:
        """
        Record that an account was seen in a piece of content.

        The account itself is created on first sight; later calls with an
        identifier that normalizes to the same value reuse it.

        Args:
            account_type: Registered account type.
            account_id: Identifier as found in the evidence.
            module_name: Name of the reporting analysis module.
            source: Content the account was found in.

        Returns:
            The AccountInstance for (account, source).

        Raises:
            UnknownAccountTypeError: If account_type is not registered.
            CommunicationsStoreError: If a store write fails.
        """
        return self.linker.create_account_instance(account_type, account_id, module_name, source)

    def get_account(self, account_type: AccountType, account_id: str) -> Optional[Account]:
        return self.accounts.get_account(account_type, account_id)

    def get_account_by_id(self, account_id: int) -> Optional[Account]:
        return self.accounts.get_account_by_id(account_id)

    def get_accounts(self, account_type: AccountType) -> List[Account]:
        return self.accounts.get_accounts(account_type)

    def get_account_instance(self, artifact: Artifact) -> Optional[AccountInstance]:
        """Account instance evidenced by a TSK_ACCOUNT artifact, or None."""
        return self.linker.get_account_instance(artifact)

    def get_account_instances(self, account_type: AccountType) -> List[AccountInstance]:
        return self.linker.get_account_instances(account_type)

    # Relationships

    def add_relationships(
        self,
        sender: Optional[AccountInstance],
        recipients: Sequence[AccountInstance],
        communication_artifact: Artifact,
    ) -> int:
        """
        Link the sender and every recipient of a communication pairwise.

        Returns:
            Number of new edges; 0 when the edges already exist.
        """
        return self.graph.add_relationships(sender, recipients, communication_artifact)

    def get_accounts_with_relationship(self, account: Account) -> List[Account]:
        """
        Accounts sharing at least one edge with an account.

        Each related account is listed once, in order of first edge.
        """
        related_ids = list(dict.fromkeys(self.graph.accounts_related_to(account.account_id)))
        return self.accounts.get_accounts_by_ids(related_ids)

    def get_relationships(self, account1: Account, account2: Account) -> List[Artifact]:
        """Communication artifacts linking two accounts, in either direction."""
        return self.graph.relationships_between(account1.account_id, account2.account_id)

    def get_relationships_of_type(
        self, account1: Account, account2: Account, artifact_type: ArtifactType
    ) -> List[Artifact]:
        return self.graph.relationships_of_type(
            account1.account_id, account2.account_id, artifact_type
        )

    def get_relationship_types(self, account1: Account, account2: Account) -> List[ArtifactType]:
        return self.graph.relationship_types_between(account1.account_id, account2.account_id)

    # Filtered queries

    def get_account_device_instances_with_communications(
        self, comm_filter: Optional[CommunicationsFilter] = None
    ) -> List[AccountDeviceInstance]:
        return self.query_engine.account_device_instances_with_communications(comm_filter)

    def get_relationships_count_by_device(self, device_id: str) -> int:
        return self.query_engine.relationships_count_by_device(device_id)

    def get_communications_count(
        self,
        account_device_instance: AccountDeviceInstance,
        comm_filter: Optional[CommunicationsFilter] = None,
    ) -> int:
        return self.query_engine.communications_count(account_device_instance, comm_filter)

    def get_communications(
        self,
        account_device_instances: Iterable[AccountDeviceInstance],
        comm_filter: Optional[CommunicationsFilter] = None,
    ) -> Set[Artifact]:
        return self.query_engine.communications(account_device_instances, comm_filter)

    # Email folders

    def get_message_folders(
        self, source: Content, parent_folder: Optional[MessageFolder] = None
    ) -> List[MessageFolder]:
        """Folders of the email messages found in a source file."""
        return self.query_engine.message_folders(source.obj_id, parent_folder)

    def get_messages(self, folder: MessageFolder) -> List[Artifact]:
        return self.query_engine.messages(folder)
