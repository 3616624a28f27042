"""
Pytest fixtures for commsgraph tests.

Fixture Categories:
    1. Database fixtures (empty case database, open CaseDatabase)
    2. Manager fixtures (manager, data sources on two devices)
    3. Populated case (accounts, instances and communications)

Design Notes:
    - Fixtures use tmp_path for isolation between tests
    - Every case database is created through CaseDatabase, so the schema
      under test is the real one
"""

from pathlib import Path
from typing import Dict, Iterator

import pytest

from commsgraph.blackboard import ArtifactType, Attribute, AttributeType, DataSource
from commsgraph.config import Config
from commsgraph.database import CaseDatabase
from commsgraph.communications.manager import CommunicationsManager
from commsgraph.communications.models import EMAIL, PHONE


def pytest_configure(config):
    config.addinivalue_line("markers", "property: property-based tests using hypothesis")


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def case_db_path(tmp_path: Path) -> Path:
    """Path of a case database that does not exist yet."""
    return tmp_path / "case" / "case.db"


@pytest.fixture
def case_config(case_db_path: Path) -> Config:
    return Config(case_db_path=str(case_db_path), busy_timeout=5.0)


@pytest.fixture
def case_db(case_config: Config) -> Iterator[CaseDatabase]:
    """An open CaseDatabase with the schema created."""
    with CaseDatabase(case_config) as db:
        yield db


# =============================================================================
# Manager fixtures
# =============================================================================


@pytest.fixture
def manager(case_db: CaseDatabase) -> CommunicationsManager:
    return CommunicationsManager(case_db)


@pytest.fixture
def dev1_source(manager: CommunicationsManager) -> DataSource:
    """Data source captured from device "dev1"."""
    return manager.blackboard.add_data_source("dev1", "phone1.img", "UTC")


@pytest.fixture
def dev2_source(manager: CommunicationsManager) -> DataSource:
    """Data source captured from device "dev2"."""
    return manager.blackboard.add_data_source("dev2", "phone2.img")


# =============================================================================
# Populated case
# =============================================================================


@pytest.fixture
def populated_case(
    manager: CommunicationsManager, dev1_source: DataSource, dev2_source: DataSource
) -> Dict[str, object]:
    """
    A small case with communications on two devices.

    dev1:
        sms.db     message  alice(+15550100001) → bob@x.com
        calls.db   calllog  alice → carol(+15550100002)
        mail.pst   email    bob@x.com → alice, carol   (folder Inbox)
    dev2:
        sms.db     message  dave(+15550100003) → erin@y.com
        contacts   contact  dave, erin

    Returns:
        Dictionary of the created objects keyed by short names.
    """
    sms = manager.blackboard.add_content("sms.db", dev1_source)
    calls = manager.blackboard.add_content("calls.db", dev1_source)
    mail = manager.blackboard.add_content("mail.pst", dev1_source)
    sms2 = manager.blackboard.add_content("sms.db", dev2_source)

    alice_sms = manager.create_account_instance(PHONE, "+1 (555) 010-0001", "sms", sms)
    bob_sms = manager.create_account_instance(EMAIL, "Bob@X.com", "sms", sms)
    alice_calls = manager.create_account_instance(PHONE, "+15550100001", "calls", calls)
    carol_calls = manager.create_account_instance(PHONE, "+1 555 010 0002", "calls", calls)
    bob_mail = manager.create_account_instance(EMAIL, "bob@x.com", "mail", mail)
    alice_mail = manager.create_account_instance(PHONE, "+15550100001", "mail", mail)
    carol_mail = manager.create_account_instance(PHONE, "+15550100002", "mail", mail)
    dave = manager.create_account_instance(PHONE, "+15550100003", "sms", sms2)
    erin = manager.create_account_instance(EMAIL, "erin@y.com", "sms", sms2)

    message = manager.blackboard.new_artifact(ArtifactType.TSK_MESSAGE, sms)
    call = manager.blackboard.new_artifact(ArtifactType.TSK_CALLLOG, calls)
    email = manager.blackboard.new_artifact(
        ArtifactType.TSK_EMAIL_MSG, mail, [Attribute(AttributeType.TSK_PATH, "Inbox", "mail")]
    )
    message2 = manager.blackboard.new_artifact(ArtifactType.TSK_MESSAGE, sms2)
    contact2 = manager.blackboard.new_artifact(ArtifactType.TSK_CONTACT, sms2)

    manager.add_relationships(alice_sms, [bob_sms], message)
    manager.add_relationships(alice_calls, [carol_calls], call)
    manager.add_relationships(bob_mail, [alice_mail, carol_mail], email)
    manager.add_relationships(dave, [erin], message2)
    manager.add_relationships(dave, [erin], contact2)

    return {
        "alice": alice_sms.account,
        "bob": bob_sms.account,
        "carol": carol_calls.account,
        "dave": dave.account,
        "erin": erin.account,
        "alice_sms": alice_sms,
        "message": message,
        "call": call,
        "email": email,
        "message2": message2,
        "contact2": contact2,
        "mail": mail,
        "dev1_source": dev1_source,
        "dev2_source": dev2_source,
    }
