"""
Accounts and relationships discovered in case evidence.

Layering:
    CommunicationsManager           public surface
    ├── AccountTypeRegistry         account_types ↔ ids, cached per session
    ├── AccountStore                one row per (type, normalized id)
    ├── AccountInstanceLinker       TSK_ACCOUNT markers on content
    ├── RelationshipGraphStore      undirected edges per communication
    └── CommunicationsQueryEngine   filtered reads by account and device

Key Design Decisions:
    1. Identifiers are normalized before every lookup and write
       (phones → digits with optional leading +, emails → lowercase)
    2. Accounts are merged across evidence; instances never are
    3. Every store access runs inside a CaseDatabase read or transaction guard
"""

from commsgraph.communications.models import (
    Account,
    AccountDeviceInstance,
    AccountInstance,
    AccountType,
    MessageFolder,
    PREDEFINED_ACCOUNT_TYPES,
    DEVICE,
    PHONE,
    EMAIL,
    FACEBOOK,
    TWITTER,
    INSTAGRAM,
    WHATSAPP,
    MESSAGING_APP,
    WEBSITE,
    CREDIT_CARD,
)
from commsgraph.communications.normalizers import (
    normalize_phone,
    normalize_email,
    normalize_account_id,
)
from commsgraph.communications.filters import (
    CommunicationsFilter,
    DeviceFilter,
    AccountTypeFilter,
    RelationshipTypeFilter,
    FilterKind,
)
from commsgraph.communications.manager import CommunicationsManager
from commsgraph.communications.validation import validate_case, ValidationResult

__all__ = [
    # Models
    "Account",
    "AccountDeviceInstance",
    "AccountInstance",
    "AccountType",
    "MessageFolder",
    # Predefined account types
    "PREDEFINED_ACCOUNT_TYPES",
    "DEVICE",
    "PHONE",
    "EMAIL",
    "FACEBOOK",
    "TWITTER",
    "INSTAGRAM",
    "WHATSAPP",
    "MESSAGING_APP",
    "WEBSITE",
    "CREDIT_CARD",
    # Normalizers
    "normalize_phone",
    "normalize_email",
    "normalize_account_id",
    # Filters
    "CommunicationsFilter",
    "DeviceFilter",
    "AccountTypeFilter",
    "RelationshipTypeFilter",
    "FilterKind",
    # Manager
    "CommunicationsManager",
    # Validation
    "validate_case",
    "ValidationResult",
]
