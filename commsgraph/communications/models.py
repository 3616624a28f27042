"""
Value types of the communications graph.
"""

from dataclasses import dataclass, field
from typing import Tuple

from commsgraph.blackboard import Artifact


@dataclass(frozen=True)
class AccountType:
    """
    A kind of account (phone, email, a messaging app, ...).

    Equality and hashing use type_name only: two AccountType values with the
    same name and different display names are the same type.
    """

    type_name: str
    display_name: str = field(default="", compare=False)

    def __str__(self) -> str:
        return self.type_name


# Predefined account types, seeded into every case database
DEVICE = AccountType("DEVICE", "Device")
PHONE = AccountType("PHONE", "Phone")
EMAIL = AccountType("EMAIL", "Email")
FACEBOOK = AccountType("FACEBOOK", "Facebook")
TWITTER = AccountType("TWITTER", "Twitter")
INSTAGRAM = AccountType("INSTAGRAM", "Instagram")
WHATSAPP = AccountType("WHATSAPP", "WhatsApp")
MESSAGING_APP = AccountType("MESSAGING_APP", "MessagingApp")
WEBSITE = AccountType("WEBSITE", "Website")
CREDIT_CARD = AccountType("CREDIT_CARD", "Credit Card")

PREDEFINED_ACCOUNT_TYPES: Tuple[AccountType, ...] = (
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


@dataclass(frozen=True)
class Account:
    """A deduplicated identity: one row per (account type, normalized identifier)."""

    account_id: int
    account_type: AccountType
    type_specific_id: str


@dataclass(frozen=True)
class AccountInstance:
    """One occurrence of an account in one source, evidenced by a TSK_ACCOUNT artifact."""

    artifact: Artifact
    account: Account

    @property
    def artifact_id(self) -> int:
        return self.artifact.artifact_id

    @property
    def source_obj_id(self) -> int:
        return self.artifact.obj_id

    @property
    def data_source_obj_id(self) -> int:
        return self.artifact.data_source_obj_id


@dataclass(frozen=True)
class AccountDeviceInstance:
    """An account as observed on one device. Used as a query key only."""

    account: Account
    device_id: str


@dataclass(frozen=True)
class MessageFolder:
    """A folder inside an email source file (PST, mbox)."""

    name: str
    source_obj_id: int
    has_subfolders: bool = False


class UnorderedAccountPair:
    """A pair of account ids where (a, b) is the same pair as (b, a)."""

    __slots__ = ("first", "second")

    def __init__(self, account1_id: int, account2_id: int):
        # Stored smallest first; relationships rows use the same ordering
        self.first, self.second = sorted((account1_id, account2_id))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UnorderedAccountPair):
            return NotImplemented
        return self.first == other.first and self.second == other.second

    def __hash__(self) -> int:
        return hash((self.first, self.second))

    def __iter__(self):
        yield self.first
        yield self.second

    def __repr__(self) -> str:
        return f"UnorderedAccountPair({self.first}, {self.second})"
