"""
Account identifier normalization.

Accounts are deduplicated on (account type, normalized identifier), so every
identifier passes through normalize_account_id before it is stored or looked
up.

Normalization Rules:
    - PHONE: strip surrounding whitespace, drop every non-digit, keep a
      leading "+" if the input had one. No country code is assumed.
    - EMAIL: strip surrounding whitespace, lower-case.
    - Anything else: unchanged.

All rules are deterministic and idempotent:
normalize_account_id(t, normalize_account_id(t, x)) == normalize_account_id(t, x).
"""

import re

from commsgraph.communications.models import AccountType, EMAIL, PHONE

NON_DIGIT_PATTERN = re.compile(r"[^0-9]")


def normalize_phone(raw: str) -> str:
    """
    Normalize a phone number to digits, with a leading "+" when given.

    Args:
        raw: Raw phone number in any format.

    Returns:
        Normalized phone number.

    Examples:
        >>> normalize_phone("+1 (555) 010-0001")
        '+15550100001'
        >>> normalize_phone("555.010.0001")
        '5550100001'
    """
    cleaned = raw.strip()
    digits = NON_DIGIT_PATTERN.sub("", cleaned)
    if cleaned.startswith("+"):
        return f"+{digits}"
    return digits


def normalize_email(raw: str) -> str:
    """
    Normalize an email address.

    Examples:
        >>> normalize_email("Alice@EXAMPLE.com")
        'alice@example.com'
    """
    return raw.strip().lower()


def normalize_account_id(account_type: AccountType, raw_id: str) -> str:
    """
    Normalize an account identifier according to its account type.

    Args:
        account_type: Type of the account.
        raw_id: Identifier as extracted from the evidence.

    Returns:
        Canonical identifier used for storage and lookup.
    """
    if account_type == PHONE:
        return normalize_phone(raw_id)
    if account_type == EMAIL:
        return normalize_email(raw_id)
    return raw_id
