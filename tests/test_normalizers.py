"""
Tests for account identifier normalization.
"""

import pytest

from commsgraph.communications.models import AccountType, EMAIL, FACEBOOK, PHONE
from commsgraph.communications.normalizers import (
    normalize_account_id,
    normalize_email,
    normalize_phone,
)


class TestNormalizePhone:
    """Tests for normalize_phone."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("+1 (555) 010-0001", "+15550100001"),
            ("+15550100001", "+15550100001"),
            ("555.010.0001", "5550100001"),
            ("(555) 010 0001", "5550100001"),
            ("  +44 20 7123 4567  ", "+442071234567"),
            ("tel:555-0100", "5550100"),
        ],
    )
    def test_formats(self, raw: str, expected: str):
        assert normalize_phone(raw) == expected

    def test_plus_only_kept_when_leading(self):
        """A '+' that is not the first character is dropped like any symbol."""
        assert normalize_phone("1+555") == "1555"

    def test_no_country_code_assumed(self):
        assert normalize_phone("5550100001") == "5550100001"

    def test_empty(self):
        assert normalize_phone("") == ""

    def test_only_symbols(self):
        assert normalize_phone("()-") == ""


class TestNormalizeEmail:
    """Tests for normalize_email."""

    def test_lowercase(self):
        assert normalize_email("Alice@EXAMPLE.com") == "alice@example.com"

    def test_strips_whitespace(self):
        assert normalize_email("  bob@x.com\n") == "bob@x.com"

    def test_already_normalized(self):
        assert normalize_email("carol@y.org") == "carol@y.org"


class TestNormalizeAccountId:
    """Tests for type-based dispatch."""

    def test_phone(self):
        assert normalize_account_id(PHONE, "+1 555 010 0001") == "+15550100001"

    def test_email(self):
        assert normalize_account_id(EMAIL, "Bob@X.com") == "bob@x.com"

    def test_other_types_unchanged(self):
        assert normalize_account_id(FACEBOOK, " Some.User ") == " Some.User "

    def test_dispatch_by_type_name_only(self):
        """A PHONE type with a different display name still normalizes as a phone."""
        phone_alias = AccountType("PHONE", "Telephone")
        assert normalize_account_id(phone_alias, "(555) 010-0001") == "5550100001"

    def test_idempotent_examples(self):
        for account_type, raw in [(PHONE, "+1 (555) 010-0001"), (EMAIL, " A@B.C ")]:
            once = normalize_account_id(account_type, raw)
            assert normalize_account_id(account_type, once) == once
