"""
Carrier account and order channel classification.
"""
import pytest

from shiprecon.utils.ups_account import (
    get_account_type_from_invoice,
    get_ups_account_type,
    is_chewy_order,
    is_ups_tracking,
)


@pytest.mark.parametrize("tracking_number,expected", [
    ("1ZR1833C0001234567", "nda"),
    ("1ZJ9299A0009876543", "ground"),
    ("1zr1833c0001234567", "nda"),
    ("9400100000000000000000", None),
    ("1Z999AA10123456784", None),
    ("", None),
    (None, None),
])
def test_account_type_from_tracking_prefix(tracking_number, expected):
    assert get_ups_account_type(tracking_number) == expected


@pytest.mark.parametrize("tracking_number,expected", [
    ("1ZR1833C0001234567", True),
    ("1z999aa10123456784", True),
    ("9400100000000000000000", False),
    ("794612345678", False),
    (None, False),
])
def test_is_ups_tracking(tracking_number, expected):
    assert is_ups_tracking(tracking_number) is expected


def test_account_type_from_invoice_number():
    assert get_account_type_from_invoice("0000R1833C066") == "nda"
    assert get_account_type_from_invoice("0000j9299a036") == "ground"
    assert get_account_type_from_invoice("000012345") is None
    assert get_account_type_from_invoice(None) is None


class TestChewyDetection:

    def test_chewy_order_numbers_match(self):
        assert is_chewy_order("CH123456789")
        assert is_chewy_order("chewy-1001")

    def test_regular_order_numbers_do_not_match(self):
        assert not is_chewy_order("26276")
        assert not is_chewy_order(None)
        assert not is_chewy_order("")

    def test_substring_rule_also_matches_unrelated_numbers(self):
        # Any "CH" anywhere counts, e.g. an ACH-prefixed order
        assert is_chewy_order("ACH-1001")
        assert is_chewy_order("BATCH7")
