"""
UPS account and order-channel classification helpers.

NDA account (R1833C066): tracking numbers start with 1ZR1833C
Ground account (J9299A036): tracking numbers start with 1ZJ9299A
"""
from typing import Optional

UPS_TRACKING_PREFIX = "1Z"

_ACCOUNT_PREFIXES = {
    "1ZR1833C": "nda",
    "1ZJ9299A": "ground",
}

_INVOICE_ACCOUNT_MARKERS = {
    "R1833C": "nda",
    "J9299A": "ground",
}


def get_ups_account_type(tracking_number: Optional[str]) -> Optional[str]:
    """Return 'nda', 'ground', or None for an unrecognized tracking number."""
    if not tracking_number:
        return None
    upper = tracking_number.upper()
    for prefix, account in _ACCOUNT_PREFIXES.items():
        if upper.startswith(prefix):
            return account
    return None


def is_ups_tracking(tracking_number: Optional[str]) -> bool:
    """True when the tracking number uses the UPS 1Z format."""
    if not tracking_number:
        return False
    return tracking_number.upper().startswith(UPS_TRACKING_PREFIX)


def get_account_type_from_invoice(invoice_number: Optional[str]) -> Optional[str]:
    """
    Determine UPS account type from an invoice number.

    Invoice numbers embed the account number, e.g. 0000R1833C066.
    """
    if not invoice_number:
        return None
    upper = invoice_number.upper()
    for marker, account in _INVOICE_ACCOUNT_MARKERS.items():
        if marker in upper:
            return account
    return None


def is_chewy_order(order_number: Optional[str]) -> bool:
    """
    Chewy orders are fulfilled through ShipStation without carrier-cost tracking.

    Matches any order number containing "CH" (case-insensitive), so numbers
    like "ACH-1001" also match.
    """
    if not order_number:
        return False
    return "CH" in str(order_number).upper()
