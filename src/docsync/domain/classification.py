"""Document classification rules shared by projection and margin code."""
from __future__ import annotations

# Warehouse document kinds. Only outbound documents carry a realized purchase cost.
OUTBOUND_KIND = "wz"

# Receipts numbered with this prefix are returns.
RETURN_NUMBER_PREFIX = "ZW"
# Internal cost documents never produce sales rows.
INTERNAL_NUMBER_PREFIX = "KW"

TYPE_INVOICE = "invoice"
TYPE_RECEIPT = "receipt"
TYPE_RETURN = "return"
TYPE_CORRECTION = "correction"

CHANNEL_ONLINE = "online"
CHANNEL_OFFLINE = "offline"

KIND_TO_TYPE = {
    "vat": TYPE_INVOICE,
    "receipt": TYPE_RECEIPT,
    "correction": TYPE_CORRECTION,
}

CHANNEL_BY_TYPE = {
    TYPE_RECEIPT: CHANNEL_OFFLINE,
    TYPE_RETURN: CHANNEL_OFFLINE,
    TYPE_INVOICE: CHANNEL_ONLINE,
    TYPE_CORRECTION: CHANNEL_ONLINE,
}

MARGIN_EXCLUDED_TYPES = frozenset({TYPE_RETURN, TYPE_CORRECTION})


def _normalized_number(number: str | None) -> str:
    return (number or "").strip().upper()


def is_internal_document(number: str | None) -> bool:
    return _normalized_number(number).startswith(INTERNAL_NUMBER_PREFIX)


def map_sales_type(kind: str | None, number: str | None) -> str:
    kind = (kind or "").strip().lower()
    sales_type = KIND_TO_TYPE.get(kind, TYPE_INVOICE)
    if sales_type == TYPE_RECEIPT and _normalized_number(number).startswith(RETURN_NUMBER_PREFIX):
        return TYPE_RETURN
    return sales_type


def channel_for(sales_type: str) -> str:
    return CHANNEL_BY_TYPE[sales_type]


def is_outbound(kind: str | None) -> bool:
    return (kind or "").strip().lower() == OUTBOUND_KIND
