from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, NamedTuple, Optional

from docsync.domain.classification import is_outbound
from docsync.domain.models import CostEntry, MarginResult, RowKey, to_decimal

log = logging.getLogger("docsync.sync")

TWO_PLACES = Decimal("0.01")


def round2(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def as_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class SaleLineAmounts(NamedTuple):
    quantity: Decimal
    total_price_net: Decimal


class CostIndex:
    """Realized unit cost per (sales document id, product id), rebuilt from stored warehouse rows."""

    def __init__(self, entries: Optional[dict[RowKey, CostEntry]] = None):
        self._entries = dict(entries or {})

    @classmethod
    def build(cls, warehouse_rows: Iterable[Mapping[str, Any]]) -> "CostIndex":
        entries: dict[RowKey, CostEntry] = {}
        skipped = 0
        for values in warehouse_rows:
            if not is_outbound(values.get("kind")):
                continue
            invoice_id = as_int(values.get("invoice_id"))
            product_id = as_int(values.get("product_id"))
            if invoice_id is None or product_id is None:
                skipped += 1
                continue
            entries[RowKey(invoice_id, product_id)] = CostEntry(
                cost_net=to_decimal(values.get("unit_cost_net")),
                source_document_id=as_int(values.get("document_id")) or 0,
            )
        index = cls(entries)
        log.info("cost_index_built entries=%s skipped=%s", len(index), skipped)
        return index

    def lookup(self, document_id: int, product_id: Optional[int]) -> Optional[CostEntry]:
        if product_id is None:
            return None
        return self._entries.get(RowKey(int(document_id), int(product_id)))

    def __len__(self) -> int:
        return len(self._entries)


class MarginCalculator:
    @staticmethod
    def compute(line, cost_entry: Optional[CostEntry]) -> MarginResult:
        """
        line: anything with `quantity` and `total_price_net` (base currency).

        total_cost     = cost_net * quantity
        margin         = round2(total_price_net - total_cost)
        margin_percent = round2(margin / total_price_net * 100), 0 when price <= 0
        """
        if cost_entry is None:
            return MarginResult(cost_available=False)

        quantity = to_decimal(line.quantity)
        price = to_decimal(line.total_price_net)
        total_cost = to_decimal(cost_entry.cost_net) * quantity
        margin_absolute = round2(price - total_cost)
        if price > 0:
            margin_percent = round2(margin_absolute / price * 100)
        else:
            margin_percent = round2(Decimal("0"))
        return MarginResult(
            cost_available=True,
            cost_net=round2(total_cost),
            margin_absolute=margin_absolute,
            margin_percent=margin_percent,
        )
