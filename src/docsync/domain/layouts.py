from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .models import RowKey, Stream


@dataclass(frozen=True)
class CollectionLayout:
    """Fixed column layout of one stored collection (one sheet)."""

    name: str
    columns: tuple[str, ...]
    key_columns: tuple[str, ...] = ()

    def key_of(self, values: Mapping[str, Any]) -> Optional[RowKey]:
        if len(self.key_columns) != 2:
            return None
        try:
            return RowKey(int(values[self.key_columns[0]]), int(values[self.key_columns[1]]))
        except (KeyError, TypeError, ValueError):
            return None

    def to_cells(self, values: Mapping[str, Any]) -> list[Any]:
        return [values.get(c) for c in self.columns]

    def to_values(self, cells: tuple[Any, ...] | list[Any]) -> dict[str, Any]:
        padded = list(cells) + [None] * (len(self.columns) - len(cells))
        return dict(zip(self.columns, padded))


PRODUCTS = CollectionLayout(
    name="Products",
    columns=(
        "product_id", "code", "name", "brand", "model", "color", "size",
        "price_net", "price_gross", "currency", "stock_level", "updated_at",
    ),
    # products have no nested lines, the product is its own line entity
    key_columns=("product_id", "product_id"),
)

WAREHOUSE = CollectionLayout(
    name="Warehouse",
    columns=(
        "document_id", "action_id", "kind", "number", "issue_date",
        "warehouse_id", "warehouse_name", "invoice_id",
        "product_id", "product_name", "quantity",
        "currency", "exchange_rate", "total_cost_net", "total_cost_gross", "unit_cost_net",
    ),
    key_columns=("document_id", "action_id"),
)

SALES = CollectionLayout(
    name="Sales",
    columns=(
        "document_id", "position_id", "number", "kind", "type", "channel", "issue_date",
        "product_id", "product_name", "brand", "model", "color", "size",
        "quantity", "price_net", "total_price_net", "total_price_gross",
        "currency", "exchange_rate",
        "cost_available", "cost_net", "margin_absolute", "margin_percent",
    ),
    key_columns=("document_id", "position_id"),
)

SYNC_LOG = CollectionLayout(
    name="SyncLog",
    columns=(
        "timestamp", "stream", "operation", "status",
        "documents", "new_rows", "updated_rows", "skipped", "total_synced",
        "duration_seconds", "error",
    ),
)

LAYOUTS: dict[Stream, CollectionLayout] = {
    Stream.PRODUCTS: PRODUCTS,
    Stream.WAREHOUSE: WAREHOUSE,
    Stream.SALES: SALES,
}

ALL_LAYOUTS = (PRODUCTS, WAREHOUSE, SALES, SYNC_LOG)
