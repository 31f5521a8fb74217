from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from docsync.domain.classification import (
    MARGIN_EXCLUDED_TYPES,
    channel_for,
    is_internal_document,
    map_sales_type,
)
from docsync.domain.models import (
    MarginResult,
    ProductDocument,
    ProjectedRow,
    RowKey,
    SalesDocument,
    Stream,
    WarehouseAction,
    WarehouseDocument,
)
from docsync.repositories.reference_repo import ReferenceData
from docsync.services.margins import CostIndex, MarginCalculator, SaleLineAmounts
from docsync.services.name_parser import ProductNameParser

log = logging.getLogger("docsync.sync")


def to_base_currency(amount: Decimal, currency: str, exchange_rate: Decimal, base_currency: str) -> Decimal:
    if not currency or currency.upper() == base_currency.upper():
        return amount
    return amount * exchange_rate


def unit_cost(total_cost: Decimal, quantity: Decimal) -> Decimal:
    if quantity == 0:
        return Decimal("0")
    return abs(total_cost / quantity)


class RowProjector:
    """Explodes source documents into flat rows, one per nested line entry."""

    def __init__(self, reference: ReferenceData, base_currency: str = "PLN", calculator: MarginCalculator | None = None):
        self.reference = reference
        self.base_currency = base_currency
        self.parser = ProductNameParser(reference.brands)
        self.calculator = calculator or MarginCalculator()

    def project(self, stream: Stream, document, cost_index: Optional[CostIndex] = None) -> list[ProjectedRow]:
        stream = Stream(stream)
        if stream is Stream.PRODUCTS:
            return self.project_product(document)
        if stream is Stream.WAREHOUSE:
            return self.project_warehouse(document)
        return self.project_sales(document, cost_index)

    # ---------- Products ----------
    def project_product(self, product: ProductDocument) -> list[ProjectedRow]:
        parsed = self.parser.parse(product.name)
        values = {
            "product_id": product.id,
            "code": product.code,
            "name": product.name,
            "brand": parsed.brand,
            "model": parsed.model,
            "color": parsed.color,
            "size": parsed.size,
            "price_net": product.price_net,
            "price_gross": product.price_gross,
            "currency": product.currency,
            "stock_level": product.stock_level,
            "updated_at": product.updated_at,
        }
        return [ProjectedRow(key=RowKey(product.id, product.id), values=values)]

    # ---------- Warehouse ----------
    def project_warehouse(self, document: WarehouseDocument) -> list[ProjectedRow]:
        if not document.actions:
            log.warning("warehouse_document_without_actions document_id=%s number=%s", document.id, document.number)
            return []

        warehouse_name = self.reference.warehouse_name(document.warehouse_id)
        return [self._warehouse_row(document, action, warehouse_name) for action in document.actions]

    def _warehouse_row(self, document: WarehouseDocument, action: WarehouseAction, warehouse_name: str) -> ProjectedRow:
        currency = action.purchase_currency or self.base_currency
        total_net = to_base_currency(action.total_purchase_price_net, currency, action.exchange_rate, self.base_currency)
        total_gross = to_base_currency(action.total_purchase_price_gross, currency, action.exchange_rate, self.base_currency)
        values = {
            "document_id": document.id,
            "action_id": action.id,
            "kind": document.kind,
            "number": document.number,
            "issue_date": document.issue_date,
            "warehouse_id": document.warehouse_id,
            "warehouse_name": warehouse_name,
            "invoice_id": document.invoice_id,
            "product_id": action.product_id,
            "product_name": action.product_name,
            "quantity": action.quantity,
            "currency": currency,
            "exchange_rate": action.exchange_rate,
            "total_cost_net": total_net,
            "total_cost_gross": total_gross,
            "unit_cost_net": unit_cost(total_net, action.quantity),
        }
        return ProjectedRow(key=RowKey(document.id, action.id), values=values)

    # ---------- Sales ----------
    def project_sales(self, document: SalesDocument, cost_index: Optional[CostIndex] = None) -> list[ProjectedRow]:
        if is_internal_document(document.number):
            log.info("sales_document_internal_skipped document_id=%s number=%s", document.id, document.number)
            return []
        if not document.positions:
            log.warning("sales_document_without_positions document_id=%s number=%s", document.id, document.number)
            return []

        sales_type = map_sales_type(document.kind, document.number)
        channel = channel_for(sales_type)
        currency = document.currency or self.base_currency

        rows = []
        for position in document.positions:
            parsed = self.parser.parse(position.name)
            total_net = to_base_currency(position.total_price_net, currency, document.exchange_rate, self.base_currency)
            total_gross = to_base_currency(position.total_price_gross, currency, document.exchange_rate, self.base_currency)

            if sales_type in MARGIN_EXCLUDED_TYPES:
                margin = MarginResult(cost_available=False)
            else:
                entry = cost_index.lookup(document.id, position.product_id) if cost_index is not None else None
                margin = self.calculator.compute(SaleLineAmounts(position.quantity, total_net), entry)

            values = {
                "document_id": document.id,
                "position_id": position.id,
                "number": document.number,
                "kind": document.kind,
                "type": sales_type,
                "channel": channel,
                "issue_date": document.issue_date,
                "product_id": position.product_id,
                "product_name": position.name,
                "brand": parsed.brand,
                "model": parsed.model,
                "color": parsed.color,
                "size": parsed.size,
                "quantity": position.quantity,
                "price_net": position.price_net,
                "total_price_net": total_net,
                "total_price_gross": total_gross,
                "currency": currency,
                "exchange_rate": document.exchange_rate,
            }
            values.update(margin_values(margin))
            rows.append(ProjectedRow(key=RowKey(document.id, position.id), values=values))
        return rows


def margin_values(margin: MarginResult) -> dict:
    return {
        "cost_available": margin.cost_available,
        "cost_net": margin.cost_net,
        "margin_absolute": margin.margin_absolute,
        "margin_percent": margin.margin_percent,
    }
