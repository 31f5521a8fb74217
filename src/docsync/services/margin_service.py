from __future__ import annotations

import logging
from dataclasses import dataclass

from docsync.domain.classification import MARGIN_EXCLUDED_TYPES, map_sales_type
from docsync.domain.layouts import SALES, WAREHOUSE
from docsync.domain.models import MarginResult, ProjectedRow, to_decimal
from docsync.repositories.contracts import TabularStore
from docsync.services.audit import AuditLog
from docsync.services.margins import CostIndex, MarginCalculator, SaleLineAmounts, as_int
from docsync.services.projection import margin_values
from docsync.services.reconciler import UpsertReconciler

log = logging.getLogger("docsync.sync")


@dataclass(frozen=True)
class MarginRecomputeReport:
    rows: int
    with_cost: int
    without_cost: int
    excluded: int


class MarginService:
    """Repair path: recompute margin columns of stored sales rows from stored warehouse rows."""

    def __init__(self, store: TabularStore, reconciler: UpsertReconciler, audit: AuditLog, calculator: MarginCalculator | None = None):
        self.store = store
        self.reconciler = reconciler
        self.audit = audit
        self.calculator = calculator or MarginCalculator()

    def recompute(self) -> MarginRecomputeReport:
        with self.audit.track("sales", "margins") as record:
            report = self._recompute()
            record.documents = report.rows
            record.updated_rows = report.rows
        return report

    def _recompute(self) -> MarginRecomputeReport:
        cost_index = CostIndex.build(row.values for row in self.store.read_rows(WAREHOUSE))
        existing = self.store.read_rows(SALES)

        rows = []
        with_cost = without_cost = excluded = 0
        for stored in existing:
            key = SALES.key_of(stored.values)
            if key is None:
                continue
            values = dict(stored.values)
            sales_type = values.get("type") or map_sales_type(values.get("kind"), values.get("number"))
            if sales_type in MARGIN_EXCLUDED_TYPES:
                margin = MarginResult(cost_available=False)
                excluded += 1
            else:
                amounts = SaleLineAmounts(to_decimal(values.get("quantity")), to_decimal(values.get("total_price_net")))
                entry = cost_index.lookup(key.document_id, as_int(values.get("product_id")))
                margin = self.calculator.compute(amounts, entry)
                if margin.cost_available:
                    with_cost += 1
                else:
                    without_cost += 1
            values.update(margin_values(margin))
            rows.append(ProjectedRow(key=key, values=values))

        self.reconciler.reconcile(SALES, rows, existing=existing)
        log.info(
            "margins_recomputed rows=%s with_cost=%s without_cost=%s excluded=%s",
            len(rows),
            with_cost,
            without_cost,
            excluded,
        )
        return MarginRecomputeReport(rows=len(rows), with_cost=with_cost, without_cost=without_cost, excluded=excluded)

