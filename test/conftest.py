import sys
from pathlib import Path
from types import SimpleNamespace

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


class FakeFetcher:
    """Serves list endpoints from in-memory collections, sliced into pages like the real API."""

    def __init__(self, collections=None, details=None, fail_on=None):
        self.collections = collections or {}
        self.details = details or {}
        self.fail_on = fail_on or {}
        self.calls = []

    def fetch(self, path, params=None):
        params = dict(params or {})
        self.calls.append((path, params))
        if path in self.fail_on:
            raise self.fail_on[path]
        if path.startswith("warehouse_documents/"):
            doc_id = int(path.split("/")[1].split(".")[0])
            return self.details[doc_id]
        records = self.collections.get(path, [])
        page = int(params["page"])
        per_page = int(params["per_page"])
        return records[(page - 1) * per_page: page * per_page]

    def pages_requested(self, path):
        return [p["page"] for called, p in self.calls if called == path]


def make_env(tmp_path, fetcher, reference=None, batch_size=2, page_size=2):
    from docsync.domain.layouts import ALL_LAYOUTS
    from docsync.repositories.reference_repo import ReferenceData
    from docsync.repositories.state_repo import SqliteStateRepository
    from docsync.repositories.workbook_repo import WorkbookRepository
    from docsync.services.audit import AuditLog
    from docsync.services.cursor import ResumableCursor
    from docsync.services.invoicing_api import InvoicingApi
    from docsync.services.margin_service import MarginService
    from docsync.services.orchestrator import BatchOrchestrator
    from docsync.services.projection import RowProjector
    from docsync.services.reconciler import UpsertReconciler
    from docsync.services.sync_service import SyncService

    state = SqliteStateRepository(tmp_path / "state.db")
    state.init_db()
    store = WorkbookRepository(tmp_path / "docsync.xlsx")
    store.init_storage(ALL_LAYOUTS)

    reference = reference or ReferenceData(brands={"Nike": "NIKE"}, warehouses={1: "Main"})
    api = InvoicingApi(fetcher, page_size=page_size)
    cursor = ResumableCursor(state)
    projector = RowProjector(reference)
    reconciler = UpsertReconciler(store)
    audit = AuditLog(store)
    orchestrator = BatchOrchestrator(api, store, cursor, projector, reconciler, audit, batch_size=batch_size)
    return SimpleNamespace(
        state=state,
        store=store,
        api=api,
        cursor=cursor,
        projector=projector,
        reconciler=reconciler,
        audit=audit,
        orchestrator=orchestrator,
        sync=SyncService(api, orchestrator, projector, reconciler, audit),
        margins=MarginService(store, reconciler, audit),
    )


def sales_doc(doc_id, number="FV/1", kind="vat", positions=None, currency="PLN", exchange_rate="1"):
    if positions is None:
        positions = [position(doc_id * 10, product_id=7)]
    return {
        "id": doc_id,
        "kind": kind,
        "number": number,
        "issue_date": "2024-03-01",
        "currency": currency,
        "exchange_rate": exchange_rate,
        "positions": positions,
    }


def position(position_id, product_id=7, name="Nike Denver - Black, 45.5", quantity="3", total_price_net="100"):
    return {
        "id": position_id,
        "product_id": product_id,
        "name": name,
        "quantity": quantity,
        "price_net": "33.33",
        "total_price_net": total_price_net,
        "total_price_gross": "123",
    }


def warehouse_doc(doc_id, kind="wz", invoice_id=None, actions=None, warehouse_id=1):
    if actions is None:
        actions = [warehouse_action(doc_id * 10)]
    return {
        "id": doc_id,
        "kind": kind,
        "number": f"WZ/{doc_id}",
        "issue_date": "2024-03-01",
        "warehouse_id": warehouse_id,
        "invoice_id": invoice_id,
        "warehouse_actions": actions,
    }


def warehouse_action(action_id, product_id=7, quantity="2", total_net="40", total_gross="49.2", currency="PLN", exchange_rate="1"):
    return {
        "id": action_id,
        "product_id": product_id,
        "product_name": "Nike Denver - Black, 45.5",
        "quantity": quantity,
        "total_purchase_price_net": total_net,
        "total_purchase_price_gross": total_gross,
        "purchase_currency": currency,
        "exchange_rate": exchange_rate,
    }
