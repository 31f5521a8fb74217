from decimal import Decimal

import pytest
from conftest import FakeFetcher, make_env, position, sales_doc, warehouse_action, warehouse_doc

from docsync.domain.layouts import PRODUCTS, SALES, SYNC_LOG, WAREHOUSE
from docsync.domain.models import Stream


def _product(product_id, name="Nike Denver - Black, 45.5", price_net="100"):
    return {
        "id": product_id,
        "name": name,
        "code": f"SKU-{product_id}",
        "price_net": price_net,
        "price_gross": "123",
        "currency": "PLN",
        "updated_at": "2024-03-01T10:00:00",
        "stock_level": "4",
    }


def test_full_sync_scans_every_page_and_leaves_cursor_alone(tmp_path):
    fetcher = FakeFetcher(collections={"products.json": [_product(i) for i in range(1, 6)]})
    env = make_env(tmp_path, fetcher)

    report = env.sync.full_sync(Stream.PRODUCTS)

    assert report.pages == 3
    assert report.documents == 5
    assert report.new_rows == 5
    assert env.cursor.read(Stream.PRODUCTS) is None
    row = env.store.read_rows(PRODUCTS)[0].values
    assert row["brand"] == "NIKE"
    assert row["color"] == "Black"
    assert row["size"] == "45.5"


def test_full_sync_refreshes_stored_rows(tmp_path):
    fetcher = FakeFetcher(collections={"products.json": [_product(1), _product(2)]})
    env = make_env(tmp_path, fetcher)
    env.sync.full_sync(Stream.PRODUCTS)
    fetcher.collections["products.json"][0] = _product(1, price_net="80")

    report = env.sync.full_sync(Stream.PRODUCTS)

    assert (report.new_rows, report.updated_rows) == (0, 2)
    rows = env.store.read_rows(PRODUCTS)
    assert len(rows) == 2
    assert rows[0].values["price_net"] == Decimal("80")


def test_test_sync_reads_only_the_first_pages(tmp_path):
    fetcher = FakeFetcher(collections={"invoices.json": [sales_doc(i, number=f"FV/{i}") for i in range(1, 8)]})
    env = make_env(tmp_path, fetcher)

    report = env.sync.test_sync(Stream.SALES, pages=2)

    assert report.pages == 2
    assert report.documents == 4
    assert fetcher.pages_requested("invoices.json") == [1, 2]
    assert env.store.count_rows(SALES) == 4
    assert env.store.read_rows(SYNC_LOG)[-1].values["operation"] == "test"


def test_test_sync_needs_a_page(tmp_path):
    env = make_env(tmp_path, FakeFetcher())

    with pytest.raises(ValueError):
        env.sync.test_sync(Stream.SALES, pages=0)


def test_margin_repair_after_out_of_order_sync(tmp_path):
    fetcher = FakeFetcher(
        collections={
            "invoices.json": [
                sales_doc(100, positions=[position(1000, quantity="3", total_price_net="100")]),
                sales_doc(101, number="ZW/101", kind="receipt", positions=[position(1010)]),
                sales_doc(102, positions=[position(1020, product_id=8)]),
            ],
            "warehouse_documents.json": [{"id": 5}, {"id": 6}],
        },
        details={
            5: warehouse_doc(5, invoice_id=100, actions=[warehouse_action(50, quantity="2", total_net="40")]),
            6: warehouse_doc(6, invoice_id=101, actions=[warehouse_action(60)]),
        },
    )
    env = make_env(tmp_path, fetcher, batch_size=10)

    # sales first, so nothing has a cost yet
    env.orchestrator.run_batch(Stream.SALES)
    assert all(r.values["cost_available"] is False for r in env.store.read_rows(SALES))

    env.orchestrator.run_batch(Stream.WAREHOUSE)
    assert env.store.count_rows(WAREHOUSE) == 2

    report = env.margins.recompute()

    assert (report.rows, report.with_cost, report.without_cost, report.excluded) == (3, 1, 1, 1)
    rows = {r.values["document_id"]: r.values for r in env.store.read_rows(SALES)}
    assert rows[100]["cost_available"] is True
    assert rows[100]["margin_absolute"] == Decimal("40.00")
    assert rows[100]["margin_percent"] == Decimal("40.00")
    assert rows[101]["cost_available"] is False
    assert rows[102]["cost_available"] is False
    assert env.store.count_rows(SALES) == 3
    assert env.store.read_rows(SYNC_LOG)[-1].values["operation"] == "margins"


def test_full_sync_skips_malformed_documents(tmp_path):
    broken = sales_doc(2, number="FV/2")
    del broken["positions"][0]["id"]
    fetcher = FakeFetcher(collections={"invoices.json": [sales_doc(1, number="FV/1"), broken, sales_doc(3, number="FV/3")]})
    env = make_env(tmp_path, fetcher)

    report = env.sync.full_sync(Stream.SALES)

    assert (report.documents, report.skipped) == (2, 1)
    assert env.store.count_rows(SALES) == 2
