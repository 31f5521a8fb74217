from decimal import Decimal

import pytest
from conftest import FakeFetcher, make_env, position, sales_doc, warehouse_doc

from docsync.domain.errors import TransientApiError
from docsync.domain.layouts import SALES, SYNC_LOG, WAREHOUSE
from docsync.domain.models import RowKey, Stream, StreamState


def _sales(ids):
    return FakeFetcher(collections={"invoices.json": [sales_doc(i, number=f"FV/{i}") for i in ids]})


def test_stream_resumes_across_batches(tmp_path):
    fetcher = _sales([1, 2, 3, 4, 5])
    env = make_env(tmp_path, fetcher)

    first = env.orchestrator.run_batch(Stream.SALES)
    assert (first.complete, first.synced_this_batch, first.total_synced) == (False, 2, 2)
    assert env.cursor.read(Stream.SALES) == 2
    assert env.orchestrator.stream_state(Stream.SALES) is StreamState.IN_PROGRESS

    second = env.orchestrator.run_batch(Stream.SALES)
    assert second.next_page == 3
    assert env.cursor.read(Stream.SALES) == 3

    third = env.orchestrator.run_batch(Stream.SALES)
    assert third.complete is True
    assert third.total_synced == 5
    assert env.cursor.read(Stream.SALES) is None
    assert env.orchestrator.stream_state(Stream.SALES) is StreamState.COMPLETE

    assert fetcher.pages_requested("invoices.json") == [1, 2, 3]
    assert env.store.count_rows(SALES) == 5


def test_empty_page_ends_stream_when_count_is_page_multiple(tmp_path):
    fetcher = _sales([1, 2, 3, 4])
    env = make_env(tmp_path, fetcher)

    env.orchestrator.run_batch(Stream.SALES)
    env.orchestrator.run_batch(Stream.SALES)
    last = env.orchestrator.run_batch(Stream.SALES)

    assert last.complete is True
    assert last.synced_this_batch == 0
    assert last.total_synced == 4
    assert env.cursor.read(Stream.SALES) is None


def test_complete_stream_is_not_fetched_again(tmp_path):
    fetcher = _sales([1])
    env = make_env(tmp_path, fetcher)
    env.orchestrator.run_batch(Stream.SALES)
    calls = len(fetcher.calls)

    report = env.orchestrator.run_batch(Stream.SALES)

    assert report.complete is True
    assert report.synced_this_batch == 0
    assert report.total_synced == 1
    assert len(fetcher.calls) == calls


def test_not_started_stream(tmp_path):
    env = make_env(tmp_path, _sales([]))

    assert env.orchestrator.stream_state(Stream.SALES) is StreamState.NOT_STARTED


def test_batch_fills_from_several_pages(tmp_path):
    fetcher = _sales([1, 2, 3, 4, 5])
    env = make_env(tmp_path, fetcher, batch_size=3)

    report = env.orchestrator.run_batch(Stream.SALES)

    assert report.synced_this_batch == 4
    assert env.cursor.read(Stream.SALES) == 3


def test_already_stored_documents_are_skipped(tmp_path):
    fetcher = _sales([1, 2, 3])
    env = make_env(tmp_path, fetcher)
    env.orchestrator.run_batch(Stream.SALES)
    # a new document shifts the listing, so page 2 now repeats document 2
    fetcher.collections["invoices.json"].insert(0, sales_doc(9, number="FV/9"))

    report = env.orchestrator.run_batch(Stream.SALES)

    assert report.synced_this_batch == 1
    assert report.new_rows == 1
    assert {SALES.key_of(r.values).document_id for r in env.store.read_rows(SALES)} == {1, 2, 3}


def test_internal_documents_count_as_seen_but_write_nothing(tmp_path):
    fetcher = FakeFetcher(collections={"invoices.json": [sales_doc(1), sales_doc(2, number="KW/2")]})
    env = make_env(tmp_path, fetcher)

    report = env.orchestrator.run_batch(Stream.SALES)

    assert report.synced_this_batch == 2
    assert report.new_rows == 1
    assert env.store.count_rows(SALES) == 1


def test_warehouse_then_sales_joins_cost(tmp_path):
    fetcher = FakeFetcher(
        collections={
            "warehouse_documents.json": [{"id": 5}],
            "invoices.json": [sales_doc(100, positions=[position(1000, product_id=7, quantity="3", total_price_net="100")])],
        },
        details={5: warehouse_doc(5, invoice_id=100)},
    )
    env = make_env(tmp_path, fetcher)

    warehouse = env.orchestrator.run_batch(Stream.WAREHOUSE)
    sales = env.orchestrator.run_batch(Stream.SALES)

    assert warehouse.complete and sales.complete
    assert ("warehouse_documents/5.json", {}) in fetcher.calls
    stored = env.store.read_rows(WAREHOUSE)[0].values
    assert stored["unit_cost_net"] == Decimal("20")

    row = env.store.read_rows(SALES)[0].values
    assert row["cost_available"] is True
    assert row["cost_net"] == Decimal("60.00")
    assert row["margin_absolute"] == Decimal("40.00")
    assert row["margin_percent"] == Decimal("40.00")


def test_sales_without_warehouse_rows_have_no_cost(tmp_path):
    env = make_env(tmp_path, _sales([1]))

    env.orchestrator.run_batch(Stream.SALES)

    row = env.store.read_rows(SALES)[0].values
    assert row["cost_available"] is False
    assert row["margin_absolute"] is None


def test_each_batch_is_logged(tmp_path):
    env = make_env(tmp_path, _sales([1, 2, 3]))

    env.orchestrator.run_batch(Stream.SALES)

    log_rows = env.store.read_rows(SYNC_LOG)
    assert len(log_rows) == 1
    values = log_rows[0].values
    assert values["stream"] == "sales"
    assert values["operation"] == "batch"
    assert values["status"] == "ok"
    assert values["documents"] == 2
    assert values["new_rows"] == 2


def test_failed_batch_keeps_cursor_and_logs_error(tmp_path):
    fetcher = _sales([1, 2, 3])
    env = make_env(tmp_path, fetcher)
    env.orchestrator.run_batch(Stream.SALES)
    fetcher.fail_on["invoices.json"] = TransientApiError("HTTP 503 from invoices.json", status_code=503)

    with pytest.raises(TransientApiError):
        env.orchestrator.run_batch(Stream.SALES)

    assert env.cursor.read(Stream.SALES) == 2
    assert env.store.count_rows(SALES) == 2
    last = env.store.read_rows(SYNC_LOG)[-1].values
    assert last["status"] == "error"
    assert "503" in last["error"]


def test_restart_rescans_and_appends_only_new(tmp_path):
    fetcher = _sales([1])
    env = make_env(tmp_path, fetcher)
    env.orchestrator.run_batch(Stream.SALES)
    fetcher.collections["invoices.json"].append(sales_doc(2, number="FV/2"))

    env.orchestrator.restart(Stream.SALES)
    report = env.orchestrator.run_batch(Stream.SALES)

    assert report.complete is True
    assert report.synced_this_batch == 1
    assert env.store.count_rows(SALES) == 2
    assert {SALES.key_of(r.values) for r in env.store.read_rows(SALES)} == {RowKey(1, 10), RowKey(2, 20)}


def _sales_with_broken_line():
    broken = sales_doc(2, number="FV/2")
    del broken["positions"][0]["id"]
    return FakeFetcher(collections={"invoices.json": [sales_doc(1, number="FV/1"), broken, sales_doc(3, number="FV/3")]})


def test_malformed_document_is_skipped_and_the_rest_stored(tmp_path):
    env = make_env(tmp_path, _sales_with_broken_line(), batch_size=10, page_size=5)

    report = env.orchestrator.run_batch(Stream.SALES)

    assert report.complete is True
    assert report.skipped == 1
    assert report.synced_this_batch == 2
    assert {SALES.key_of(r.values).document_id for r in env.store.read_rows(SALES)} == {1, 3}
    assert env.orchestrator.stream_state(Stream.SALES) is StreamState.COMPLETE
    log_row = env.store.read_rows(SYNC_LOG)[-1].values
    assert (log_row["status"], log_row["skipped"]) == ("ok", 1)


def test_malformed_document_does_not_hold_the_cursor(tmp_path):
    fetcher = _sales_with_broken_line()
    fetcher.collections["invoices.json"].append(sales_doc(4, number="FV/4"))
    env = make_env(tmp_path, fetcher, batch_size=2, page_size=2)

    env.orchestrator.run_batch(Stream.SALES)
    second = env.orchestrator.run_batch(Stream.SALES)

    assert second.complete is False
    assert env.cursor.read(Stream.SALES) == 3
    assert {SALES.key_of(r.values).document_id for r in env.store.read_rows(SALES)} == {1, 3, 4}


def test_summary_without_id_is_skipped(tmp_path):
    fetcher = FakeFetcher(collections={"invoices.json": [{"number": "FV/0"}, sales_doc(1, number="FV/1")]})
    env = make_env(tmp_path, fetcher, batch_size=10, page_size=5)

    report = env.orchestrator.run_batch(Stream.SALES)

    assert report.skipped == 1
    assert env.store.count_rows(SALES) == 1


def test_stream_without_stored_rows_is_remembered_as_complete(tmp_path):
    fetcher = FakeFetcher(collections={"invoices.json": [sales_doc(1, number="KW/1")]})
    env = make_env(tmp_path, fetcher)

    first = env.orchestrator.run_batch(Stream.SALES)
    second = env.orchestrator.run_batch(Stream.SALES)

    assert first.complete and second.complete
    assert env.store.count_rows(SALES) == 0
    assert env.orchestrator.stream_state(Stream.SALES) is StreamState.COMPLETE
    assert fetcher.pages_requested("invoices.json") == [1]
