from __future__ import annotations

import logging
from typing import Optional

from docsync.domain.errors import DocumentShapeError
from docsync.domain.layouts import LAYOUTS, WAREHOUSE
from docsync.domain.models import BatchReport, Stream, StreamState, required_id
from docsync.repositories.contracts import TabularStore
from docsync.services.audit import AuditLog
from docsync.services.cursor import ResumableCursor
from docsync.services.margins import CostIndex
from docsync.services.projection import RowProjector
from docsync.services.reconciler import UpsertReconciler

log = logging.getLogger("docsync.sync")


class BatchOrchestrator:
    """
    Runs one bounded unit of work per invocation for a stream:
    read cursor -> fetch whole pages -> drop already stored documents ->
    project -> upsert -> advance or clear cursor.
    """

    def __init__(
        self,
        api,
        store: TabularStore,
        cursor: ResumableCursor,
        projector: RowProjector,
        reconciler: UpsertReconciler,
        audit: AuditLog,
        batch_size: int = 200,
        page_size: Optional[int] = None,
    ):
        self.api = api
        self.store = store
        self.cursor = cursor
        self.projector = projector
        self.reconciler = reconciler
        self.audit = audit
        self.batch_size = int(batch_size)
        self.page_size = int(page_size if page_size is not None else api.page_size)

    def stream_state(self, stream: Stream) -> StreamState:
        stream = Stream(stream)
        synced = self._synced_document_ids(stream)
        return self.cursor.state(stream, len(synced))

    def _synced_document_ids(self, stream: Stream, rows=None) -> set[int]:
        layout = LAYOUTS[stream]
        rows = self.store.read_rows(layout) if rows is None else rows
        ids = set()
        for row in rows:
            key = layout.key_of(row.values)
            if key is not None:
                ids.add(key.document_id)
        return ids

    def build_cost_index(self) -> CostIndex:
        return CostIndex.build(row.values for row in self.store.read_rows(WAREHOUSE))

    def run_batch(self, stream: Stream) -> BatchReport:
        stream = Stream(stream)
        with self.audit.track(stream.value, "batch") as record:
            report = self._run_batch(stream)
            record.documents = report.synced_this_batch
            record.new_rows = report.new_rows
            record.updated_rows = report.updated_rows
            record.skipped = report.skipped
            record.total_synced = report.total_synced
        return report

    def _run_batch(self, stream: Stream) -> BatchReport:
        layout = LAYOUTS[stream]
        existing = self.store.read_rows(layout)
        synced_ids = self._synced_document_ids(stream, existing)

        state = self.cursor.state(stream, len(synced_ids))
        if state is StreamState.COMPLETE:
            log.info("batch_skipped_complete stream=%s total=%s", stream.value, len(synced_ids))
            return BatchReport(stream=stream, complete=True, synced_this_batch=0, total_synced=len(synced_ids))

        page = self.cursor.read(stream) or 1
        log.info("batch_started stream=%s state=%s page=%s synced=%s", stream.value, state.value, page, len(synced_ids))

        pending: list[dict] = []
        pending_ids: set[int] = set()
        skipped = 0
        end_reached = False
        while len(pending) < self.batch_size:
            summaries = self.api.list_page(stream, page)
            page += 1
            for summary in summaries:
                try:
                    doc_id = required_id(summary, "id", f"{stream.value} document")
                except DocumentShapeError as e:
                    skipped += 1
                    log.warning("document_skipped stream=%s page=%s error=%s", stream.value, page - 1, e)
                    continue
                if doc_id in synced_ids or doc_id in pending_ids:
                    continue
                pending_ids.add(doc_id)
                pending.append(summary)
            if len(summaries) < self.page_size:
                end_reached = True
                break

        cost_index = self.build_cost_index() if stream is Stream.SALES else None

        rows = []
        loaded = 0
        for summary in pending:
            try:
                document = self.api.load_document(stream, summary)
                rows.extend(self.projector.project(stream, document, cost_index))
                loaded += 1
            except DocumentShapeError as e:
                skipped += 1
                log.warning("document_skipped stream=%s document_id=%s error=%s", stream.value, summary.get("id"), e)

        result = self.reconciler.reconcile(layout, rows, existing=existing)

        if end_reached:
            self.cursor.clear(stream)
            next_page = None
        else:
            self.cursor.advance(stream, page)
            next_page = page

        total = len(synced_ids | {row.key.document_id for row in rows})
        log.info(
            "batch_finished stream=%s documents=%s skipped=%s new=%s updated=%s total=%s complete=%s",
            stream.value,
            loaded,
            skipped,
            result.new_count,
            result.updated_count,
            total,
            end_reached,
        )
        return BatchReport(
            stream=stream,
            complete=end_reached,
            synced_this_batch=loaded,
            total_synced=total,
            new_rows=result.new_count,
            updated_rows=result.updated_count,
            skipped=skipped,
            next_page=next_page,
        )

    def restart(self, stream: Stream) -> None:
        """Re-scan a completed stream from page 1. Stored documents are skipped, new ones appended."""
        self.cursor.advance(Stream(stream), 1)
