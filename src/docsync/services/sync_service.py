from __future__ import annotations

import logging
from typing import Optional

from docsync.domain.errors import DocumentShapeError
from docsync.domain.layouts import LAYOUTS
from docsync.domain.models import Stream, SyncReport
from docsync.services.audit import AuditLog
from docsync.services.orchestrator import BatchOrchestrator
from docsync.services.projection import RowProjector
from docsync.services.reconciler import UpsertReconciler

log = logging.getLogger("docsync.sync")


class SyncService:
    """Unbounded scans that ignore the cursor and refresh every stored row they touch."""

    def __init__(
        self,
        api,
        orchestrator: BatchOrchestrator,
        projector: RowProjector,
        reconciler: UpsertReconciler,
        audit: AuditLog,
    ):
        self.api = api
        self.orchestrator = orchestrator
        self.projector = projector
        self.reconciler = reconciler
        self.audit = audit

    def full_sync(self, stream: Stream, max_pages: Optional[int] = None, operation: str = "full") -> SyncReport:
        stream = Stream(stream)
        with self.audit.track(stream.value, operation) as record:
            report = self._scan(stream, max_pages)
            record.documents = report.documents
            record.new_rows = report.new_rows
            record.updated_rows = report.updated_rows
            record.skipped = report.skipped
        return report

    def test_sync(self, stream: Stream, pages: int = 1) -> SyncReport:
        if pages < 1:
            raise ValueError("pages must be >= 1")
        return self.full_sync(stream, max_pages=pages, operation="test")

    def _scan(self, stream: Stream, max_pages: Optional[int]) -> SyncReport:
        layout = LAYOUTS[stream]
        page_size = self.orchestrator.page_size
        cost_index = self.orchestrator.build_cost_index() if stream is Stream.SALES else None

        page = 1
        documents = new_rows = updated_rows = skipped = 0
        while max_pages is None or page <= max_pages:
            summaries = self.api.list_page(stream, page)
            rows = []
            for summary in summaries:
                try:
                    document = self.api.load_document(stream, summary)
                    rows.extend(self.projector.project(stream, document, cost_index))
                    documents += 1
                except DocumentShapeError as e:
                    skipped += 1
                    log.warning("document_skipped stream=%s page=%s document_id=%s error=%s", stream.value, page, summary.get("id"), e)

            # reconcile per page so a long scan keeps what it already fetched
            if rows:
                result = self.reconciler.reconcile(layout, rows)
                new_rows += result.new_count
                updated_rows += result.updated_count

            if len(summaries) < page_size:
                break
            page += 1

        pages = page if max_pages is None else min(page, max_pages)
        log.info(
            "scan_finished stream=%s pages=%s documents=%s skipped=%s new=%s updated=%s",
            stream.value,
            pages,
            documents,
            skipped,
            new_rows,
            updated_rows,
        )
        return SyncReport(stream=stream, pages=pages, documents=documents, new_rows=new_rows, updated_rows=updated_rows, skipped=skipped)
