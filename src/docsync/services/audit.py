from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, Iterator, Optional

from docsync.domain.errors import AppError
from docsync.domain.layouts import SYNC_LOG
from docsync.repositories.contracts import TabularStore

log = logging.getLogger("docsync.sync")


@dataclass
class AuditRecord:
    stream: str
    operation: str
    timestamp: str = ""
    status: str = "ok"
    documents: int = 0
    new_rows: int = 0
    updated_rows: int = 0
    skipped: int = 0
    total_synced: Optional[int] = None
    duration_seconds: float = 0.0
    error: str = ""


class AuditLog:
    """Appends one SyncLog row per run, whether it succeeded or failed."""

    def __init__(
        self,
        store: TabularStore,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.clock = clock
        self.now = now

    @contextmanager
    def track(self, stream: str, operation: str) -> Iterator[AuditRecord]:
        record = AuditRecord(stream=stream, operation=operation)
        record.timestamp = self.now().replace(microsecond=0).isoformat(sep=" ")
        started = self.clock()
        try:
            yield record
        except Exception as e:
            record.status = "error"
            record.error = str(e) or e.__class__.__name__
            record.duration_seconds = round(self.clock() - started, 3)
            log.error("run_failed stream=%s operation=%s error=%s", stream, operation, record.error)
            # unsaved rows of the failed run must not ride along with the log row
            self.store.reload()
            try:
                self.append(record)
            except AppError as log_error:
                log.error("run_log_failed stream=%s operation=%s error=%s", stream, operation, log_error)
            raise
        record.duration_seconds = round(self.clock() - started, 3)
        self.append(record)

    def append(self, record: AuditRecord) -> None:
        self.store.append_rows(SYNC_LOG, [SYNC_LOG.to_cells(asdict(record))])
        self.store.save()
        log.info(
            "run_logged stream=%s operation=%s status=%s documents=%s new=%s updated=%s duration=%.3f",
            record.stream,
            record.operation,
            record.status,
            record.documents,
            record.new_rows,
            record.updated_rows,
            record.duration_seconds,
        )
