from __future__ import annotations

import logging
from typing import Iterable, Optional

from docsync.domain.layouts import CollectionLayout
from docsync.domain.models import ProjectedRow, ReconcileResult, RowKey, StoredRow
from docsync.repositories.contracts import TabularStore

log = logging.getLogger("docsync.sync")


class UpsertReconciler:
    def __init__(self, store: TabularStore):
        self.store = store

    def index_rows(self, layout: CollectionLayout, rows: Iterable[StoredRow]) -> dict[RowKey, int]:
        index: dict[RowKey, int] = {}
        for row in rows:
            key = layout.key_of(row.values)
            if key is None:
                continue
            if key in index:
                log.warning("duplicate_key_in_storage collection=%s key=%s rows=%s,%s", layout.name, tuple(key), index[key], row.row_index)
                continue
            index[key] = row.row_index
        return index

    def reconcile(
        self,
        layout: CollectionLayout,
        incoming: Iterable[ProjectedRow],
        existing: Optional[list[StoredRow]] = None,
    ) -> ReconcileResult:
        """
        Overwrite rows whose key already exists, append the rest.
        Writes are flushed in two batches and persisted once. Nothing is deleted.
        """
        if existing is None:
            existing = self.store.read_rows(layout)
        index = self.index_rows(layout, existing)

        # last occurrence wins so a key is written once per batch
        latest: dict[RowKey, ProjectedRow] = {}
        for row in incoming:
            latest[RowKey(*row.key)] = row

        updates = []
        appends = []
        for key, row in latest.items():
            cells = layout.to_cells(row.values)
            if key in index:
                updates.append((index[key], cells))
            else:
                appends.append(cells)

        if updates:
            self.store.write_rows(layout, updates)
        if appends:
            self.store.append_rows(layout, appends)
        if updates or appends:
            self.store.save()

        log.info("reconciled collection=%s new=%s updated=%s", layout.name, len(appends), len(updates))
        return ReconcileResult(new_count=len(appends), updated_count=len(updates))
