from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Iterable, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font

from docsync.domain.errors import StorageError
from docsync.domain.layouts import CollectionLayout
from docsync.domain.models import StoredRow

log = logging.getLogger(__name__)


class WorkbookRepository:
    """
    Tabular store backed by one .xlsx workbook, one sheet per collection.
    Row 1 holds the column headers. Writes are buffered in memory and
    flushed by save().
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._wb: Optional[Workbook] = None

    def _workbook(self) -> Workbook:
        if self._wb is None:
            if self.path.exists():
                try:
                    self._wb = load_workbook(self.path)
                except (OSError, ValueError, KeyError) as e:
                    raise StorageError(f"Cannot open workbook {self.path}: {e}") from e
            else:
                wb = Workbook()
                wb.remove(wb.active)
                self._wb = wb
        return self._wb

    def init_storage(self, layouts: Iterable[CollectionLayout]) -> None:
        for layout in layouts:
            self._sheet(layout)
        self.save()

    def _sheet(self, layout: CollectionLayout):
        wb = self._workbook()
        if layout.name not in wb.sheetnames:
            ws = wb.create_sheet(layout.name)
            ws.append(list(layout.columns))
            for c in ws[1]:
                c.font = Font(bold=True)
            ws.freeze_panes = "A2"
            log.info("collection_created name=%s", layout.name)
            return ws

        ws = wb[layout.name]
        header = [ws.cell(row=1, column=col).value for col in range(1, len(layout.columns) + 1)]
        if all(v is None for v in header):
            for col, name in enumerate(layout.columns, start=1):
                ws.cell(row=1, column=col, value=name)
            return ws
        if tuple(header) != layout.columns:
            raise StorageError(f"Sheet '{layout.name}' header does not match expected columns. Found: {header}")
        return ws

    def read_rows(self, layout: CollectionLayout) -> list[StoredRow]:
        ws = self._sheet(layout)
        rows = []
        width = len(layout.columns)
        for row_index, cells in enumerate(ws.iter_rows(min_row=2, max_col=width, values_only=True), start=2):
            if all(v is None or v == "" for v in cells):
                continue
            rows.append(StoredRow(row_index=row_index, values=layout.to_values(cells)))
        return rows

    def count_rows(self, layout: CollectionLayout) -> int:
        return len(self.read_rows(layout))

    def write_rows(self, layout: CollectionLayout, updates: Iterable[tuple[int, list[Any]]]) -> int:
        ws = self._sheet(layout)
        count = 0
        for row_index, cells in updates:
            if row_index < 2:
                raise StorageError(f"Refusing to overwrite header row of '{layout.name}'.")
            for col, value in enumerate(cells, start=1):
                ws.cell(row=row_index, column=col, value=value)
            count += 1
        return count

    def append_rows(self, layout: CollectionLayout, rows: Iterable[list[Any]]) -> int:
        ws = self._sheet(layout)
        count = 0
        for cells in rows:
            ws.append(list(cells))
            count += 1
        return count

    def save(self) -> None:
        wb = self._workbook()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f".{self.path.name}.tmp")
        try:
            wb.save(tmp)
            os.replace(tmp, self.path)
        except OSError as e:
            raise StorageError(f"Cannot save workbook {self.path}: {e}") from e

    def reload(self) -> None:
        """Drop unsaved changes. The next access re-reads the file."""
        self._wb = None
