from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from openpyxl import load_workbook

from docsync.domain.errors import ConfigurationError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceData:
    brands: dict[str, str] = field(default_factory=dict)
    warehouses: dict[int, str] = field(default_factory=dict)

    def warehouse_name(self, warehouse_id: Optional[int]) -> str:
        if warehouse_id is None:
            return ""
        return self.warehouses.get(int(warehouse_id), "")


def _headers(ws) -> dict[str, int]:
    headers = {}
    for col in range(1, ws.max_column + 1):
        v = ws.cell(row=1, column=col).value
        if isinstance(v, str):
            headers[v.strip().lower()] = col
    return headers


def _read_pairs(wb, sheet: str, key_header: str) -> list[tuple[object, str]]:
    if sheet not in wb.sheetnames:
        raise ConfigurationError(f"Reference workbook has no '{sheet}' sheet.")
    ws = wb[sheet]
    headers = _headers(ws)
    for required in (key_header, "display_name"):
        if required not in headers:
            raise ConfigurationError(f"Missing column header in '{sheet}': {required}")

    pairs = []
    for row in range(2, ws.max_row + 1):
        key = ws.cell(row=row, column=headers[key_header]).value
        display = ws.cell(row=row, column=headers["display_name"]).value
        if key is None or str(key).strip() == "":
            continue
        pairs.append((key, "" if display is None else str(display).strip()))
    return pairs


def load_reference_data(path: Path | str) -> ReferenceData:
    """
    Reference workbook, read once per run:
      Brands:     brand | display_name
      Warehouses: warehouse_id | display_name
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Reference workbook not found: {path}")

    wb = load_workbook(path, data_only=True)
    brands = {str(k).strip(): v for k, v in _read_pairs(wb, "Brands", "brand")}

    warehouses: dict[int, str] = {}
    for key, display in _read_pairs(wb, "Warehouses", "warehouse_id"):
        try:
            warehouses[int(float(str(key)))] = display
        except ValueError:
            log.warning("reference_warehouse_skipped id=%r", key)

    log.info("reference_loaded brands=%s warehouses=%s", len(brands), len(warehouses))
    return ReferenceData(brands=brands, warehouses=warehouses)
