from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, NamedTuple, Optional

from .errors import DocumentShapeError


class Stream(str, Enum):
    PRODUCTS = "products"
    WAREHOUSE = "warehouse"
    SALES = "sales"


class StreamState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class RowKey(NamedTuple):
    """Composite business key of a stored row: (source document id, line entity id)."""

    document_id: int
    entity_id: int


def required_id(payload: dict, name: str, what: str) -> int:
    value = payload.get(name)
    if value is None or value == "":
        raise DocumentShapeError(f"{what} is missing required field '{name}'. Raw: {payload}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise DocumentShapeError(f"{what} field '{name}' is not an integer: {value!r}") from e


def _optional_id(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip().replace(",", "."))
    except InvalidOperation as e:
        raise DocumentShapeError(f"Not a number: {value!r}") from e


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


@dataclass(frozen=True)
class ProductDocument:
    id: int
    name: str
    code: str
    price_net: Decimal
    price_gross: Decimal
    currency: str
    updated_at: str
    stock_level: Optional[Decimal] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "ProductDocument":
        stock = payload.get("stock_level")
        return cls(
            id=required_id(payload, "id", "Product"),
            name=_text(payload.get("name")),
            code=_text(payload.get("code")),
            price_net=to_decimal(payload.get("price_net")),
            price_gross=to_decimal(payload.get("price_gross")),
            currency=_text(payload.get("currency")),
            updated_at=_text(payload.get("updated_at")),
            stock_level=None if stock in (None, "") else to_decimal(stock),
        )


@dataclass(frozen=True)
class WarehouseAction:
    id: int
    product_id: Optional[int]
    product_name: str
    quantity: Decimal
    total_purchase_price_net: Decimal
    total_purchase_price_gross: Decimal
    purchase_currency: str
    exchange_rate: Decimal

    @classmethod
    def from_payload(cls, payload: dict) -> "WarehouseAction":
        return cls(
            id=required_id(payload, "id", "Warehouse action"),
            product_id=_optional_id(payload.get("product_id")),
            product_name=_text(payload.get("product_name") or payload.get("name")),
            quantity=to_decimal(payload.get("quantity")),
            total_purchase_price_net=to_decimal(payload.get("total_purchase_price_net")),
            total_purchase_price_gross=to_decimal(payload.get("total_purchase_price_gross")),
            purchase_currency=_text(payload.get("purchase_currency")),
            exchange_rate=to_decimal(payload.get("exchange_rate"), default=Decimal("1")),
        )


@dataclass(frozen=True)
class WarehouseDocument:
    id: int
    kind: str
    number: str
    issue_date: str
    warehouse_id: Optional[int]
    invoice_id: Optional[int]
    actions: tuple[WarehouseAction, ...] = ()

    @classmethod
    def from_payload(cls, payload: dict) -> "WarehouseDocument":
        actions = payload.get("warehouse_actions") or []
        return cls(
            id=required_id(payload, "id", "Warehouse document"),
            kind=_text(payload.get("kind")).lower(),
            number=_text(payload.get("number")),
            issue_date=_text(payload.get("issue_date")),
            warehouse_id=_optional_id(payload.get("warehouse_id")),
            invoice_id=_optional_id(payload.get("invoice_id")),
            actions=tuple(WarehouseAction.from_payload(a) for a in actions),
        )


@dataclass(frozen=True)
class SalesPosition:
    id: int
    product_id: Optional[int]
    name: str
    quantity: Decimal
    price_net: Decimal
    total_price_net: Decimal
    total_price_gross: Decimal

    @classmethod
    def from_payload(cls, payload: dict) -> "SalesPosition":
        return cls(
            id=required_id(payload, "id", "Sales position"),
            product_id=_optional_id(payload.get("product_id")),
            name=_text(payload.get("name")),
            quantity=to_decimal(payload.get("quantity")),
            price_net=to_decimal(payload.get("price_net")),
            total_price_net=to_decimal(payload.get("total_price_net")),
            total_price_gross=to_decimal(payload.get("total_price_gross")),
        )


@dataclass(frozen=True)
class SalesDocument:
    id: int
    kind: str
    number: str
    issue_date: str
    currency: str
    exchange_rate: Decimal
    positions: tuple[SalesPosition, ...] = ()

    @classmethod
    def from_payload(cls, payload: dict) -> "SalesDocument":
        positions = payload.get("positions") or []
        return cls(
            id=required_id(payload, "id", "Sales document"),
            kind=_text(payload.get("kind")).lower(),
            number=_text(payload.get("number")),
            issue_date=_text(payload.get("issue_date")),
            currency=_text(payload.get("currency")),
            exchange_rate=to_decimal(payload.get("exchange_rate"), default=Decimal("1")),
            positions=tuple(SalesPosition.from_payload(p) for p in positions),
        )


@dataclass(frozen=True)
class ProjectedRow:
    key: RowKey
    values: dict[str, Any]


@dataclass(frozen=True)
class StoredRow:
    row_index: int
    values: dict[str, Any]


@dataclass(frozen=True)
class CostEntry:
    cost_net: Decimal
    source_document_id: int


@dataclass(frozen=True)
class MarginResult:
    cost_available: bool
    cost_net: Optional[Decimal] = None
    margin_absolute: Optional[Decimal] = None
    margin_percent: Optional[Decimal] = None


@dataclass(frozen=True)
class ReconcileResult:
    new_count: int
    updated_count: int


@dataclass(frozen=True)
class BatchReport:
    stream: Stream
    complete: bool
    synced_this_batch: int
    total_synced: int
    new_rows: int = 0
    updated_rows: int = 0
    skipped: int = 0
    next_page: Optional[int] = None


@dataclass(frozen=True)
class SyncReport:
    stream: Stream
    pages: int
    documents: int
    new_rows: int
    updated_rows: int
    skipped: int = 0


@dataclass
class SchedulerState:
    active: bool = False
    mode: str = "sequential"
    current_stream: Stream = Stream.WAREHOUSE
    ticks: int = 0
    errors: int = 0
    last_stream: Optional[str] = None
    last_error: Optional[str] = None
    last_run_at: Optional[str] = None
    completed: list[str] = field(default_factory=list)
