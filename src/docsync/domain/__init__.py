from .models import (
    BatchReport,
    CostEntry,
    MarginResult,
    ProductDocument,
    ProjectedRow,
    ReconcileResult,
    RowKey,
    SalesDocument,
    SalesPosition,
    SchedulerState,
    StoredRow,
    Stream,
    StreamState,
    SyncReport,
    WarehouseAction,
    WarehouseDocument,
)
from .errors import (
    ApiError,
    AppError,
    AuthenticationError,
    ConfigurationError,
    DocumentShapeError,
    StorageError,
    TransientApiError,
)

__all__ = [
    "BatchReport",
    "CostEntry",
    "MarginResult",
    "ProductDocument",
    "ProjectedRow",
    "ReconcileResult",
    "RowKey",
    "SalesDocument",
    "SalesPosition",
    "SchedulerState",
    "StoredRow",
    "Stream",
    "StreamState",
    "SyncReport",
    "WarehouseAction",
    "WarehouseDocument",
    "ApiError",
    "AppError",
    "AuthenticationError",
    "ConfigurationError",
    "DocumentShapeError",
    "StorageError",
    "TransientApiError",
]
