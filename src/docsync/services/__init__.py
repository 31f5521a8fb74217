from .audit import AuditLog
from .cursor import ResumableCursor
from .fetcher import RateLimitedFetcher, RateLimiter, RetryPolicy
from .invoicing_api import InvoicingApi
from .margin_service import MarginService
from .margins import CostIndex, MarginCalculator
from .orchestrator import BatchOrchestrator
from .projection import RowProjector
from .reconciler import UpsertReconciler
from .scheduler import AutoSyncScheduler
from .sync_service import SyncService

__all__ = [
    "AuditLog",
    "ResumableCursor",
    "RateLimitedFetcher",
    "RateLimiter",
    "RetryPolicy",
    "InvoicingApi",
    "MarginService",
    "CostIndex",
    "MarginCalculator",
    "BatchOrchestrator",
    "RowProjector",
    "UpsertReconciler",
    "AutoSyncScheduler",
    "SyncService",
]
