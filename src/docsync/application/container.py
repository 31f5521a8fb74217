from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from docsync.config import Settings
from docsync.domain.layouts import ALL_LAYOUTS
from docsync.repositories.reference_repo import ReferenceData, load_reference_data
from docsync.repositories.state_repo import SqliteStateRepository
from docsync.repositories.workbook_repo import WorkbookRepository
from docsync.services.audit import AuditLog
from docsync.services.cursor import ResumableCursor
from docsync.services.fetcher import RateLimitedFetcher, RateLimiter, RetryPolicy
from docsync.services.invoicing_api import InvoicingApi
from docsync.services.margin_service import MarginService
from docsync.services.orchestrator import BatchOrchestrator
from docsync.services.projection import RowProjector
from docsync.services.reconciler import UpsertReconciler
from docsync.services.scheduler import AutoSyncScheduler
from docsync.services.sync_service import SyncService


@dataclass(frozen=True)
class AppContainer:
    settings: Settings
    state: SqliteStateRepository
    store: WorkbookRepository
    reference: ReferenceData
    fetcher: RateLimitedFetcher
    api: InvoicingApi
    cursor: ResumableCursor
    projector: RowProjector
    reconciler: UpsertReconciler
    audit: AuditLog
    orchestrator: BatchOrchestrator
    sync: SyncService
    margins: MarginService
    scheduler: AutoSyncScheduler


def build_container(
    settings: Settings,
    session: Optional[requests.Session] = None,
    reference: Optional[ReferenceData] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> AppContainer:
    state = SqliteStateRepository(settings.paths.state_db_path)
    state.init_db()

    store = WorkbookRepository(settings.paths.workbook_path)
    store.init_storage(ALL_LAYOUTS)
    if reference is None:
        reference = load_reference_data(settings.paths.reference_path)

    limiter = RateLimiter(
        settings.calls_per_minute,
        pause_every=settings.pause_every,
        pause_seconds=settings.pause_seconds,
        sleep=sleep,
    )
    retry = RetryPolicy(max_attempts=settings.max_attempts, base_delay=settings.base_delay, sleep=sleep)
    fetcher = RateLimitedFetcher(
        settings.api_url,
        settings.api_token,
        limiter,
        retry,
        session=session,
        timeout=settings.request_timeout,
    )
    api = InvoicingApi(fetcher, page_size=settings.page_size)

    cursor = ResumableCursor(state)
    projector = RowProjector(reference, base_currency=settings.base_currency)
    reconciler = UpsertReconciler(store)
    audit = AuditLog(store)
    orchestrator = BatchOrchestrator(
        api,
        store,
        cursor,
        projector,
        reconciler,
        audit,
        batch_size=settings.batch_size,
        page_size=settings.page_size,
    )
    sync = SyncService(api, orchestrator, projector, reconciler, audit)
    margins = MarginService(store, reconciler, audit)
    scheduler = AutoSyncScheduler(orchestrator, state)

    return AppContainer(
        settings=settings,
        state=state,
        store=store,
        reference=reference,
        fetcher=fetcher,
        api=api,
        cursor=cursor,
        projector=projector,
        reconciler=reconciler,
        audit=audit,
        orchestrator=orchestrator,
        sync=sync,
        margins=margins,
        scheduler=scheduler,
    )
