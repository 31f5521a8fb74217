from __future__ import annotations

import logging
import time
from dataclasses import asdict
from datetime import datetime
from typing import Callable, Optional

from docsync.domain.errors import AppError
from docsync.domain.models import SchedulerState, Stream
from docsync.repositories.contracts import SchedulerStore

log = logging.getLogger("docsync.sync")

MODE_SEQUENTIAL = "sequential"
MODE_ALTERNATING = "alternating"
MODES = (MODE_SEQUENTIAL, MODE_ALTERNATING)

SCHEDULED_STREAMS = (Stream.WAREHOUSE, Stream.SALES)


def _state_from_values(values: dict) -> SchedulerState:
    if not values:
        return SchedulerState()
    state = SchedulerState()
    for name in asdict(state):
        if name in values:
            setattr(state, name, values[name])
    state.current_stream = Stream(state.current_stream)
    state.completed = list(state.completed or [])
    return state


def _state_to_values(state: SchedulerState) -> dict:
    values = asdict(state)
    values["current_stream"] = Stream(state.current_stream).value
    return values


class AutoSyncScheduler:
    """
    Recurring batch runner for the warehouse and sales streams.

    Sequential mode runs warehouse batches until the stream completes and only
    then moves on to sales, so sales margins are computed against a complete
    cost index. Alternating mode flips streams every tick; sales rows synced
    while warehouse is still incomplete get no cost, and `docsync margins`
    repairs them afterwards.
    """

    def __init__(
        self,
        orchestrator,
        store: SchedulerStore,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.orchestrator = orchestrator
        self.store = store
        self.now = now

    def load(self) -> SchedulerState:
        return _state_from_values(self.store.get_values())

    def save(self, state: SchedulerState) -> None:
        self.store.set_values(_state_to_values(state))

    def start(self, mode: str = MODE_SEQUENTIAL) -> SchedulerState:
        if mode not in MODES:
            raise ValueError(f"Unknown auto-sync mode: {mode}. Expected one of {MODES}")
        state = SchedulerState(active=True, mode=mode, current_stream=Stream.WAREHOUSE)
        self.save(state)
        log.info("auto_sync_started mode=%s", mode)
        return state

    def stop(self) -> SchedulerState:
        state = self.load()
        state.active = False
        self.save(state)
        log.info("auto_sync_stopped ticks=%s errors=%s", state.ticks, state.errors)
        return state

    def status(self) -> SchedulerState:
        return self.load()

    def tick(self, state: SchedulerState) -> SchedulerState:
        if not state.active:
            return state

        stream = Stream(state.current_stream)
        state.ticks += 1
        state.last_stream = stream.value
        state.last_run_at = self.now().replace(microsecond=0).isoformat(sep=" ")

        try:
            report = self.orchestrator.run_batch(stream)
        except AppError as e:
            # stay on the failed stream: sales never runs after a failed warehouse batch
            state.errors += 1
            state.last_error = f"{stream.value}: {e}"
            log.error("auto_sync_batch_failed stream=%s error=%s", stream.value, e)
            return state

        state.last_error = None
        if report.complete and stream.value not in state.completed:
            state.completed.append(stream.value)

        if all(s.value in state.completed for s in SCHEDULED_STREAMS):
            state.active = False
            log.info("auto_sync_finished ticks=%s errors=%s", state.ticks, state.errors)
            return state

        state.current_stream = self._next_stream(state, stream)
        return state

    def _next_stream(self, state: SchedulerState, stream: Stream) -> Stream:
        other = Stream.SALES if stream is Stream.WAREHOUSE else Stream.WAREHOUSE
        if state.mode == MODE_ALTERNATING:
            return stream if other.value in state.completed else other
        if stream is Stream.WAREHOUSE and Stream.WAREHOUSE.value in state.completed:
            return Stream.SALES
        return stream

    def run_once(self) -> SchedulerState:
        state = self.load()
        if not state.active:
            log.info("auto_sync_inactive")
            return state
        state = self.tick(state)
        if not self.load().active:
            # stopped while the batch was running
            state.active = False
        self.save(state)
        return state

    def run(
        self,
        interval_seconds: float,
        max_ticks: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> SchedulerState:
        """Invoke run_once() until the active flag is cleared (by stop() or completion)."""
        ticks = 0
        while True:
            state = self.run_once()
            ticks += 1
            if not state.active:
                return state
            if max_ticks is not None and ticks >= max_ticks:
                return state
            sleep(interval_seconds)
