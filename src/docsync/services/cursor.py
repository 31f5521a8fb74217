from __future__ import annotations

import logging
from typing import Optional

from docsync.domain.models import Stream, StreamState
from docsync.repositories.contracts import CursorStore

log = logging.getLogger("docsync.sync")


class ResumableCursor:
    """
    Next page to fetch for each stream, persisted outside the process.

    An absent cursor is ambiguous: the stream is either complete or was never
    started. state() resolves it from the completion mark written by clear()
    and from the number of records already stored.
    """

    def __init__(self, store: CursorStore):
        self.store = store

    def read(self, stream: Stream) -> Optional[int]:
        return self.store.get_cursor(Stream(stream).value)

    def advance(self, stream: Stream, next_page: int) -> None:
        if int(next_page) < 1:
            raise ValueError("next_page must be >= 1")
        self.store.set_cursor(Stream(stream).value, int(next_page))
        log.info("cursor_advanced stream=%s next_page=%s", Stream(stream).value, next_page)

    def clear(self, stream: Stream) -> None:
        """End of collection: drop the page and remember that the scan finished."""
        self.store.delete_cursor(Stream(stream).value)
        self.store.mark_complete(Stream(stream).value)
        log.info("cursor_cleared stream=%s", Stream(stream).value)

    def state(self, stream: Stream, synced_count: int) -> StreamState:
        if self.read(stream) is not None:
            return StreamState.IN_PROGRESS
        if synced_count > 0 or self.store.is_complete(Stream(stream).value):
            return StreamState.COMPLETE
        return StreamState.NOT_STARTED
