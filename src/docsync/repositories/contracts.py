from __future__ import annotations

from typing import Any, Iterable, Optional, Protocol

from docsync.domain.layouts import CollectionLayout
from docsync.domain.models import StoredRow


class TabularStore(Protocol):
    def read_rows(self, layout: CollectionLayout) -> list[StoredRow]: ...
    def count_rows(self, layout: CollectionLayout) -> int: ...
    def write_rows(self, layout: CollectionLayout, updates: Iterable[tuple[int, list[Any]]]) -> int: ...
    def append_rows(self, layout: CollectionLayout, rows: Iterable[list[Any]]) -> int: ...
    def save(self) -> None: ...
    def reload(self) -> None: ...

class CursorStore(Protocol):
    def get_cursor(self, stream: str) -> Optional[int]: ...
    def set_cursor(self, stream: str, next_page: int) -> None: ...
    def delete_cursor(self, stream: str) -> bool: ...
    def mark_complete(self, stream: str) -> None: ...
    def is_complete(self, stream: str) -> bool: ...


class SchedulerStore(Protocol):
    def get_values(self) -> dict[str, Any]: ...
    def set_values(self, values: dict[str, Any]) -> None: ...
