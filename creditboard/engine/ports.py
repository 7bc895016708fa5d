"""Ports (interfaces) used by the engines.

The engines and the board depend on these Protocols instead of the SQLAlchemy
repositories, so the store can be swapped for a fake in tests.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Tuple

from creditboard.models.task import Task


OrderBy = List[Tuple[str, str]]
# [("position", "asc"), ("created_at", "desc")]


class TaskStore(Protocol):
    """Task Store Adapter contract."""

    def create(self, task: Task) -> Task: ...

    def get(self, task_id: str) -> Optional[Task]: ...

    def update(self, task_id: str, fields: Dict[str, Any]) -> Task: ...

    def delete(self, task_id: str) -> None: ...

    def find_many(self, filters: Optional[Dict[str, Any]] = None, order_by: Optional[OrderBy] = None) -> List[Task]: ...

    def max_of(self, field: str, filters: Optional[Dict[str, Any]] = None) -> Optional[int]: ...

    def transaction(self, operations: List[Any]) -> List[Task]: ...

    # Archive sweep
    def archive_completed_before(self, cutoff: datetime, now: datetime) -> int: ...

    def clear_archived_on_open(self) -> int: ...


class SettingsStore(Protocol):
    """Key-value store for JSON settings."""

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in naive UTC, matching the timestamps stored by the database layer."""

    def now(self) -> datetime:
        return datetime.utcnow()
