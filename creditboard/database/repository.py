"""Repository layer for database operations."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import asc, desc, func
from sqlalchemy.exc import SQLAlchemyError

from creditboard.models.task import Task
from creditboard.database.models import TaskDB, enum_to_value
from creditboard.engine.errors import TaskNotFoundError, TransientStoreError, ValidationFailure
from creditboard.engine.operations import OperationKind, StoreOperation
from creditboard.engine.ordering import sort_active_board
from creditboard.engine.ports import OrderBy

logger = logging.getLogger(__name__)

# Columns callers may filter, sort and aggregate on
QUERYABLE_FIELDS = {
    "id", "title", "quadrant", "type", "note", "deadline",
    "amount_disbursement", "service_fee", "amount_recovery", "amount_mobilized",
    "completed", "completed_at", "archived_at", "position", "created_at",
}
# Everything except the identity and creation timestamp
UPDATABLE_FIELDS = QUERYABLE_FIELDS - {"id", "created_at"}
ENUM_FIELDS = {"quadrant", "type"}


class TaskRepository:
    """Repository for Task database operations (the Task Store Adapter)."""

    def __init__(self, db: Session):
        self.db = db

    def _column(self, field: str):
        if field not in QUERYABLE_FIELDS:
            raise ValidationFailure(f"Unknown task field: {field!r}")
        return getattr(TaskDB, field)

    def _filtered(self, filters: Optional[Dict[str, Any]]):
        query = self.db.query(TaskDB)
        for field, value in (filters or {}).items():
            column = self._column(field)
            if value is None:
                query = query.filter(column.is_(None))
            elif isinstance(value, (list, tuple, set)):
                values = [enum_to_value(v) for v in value] if field in ENUM_FIELDS else list(value)
                query = query.filter(column.in_(values))
            else:
                query = query.filter(column == (enum_to_value(value) if field in ENUM_FIELDS else value))
        return query

    def _order(self, query, order_by: Optional[OrderBy]):
        for field, direction in order_by or []:
            column = self._column(field)
            if direction == "asc":
                query = query.order_by(asc(column))
            elif direction == "desc":
                query = query.order_by(desc(column))
            else:
                raise ValidationFailure(f"Unknown sort direction: {direction!r}")
        return query

    def _clean_fields(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationFailure(f"Fields cannot be updated: {sorted(unknown)}")
        return {
            name: enum_to_value(value) if name in ENUM_FIELDS and value is not None else value
            for name, value in fields.items()
        }

    def _fail(self, message: str, e: Exception):
        self.db.rollback()
        logger.error(f"{message}: {type(e).__name__}: {str(e)}")
        raise TransientStoreError(message) from e

    def create(self, task: Task) -> Task:
        """Create a new task."""
        try:
            task_db = TaskDB.from_pydantic(task)
            self.db.add(task_db)
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(f"Created task {task.id}: {task.title[:50]}")
            return task_db.to_pydantic()
        except SQLAlchemyError as e:
            self._fail(f"Failed to create task {task.id}", e)

    def get(self, task_id: str) -> Optional[Task]:
        """Get task by ID (archived tasks included)."""
        try:
            task_db = self.db.query(TaskDB).filter(TaskDB.id == task_id).first()
            return task_db.to_pydantic() if task_db else None
        except SQLAlchemyError as e:
            self._fail(f"Failed to load task {task_id}", e)

    def get_all(self, include_archived: bool = True) -> List[Task]:
        """Get tasks sorted by creation date (newest first)."""
        query = self.db.query(TaskDB)
        if not include_archived:
            query = query.filter(TaskDB.archived_at.is_(None))
        try:
            return [task_db.to_pydantic() for task_db in query.order_by(desc(TaskDB.created_at)).all()]
        except SQLAlchemyError as e:
            self._fail("Failed to list tasks", e)

    def get_active_board(self) -> List[Task]:
        """Non-archived tasks sorted by quadrant, position, then newest first."""
        return sort_active_board(self.get_all(include_archived=False))

    def find_many(self, filters: Optional[Dict[str, Any]] = None, order_by: Optional[OrderBy] = None) -> List[Task]:
        """Find tasks by field equality (None matches NULL, lists match any)."""
        query = self._order(self._filtered(filters), order_by)
        try:
            return [task_db.to_pydantic() for task_db in query.all()]
        except SQLAlchemyError as e:
            self._fail("Failed to query tasks", e)

    def max_of(self, field: str, filters: Optional[Dict[str, Any]] = None) -> Optional[int]:
        """Aggregate max of a column over the filtered tasks (None if no rows)."""
        column = self._column(field)
        query = self._filtered(filters).with_entities(func.max(column))
        try:
            return query.scalar()
        except SQLAlchemyError as e:
            self._fail(f"Failed to aggregate max({field})", e)

    def next_position(self, quadrant) -> int:
        """1 + the highest position among the quadrant's active tasks."""
        return (self.max_of("position", {"quadrant": quadrant, "archived_at": None}) or 0) + 1

    def _apply_update(self, task_id: str, fields: Dict[str, Any]) -> TaskDB:
        task_db = self.db.query(TaskDB).filter(TaskDB.id == task_id).first()
        if not task_db:
            raise TaskNotFoundError(task_id)
        for name, value in fields.items():
            setattr(task_db, name, value)
        return task_db

    def update(self, task_id: str, fields: Dict[str, Any]) -> Task:
        """Update fields of an existing task."""
        fields = self._clean_fields(fields)
        try:
            task_db = self._apply_update(task_id, fields)
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(f"Updated task {task_id}: {sorted(fields)}")
            return task_db.to_pydantic()
        except SQLAlchemyError as e:
            self._fail(f"Failed to update task {task_id}", e)

    def delete(self, task_id: str) -> None:
        """Permanently delete a task."""
        try:
            task_db = self.db.query(TaskDB).filter(TaskDB.id == task_id).first()
            if not task_db:
                raise TaskNotFoundError(task_id)
            self.db.delete(task_db)
            self.db.commit()
            logger.debug(f"Deleted task {task_id}")
        except SQLAlchemyError as e:
            self._fail(f"Failed to delete task {task_id}", e)

    def transaction(self, operations: List[StoreOperation]) -> List[Task]:
        """Execute operations all-or-nothing.

        Returns:
            The updated tasks, in operation order (deleted tasks omitted)
        """
        touched: List[TaskDB] = []
        try:
            for op in operations:
                if op.kind == OperationKind.DELETE:
                    task_db = self.db.query(TaskDB).filter(TaskDB.id == op.task_id).first()
                    if not task_db:
                        raise TaskNotFoundError(op.task_id)
                    self.db.delete(task_db)
                else:
                    touched.append(self._apply_update(op.task_id, self._clean_fields(op.fields)))
            self.db.commit()
        except (TaskNotFoundError, ValidationFailure):
            self.db.rollback()
            logger.warning(f"Rolled back transaction of {len(operations)} operation(s)")
            raise
        except SQLAlchemyError as e:
            self._fail(f"Failed to run transaction of {len(operations)} operation(s)", e)

        for task_db in touched:
            self.db.refresh(task_db)
        logger.debug(f"Committed transaction of {len(operations)} operation(s)")
        return [task_db.to_pydantic() for task_db in touched]

    def archive_completed_before(self, cutoff: datetime, now: datetime) -> int:
        """Archive completed tasks whose completion is older than ``cutoff``."""
        try:
            affected = (
                self.db.query(TaskDB)
                .filter(
                    TaskDB.completed.is_(True),
                    TaskDB.completed_at < cutoff,
                    TaskDB.archived_at.is_(None),
                )
                .update({TaskDB.archived_at: now}, synchronize_session=False)
            )
            self.db.commit()
            if affected:
                logger.info(f"Archived {affected} task(s) completed before {cutoff.isoformat()}")
            return int(affected)
        except SQLAlchemyError as e:
            self._fail("Failed to archive completed tasks", e)

    def clear_archived_on_open(self) -> int:
        """Un-archive tasks that are not completed (archived implies completed)."""
        try:
            affected = (
                self.db.query(TaskDB)
                .filter(
                    TaskDB.completed.is_(False),
                    TaskDB.archived_at.isnot(None),
                )
                .update({TaskDB.archived_at: None}, synchronize_session=False)
            )
            self.db.commit()
            if affected:
                logger.warning(f"Cleared archived_at on {affected} open task(s)")
            return int(affected)
        except SQLAlchemyError as e:
            self._fail("Failed to clear archived_at on open tasks", e)
