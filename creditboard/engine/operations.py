"""Store operations and operation plans.

Every intent (move, reorder, complete, delete, ...) is turned into an
``OperationPlan``: the next local snapshot, the store operations that make it
durable, and a compensation holding the pre-image of exactly the rows and
fields the operations touch. Rolling back applies the compensation onto the
*current* snapshot, so edits made to unrelated rows meanwhile survive.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, Field

from creditboard.models.task import Task
from creditboard.engine.errors import TaskNotFoundError


class OperationKind(str, Enum):
    """Store operation kind."""
    UPDATE = "update"
    DELETE = "delete"


class StoreOperation(BaseModel):
    """A single idempotent store call."""

    kind: OperationKind = Field(..., description="Operation kind")
    task_id: str = Field(..., description="Target task ID")
    fields: Dict[str, Any] = Field(default_factory=dict, description="Fields to set (update only)")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


def update_op(task_id: str, **fields: Any) -> StoreOperation:
    return StoreOperation(kind=OperationKind.UPDATE, task_id=task_id, fields=fields)


def delete_op(task_id: str) -> StoreOperation:
    return StoreOperation(kind=OperationKind.DELETE, task_id=task_id)


@dataclass
class Compensation:
    """Pre-image of the rows an operation plan touches."""

    prior_fields: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    removed: List[Tuple[int, Task]] = field(default_factory=list)

    @property
    def task_ids(self) -> List[str]:
        return list(self.prior_fields) + [task.id for _, task in self.removed]


@dataclass
class OperationPlan:
    """Result of planning an intent against a snapshot."""

    action: str
    next_snapshot: List[Task]
    compensation: Compensation
    operations: List[StoreOperation]
    atomic: bool = False


def _index_of(snapshot: List[Task], task_id: str) -> int:
    for index, task in enumerate(snapshot):
        if task.id == task_id:
            return index
    raise TaskNotFoundError(task_id)


def build_plan(action: str, snapshot: List[Task], operations: List[StoreOperation], atomic: bool = False) -> OperationPlan:
    """Apply operations to a copy of the snapshot and capture their pre-image.

    Args:
        action: Intent name (used in logs)
        snapshot: Current local task list
        operations: Store operations to plan
        atomic: Whether the operations must be executed as one transaction

    Returns:
        OperationPlan with the next snapshot and its compensation

    Raises:
        TaskNotFoundError: If an operation targets a task absent from the snapshot
    """
    next_snapshot = list(snapshot)
    compensation = Compensation()

    for op in operations:
        index = _index_of(next_snapshot, op.task_id)
        current = next_snapshot[index]
        if op.kind == OperationKind.DELETE:
            # Keep the first-seen pre-image when a row is touched twice.
            if op.task_id in compensation.prior_fields:
                current = current.model_copy(update=compensation.prior_fields.pop(op.task_id))
            compensation.removed.append((index, current))
            del next_snapshot[index]
            continue

        prior = compensation.prior_fields.setdefault(op.task_id, {})
        for name in op.fields:
            if name not in prior:
                prior[name] = getattr(current, name)
        next_snapshot[index] = current.model_copy(update=op.fields)

    return OperationPlan(
        action=action,
        next_snapshot=next_snapshot,
        compensation=compensation,
        operations=list(operations),
        atomic=atomic,
    )


def rollback(snapshot: List[Task], compensation: Compensation) -> List[Task]:
    """Restore the pre-image of the touched rows onto the current snapshot.

    Rows not mentioned in the compensation are returned unchanged.
    """
    restored = [
        task.model_copy(update=compensation.prior_fields[task.id])
        if task.id in compensation.prior_fields
        else task
        for task in snapshot
    ]
    present = {task.id for task in restored}
    for index, task in sorted(compensation.removed, key=lambda item: item[0]):
        if task.id not in present:
            restored.insert(min(index, len(restored)), task)
    return restored


def merge_confirmed(snapshot: List[Task], confirmed: List[Task]) -> List[Task]:
    """Replace local rows with the versions confirmed by the store."""
    by_id = {task.id: task for task in confirmed}
    return [by_id.get(task.id, task) for task in snapshot]
