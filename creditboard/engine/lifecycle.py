"""Lifecycle state machine for creditboard.

States (derived from ``completed`` and ``archived_at``):

    Active ──complete──▶ Completed ──sweep (>7 days)──▶ Archived
      ▲                     │  ▲                          │
      └──────uncomplete─────┘  └──────────restore─────────┘
    Active ──delete──▶ Deleted          Completed ──delete──▶ Archived

An archived task is always completed; undoing a completion clears the archive
timestamp too, and the sweep heals any row found archived but not completed.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from creditboard.models.task import Task, LifecycleState
from creditboard.models.constants import ARCHIVE_AFTER
from creditboard.engine.errors import TaskNotFoundError, InvalidTransitionError
from creditboard.engine.operations import OperationPlan, StoreOperation, build_plan, update_op, delete_op

logger = logging.getLogger(__name__)


def _find(snapshot: List[Task], task_id: str) -> Task:
    for task in snapshot:
        if task.id == task_id:
            return task
    raise TaskNotFoundError(task_id)


def archive_cutoff(now: datetime, archive_after: timedelta = ARCHIVE_AFTER) -> datetime:
    """Tasks completed strictly before this instant are due for archival."""
    return now - archive_after


def is_due_for_archive(task: Task, now: datetime, archive_after: timedelta = ARCHIVE_AFTER) -> bool:
    return (
        task.completed
        and task.completed_at is not None
        and task.archived_at is None
        and task.completed_at < archive_cutoff(now, archive_after)
    )


def plan_complete(snapshot: List[Task], task_id: str, now: datetime) -> Optional[OperationPlan]:
    """Active -> Completed. Returns None if the task is already completed."""
    task = _find(snapshot, task_id)
    if task.completed:
        return None
    return build_plan("complete", snapshot, [update_op(task_id, completed=True, completed_at=now)])


def plan_uncomplete(snapshot: List[Task], task_id: str) -> Optional[OperationPlan]:
    """Completed or Archived -> Active. Returns None if the task is already active."""
    task = _find(snapshot, task_id)
    if not task.completed and task.archived_at is None:
        return None
    return build_plan(
        "uncomplete",
        snapshot,
        [update_op(task_id, completed=False, completed_at=None, archived_at=None)],
    )


def plan_toggle_completed(snapshot: List[Task], task_id: str, now: datetime) -> Optional[OperationPlan]:
    """Flip the completion checkbox."""
    task = _find(snapshot, task_id)
    if task.completed:
        return plan_uncomplete(snapshot, task_id)
    return plan_complete(snapshot, task_id, now)


def plan_restore(snapshot: List[Task], task_id: str) -> OperationPlan:
    """Archived -> Completed (clears ``archived_at`` only)."""
    task = _find(snapshot, task_id)
    if task.lifecycle_state != LifecycleState.ARCHIVED:
        raise InvalidTransitionError(task_id, task.lifecycle_state.value, "restore")
    return build_plan("restore", snapshot, [update_op(task_id, archived_at=None)])


def plan_delete(snapshot: List[Task], task_id: str, now: datetime) -> Optional[OperationPlan]:
    """Delete a task, or archive it if it was ever completed.

    Active tasks are hard-deleted. Completed tasks are archived instead to
    keep their history. Archived tasks are left as they are (returns None).
    """
    task = _find(snapshot, task_id)
    state = task.lifecycle_state
    if state == LifecycleState.ACTIVE:
        return build_plan("delete", snapshot, [delete_op(task_id)])
    if state == LifecycleState.COMPLETED:
        logger.debug(f"Delete of completed task {task_id} converted to archive")
        return build_plan("archive", snapshot, [update_op(task_id, archived_at=now)])
    return None


def sweep_archive_operations(tasks: List[Task], now: datetime, archive_after: timedelta = ARCHIVE_AFTER) -> List[StoreOperation]:
    """Operations performed by the archive sweep on an active-board load.

    - completed tasks older than the threshold receive ``archived_at = now``
    - tasks that are not completed get ``archived_at`` cleared
    """
    operations: List[StoreOperation] = []
    for task in tasks:
        if is_due_for_archive(task, now, archive_after):
            operations.append(update_op(task.id, archived_at=now))
        elif not task.completed and task.archived_at is not None:
            operations.append(update_op(task.id, archived_at=None))
    return operations


def plan_sweep(snapshot: List[Task], now: datetime, archive_after: timedelta = ARCHIVE_AFTER) -> Optional[OperationPlan]:
    """Plan the archive sweep over a local snapshot (None if nothing changes)."""
    operations = sweep_archive_operations(snapshot, now, archive_after)
    if not operations:
        return None
    return build_plan("sweep", snapshot, operations, atomic=True)
