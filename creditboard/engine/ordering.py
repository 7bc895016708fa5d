"""Ordering engine for creditboard.

Maintains a total order over the active tasks of each quadrant through an
integer ``position``. Moves append to the end of the destination quadrant;
reorders renumber a whole quadrant as ``index + 1``.
"""

import logging
from typing import Iterable, List, Optional

from creditboard.models.task import Task, Quadrant
from creditboard.engine.errors import TaskNotFoundError, ValidationFailure
from creditboard.engine.operations import OperationPlan, build_plan, update_op

logger = logging.getLogger(__name__)


def _quadrant_value(quadrant) -> str:
    try:
        return Quadrant(quadrant).value
    except ValueError:
        raise ValidationFailure(f"Unknown quadrant: {quadrant!r}")


def active_tasks_in(tasks: Iterable[Task], quadrant) -> List[Task]:
    """Active (non-archived) tasks of a quadrant, in input order."""
    quadrant = _quadrant_value(quadrant)
    return [task for task in tasks if task.quadrant == quadrant and task.archived_at is None]


def next_position(tasks: Iterable[Task], quadrant) -> int:
    """Return 1 + the highest position among the quadrant's active tasks (0 if empty)."""
    positions = [task.position for task in active_tasks_in(tasks, quadrant)]
    return max(positions, default=0) + 1


def ordered_quadrant_tasks(tasks: Iterable[Task], quadrant) -> List[Task]:
    """Active tasks of a quadrant sorted by position (ties keep input order)."""
    return sorted(active_tasks_in(tasks, quadrant), key=lambda task: task.position)


def sort_active_board(tasks: Iterable[Task]) -> List[Task]:
    """Sort tasks for the active board.

    Ordered by quadrant, then position ascending; tasks sharing a position
    (e.g. after a partially failed reorder) fall back to newest first.
    """
    by_newest = sorted(tasks, key=lambda task: task.created_at, reverse=True)
    return sorted(by_newest, key=lambda task: (task.quadrant, task.position))


def plan_move_to_quadrant(snapshot: List[Task], task_id: str, target_quadrant) -> Optional[OperationPlan]:
    """Plan moving a task to the end of another quadrant.

    Args:
        snapshot: Current local task list
        task_id: Task to move
        target_quadrant: Destination quadrant

    Returns:
        OperationPlan, or None if the task already sits in the target quadrant

    Raises:
        TaskNotFoundError: If the task is not in the snapshot
        ValidationFailure: If the quadrant is unknown
    """
    target = _quadrant_value(target_quadrant)
    task = next((t for t in snapshot if t.id == task_id), None)
    if task is None:
        raise TaskNotFoundError(task_id)
    if task.quadrant == target:
        return None

    position = next_position(snapshot, target)
    logger.debug(f"Moving task {task_id} from {task.quadrant} to {target} at position {position}")
    return build_plan(
        "move_to_quadrant",
        snapshot,
        [update_op(task_id, quadrant=target, position=position)],
    )


def plan_reorder_within_quadrant(snapshot: List[Task], quadrant, ordered_ids: List[str]) -> OperationPlan:
    """Plan a full renumbering of a quadrant.

    Ids that are not active tasks of the quadrant are ignored. What remains
    must name every active task of the quadrant exactly once.

    Args:
        snapshot: Current local task list
        quadrant: Quadrant being reordered
        ordered_ids: Complete desired id sequence

    Returns:
        Atomic OperationPlan with one position update per task

    Raises:
        ValidationFailure: On duplicates or missing ids
    """
    current_ids = [task.id for task in ordered_quadrant_tasks(snapshot, quadrant)]
    known = set(current_ids)
    sequence = [task_id for task_id in ordered_ids if task_id in known]

    if len(set(sequence)) != len(sequence):
        raise ValidationFailure("Reorder sequence contains duplicate task ids")
    missing = known.difference(sequence)
    if missing:
        raise ValidationFailure(f"Reorder sequence is missing {len(missing)} task(s) of quadrant {_quadrant_value(quadrant)}")

    operations = [update_op(task_id, position=index + 1) for index, task_id in enumerate(sequence)]
    return build_plan("reorder_within_quadrant", snapshot, operations, atomic=True)
