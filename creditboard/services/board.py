"""Client-side task board.

Owns the in-memory task snapshot and runs every intent through the same
pipeline: plan against the snapshot, apply the next snapshot optimistically,
confirm with the store, and on failure roll back exactly the rows the plan
touched.
"""

import logging
from typing import Callable, List, Optional

from creditboard.models.task import Task
from creditboard.engine.errors import TaskNotFoundError, TransientStoreError
from creditboard.engine.operations import OperationKind, OperationPlan, merge_confirmed, rollback
from creditboard.engine.ordering import plan_move_to_quadrant, plan_reorder_within_quadrant, sort_active_board
from creditboard.engine.lifecycle import (
    archive_cutoff,
    plan_delete,
    plan_restore,
    plan_toggle_completed,
)
from creditboard.engine.ports import Clock, SystemClock, TaskStore

logger = logging.getLogger(__name__)


class TaskBoard:
    """Active task board backed by a Task Store Adapter."""

    def __init__(
        self,
        store: TaskStore,
        clock: Optional[Clock] = None,
        on_change: Optional[Callable[[List[Task]], None]] = None,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.on_change = on_change
        self.tasks: List[Task] = []

    def _set_tasks(self, tasks: List[Task]) -> None:
        self.tasks = tasks
        if self.on_change:
            self.on_change(self.tasks)

    def load(self, include_archived: bool = False) -> List[Task]:
        """Load the board.

        The active board (default) runs the archive sweep first; the history
        view loads every task, archived ones included, without sweeping.
        """
        if include_archived:
            self._set_tasks(self.store.find_many(order_by=[("created_at", "desc")]))
            return self.tasks

        now = self.clock.now()
        self.store.archive_completed_before(archive_cutoff(now), now)
        self.store.clear_archived_on_open()
        active = self.store.find_many({"archived_at": None})
        self._set_tasks(sort_active_board(active))
        return self.tasks

    def _execute(self, plan: Optional[OperationPlan]) -> bool:
        """Apply a plan optimistically and confirm it with the store.

        Returns:
            True if the store confirmed the plan (or there was nothing to do),
            False if it failed and the touched rows were rolled back
        """
        if plan is None:
            return True

        self._set_tasks(plan.next_snapshot)
        try:
            if plan.atomic:
                confirmed = self.store.transaction(plan.operations)
            else:
                confirmed = []
                for op in plan.operations:
                    if op.kind == OperationKind.DELETE:
                        self.store.delete(op.task_id)
                    else:
                        confirmed.append(self.store.update(op.task_id, op.fields))
        except (TaskNotFoundError, TransientStoreError) as e:
            logger.warning(
                f"{plan.action} failed ({type(e).__name__}: {e}); "
                f"rolling back {len(plan.compensation.task_ids)} task(s)"
            )
            self._set_tasks(rollback(self.tasks, plan.compensation))
            return False
        except Exception as e:
            logger.error(
                f"{plan.action} raised {type(e).__name__}: {str(e)}; "
                f"rolling back {len(plan.compensation.task_ids)} task(s)"
            )
            self._set_tasks(rollback(self.tasks, plan.compensation))
            raise

        self._set_tasks(merge_confirmed(self.tasks, confirmed))
        return True

    def ordered(self) -> List[Task]:
        """Active (non-archived) tasks in board order."""
        return sort_active_board(t for t in self.tasks if t.archived_at is None)

    def move_to_quadrant(self, task_id: str, quadrant) -> bool:
        return self._execute(plan_move_to_quadrant(self.tasks, task_id, quadrant))

    def reorder_within_quadrant(self, quadrant, ordered_ids: List[str]) -> bool:
        return self._execute(plan_reorder_within_quadrant(self.tasks, quadrant, ordered_ids))

    def toggle_completed(self, task_id: str) -> bool:
        return self._execute(plan_toggle_completed(self.tasks, task_id, self.clock.now()))

    def delete(self, task_id: str) -> bool:
        return self._execute(plan_delete(self.tasks, task_id, self.clock.now()))

    def restore(self, task_id: str) -> bool:
        """Restore an archived task to the active board.

        The active view does not hold archived rows, so a task missing from the
        snapshot is fetched from the store and joined to it before planning.
        """
        if not any(t.id == task_id for t in self.tasks):
            task = self.store.get(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            self._set_tasks(self.tasks + [task])
        return self._execute(plan_restore(self.tasks, task_id))
