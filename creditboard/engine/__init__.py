"""Task board engines for creditboard."""

from creditboard.engine.errors import TaskNotFoundError, ValidationFailure, InvalidTransitionError, TransientStoreError
from creditboard.engine.operations import OperationPlan, StoreOperation, build_plan, rollback
from creditboard.engine.ordering import next_position, plan_move_to_quadrant, plan_reorder_within_quadrant, sort_active_board
from creditboard.engine.lifecycle import (
    plan_complete,
    plan_uncomplete,
    plan_toggle_completed,
    plan_restore,
    plan_delete,
    sweep_archive_operations,
)
from creditboard.engine.rollover import OutstandingLedger, OutstandingSnapshot, day_key
from creditboard.engine.reminders import build_reminder_items, ReminderItem

__all__ = [
    "TaskNotFoundError",
    "ValidationFailure",
    "InvalidTransitionError",
    "TransientStoreError",
    "OperationPlan",
    "StoreOperation",
    "build_plan",
    "rollback",
    "next_position",
    "plan_move_to_quadrant",
    "plan_reorder_within_quadrant",
    "sort_active_board",
    "plan_complete",
    "plan_uncomplete",
    "plan_toggle_completed",
    "plan_restore",
    "plan_delete",
    "sweep_archive_operations",
    "OutstandingLedger",
    "OutstandingSnapshot",
    "day_key",
    "build_reminder_items",
    "ReminderItem",
]
