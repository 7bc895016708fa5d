"""Data models for creditboard."""

from creditboard.models.task import Task, Quadrant, TaskType, LifecycleState
from creditboard.models.settings import OutstandingExtras, PreviousDayBalance, TargetValues

__all__ = [
    "Task",
    "Quadrant",
    "TaskType",
    "LifecycleState",
    "OutstandingExtras",
    "PreviousDayBalance",
    "TargetValues",
]
