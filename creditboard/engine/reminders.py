"""Reminder scoring for creditboard.

Ranks open tasks by deadline proximity plus a bonus for large amounts and
keeps the top few. Same inputs always produce the same list.
"""

from datetime import date, datetime
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from creditboard.models.task import Task
from creditboard.models.constants import (
    AMOUNT_BONUS_TIERS,
    REMINDER_LIMIT,
    SCORE_MONITOR,
    SCORE_OVERDUE,
    SCORE_THIS_WEEK,
    SCORE_TODAY,
    SCORE_UPCOMING,
    THIS_WEEK_DAYS,
    UPCOMING_DAYS,
)


class ReminderReason(str, Enum):
    """Why a task made the attention list."""
    OVERDUE = "Overdue"
    TODAY = "Today"
    UPCOMING = "Upcoming"
    THIS_WEEK = "This week"
    MONITOR = "Monitor"


class ReminderItem(BaseModel):
    """A ranked attention item."""

    id: str = Field(..., description="Task ID")
    title: str = Field(..., description="Task title")
    type: str = Field(..., description="Task type")
    deadline: date = Field(..., description="Task deadline")
    diff_days: int = Field(..., description="Whole days from today to the deadline")
    score: int = Field(..., description="Base urgency score plus amount bonus")
    reason: ReminderReason = Field(..., description="Urgency reason")
    amount: int = Field(..., description="Disbursement + recovery + mobilized")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


def parse_date_only(value) -> Optional[date]:
    """Parse a date-only value.

    Accepts ``date``, ``datetime`` (time dropped) and ISO strings, where any
    time part after ``T`` is ignored. Returns None when nothing parses.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip().split("T")[0]
        if not text:
            return None
        try:
            return date.fromisoformat(text)
        except ValueError:
            return None
    return None


def base_score(diff_days: int) -> Tuple[int, ReminderReason]:
    """Urgency score and reason for a deadline ``diff_days`` away."""
    if diff_days < 0:
        return SCORE_OVERDUE, ReminderReason.OVERDUE
    if diff_days == 0:
        return SCORE_TODAY, ReminderReason.TODAY
    if diff_days <= UPCOMING_DAYS:
        return SCORE_UPCOMING, ReminderReason.UPCOMING
    if diff_days <= THIS_WEEK_DAYS:
        return SCORE_THIS_WEEK, ReminderReason.THIS_WEEK
    return SCORE_MONITOR, ReminderReason.MONITOR


def amount_bonus(amount: int) -> int:
    for minimum, bonus in AMOUNT_BONUS_TIERS:
        if amount >= minimum:
            return bonus
    return 0


def reminder_amount(task: Task) -> int:
    return (task.amount_disbursement or 0) + (task.amount_recovery or 0) + (task.amount_mobilized or 0)


def score_task(task: Task, today: date) -> Optional[ReminderItem]:
    """Score one task; None if it is completed or has no usable deadline."""
    if task.completed:
        return None
    deadline = parse_date_only(task.deadline)
    if deadline is None:
        return None

    diff_days = (deadline - today).days
    score, reason = base_score(diff_days)
    amount = reminder_amount(task)
    return ReminderItem(
        id=task.id,
        title=task.title,
        type=task.type,
        deadline=deadline,
        diff_days=diff_days,
        score=score + amount_bonus(amount),
        reason=reason,
        amount=amount,
    )


def build_reminder_items(tasks: Iterable[Task], today: date, limit: int = REMINDER_LIMIT) -> List[ReminderItem]:
    """Build the ranked attention list.

    Sorted by score (highest first); equal scores put the soonest deadline
    first and otherwise keep input order.

    Args:
        tasks: Candidate tasks (completed ones are skipped)
        today: Reference date (date-only comparison)
        limit: Maximum number of items

    Returns:
        At most ``limit`` reminder items
    """
    items = [item for item in (score_task(task, today) for task in tasks) if item is not None]
    items.sort(key=lambda item: (-item.score, item.deadline))
    return items[:limit]
