"""Financial totals for creditboard.

All sums are plain integers (whole currency units); a missing amount counts
as zero.
"""

from datetime import datetime
from typing import Iterable, List

from pydantic import BaseModel, Field

from creditboard.models.task import Task


class DashboardTotals(BaseModel):
    """Totals shown on the dashboard cards."""

    total_disbursement: int = Field(0, description="Sum of disbursed amounts")
    total_recovery: int = Field(0, description="Sum of recovered amounts")
    total_mobilized: int = Field(0, description="Sum of mobilized amounts")
    total_service_fee: int = Field(0, description="Sum of service fees")
    net_outstanding: int = Field(0, description="Disbursed minus recovered")


class PeriodDeltas(BaseModel):
    """Net outstanding movement of tasks completed in the current day, month and year."""

    today: int = 0
    month: int = 0
    year: int = 0


def summarize_totals(tasks: Iterable[Task]) -> DashboardTotals:
    """Sum the four financial fields over tasks."""
    totals = DashboardTotals()
    for task in tasks:
        totals.total_disbursement += task.amount_disbursement or 0
        totals.total_recovery += task.amount_recovery or 0
        totals.total_mobilized += task.amount_mobilized or 0
        totals.total_service_fee += task.service_fee or 0
    totals.net_outstanding = totals.total_disbursement - totals.total_recovery
    return totals


def net_delta(tasks: Iterable[Task]) -> int:
    """Disbursed minus recovered over tasks."""
    return sum((task.amount_disbursement or 0) - (task.amount_recovery or 0) for task in tasks)


def completed_on_day(tasks: Iterable[Task], now: datetime) -> List[Task]:
    day = now.date()
    return [t for t in tasks if t.completed and t.completed_at is not None and t.completed_at.date() == day]


def completed_in_month(tasks: Iterable[Task], now: datetime) -> List[Task]:
    return [
        t for t in tasks
        if t.completed and t.completed_at is not None
        and (t.completed_at.year, t.completed_at.month) == (now.year, now.month)
    ]


def completed_in_year(tasks: Iterable[Task], now: datetime) -> List[Task]:
    return [t for t in tasks if t.completed and t.completed_at is not None and t.completed_at.year == now.year]


def period_deltas(tasks: Iterable[Task], now: datetime) -> PeriodDeltas:
    """Net outstanding deltas for the day, month and year containing ``now``."""
    tasks = list(tasks)
    return PeriodDeltas(
        today=net_delta(completed_on_day(tasks, now)),
        month=net_delta(completed_in_month(tasks, now)),
        year=net_delta(completed_in_year(tasks, now)),
    )
