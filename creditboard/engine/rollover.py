"""Balance rollover engine for creditboard.

The "net outstanding" figure behaves like a running ledger balance: a
user-entered baseline (start of day / month / year) plus the net movement of
tasks completed in the period. On every day-key change the previous day's
closing balance is carried into ``start_of_day`` unless the user has set one.

Only two records are owned here, both in the injected settings store:
the baseline triple and the previous-day closing balance.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from creditboard.models.task import Task
from creditboard.models.settings import OutstandingExtras, PreviousDayBalance, TargetValues, default_monthly_targets
from creditboard.models.constants import (
    DAY_KEY_POLL_SECONDS,
    OUTSTANDING_EXTRAS_STORAGE_KEY,
    OUTSTANDING_PREVIOUS_DAY_KEY,
    TARGETS_STORAGE_KEY,
    MONTHLY_TARGETS_STORAGE_KEY,
)
from creditboard.engine.ports import Clock, SettingsStore, SystemClock
from creditboard.engine.totals import (
    period_deltas,
    completed_in_month,
    completed_in_year,
    summarize_totals,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def day_key(now: datetime) -> str:
    """Current date truncated to day granularity (YYYY-MM-DD)."""
    return now.date().isoformat()


def load_setting(settings: SettingsStore, key: str, model: Type[M]) -> Optional[M]:
    """Read and validate a settings record; malformed values are ignored."""
    raw = settings.get(key)
    if raw is None:
        return None
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed setting {key}: {e.error_count()} error(s)")
        return None


def adopt_previous_day(extras: OutstandingExtras, previous: Optional[PreviousDayBalance], today: str) -> OutstandingExtras:
    """Carry the previous day's closing balance into ``start_of_day``.

    Only applies when the user has not set a nonzero start of day, and never
    adopts a record written today (that would be today's in-progress figure).
    """
    if extras.start_of_day != 0 or previous is None or previous.date == today:
        return extras
    return extras.model_copy(update={"start_of_day": previous.outstanding})


def closing_balance(extras: OutstandingExtras, today: str, today_delta: int) -> PreviousDayBalance:
    """Closing record for tomorrow's rollover: start of day plus today's movement."""
    return PreviousDayBalance(date=today, outstanding=extras.start_of_day + today_delta)


class OutstandingSnapshot(BaseModel):
    """Outstanding figures for the current day, month and year."""

    day_key: str = Field(..., description="Day key the snapshot was computed for")
    start_of_day: int
    start_of_month: int
    start_of_year: int
    today_delta: int
    month_delta: int
    year_delta: int
    display_adjustment: int = Field(0, description="Display-only offset set by 'reset to start of day'")
    current: int = Field(..., description="start_of_day + today_delta + display_adjustment")
    month_outstanding: int
    year_outstanding: int


class OutstandingLedger:
    """Running outstanding balance across day, month and year boundaries.

    The baseline is loaded from the settings store once, at construction, and
    written back on every mutation. The display adjustment lives only in
    memory and is dropped whenever the day key changes.
    """

    def __init__(self, settings: SettingsStore, clock: Optional[Clock] = None):
        self.settings = settings
        self.clock = clock or SystemClock()
        self.extras = load_setting(settings, OUTSTANDING_EXTRAS_STORAGE_KEY, OutstandingExtras) or OutstandingExtras()
        self.day_key: Optional[str] = None
        self.display_adjustment = 0

    def _save_extras(self) -> None:
        self.settings.set(OUTSTANDING_EXTRAS_STORAGE_KEY, self.extras.model_dump())

    def set_baseline(
        self,
        start_of_day: Optional[int] = None,
        start_of_month: Optional[int] = None,
        start_of_year: Optional[int] = None,
    ) -> OutstandingExtras:
        """Update any of the three baseline seeds."""
        updates = {
            name: value
            for name, value in (
                ("start_of_day", start_of_day),
                ("start_of_month", start_of_month),
                ("start_of_year", start_of_year),
            )
            if value is not None
        }
        self.extras = self.extras.model_copy(update=updates)
        self._save_extras()
        logger.debug(f"Outstanding baseline set: {self.extras.model_dump()}")
        return self.extras

    def poll(self, tasks: Iterable[Task]) -> bool:
        """Recompute the day key and roll over if it changed.

        Returns:
            True if the day key changed (always True on the first poll)
        """
        tasks = list(tasks)
        today = day_key(self.clock.now())
        if today == self.day_key:
            return False

        if self.day_key is not None:
            logger.info(f"Day key changed: {self.day_key} -> {today}")
        self.day_key = today
        self.display_adjustment = 0

        previous = load_setting(self.settings, OUTSTANDING_PREVIOUS_DAY_KEY, PreviousDayBalance)
        rolled = adopt_previous_day(self.extras, previous, today)
        if rolled is not self.extras:
            logger.info(f"Adopted previous day closing balance {rolled.start_of_day} from {previous.date}")
            self.extras = rolled
            self._save_extras()

        self.record_closing_balance(tasks)
        return True

    def record_closing_balance(self, tasks: Iterable[Task]) -> PreviousDayBalance:
        """Persist start of day plus today's delta, tagged with today's day key."""
        now = self.clock.now()
        record = closing_balance(self.extras, day_key(now), period_deltas(tasks, now).today)
        self.settings.set(OUTSTANDING_PREVIOUS_DAY_KEY, record.model_dump())
        return record

    def reset_to_start_of_day(self, tasks: Iterable[Task]) -> int:
        """Visually re-zero today's movement without touching the stored baseline."""
        self.display_adjustment = -period_deltas(tasks, self.clock.now()).today
        return self.display_adjustment

    def snapshot(self, tasks: Iterable[Task]) -> OutstandingSnapshot:
        now = self.clock.now()
        deltas = period_deltas(tasks, now)
        return OutstandingSnapshot(
            day_key=day_key(now),
            start_of_day=self.extras.start_of_day,
            start_of_month=self.extras.start_of_month,
            start_of_year=self.extras.start_of_year,
            today_delta=deltas.today,
            month_delta=deltas.month,
            year_delta=deltas.year,
            display_adjustment=self.display_adjustment,
            current=self.extras.start_of_day + deltas.today + self.display_adjustment,
            month_outstanding=self.extras.start_of_month + deltas.month,
            year_outstanding=self.extras.start_of_year + deltas.year,
        )


class DayKeyTracker:
    """Polls the clock for day-key changes and notifies listeners."""

    def __init__(self, ledger: OutstandingLedger, load_tasks: Callable[[], List[Task]]):
        self.ledger = ledger
        self.load_tasks = load_tasks
        self.listeners: List[Callable[[str], None]] = []

    def tick(self) -> bool:
        changed = self.ledger.poll(self.load_tasks())
        if changed:
            for listener in self.listeners:
                listener(self.ledger.day_key)
        return changed


async def run_day_key_watcher(tracker: DayKeyTracker, *, interval_seconds: float = DAY_KEY_POLL_SECONDS) -> None:
    """Tick the tracker every ``interval_seconds``.

    To stop the watcher, cancel the coroutine/task.
    """
    while True:
        try:
            tracker.tick()
        except Exception:
            logger.exception("Day key tick failed")
        await asyncio.sleep(interval_seconds)


# Target progress


def load_targets(settings: SettingsStore) -> TargetValues:
    return load_setting(settings, TARGETS_STORAGE_KEY, TargetValues) or TargetValues()


def load_monthly_targets(settings: SettingsStore) -> TargetValues:
    return load_setting(settings, MONTHLY_TARGETS_STORAGE_KEY, TargetValues) or default_monthly_targets()


class TargetProgress(BaseModel):
    """Progress of one target card."""

    key: str
    month_actual: int
    month_target: int
    month_percent: float
    year_actual: int
    year_target: int
    year_percent: float


def clamp_percent(value: float) -> float:
    return min(100.0, max(0.0, value))


def _percent(actual: int, target: int) -> float:
    if target <= 0:
        return 0.0
    return round(clamp_percent(actual * 100 / target), 1)


def compute_target_progress(
    tasks: Iterable[Task],
    targets: TargetValues,
    monthly_targets: TargetValues,
    extras: OutstandingExtras,
    now: datetime,
) -> Dict[str, TargetProgress]:
    """Month and year progress for the outstanding, mobilized and service-fee targets.

    Outstanding progress is measured against the distance from the baseline:
    the month target minus start of day, and the year target minus start of
    year. The other targets compare period sums with their targets directly.
    """
    tasks = list(tasks)
    month = summarize_totals(completed_in_month(tasks, now))
    year = summarize_totals(completed_in_year(tasks, now))

    month_span = monthly_targets.outstanding - extras.start_of_day
    year_span = targets.outstanding - extras.start_of_year
    year_progress = extras.start_of_day - extras.start_of_year

    return {
        "outstanding": TargetProgress(
            key="outstanding",
            month_actual=month.net_outstanding,
            month_target=month_span,
            month_percent=_percent(month.net_outstanding, month_span),
            year_actual=year_progress,
            year_target=year_span,
            year_percent=_percent(year_progress, year_span),
        ),
        "mobilized": TargetProgress(
            key="mobilized",
            month_actual=month.total_mobilized,
            month_target=monthly_targets.mobilized,
            month_percent=_percent(month.total_mobilized, monthly_targets.mobilized),
            year_actual=year.total_mobilized,
            year_target=targets.mobilized,
            year_percent=_percent(year.total_mobilized, targets.mobilized),
        ),
        "service_fee": TargetProgress(
            key="service_fee",
            month_actual=month.total_service_fee,
            month_target=monthly_targets.service_fee,
            month_percent=_percent(month.total_service_fee, monthly_targets.service_fee),
            year_actual=year.total_service_fee,
            year_target=targets.service_fee,
            year_percent=_percent(year.total_service_fee, targets.service_fee),
        ),
    }
