"""Dashboard session: the task board, the outstanding ledger and reminders wired together."""

import logging
from typing import List, Optional

from creditboard.models.task import Task
from creditboard.models.settings import OutstandingExtras
from creditboard.engine.ports import Clock, SettingsStore, SystemClock, TaskStore
from creditboard.engine.reminders import ReminderItem, build_reminder_items
from creditboard.engine.rollover import DayKeyTracker, OutstandingLedger, OutstandingSnapshot
from creditboard.services.board import TaskBoard

logger = logging.getLogger(__name__)


class Dashboard:
    """One user's dashboard session.

    The board shows active tasks only, but the outstanding ledger sums every
    completed task of the day, month and year, archived ones included. The
    archived history is loaded alongside the board and both feed the ledger.

    Every change to the board snapshot refreshes the persisted closing
    balance, so the next day's rollover has a value to read.
    """

    def __init__(self, store: TaskStore, settings: SettingsStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or SystemClock()
        self.archived: List[Task] = []
        self.ledger = OutstandingLedger(settings, self.clock)
        self.board = TaskBoard(store, self.clock, on_change=self._on_tasks_changed)
        self.tracker = DayKeyTracker(self.ledger, self.ledger_tasks)

    def ledger_tasks(self) -> List[Task]:
        """Board snapshot plus archived history; the board's copy of a row wins."""
        on_board = {t.id for t in self.board.tasks}
        return self.board.tasks + [t for t in self.archived if t.id not in on_board]

    def _load_archived(self) -> None:
        self.archived = [t for t in self.store.find_many() if t.archived_at is not None]
        logger.debug(f"Loaded {len(self.archived)} archived task(s) for the ledger")

    def _record_closing_balance(self) -> None:
        # Before the first tick there is no day key to tag the record with.
        if self.ledger.day_key is not None:
            self.ledger.record_closing_balance(self.ledger_tasks())

    def _on_tasks_changed(self, tasks: List[Task]) -> None:
        self._record_closing_balance()

    def start(self) -> None:
        """Load the active board and the archived history, then run the first day-key tick."""
        self.board.load()
        self._load_archived()
        self.tracker.tick()

    def reminders(self) -> List[ReminderItem]:
        return build_reminder_items(self.board.tasks, self.clock.now().date())

    def outstanding(self) -> OutstandingSnapshot:
        return self.ledger.snapshot(self.ledger_tasks())

    def set_baseline(
        self,
        start_of_day: Optional[int] = None,
        start_of_month: Optional[int] = None,
        start_of_year: Optional[int] = None,
    ) -> OutstandingExtras:
        """Edit the baseline seeds and refresh the closing record to match."""
        extras = self.ledger.set_baseline(
            start_of_day=start_of_day,
            start_of_month=start_of_month,
            start_of_year=start_of_year,
        )
        self._record_closing_balance()
        return extras

    def reset_outstanding(self) -> OutstandingSnapshot:
        """'Reset to start of day': re-zero today's movement on screen only."""
        self.ledger.reset_to_start_of_day(self.ledger_tasks())
        return self.outstanding()
