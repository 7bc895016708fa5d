"""Tests for the optimistic task board (plan, apply, confirm or roll back)."""

from datetime import timedelta

import pytest
from sqlalchemy import text

from creditboard.models.task import Quadrant
from creditboard.engine.lifecycle import plan_delete
from creditboard.database.repository import TaskRepository
from creditboard.engine.errors import TaskNotFoundError
from creditboard.engine.operations import build_plan, rollback, update_op
from creditboard.services.board import TaskBoard
from tests.fakes import InMemoryTaskStore


def _board(tasks, fixed_clock):
    store = InMemoryTaskStore(tasks)
    board = TaskBoard(store, fixed_clock)
    board.load()
    return board, store


class TestRollback:
    """Compensation restores exactly the touched rows and fields."""

    def test_rollback_restores_pre_image(self, make_task):
        a = make_task(title="A", position=1)
        b = make_task(title="B", position=2)
        plan = build_plan("reorder", [a, b], [update_op(a.id, position=2), update_op(b.id, position=1)])

        assert rollback(plan.next_snapshot, plan.compensation) == [a, b]

    def test_rollback_keeps_unrelated_edits(self, make_task):
        a = make_task(title="A", position=1)
        b = make_task(title="B", position=2)
        plan = build_plan("move", [a, b], [update_op(a.id, quadrant="Q2", position=1)])

        # B was renamed elsewhere while the move was in flight
        current = [plan.next_snapshot[0], b.model_copy(update={"title": "B renamed"})]
        restored = rollback(current, plan.compensation)

        assert restored[0] == a
        assert restored[1].title == "B renamed"

    def test_rollback_reinserts_deleted_row(self, make_task, now):
        a, b, c = make_task(title="A"), make_task(title="B"), make_task(title="C")
        plan = plan_delete([a, b, c], b.id, now)

        assert [t.title for t in rollback(plan.next_snapshot, plan.compensation)] == ["A", "B", "C"]


class TestTaskBoard:
    def test_load_runs_sweep_and_sorts(self, make_task, fixed_clock, now):
        stale = make_task(title="Stale", completed=True, completed_at=now - timedelta(days=8))
        q2 = make_task(title="Q2", quadrant=Quadrant.Q2, position=1)
        q1 = make_task(title="Q1", quadrant=Quadrant.Q1, position=1)

        board, store = _board([stale, q2, q1], fixed_clock)

        assert [t.title for t in board.tasks] == ["Q1", "Q2"]
        assert store.rows[stale.id].archived_at == now
        assert store.calls[:2] == ["archive_completed_before", "clear_archived_on_open"]

    def test_history_includes_archived(self, make_task, fixed_clock, now):
        archived = make_task(title="Archived", completed=True, completed_at=now, archived_at=now)
        board, _ = _board([archived, make_task(title="Open")], fixed_clock)

        history = board.load(include_archived=True)
        assert {t.title for t in history} == {"Archived", "Open"}
        assert len(board.ordered()) == 1

    def test_move_confirmed(self, make_task, fixed_clock):
        task = make_task(quadrant=Quadrant.Q1, position=1)
        board, store = _board([task, make_task(quadrant=Quadrant.Q3, position=2)], fixed_clock)

        assert board.move_to_quadrant(task.id, Quadrant.Q3) is True
        assert store.rows[task.id].quadrant == Quadrant.Q3
        assert store.rows[task.id].position == 3

    def test_move_to_same_quadrant_issues_no_store_call(self, make_task, fixed_clock):
        task = make_task(quadrant=Quadrant.Q2)
        board, store = _board([task], fixed_clock)
        calls_before = list(store.calls)

        assert board.move_to_quadrant(task.id, Quadrant.Q2) is True
        assert store.calls == calls_before

    def test_failed_move_rolls_back(self, make_task, fixed_clock):
        task = make_task(quadrant=Quadrant.Q1, position=1)
        board, store = _board([task], fixed_clock)
        before = list(board.tasks)

        store.fail_next = True
        assert board.move_to_quadrant(task.id, Quadrant.Q4) is False

        assert board.tasks == before
        assert store.rows[task.id].quadrant == Quadrant.Q1

    def test_failed_reorder_leaves_store_and_snapshot_untouched(self, make_task, fixed_clock):
        a = make_task(title="A", position=1)
        b = make_task(title="B", position=2)
        board, store = _board([a, b], fixed_clock)
        before = list(board.tasks)

        store.fail_next = True
        assert board.reorder_within_quadrant(Quadrant.Q1, [b.id, a.id]) is False

        assert board.tasks == before
        assert store.rows[a.id].position == 1
        assert store.rows[b.id].position == 2

    def test_reorder_confirmed(self, make_task, fixed_clock):
        a = make_task(title="A", position=1)
        b = make_task(title="B", position=2)
        board, store = _board([a, b], fixed_clock)

        assert board.reorder_within_quadrant(Quadrant.Q1, [b.id, a.id]) is True
        assert [t.title for t in board.ordered()] == ["B", "A"]
        assert store.calls[-1] == "transaction"

    def test_toggle_completed(self, make_task, fixed_clock, now):
        task = make_task()
        board, store = _board([task], fixed_clock)

        assert board.toggle_completed(task.id) is True
        assert store.rows[task.id].completed_at == now

        assert board.toggle_completed(task.id) is True
        assert store.rows[task.id].completed is False
        assert store.rows[task.id].completed_at is None

    def test_delete_missing_in_store_rolls_back(self, make_task, fixed_clock):
        task = make_task(title="Ghost")
        board, store = _board([task], fixed_clock)
        del store.rows[task.id]

        assert board.delete(task.id) is False
        assert [t.title for t in board.tasks] == ["Ghost"]

    def test_delete_completed_archives(self, make_task, fixed_clock, now):
        task = make_task(completed=True, completed_at=now - timedelta(hours=2))
        board, store = _board([task], fixed_clock)

        assert board.delete(task.id) is True
        assert store.rows[task.id].archived_at == now
        assert board.ordered() == []

    def test_restore(self, make_task, fixed_clock, now):
        task = make_task(completed=True, completed_at=now - timedelta(days=10), archived_at=now - timedelta(days=2))
        board, store = _board([task], fixed_clock)
        board.load(include_archived=True)

        assert board.restore(task.id) is True
        assert store.rows[task.id].archived_at is None
        assert store.rows[task.id].completed is True

    def test_on_change_receives_every_snapshot(self, make_task, fixed_clock):
        seen = []
        task = make_task(quadrant=Quadrant.Q1)
        board = TaskBoard(InMemoryTaskStore([task]), fixed_clock, on_change=lambda tasks: seen.append(len(tasks)))

        board.load()
        board.move_to_quadrant(task.id, Quadrant.Q2)

        # load, optimistic apply, confirmation
        assert seen == [1, 1, 1]

    def test_restore_from_active_view(self, make_task, fixed_clock, now):
        archived = make_task(
            title="Archived", completed=True, completed_at=now - timedelta(days=10), archived_at=now - timedelta(days=2)
        )
        board, store = _board([archived, make_task(title="Open")], fixed_clock)
        assert [t.title for t in board.tasks] == ["Open"]

        assert board.restore(archived.id) is True
        assert store.rows[archived.id].archived_at is None
        assert {t.title for t in board.ordered()} == {"Archived", "Open"}

    def test_restore_unknown_task(self, fixed_clock):
        board, _ = _board([], fixed_clock)

        with pytest.raises(TaskNotFoundError):
            board.restore("missing")
        assert board.tasks == []

    def test_unexpected_store_error_rolls_back_and_propagates(self, make_task, fixed_clock, monkeypatch):
        task = make_task(quadrant=Quadrant.Q1, position=1)
        board, store = _board([task], fixed_clock)
        before = list(board.tasks)

        def broken_update(task_id, fields):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(store, "update", broken_update)
        with pytest.raises(RuntimeError):
            board.move_to_quadrant(task.id, Quadrant.Q4)

        assert board.tasks == before


class TestTaskBoardOnDatabase:
    """Board backed by the SQLAlchemy repository."""

    def test_move_rolls_back_when_table_is_gone(self, db_session, make_task, fixed_clock):
        repo = TaskRepository(db_session)
        task = repo.create(make_task(quadrant=Quadrant.Q1, position=1))
        board = TaskBoard(repo, fixed_clock)
        board.load()
        before = list(board.tasks)

        db_session.execute(text("ALTER TABLE tasks RENAME TO tasks_gone"))
        db_session.commit()

        assert board.move_to_quadrant(task.id, Quadrant.Q3) is False
        assert board.tasks == before

    def test_move_confirmed(self, db_session, make_task, fixed_clock):
        repo = TaskRepository(db_session)
        task = repo.create(make_task(quadrant=Quadrant.Q1, position=1))
        board = TaskBoard(repo, fixed_clock)
        board.load()

        assert board.move_to_quadrant(task.id, Quadrant.Q3) is True
        assert repo.get(task.id).quadrant == Quadrant.Q3
        assert board.tasks[0].quadrant == Quadrant.Q3
