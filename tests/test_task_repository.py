"""Tests for TaskRepository CRUD operations."""

import pytest
from datetime import timedelta
from sqlalchemy import text

from creditboard.models.task import Quadrant, TaskType
from creditboard.engine.errors import TaskNotFoundError, TransientStoreError, ValidationFailure
from creditboard.engine.operations import delete_op, update_op


class TestTaskRepository:
    """Test TaskRepository CRUD operations."""

    def test_create_task(self, task_repository, sample_task):
        """Test creating a task."""
        created = task_repository.create(sample_task)

        assert created.id == sample_task.id
        assert created.title == sample_task.title
        assert created.quadrant == Quadrant.Q1
        assert created.type == TaskType.APPRAISAL

    def test_amounts_round_trip_as_integers(self, task_repository, make_task):
        """Large amounts survive the database as exact integers."""
        task = make_task(type=TaskType.DISBURSEMENT, amount_disbursement=12_345_678_901, service_fee=0)
        created = task_repository.create(task)

        assert created.amount_disbursement == 12_345_678_901
        assert created.service_fee == 0
        assert created.amount_recovery is None

    def test_get_task_by_id(self, task_repository, sample_task):
        """Test retrieving a task by ID."""
        created = task_repository.create(sample_task)
        retrieved = task_repository.get(created.id)

        assert retrieved is not None
        assert retrieved.id == created.id
        assert retrieved.title == created.title

    def test_get_nonexistent_task(self, task_repository):
        """Test retrieving a nonexistent task returns None."""
        assert task_repository.get("nonexistent-id") is None

    def test_get_all_sorted_by_creation_date(self, task_repository, make_task, now):
        """Test that get_all() returns tasks sorted by creation date (newest first)."""
        task1 = make_task(created_at=now, title="Task 1")
        task2 = make_task(created_at=now - timedelta(minutes=1), title="Task 2")
        task3 = make_task(created_at=now - timedelta(minutes=2), title="Task 3")

        # Create in reverse order
        task_repository.create(task3)
        task_repository.create(task2)
        task_repository.create(task1)

        all_tasks = task_repository.get_all()
        assert [t.title for t in all_tasks] == ["Task 1", "Task 2", "Task 3"]

    def test_get_all_excluding_archived(self, task_repository, make_task, now):
        task_repository.create(make_task(title="Active"))
        task_repository.create(make_task(title="Archived", completed=True, completed_at=now, archived_at=now))

        assert [t.title for t in task_repository.get_all(include_archived=False)] == ["Active"]
        assert len(task_repository.get_all()) == 2

    def test_get_active_board_order(self, task_repository, make_task):
        task_repository.create(make_task(title="Q2 first", quadrant=Quadrant.Q2, position=1))
        task_repository.create(make_task(title="Q1 second", quadrant=Quadrant.Q1, position=2))
        task_repository.create(make_task(title="Q1 first", quadrant=Quadrant.Q1, position=1))

        board = task_repository.get_active_board()
        assert [t.title for t in board] == ["Q1 first", "Q1 second", "Q2 first"]

    def test_update_task(self, task_repository, sample_task):
        """Test updating a task."""
        created = task_repository.create(sample_task)

        updated = task_repository.update(created.id, {"title": "Updated Title", "quadrant": Quadrant.Q3})

        assert updated.title == "Updated Title"
        assert updated.quadrant == Quadrant.Q3
        assert task_repository.get(created.id).quadrant == Quadrant.Q3

    def test_update_nonexistent_task(self, task_repository):
        """Test updating a nonexistent task raises TaskNotFoundError."""
        with pytest.raises(TaskNotFoundError):
            task_repository.update("nonexistent-id", {"title": "x"})

    def test_update_rejects_identity_fields(self, task_repository, sample_task):
        created = task_repository.create(sample_task)
        with pytest.raises(ValidationFailure):
            task_repository.update(created.id, {"id": "other"})

    def test_delete_task(self, task_repository, sample_task):
        """Test deleting a task."""
        created = task_repository.create(sample_task)
        task_repository.delete(created.id)

        assert task_repository.get(created.id) is None

    def test_delete_nonexistent_task(self, task_repository):
        """Test deleting a nonexistent task raises TaskNotFoundError."""
        with pytest.raises(TaskNotFoundError):
            task_repository.delete("nonexistent-id")


class TestTaskRepositoryQueries:
    """Filtered queries and aggregates used by the board."""

    def test_find_many_null_and_enum_filters(self, task_repository, make_task, now):
        task_repository.create(make_task(title="Q1 active", quadrant=Quadrant.Q1))
        task_repository.create(make_task(title="Q2 active", quadrant=Quadrant.Q2))
        task_repository.create(
            make_task(title="Q1 archived", quadrant=Quadrant.Q1, completed=True, completed_at=now, archived_at=now)
        )

        found = task_repository.find_many({"quadrant": Quadrant.Q1, "archived_at": None})
        assert [t.title for t in found] == ["Q1 active"]

        both = task_repository.find_many({"quadrant": ["Q1", "Q2"], "archived_at": None})
        assert {t.title for t in both} == {"Q1 active", "Q2 active"}

    def test_find_many_order_by(self, task_repository, make_task):
        for position in (3, 1, 2):
            task_repository.create(make_task(title=f"P{position}", position=position))

        found = task_repository.find_many(order_by=[("position", "desc")])
        assert [t.title for t in found] == ["P3", "P2", "P1"]

    def test_find_many_rejects_unknown_field(self, task_repository):
        with pytest.raises(ValidationFailure):
            task_repository.find_many({"user_id": "x"})
        with pytest.raises(ValidationFailure):
            task_repository.find_many(order_by=[("position", "sideways")])

    def test_next_position(self, task_repository, make_task, now):
        assert task_repository.next_position(Quadrant.Q2) == 1

        task_repository.create(make_task(quadrant=Quadrant.Q2, position=4))
        # Archived tasks do not count
        task_repository.create(
            make_task(quadrant=Quadrant.Q2, position=9, completed=True, completed_at=now, archived_at=now)
        )
        assert task_repository.next_position(Quadrant.Q2) == 5
        assert task_repository.max_of("position", {"quadrant": Quadrant.Q3}) is None


class TestTaskRepositoryTransaction:
    """All-or-nothing batches."""

    def test_transaction_applies_all(self, task_repository, make_task):
        a = task_repository.create(make_task(title="A", position=1))
        b = task_repository.create(make_task(title="B", position=2))

        confirmed = task_repository.transaction([update_op(a.id, position=2), update_op(b.id, position=1)])

        assert [t.position for t in confirmed] == [2, 1]
        assert task_repository.get(a.id).position == 2
        assert task_repository.get(b.id).position == 1

    def test_transaction_is_all_or_nothing(self, task_repository, make_task):
        a = task_repository.create(make_task(title="A", position=1))

        with pytest.raises(TaskNotFoundError):
            task_repository.transaction([update_op(a.id, position=7), update_op("missing", position=1)])

        assert task_repository.get(a.id).position == 1

    def test_transaction_delete(self, task_repository, make_task):
        a = task_repository.create(make_task(title="A"))

        assert task_repository.transaction([delete_op(a.id)]) == []
        assert task_repository.get(a.id) is None


class TestArchiveSweep:
    """Store-side archive sweep."""

    def test_archive_completed_before_cutoff(self, task_repository, make_task, now):
        old = task_repository.create(make_task(title="Old", completed=True, completed_at=now - timedelta(days=8)))
        recent = task_repository.create(make_task(title="Recent", completed=True, completed_at=now - timedelta(days=1)))
        open_task = task_repository.create(make_task(title="Open"))

        count = task_repository.archive_completed_before(now - timedelta(days=7), now)

        assert count == 1
        assert task_repository.get(old.id).archived_at == now
        assert task_repository.get(recent.id).archived_at is None
        assert task_repository.get(open_task.id).archived_at is None

    def test_archive_is_idempotent(self, task_repository, make_task, now):
        task_repository.create(make_task(completed=True, completed_at=now - timedelta(days=30)))
        cutoff = now - timedelta(days=7)

        assert task_repository.archive_completed_before(cutoff, now) == 1
        assert task_repository.archive_completed_before(cutoff, now + timedelta(hours=1)) == 0

    def test_clear_archived_on_open(self, task_repository, make_task, now):
        broken = task_repository.create(make_task(title="Broken", completed=False, archived_at=now))
        archived = task_repository.create(make_task(title="Archived", completed=True, completed_at=now, archived_at=now))

        assert task_repository.clear_archived_on_open() == 1
        assert task_repository.get(broken.id).archived_at is None
        assert task_repository.get(archived.id).archived_at == now


class TestTaskRepositoryStoreFailures:
    """Database errors surface as TransientStoreError on every call."""

    @pytest.fixture
    def missing_table(self, db_session):
        db_session.execute(text("ALTER TABLE tasks RENAME TO tasks_gone"))
        db_session.commit()

    def test_get_reports_store_failure(self, task_repository, missing_table):
        with pytest.raises(TransientStoreError):
            task_repository.get("any-id")

    def test_update_reports_store_failure(self, task_repository, missing_table):
        with pytest.raises(TransientStoreError):
            task_repository.update("any-id", {"title": "x"})

    def test_delete_reports_store_failure(self, task_repository, missing_table):
        with pytest.raises(TransientStoreError):
            task_repository.delete("any-id")

    def test_queries_report_store_failure(self, task_repository, missing_table):
        with pytest.raises(TransientStoreError):
            task_repository.find_many({"archived_at": None})
        with pytest.raises(TransientStoreError):
            task_repository.next_position("Q1")

    def test_session_usable_after_failure(self, db_session, task_repository, sample_task, missing_table):
        with pytest.raises(TransientStoreError):
            task_repository.get(sample_task.id)

        db_session.execute(text("ALTER TABLE tasks_gone RENAME TO tasks"))
        db_session.commit()
        assert task_repository.create(sample_task).id == sample_task.id


class TestSettingsRepository:
    def test_get_missing_key(self, settings_repository):
        assert settings_repository.get("credit_targets_v1") is None

    def test_set_then_replace(self, settings_repository):
        settings_repository.set("credit_targets_v1", {"outstanding": 1})
        settings_repository.set("credit_targets_v1", {"outstanding": 2})

        assert settings_repository.get("credit_targets_v1") == {"outstanding": 2}
