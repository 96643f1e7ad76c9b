"""
Tests for the task hierarchy lifecycle.
"""
import pytest
from datetime import date, timedelta
from unittest.mock import patch

from app.core.exceptions import NotFoundError, ValidationError
from app.domain.models.task import TaskStatus, TaskType
from app.domain.services.events import TOPIC_TASKS
from app.infrastructure.database.models import HistoryORM, TaskORM


def task_data(**overrides):
    data = {
        "type": "work", "name": "Write report", "due_date": None,
        "importance": 3, "effort_hours": 2.0, "parent_id": None,
    }
    data.update(overrides)
    return data


class TestCreateTask:

    def test_created_task_is_active(self, ctx):
        task_id = ctx.tasks.create_task(task_data())
        active = ctx.tasks.get_active_tasks()
        assert [t.id for t in active] == [task_id]
        assert active[0].status == TaskStatus.ACTIVE
        assert active[0].type == TaskType.WORK
        assert active[0].completed_at is None

    def test_storage_sets_timestamps(self, ctx):
        task = ctx.tasks.get_task(ctx.tasks.create_task(task_data()))
        assert task.created_at is not None
        assert task.updated_at is not None

    def test_name_is_trimmed(self, ctx):
        task = ctx.tasks.get_task(ctx.tasks.create_task(task_data(name="  Groceries ")))
        assert task.name == "Groceries"

    @pytest.mark.parametrize("overrides", [
        {"type": "garden"},
        {"name": ""},
        {"name": "   "},
        {"importance": 0},
        {"importance": 6},
        {"importance": 2.5},
        {"effort_hours": -1},
        {"effort_hours": float("nan")},
        {"due_date": "next tuesday"},
        {"status": "done"},
    ])
    def test_invalid_input_rejected(self, ctx, overrides):
        with pytest.raises(ValidationError):
            ctx.tasks.create_task(task_data(**overrides))
        assert ctx.tasks.get_active_tasks() == []

    def test_missing_required_field(self, ctx):
        data = task_data()
        del data["importance"]
        with pytest.raises(ValidationError):
            ctx.tasks.create_task(data)

    def test_iso_due_date_accepted(self, ctx):
        task = ctx.tasks.get_task(ctx.tasks.create_task(task_data(due_date="2025-04-01")))
        assert task.due_date == date(2025, 4, 1)

    def test_subtask_of_missing_parent_rejected(self, ctx):
        with pytest.raises(ValidationError):
            ctx.tasks.create_task(task_data(parent_id=999))

    def test_subtask_of_subtask_rejected(self, ctx):
        parent = ctx.tasks.create_task(task_data())
        child = ctx.tasks.create_task(task_data(parent_id=parent))
        with pytest.raises(ValidationError):
            ctx.tasks.create_task(task_data(parent_id=child))

    def test_create_subtask_inherits_parent_fields(self, ctx):
        parent = ctx.tasks.create_task(task_data(type="home", importance=5, due_date=date(2025, 5, 1)))
        child = ctx.tasks.get_task(ctx.tasks.create_subtask(parent, {"name": "Step 1", "effort_hours": 1.0}))
        assert child.parent_id == parent
        assert child.type == TaskType.HOME
        assert child.importance == 5
        assert child.due_date == date(2025, 5, 1)

    def test_create_subtask_overrides(self, ctx):
        parent = ctx.tasks.create_task(task_data(importance=5))
        child = ctx.tasks.get_task(
            ctx.tasks.create_subtask(parent, {"name": "Step", "effort_hours": 1.0, "importance": 1})
        )
        assert child.importance == 1

    def test_publishes_change(self, ctx):
        seen = []
        ctx.notifier.subscribe(lambda topic, details: seen.append((topic, details["action"])))
        ctx.tasks.create_task(task_data())
        assert seen == [(TOPIC_TASKS, "create")]


class TestActiveTasks:

    def test_effort_rollup_counts_only_active_subtasks(self, ctx):
        parent = ctx.tasks.create_task(task_data(effort_hours=2.0))
        done_sub = ctx.tasks.create_task(task_data(parent_id=parent, effort_hours=1.5))
        ctx.tasks.create_task(task_data(parent_id=parent, effort_hours=3.0))
        ctx.tasks.complete_task(done_sub)

        top = next(t for t in ctx.tasks.get_active_tasks() if t.id == parent)
        assert top.total_effort_hours == pytest.approx(5.0)
        # display list keeps done subtasks too
        assert len(top.subtasks) == 2
        assert {s.status for s in top.subtasks} == {TaskStatus.ACTIVE, TaskStatus.DONE}

    def test_subtasks_listed_with_own_effort_and_no_children(self, ctx):
        parent = ctx.tasks.create_task(task_data())
        sub = ctx.tasks.create_task(task_data(parent_id=parent, effort_hours=4.0))
        entry = next(t for t in ctx.tasks.get_active_tasks() if t.id == sub)
        assert entry.total_effort_hours == 4.0
        assert entry.subtasks == []

    def test_done_tasks_excluded(self, ctx):
        keep = ctx.tasks.create_task(task_data(name="keep"))
        finish = ctx.tasks.create_task(task_data(name="finish"))
        ctx.tasks.complete_task(finish)
        assert [t.id for t in ctx.tasks.get_active_tasks()] == [keep]


class TestCompleteTask:

    def test_cascade_completes_parent_and_subtasks(self, ctx, db):
        parent = ctx.tasks.create_task(task_data())
        sub1 = ctx.tasks.create_task(task_data(parent_id=parent, name="a"))
        sub2 = ctx.tasks.create_task(task_data(parent_id=parent, name="b"))

        completed = ctx.tasks.complete_task(parent)

        assert completed == [parent, sub1, sub2]
        assert db.query(HistoryORM).count() == 3
        for task_id in (parent, sub1, sub2):
            task = ctx.tasks.get_task(task_id)
            assert task.status == TaskStatus.DONE
            assert task.completed_at is not None

    def test_already_done_subtask_not_recorded_twice(self, ctx, db):
        parent = ctx.tasks.create_task(task_data())
        sub = ctx.tasks.create_task(task_data(parent_id=parent))
        ctx.tasks.complete_task(sub)
        ctx.tasks.complete_task(parent)
        assert db.query(HistoryORM).filter(HistoryORM.task_id == sub).count() == 1

    def test_snapshot_copies_pre_completion_state(self, ctx, db, clock):
        parent = ctx.tasks.create_task(task_data(type="skill", name="Learn Go", effort_hours=6.0))
        ctx.tasks.complete_task(parent)
        ctx.tasks.update_task(parent, {"name": "Renamed", "effort_hours": 1.0})

        record = db.query(HistoryORM).one()
        assert record.task_name == "Learn Go"
        assert record.task_type == "skill"
        assert record.effort_hours == 6.0
        assert record.parent_id is None
        assert record.completed_at == clock()

    def test_missing_task(self, ctx):
        with pytest.raises(NotFoundError):
            ctx.tasks.complete_task(42)

    def test_completing_done_task_rejected(self, ctx, db):
        task_id = ctx.tasks.create_task(task_data())
        ctx.tasks.complete_task(task_id)
        with pytest.raises(ValidationError):
            ctx.tasks.complete_task(task_id)
        assert db.query(HistoryORM).count() == 1

    def test_failure_mid_cascade_rolls_back(self, ctx, db):
        parent = ctx.tasks.create_task(task_data())
        ctx.tasks.create_task(task_data(parent_id=parent, name="a"))
        ctx.tasks.create_task(task_data(parent_id=parent, name="b"))

        real_append = ctx.tasks.history.append_snapshot
        calls = []

        def failing_append(task, completed_at):
            calls.append(task.id)
            if len(calls) == 3:
                raise RuntimeError("disk full")
            return real_append(task, completed_at)

        with patch.object(ctx.tasks.history, "append_snapshot", side_effect=failing_append):
            with pytest.raises(RuntimeError):
                ctx.tasks.complete_task(parent)

        assert db.query(HistoryORM).count() == 0
        assert all(t.status == TaskStatus.ACTIVE for t in ctx.tasks.get_active_tasks())
        assert len(ctx.tasks.get_active_tasks()) == 3


class TestUncompleteTask:

    def test_uncomplete_does_not_cascade(self, ctx, db):
        parent = ctx.tasks.create_task(task_data())
        sub1 = ctx.tasks.create_task(task_data(parent_id=parent, name="a"))
        sub2 = ctx.tasks.create_task(task_data(parent_id=parent, name="b"))
        ctx.tasks.complete_task(parent)

        restored = ctx.tasks.uncomplete_task(parent)

        assert restored.status == TaskStatus.ACTIVE
        assert restored.completed_at is None
        remaining = {r.task_id for r in db.query(HistoryORM).all()}
        assert remaining == {sub1, sub2}
        assert ctx.tasks.get_task(sub1).status == TaskStatus.DONE
        assert ctx.tasks.get_task(sub2).status == TaskStatus.DONE

    def test_uncomplete_without_history_touches_no_other_records(self, ctx, db):
        other = ctx.tasks.create_task(task_data(name="other"))
        ctx.tasks.complete_task(other)
        never_done = ctx.tasks.create_task(task_data(name="fresh"))

        ctx.tasks.uncomplete_task(never_done)

        assert [r.task_id for r in db.query(HistoryORM).all()] == [other]

    def test_missing_task(self, ctx):
        with pytest.raises(NotFoundError):
            ctx.tasks.uncomplete_task(7)

    def test_complete_uncomplete_complete(self, ctx, db):
        task_id = ctx.tasks.create_task(task_data())
        ctx.tasks.complete_task(task_id)
        ctx.tasks.uncomplete_task(task_id)
        ctx.tasks.complete_task(task_id)
        assert db.query(HistoryORM).filter(HistoryORM.task_id == task_id).count() == 1


class TestDeleteTask:

    def test_cascade_delete_keeps_history(self, ctx, db):
        parent = ctx.tasks.create_task(task_data())
        sub_done = ctx.tasks.create_task(task_data(parent_id=parent, name="done"))
        sub_open = ctx.tasks.create_task(task_data(parent_id=parent, name="open"))
        ctx.tasks.complete_task(sub_done)

        deleted = ctx.tasks.delete_task(parent)

        assert sorted(deleted) == sorted([parent, sub_done, sub_open])
        assert db.query(TaskORM).count() == 0
        assert [r.task_id for r in db.query(HistoryORM).all()] == [sub_done]

    def test_delete_subtask_only(self, ctx, db):
        parent = ctx.tasks.create_task(task_data())
        sub = ctx.tasks.create_task(task_data(parent_id=parent))
        assert ctx.tasks.delete_task(sub) == [sub]
        assert [t.id for t in ctx.tasks.get_active_tasks()] == [parent]

    def test_missing_task(self, ctx):
        with pytest.raises(NotFoundError):
            ctx.tasks.delete_task(3)


class TestUpdateTask:

    def test_field_update(self, ctx):
        task_id = ctx.tasks.create_task(task_data())
        updated = ctx.tasks.update_task(task_id, {"name": "New", "importance": 5, "due_date": date(2025, 6, 1)})
        assert updated.name == "New"
        assert updated.importance == 5
        assert updated.due_date == date(2025, 6, 1)

    def test_clear_due_date(self, ctx):
        task_id = ctx.tasks.create_task(task_data(due_date=date(2025, 6, 1)))
        assert ctx.tasks.update_task(task_id, {"due_date": None}).due_date is None

    def test_missing_task(self, ctx):
        with pytest.raises(NotFoundError):
            ctx.tasks.update_task(99, {"name": "x"})

    @pytest.mark.parametrize("patch_data", [
        {"importance": 9},
        {"name": ""},
        {"effort_hours": -2},
        {"status": "done"},
        {"type": None},
    ])
    def test_invalid_patch(self, ctx, patch_data):
        task_id = ctx.tasks.create_task(task_data())
        with pytest.raises(ValidationError):
            ctx.tasks.update_task(task_id, patch_data)

    def test_reparent_under_subtask_rejected(self, ctx):
        parent = ctx.tasks.create_task(task_data())
        sub = ctx.tasks.create_task(task_data(parent_id=parent))
        other = ctx.tasks.create_task(task_data())
        with pytest.raises(ValidationError):
            ctx.tasks.update_task(other, {"parent_id": sub})

    def test_parent_with_subtasks_cannot_become_subtask(self, ctx):
        parent = ctx.tasks.create_task(task_data())
        ctx.tasks.create_task(task_data(parent_id=parent))
        other = ctx.tasks.create_task(task_data())
        with pytest.raises(ValidationError):
            ctx.tasks.update_task(parent, {"parent_id": other})

    def test_self_parent_rejected(self, ctx):
        task_id = ctx.tasks.create_task(task_data())
        with pytest.raises(ValidationError):
            ctx.tasks.update_task(task_id, {"parent_id": task_id})

    def test_promote_subtask(self, ctx):
        parent = ctx.tasks.create_task(task_data())
        sub = ctx.tasks.create_task(task_data(parent_id=parent))
        assert ctx.tasks.update_task(sub, {"parent_id": None}).parent_id is None

    def test_updated_at_advances(self, ctx, db):
        task_id = ctx.tasks.create_task(task_data())
        before = ctx.tasks.get_task(task_id).updated_at
        ctx.tasks.update_task(task_id, {"name": "Later"})
        after = ctx.tasks.get_task(task_id).updated_at
        assert after >= before
