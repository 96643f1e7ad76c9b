"""
Task hierarchy lifecycle: create, update, complete/uncomplete, delete and the
active-task view with subtask effort roll-up.

Hierarchy is at most two levels deep: a subtask's parent must be a
top-level task. Every cascade (complete, delete) runs as one unit of work:
all writes are flushed in the same session and committed once, and any
failure rolls the whole cascade back.
"""
from contextlib import contextmanager
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from app.core.clock import Clock, utcnow
from app.core.exceptions import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.domain.models.task import Task, TaskStatus, validate_task_fields
from app.domain.services.events import TOPIC_TASKS
from app.infrastructure.database.models import TaskORM
from app.infrastructure.repositories.history_repository import HistoryRepository
from app.infrastructure.repositories.task_repository import TaskRepository

logger = get_logger(__name__)

# Fields a new subtask copies from its parent when not given explicitly
INHERITED_SUBTASK_FIELDS = ("type", "due_date", "importance")


class TaskHierarchyManager:

    def __init__(self, db: Session, notifier=None, clock: Clock = utcnow):
        self.db = db
        self.tasks = TaskRepository(db)
        self.history = HistoryRepository(db)
        self.notifier = notifier
        self.clock = clock

    # ──── Unit of work ────────────────────────────────────────────────────────
    @contextmanager
    def _unit_of_work(self, action: str, task_id: Optional[int] = None):
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.warning("Task operation rolled back", action=action, task_id=task_id)
            raise
        if self.notifier is not None:
            self.notifier.publish(TOPIC_TASKS, action=action, task_id=task_id)

    def _require(self, task_id: int) -> TaskORM:
        task = self.tasks.get_by_id(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def _check_parent(self, parent_id: Optional[int], child_id: Optional[int] = None):
        """A parent must exist and be top-level; a task with subtasks cannot become one."""
        if parent_id is None:
            return
        if child_id is not None and parent_id == child_id:
            raise ValidationError("A task cannot be its own parent")
        parent = self.tasks.get_by_id(parent_id)
        if parent is None:
            raise ValidationError(f"Parent task {parent_id} does not exist")
        if parent.parent_id is not None:
            raise ValidationError(
                f"Task {parent_id} is itself a subtask; hierarchy depth is limited to two levels"
            )
        if child_id is not None and self.tasks.count_subtasks(child_id) > 0:
            raise ValidationError(
                f"Task {child_id} has subtasks and cannot be moved under another task"
            )

    # ──── Queries ─────────────────────────────────────────────────────────────
    def get_task(self, task_id: int) -> Task:
        return Task.from_orm(self._require(task_id))

    def get_active_tasks(self) -> List[Task]:
        """
        All active tasks in id order. Top-level tasks carry their full subtask
        list and total_effort_hours = own effort + effort of ACTIVE subtasks;
        subtasks appear with their own effort and no children.
        """
        rows = self.tasks.list_by_status(TaskStatus.ACTIVE.value)
        top_level_ids = [r.id for r in rows if r.parent_id is None]

        children: Dict[int, List[Task]] = {pid: [] for pid in top_level_ids}
        for sub in self.tasks.list_subtasks_for(top_level_ids):
            children[sub.parent_id].append(Task.from_orm(sub))

        result = []
        for row in rows:
            task = Task.from_orm(row)
            if task.is_top_level():
                task.subtasks = children[task.id]
                task.total_effort_hours = task.effort_hours + sum(
                    s.effort_hours for s in task.subtasks if s.is_active()
                )
            else:
                task.total_effort_hours = task.effort_hours
                task.subtasks = []
            result.append(task)
        return result

    # ──── Mutations ───────────────────────────────────────────────────────────
    def create_task(self, data: Dict[str, Any]) -> int:
        clean = validate_task_fields(data)
        with self._unit_of_work("create"):
            self._check_parent(clean.get("parent_id"))
            clean["type"] = clean["type"].value
            clean["status"] = TaskStatus.ACTIVE.value
            clean["completed_at"] = None
            task = self.tasks.create(clean)
            task_id = task.id
        logger.info("Task created", task_id=task_id, parent_id=clean.get("parent_id"))
        return task_id

    def create_subtask(self, parent_id: int, data: Dict[str, Any]) -> int:
        parent = self._require(parent_id)
        merged = {k: getattr(parent, k) for k in INHERITED_SUBTASK_FIELDS}
        merged.update({k: v for k, v in data.items() if v is not None})
        merged["parent_id"] = parent_id
        return self.create_task(merged)

    def update_task(self, task_id: int, patch: Dict[str, Any]) -> Task:
        clean = validate_task_fields(patch, partial=True)
        with self._unit_of_work("update", task_id):
            task = self._require(task_id)
            if "parent_id" in clean and clean["parent_id"] != task.parent_id:
                self._check_parent(clean["parent_id"], child_id=task_id)
            if "type" in clean:
                clean["type"] = clean["type"].value
            self.tasks.update(task, clean)
            updated = Task.from_orm(task)
        logger.info("Task updated", task_id=task_id, fields=sorted(clean))
        return updated

    def complete_task(self, task_id: int) -> List[int]:
        """
        Complete a task and every currently-active subtask, one history
        record each. Returns the ids completed, parent first.
        """
        with self._unit_of_work("complete", task_id):
            task = self._require(task_id)
            if task.status == TaskStatus.DONE.value:
                raise ValidationError(f"Task {task_id} is already completed")
            completed = self._complete(task)
        logger.info("Task completed", task_id=task_id, cascade_size=len(completed))
        return completed

    def _complete(self, task: TaskORM) -> List[int]:
        now = self.clock()
        self.history.append_snapshot(task, now)
        self.tasks.update(task, {"status": TaskStatus.DONE.value, "completed_at": now})
        completed = [task.id]
        # Depth is bounded: subtasks have no subtasks of their own.
        for sub in self.tasks.list_subtasks(task.id, status=TaskStatus.ACTIVE.value):
            completed.extend(self._complete(sub))
        return completed

    def uncomplete_task(self, task_id: int) -> Task:
        """
        Reactivate one task and drop its own history record. Subtasks that
        were completed with it stay done and keep their records.
        """
        with self._unit_of_work("uncomplete", task_id):
            task = self._require(task_id)
            removed = self.history.delete_for_task(task_id)
            self.tasks.update(task, {"status": TaskStatus.ACTIVE.value, "completed_at": None})
            restored = Task.from_orm(task)
        logger.info("Task uncompleted", task_id=task_id, history_removed=removed)
        return restored

    def delete_task(self, task_id: int) -> List[int]:
        """Delete a task and its subtasks. History records are left alone."""
        with self._unit_of_work("delete", task_id):
            task = self._require(task_id)
            deleted = []
            for sub in self.tasks.list_subtasks(task_id):
                deleted.append(sub.id)
                self.tasks.delete(sub)
            self.tasks.delete(task)
            deleted.append(task_id)
        logger.info("Task deleted", task_id=task_id, cascade_size=len(deleted))
        return deleted
