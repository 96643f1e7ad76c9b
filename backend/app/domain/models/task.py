from dataclasses import dataclass, field
from datetime import datetime, date
from typing import Optional, List, Dict, Any
from enum import Enum

from app.core.exceptions import ValidationError

IMPORTANCE_MIN = 1
IMPORTANCE_MAX = 5

# Fields a caller may set on create/update. Status and timestamps are owned
# by the lifecycle operations and the storage layer.
EDITABLE_FIELDS = ("type", "name", "due_date", "importance", "effort_hours", "parent_id")


class TaskType(str, Enum):
    WORK = "work"
    HOME = "home"
    SKILL = "skill"


class TaskStatus(str, Enum):
    ACTIVE = "active"
    DONE = "done"


@dataclass
class Task:
    id: Optional[int]
    type: TaskType
    name: str
    due_date: Optional[date]
    importance: int
    effort_hours: float
    parent_id: Optional[int] = None
    status: TaskStatus = TaskStatus.ACTIVE
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Derived by get_active_tasks, not persisted
    total_effort_hours: Optional[float] = None
    subtasks: List["Task"] = field(default_factory=list)

    @classmethod
    def from_orm(cls, row) -> "Task":
        return cls(
            id=row.id,
            type=TaskType(row.type),
            name=row.name,
            due_date=row.due_date,
            importance=row.importance,
            effort_hours=float(row.effort_hours or 0.0),
            parent_id=row.parent_id,
            status=TaskStatus(row.status or TaskStatus.ACTIVE.value),
            completed_at=row.completed_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    # ──── Business Rules ────────────────────────────────────────────
    def is_top_level(self) -> bool:
        return self.parent_id is None

    def is_active(self) -> bool:
        return self.status == TaskStatus.ACTIVE

    def effective_effort(self) -> float:
        """Rolled-up effort when known, the task's own effort otherwise."""
        if self.total_effort_hours is not None:
            return self.total_effort_hours
        return self.effort_hours


def validate_task_fields(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Check field-level constraints and return a normalised copy.

    With partial=True only the keys present are checked (update patches);
    otherwise type, name, importance and effort_hours are required.
    """
    unknown = set(data) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown or read-only task fields: {', '.join(sorted(unknown))}")

    required = () if partial else ("type", "name", "importance", "effort_hours")
    missing = [k for k in required if data.get(k) is None]
    if missing:
        raise ValidationError(f"Missing required task fields: {', '.join(missing)}")

    clean = dict(data)

    if "type" in data:
        try:
            clean["type"] = TaskType(data["type"])
        except ValueError:
            allowed = ", ".join(t.value for t in TaskType)
            raise ValidationError(f"Invalid task type {data['type']!r}; expected one of: {allowed}")

    if "name" in data:
        name = data["name"]
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Task name must be a non-empty string")
        clean["name"] = name.strip()

    if "importance" in data:
        importance = data["importance"]
        if isinstance(importance, bool) or not isinstance(importance, int):
            raise ValidationError("Importance must be an integer")
        if not IMPORTANCE_MIN <= importance <= IMPORTANCE_MAX:
            raise ValidationError(
                f"Importance must be between {IMPORTANCE_MIN} and {IMPORTANCE_MAX}, got {importance}"
            )

    if "effort_hours" in data:
        effort = data["effort_hours"]
        if isinstance(effort, bool) or not isinstance(effort, (int, float)):
            raise ValidationError("effort_hours must be a number")
        if effort != effort or effort < 0 or effort == float("inf"):
            raise ValidationError(f"effort_hours must be a finite non-negative number, got {effort}")
        clean["effort_hours"] = float(effort)

    if "due_date" in data and data["due_date"] is not None:
        due = data["due_date"]
        if isinstance(due, datetime):
            clean["due_date"] = due.date()
        elif isinstance(due, str):
            try:
                clean["due_date"] = date.fromisoformat(due[:10])
            except ValueError:
                raise ValidationError(f"Invalid due_date {due!r}; expected YYYY-MM-DD")
        elif not isinstance(due, date):
            raise ValidationError("due_date must be a date")

    if "parent_id" in data and data["parent_id"] is not None:
        parent_id = data["parent_id"]
        if isinstance(parent_id, bool) or not isinstance(parent_id, int):
            raise ValidationError("parent_id must be an integer or null")

    return clean
