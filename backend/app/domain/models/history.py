from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List

from app.domain.models.task import TaskType


@dataclass(frozen=True)
class HistoryRecord:
    """Immutable snapshot of a task at the moment it was completed."""
    id: Optional[int]
    task_id: int
    completed_at: datetime
    effort_hours: float
    task_name: str
    task_type: TaskType
    parent_id: Optional[int] = None

    @classmethod
    def from_orm(cls, row) -> "HistoryRecord":
        return cls(
            id=row.id,
            task_id=row.task_id,
            completed_at=row.completed_at,
            effort_hours=float(row.effort_hours or 0.0),
            task_name=row.task_name,
            task_type=TaskType(row.task_type),
            parent_id=row.parent_id,
        )

    def is_top_level(self) -> bool:
        return self.parent_id is None


@dataclass
class HierarchicalHistoryRecord:
    record: HistoryRecord
    subtasks: List[HistoryRecord] = field(default_factory=list)
