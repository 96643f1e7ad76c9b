from sqlalchemy.orm import Session
from typing import Optional, List, Dict, Any
from app.infrastructure.database.models import TaskORM


class TaskRepository:
    """
    Row-level task access. Methods only flush; the caller owns the
    transaction and decides when to commit.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, task_id: int) -> Optional[TaskORM]:
        return self.db.query(TaskORM).filter(TaskORM.id == task_id).first()

    def list_by_status(self, status: str) -> List[TaskORM]:
        return self.db.query(TaskORM).filter(
            TaskORM.status == status
        ).order_by(TaskORM.id).all()

    def list_subtasks(self, parent_id: int, status: str = None) -> List[TaskORM]:
        q = self.db.query(TaskORM).filter(TaskORM.parent_id == parent_id)
        if status:
            q = q.filter(TaskORM.status == status)
        return q.order_by(TaskORM.id).all()

    def list_subtasks_for(self, parent_ids: List[int]) -> List[TaskORM]:
        if not parent_ids:
            return []
        return self.db.query(TaskORM).filter(
            TaskORM.parent_id.in_(parent_ids)
        ).order_by(TaskORM.id).all()

    def count_subtasks(self, parent_id: int) -> int:
        return self.db.query(TaskORM).filter(TaskORM.parent_id == parent_id).count()

    def create(self, data: Dict[str, Any]) -> TaskORM:
        task = TaskORM(**data)
        self.db.add(task)
        self.db.flush()
        return task

    def update(self, task: TaskORM, data: Dict[str, Any]) -> TaskORM:
        for field, value in data.items():
            setattr(task, field, value)
        self.db.flush()
        return task

    def delete(self, task: TaskORM):
        self.db.delete(task)
        self.db.flush()
