from sqlalchemy.orm import Session
from typing import Optional, List, Iterator
from datetime import datetime
from threading import Event
from app.core.config import settings
from app.core.exceptions import OperationCancelled
from app.infrastructure.database.models import HistoryORM, TaskORM


class HistoryRepository:
    def __init__(self, db: Session):
        self.db = db

    def append_snapshot(self, task: TaskORM, completed_at: datetime) -> HistoryORM:
        record = HistoryORM(
            task_id=task.id,
            completed_at=completed_at,
            effort_hours=task.effort_hours,
            task_name=task.name,
            task_type=task.type,
            parent_id=task.parent_id,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def delete_for_task(self, task_id: int) -> int:
        return self.db.query(HistoryORM).filter(
            HistoryORM.task_id == task_id
        ).delete(synchronize_session=False)

    def list_for_task(self, task_id: int) -> List[HistoryORM]:
        return self.db.query(HistoryORM).filter(HistoryORM.task_id == task_id).all()

    def iter_range(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        cancel: Optional[Event] = None,
        batch_size: Optional[int] = None,
    ) -> Iterator[HistoryORM]:
        """
        Stream records newest first, bounds inclusive on completed_at.
        Checks ``cancel`` between batches.
        """
        batch_size = batch_size or settings.HISTORY_SCAN_BATCH_SIZE
        q = self.db.query(HistoryORM)
        if start is not None:
            q = q.filter(HistoryORM.completed_at >= start)
        if end is not None:
            q = q.filter(HistoryORM.completed_at <= end)
        q = q.order_by(HistoryORM.completed_at.desc(), HistoryORM.id.desc())

        for i, row in enumerate(q.yield_per(batch_size)):
            if cancel is not None and i % batch_size == 0 and cancel.is_set():
                raise OperationCancelled("History scan cancelled")
            yield row
