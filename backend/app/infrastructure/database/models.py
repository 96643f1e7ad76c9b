from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Float, ForeignKey,
    Enum as SAEnum, JSON, CheckConstraint
)
from sqlalchemy.orm import relationship
from app.core.clock import utcnow
from app.infrastructure.database.session import Base


class TaskORM(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint("importance BETWEEN 1 AND 5", name="ck_tasks_importance_range"),
        CheckConstraint("effort_hours >= 0", name="ck_tasks_effort_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    type = Column(SAEnum("work", "home", "skill", name="task_type"), nullable=False)
    name = Column(String(255), nullable=False)
    due_date = Column(Date)
    importance = Column(Integer, nullable=False)
    effort_hours = Column(Float, nullable=False, default=0.0)
    # Subtasks point at a top-level task; deleting the parent removes them.
    parent_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=True, index=True)
    status = Column(SAEnum("active", "done", name="task_status"), default="active", index=True)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    subtasks = relationship(
        "TaskORM",
        back_populates="parent",
        cascade="all, delete",
        order_by="TaskORM.id",
    )
    parent = relationship("TaskORM", back_populates="subtasks", remote_side=[id])


class HistoryORM(Base):
    """Completion snapshot. No foreign key: history outlives the task."""
    __tablename__ = "history"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=False, index=True)
    effort_hours = Column(Float, nullable=False, default=0.0)
    task_name = Column(String(255), nullable=False)
    task_type = Column(SAEnum("work", "home", "skill", name="history_task_type"), nullable=False)
    parent_id = Column(Integer, nullable=True, index=True)


class SettingORM(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
