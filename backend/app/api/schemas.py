from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, date


# ──── Task ────────────────────────────────────────────────────────────────────
class TaskCreate(BaseModel):
    type: str = Field(..., pattern="^(work|home|skill)$")
    name: str = Field(..., min_length=1, max_length=255)
    due_date: Optional[date] = None
    importance: int = Field(..., ge=1, le=5)
    effort_hours: float = Field(..., ge=0)
    parent_id: Optional[int] = None

class SubtaskCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: Optional[str] = Field(None, pattern="^(work|home|skill)$")
    due_date: Optional[date] = None
    importance: Optional[int] = Field(None, ge=1, le=5)
    effort_hours: float = Field(default=1.0, ge=0)

class TaskUpdate(BaseModel):
    type: Optional[str] = Field(None, pattern="^(work|home|skill)$")
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    due_date: Optional[date] = None
    importance: Optional[int] = Field(None, ge=1, le=5)
    effort_hours: Optional[float] = Field(None, ge=0)
    parent_id: Optional[int] = None

class TaskResponse(BaseModel):
    id: int
    type: str
    name: str
    due_date: Optional[date]
    importance: int
    effort_hours: float
    parent_id: Optional[int]
    status: str
    completed_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True

class ActiveTaskResponse(TaskResponse):
    total_effort_hours: float
    subtasks: List[TaskResponse] = []

class TaskIdResponse(BaseModel):
    id: int

class CascadeResponse(BaseModel):
    task_ids: List[int]


# ──── History ─────────────────────────────────────────────────────────────────
class HistoryRecordResponse(BaseModel):
    id: int
    task_id: int
    completed_at: datetime
    effort_hours: float
    task_name: str
    task_type: str
    parent_id: Optional[int]

    class Config:
        from_attributes = True

class HierarchicalHistoryResponse(HistoryRecordResponse):
    subtasks: List[HistoryRecordResponse] = []

class EffortStatsResponse(BaseModel):
    total_effort: float
    by_type: Dict[str, float]
    by_date: Dict[str, float]

class HistorySummaryResponse(BaseModel):
    total_tasks: int
    total_effort: float
    average_effort: float
    by_type: Dict[str, float]
    recent_7_days: float


# ──── Settings ────────────────────────────────────────────────────────────────
class SettingResponse(BaseModel):
    key: str
    value: Any
    version: Optional[int] = None
    updated_at: Optional[datetime] = None

class SettingUpdate(BaseModel):
    value: Any

class FormulaUpdate(BaseModel):
    formula: str = Field(..., min_length=1, max_length=500)
    description: str = ""

class ThresholdsUpdate(BaseModel):
    high: float
    medium: float


# ──── Urgency ─────────────────────────────────────────────────────────────────
class UrgencyScoreRequest(BaseModel):
    importance: int = Field(..., ge=1, le=5)
    effort_hours: float = Field(..., ge=0)
    total_effort_hours: Optional[float] = Field(None, ge=0)
    due_date: Optional[date] = None

class UrgencyResponse(BaseModel):
    task_id: Optional[int]
    score: float
    level: str
    overdue: bool = False

class RankedTaskResponse(BaseModel):
    task: ActiveTaskResponse
    score: float
    level: str
    overdue: bool


# ──── Generic ─────────────────────────────────────────────────────────────────
class MessageResponse(BaseModel):
    message: str


# ──── Converters (domain dataclasses → response models) ──────────────────────
def task_response(task) -> TaskResponse:
    return TaskResponse(
        id=task.id, type=task.type.value, name=task.name, due_date=task.due_date,
        importance=task.importance, effort_hours=task.effort_hours,
        parent_id=task.parent_id, status=task.status.value,
        completed_at=task.completed_at, created_at=task.created_at, updated_at=task.updated_at,
    )

def active_task_response(task) -> ActiveTaskResponse:
    return ActiveTaskResponse(
        **task_response(task).model_dump(),
        total_effort_hours=task.effective_effort(),
        subtasks=[task_response(s) for s in task.subtasks],
    )

def history_response(record) -> HistoryRecordResponse:
    return HistoryRecordResponse(
        id=record.id, task_id=record.task_id, completed_at=record.completed_at,
        effort_hours=record.effort_hours, task_name=record.task_name,
        task_type=record.task_type.value, parent_id=record.parent_id,
    )

def hierarchical_history_response(entry) -> HierarchicalHistoryResponse:
    return HierarchicalHistoryResponse(
        **history_response(entry.record).model_dump(),
        subtasks=[history_response(s) for s in entry.subtasks],
    )
