from fastapi import APIRouter, Depends, Query
from typing import Dict, List, Optional
from app.api.dependencies.context import get_context
from app.api.schemas import (
    UrgencyScoreRequest, UrgencyResponse, RankedTaskResponse, active_task_response,
)
from app.domain.models.task import Task, TaskType
from app.domain.services.context import TodoContext
from app.domain.services.urgency_engine import is_sentinel

router = APIRouter(prefix="/urgency", tags=["Urgency"])


def _ranked_response(item) -> RankedTaskResponse:
    return RankedTaskResponse(
        task=active_task_response(item.task),
        score=item.score,
        level=item.level.value,
        overdue=is_sentinel(item.score),
    )


@router.get("/ranking", response_model=List[RankedTaskResponse])
def get_ranking(
    task_type: Optional[TaskType] = Query(None, alias="type", description="Only rank tasks of this type"),
    ctx: TodoContext = Depends(get_context)
):
    """Top-level active tasks sorted by urgency, most urgent first."""
    ranked = ctx.ranking.rank(ctx.tasks.get_active_tasks())
    if task_type is not None:
        ranked = [r for r in ranked if r.task.type == task_type]
    return [_ranked_response(r) for r in ranked]


@router.get("/grouped", response_model=Dict[str, List[RankedTaskResponse]])
def get_grouped_ranking(
    task_type: Optional[TaskType] = Query(None, alias="type"),
    ctx: TodoContext = Depends(get_context)
):
    """Ranking split into work / home / skill columns."""
    ranked = ctx.ranking.rank(ctx.tasks.get_active_tasks())
    groups = ctx.ranking.group_by_type(ranked, only=task_type)
    return {name: [_ranked_response(r) for r in items] for name, items in groups.items()}


@router.post("/score", response_model=UrgencyResponse)
def score_task(data: UrgencyScoreRequest, ctx: TodoContext = Depends(get_context)):
    """Score an ad-hoc task with the current formula and thresholds."""
    task = Task(
        id=None, type=TaskType.WORK, name="ad-hoc", due_date=data.due_date,
        importance=data.importance, effort_hours=data.effort_hours,
        total_effort_hours=data.total_effort_hours,
    )
    result = ctx.urgency.score_task(task)
    return UrgencyResponse(
        task_id=None, score=result.score, level=result.level.value, overdue=is_sentinel(result.score)
    )


@router.get("/level", response_model=UrgencyResponse)
def get_level(score: float = Query(...), ctx: TodoContext = Depends(get_context)):
    """Classify a score against the configured thresholds."""
    level = ctx.urgency.get_urgency_level(score)
    return UrgencyResponse(task_id=None, score=score, level=level.value, overdue=is_sentinel(score))
