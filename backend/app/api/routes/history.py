from fastapi import APIRouter, Depends, Query
from datetime import date
from typing import List, Optional
from app.api.dependencies.context import get_context
from app.api.schemas import (
    HistoryRecordResponse, HierarchicalHistoryResponse, EffortStatsResponse,
    HistorySummaryResponse, history_response, hierarchical_history_response,
)
from app.domain.services.context import TodoContext

router = APIRouter(prefix="/history", tags=["History"])


@router.get("", response_model=List[HistoryRecordResponse])
def get_history(
    start: Optional[date] = Query(None, description="First day included"),
    end: Optional[date] = Query(None, description="Last day included"),
    ctx: TodoContext = Depends(get_context)
):
    """Completion records, newest first."""
    return [history_response(r) for r in ctx.history.get_history(start, end)]


@router.get("/hierarchy", response_model=List[HierarchicalHistoryResponse])
def get_hierarchical_history(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    include_orphans: bool = Query(False, description="List subtask records whose parent record is outside the range"),
    ctx: TodoContext = Depends(get_context)
):
    """Top-level completion records with their subtask records nested."""
    entries = ctx.history.get_hierarchical_history(start, end, include_orphans=include_orphans)
    return [hierarchical_history_response(e) for e in entries]


@router.get("/stats", response_model=EffortStatsResponse)
def get_effort_stats(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    ctx: TodoContext = Depends(get_context)
):
    """Total effort, effort per task type and per calendar day."""
    return ctx.history.get_effort_stats(start, end)


@router.get("/summary", response_model=HistorySummaryResponse)
def get_summary(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    ctx: TodoContext = Depends(get_context)
):
    """Task count, average effort and last-7-days effort over the hierarchical view."""
    return ctx.history.get_summary_stats(start, end)
