from fastapi import APIRouter, Depends
from typing import List
from app.api.dependencies.context import get_context
from app.api.schemas import (
    TaskCreate, SubtaskCreate, TaskUpdate, TaskResponse, ActiveTaskResponse,
    TaskIdResponse, CascadeResponse, task_response, active_task_response,
)
from app.domain.services.context import TodoContext

router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.get("/active", response_model=List[ActiveTaskResponse])
def list_active_tasks(ctx: TodoContext = Depends(get_context)):
    """Active tasks with subtask effort rolled up into their parents."""
    return [active_task_response(t) for t in ctx.tasks.get_active_tasks()]


@router.post("", response_model=TaskIdResponse, status_code=201)
def create_task(data: TaskCreate, ctx: TodoContext = Depends(get_context)):
    """Create a task. Set parent_id to create a subtask of a top-level task."""
    return TaskIdResponse(id=ctx.tasks.create_task(data.model_dump()))


@router.post("/{task_id}/subtasks", response_model=TaskIdResponse, status_code=201)
def create_subtask(task_id: int, data: SubtaskCreate, ctx: TodoContext = Depends(get_context)):
    """Create a subtask; type, due date and importance default to the parent's."""
    return TaskIdResponse(id=ctx.tasks.create_subtask(task_id, data.model_dump(exclude_none=True)))


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(task_id: int, ctx: TodoContext = Depends(get_context)):
    return task_response(ctx.tasks.get_task(task_id))


@router.patch("/{task_id}", response_model=TaskResponse)
def update_task(task_id: int, data: TaskUpdate, ctx: TodoContext = Depends(get_context)):
    """Update task fields. Explicit nulls clear due_date or parent_id."""
    patch = data.model_dump(exclude_unset=True)
    return task_response(ctx.tasks.update_task(task_id, patch))


@router.delete("/{task_id}", response_model=CascadeResponse)
def delete_task(task_id: int, ctx: TodoContext = Depends(get_context)):
    """Delete a task and its subtasks. Completion history is kept."""
    return CascadeResponse(task_ids=ctx.tasks.delete_task(task_id))


@router.post("/{task_id}/complete", response_model=CascadeResponse)
def complete_task(task_id: int, ctx: TodoContext = Depends(get_context)):
    """Complete a task together with its active subtasks."""
    return CascadeResponse(task_ids=ctx.tasks.complete_task(task_id))


@router.post("/{task_id}/uncomplete", response_model=TaskResponse)
def uncomplete_task(task_id: int, ctx: TodoContext = Depends(get_context)):
    """Reactivate a task. Its subtasks keep their completed state."""
    return task_response(ctx.tasks.uncomplete_task(task_id))
