# routers/tasks.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
from starlette.status import (
    HTTP_201_CREATED, HTTP_204_NO_CONTENT, HTTP_400_BAD_REQUEST, HTTP_404_NOT_FOUND
)

from dependencies import get_store, require_token
from models import DEFAULT_PRIORITY, Task, TaskCreate, TaskUpdate
from storage import TaskStore

# --- Router Setup ---
router = APIRouter(
    prefix="/api/v1/tasks",
    tags=["Task Management"],
)


def _require_title(title: str):
    if not title.strip():
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail="Title is required")


# --- Read Endpoints (no authentication) ---
# Handlers are plain functions so FastAPI runs them in its thread pool;
# the store's locks block.

@router.get("", response_model=List[Task])
def get_tasks(store: TaskStore = Depends(get_store)):
    """List every task."""
    return store.get_all()


@router.get("/pending", response_model=List[Task])
def get_pending_tasks(store: TaskStore = Depends(get_store)):
    """List tasks whose status is still 'pending'."""
    return store.get_pending()


@router.get("/{task_id}", response_model=Task)
def get_task(task_id: int, store: TaskStore = Depends(get_store)):
    task = store.get(task_id)
    if task is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Task not found")
    return task


# --- Write Endpoints (X-API-Token required) ---

@router.post("", response_model=Task, status_code=HTTP_201_CREATED, dependencies=[Depends(require_token)])
def create_task(payload: TaskCreate, store: TaskStore = Depends(get_store)):
    _require_title(payload.title)
    return store.add(
        payload.title,
        payload.description,
        payload.due_date,
        payload.priority or DEFAULT_PRIORITY,
    )


@router.put("/{task_id}", response_model=Task, dependencies=[Depends(require_token)])
def update_task(task_id: int, payload: TaskUpdate, store: TaskStore = Depends(get_store)):
    _require_title(payload.title)
    task = store.update(
        task_id,
        payload.title,
        payload.description,
        payload.due_date,
        payload.priority,
        payload.status,
    )
    if task is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Task not found")
    return task


@router.delete("/{task_id}", status_code=HTTP_204_NO_CONTENT, dependencies=[Depends(require_token)])
def delete_task(task_id: int, store: TaskStore = Depends(get_store)):
    if not store.delete(task_id):
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Task not found")
    return Response(status_code=HTTP_204_NO_CONTENT)
