"""Task progress API endpoints"""
import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from ..exceptions import TaskNotFoundError
from ..models.task import TaskInfo, TaskProgress, UserTaskDetails
from ..services.aggregator import TaskTreeAggregator
from ..services.task_store import TaskStore, get_task_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


def _get_or_404(store: TaskStore, task_uuid: UUID) -> TaskInfo:
    task = store.get(task_uuid)
    if not task:
        raise HTTPException(status_code=404, detail=f"Task {task_uuid} not found")
    return task


@router.get("/{task_uuid}", response_model=TaskInfo)
async def get_task(task_uuid: UUID, store: TaskStore = Depends(get_task_store)):
    """Get task record by uuid"""
    return _get_or_404(store, task_uuid)


@router.get("/{task_uuid}/progress", response_model=TaskProgress)
async def get_task_progress(task_uuid: UUID, store: TaskStore = Depends(get_task_store)):
    """Percentage of direct subtasks that have completed"""
    task = _get_or_404(store, task_uuid)
    try:
        percent = TaskTreeAggregator(store, logger).get_percent_completed(task_uuid)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error computing progress of task {task_uuid}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return TaskProgress(task_uuid=task.uuid, state=task.task_state, percent=percent)


@router.get("/{task_uuid}/details", response_model=UserTaskDetails)
async def get_task_details(task_uuid: UUID, store: TaskStore = Depends(get_task_store)):
    """Ordered user-facing phases with their displayed state"""
    _get_or_404(store, task_uuid)
    try:
        return TaskTreeAggregator(store, logger).get_user_task_details(task_uuid)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error summarizing task {task_uuid}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{task_uuid}/subtasks", response_model=List[TaskInfo])
async def list_subtasks(task_uuid: UUID, store: TaskStore = Depends(get_task_store)):
    """Direct subtasks ordered by position"""
    _get_or_404(store, task_uuid)
    return store.list_children(task_uuid)
