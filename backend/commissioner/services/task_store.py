"""Task record repository"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from ..db import Database, get_db
from ..exceptions import TaskNotFoundError
from ..models.task import INCOMPLETE_STATES, SubTaskGroupType, TaskInfo, TaskState, TaskType

logger = logging.getLogger(__name__)


# Storage representation of task states. Unknown is display-only and has no entry.
TASK_STATE_TO_DB: Dict[TaskState, str] = {
    TaskState.Created: "Created",
    TaskState.Initializing: "Initializing",
    TaskState.Running: "Running",
    TaskState.Success: "Success",
    TaskState.Failure: "Failure",
}
TASK_STATE_FROM_DB: Dict[str, TaskState] = {v: k for k, v in TASK_STATE_TO_DB.items()}


def state_to_db(state: TaskState) -> str:
    try:
        return TASK_STATE_TO_DB[state]
    except KeyError:
        raise ValueError(f"Task state {state.value} cannot be persisted") from None


def state_from_db(value: str) -> TaskState:
    try:
        return TASK_STATE_FROM_DB[value]
    except KeyError:
        raise ValueError(f"Unrecognized stored task state: {value!r}") from None


class TaskStore(ABC):
    """Repository interface the state machine and aggregator depend on"""

    @abstractmethod
    def create(self, task: TaskInfo) -> TaskInfo:
        """Persist a new task"""

    @abstractmethod
    def get(self, task_uuid: UUID) -> Optional[TaskInfo]:
        """Fetch a task by uuid, None if absent"""

    @abstractmethod
    def list_children(self, task_uuid: UUID) -> List[TaskInfo]:
        """Direct subtasks ordered by ascending position"""

    @abstractmethod
    def update(self, task: TaskInfo) -> TaskInfo:
        """Persist mutable fields of an existing task and refresh updated_at"""

    @abstractmethod
    def list_incomplete_roots(self) -> List[TaskInfo]:
        """Top-level tasks that have not reached a terminal state"""

    def get_or_raise(self, task_uuid: UUID) -> TaskInfo:
        task = self.get(task_uuid)
        if task is None:
            raise TaskNotFoundError(task_uuid)
        return task


class SQLiteTaskStore(TaskStore):
    """TaskStore backed by the SQLite Database"""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_db()

    def create(self, task: TaskInfo) -> TaskInfo:
        self.db.insert_task(self._to_row(task))
        logger.debug(f"Created task {task.uuid} ({task.task_type.value})")
        return task

    def get(self, task_uuid: UUID) -> Optional[TaskInfo]:
        row = self.db.get_task(str(task_uuid))
        return self._from_row(row) if row else None

    def list_children(self, task_uuid: UUID) -> List[TaskInfo]:
        return [self._from_row(row) for row in self.db.list_subtasks(str(task_uuid))]

    def update(self, task: TaskInfo) -> TaskInfo:
        task.updated_at = datetime.utcnow()
        row = self._to_row(task)
        if not self.db.update_task(str(task.uuid), row):
            raise TaskNotFoundError(task.uuid)
        return task

    def list_incomplete_roots(self) -> List[TaskInfo]:
        states = [state_to_db(s) for s in INCOMPLETE_STATES]
        return [self._from_row(row) for row in self.db.list_root_tasks_in_states(states)]

    @staticmethod
    def _to_row(task: TaskInfo) -> Dict[str, Any]:
        return {
            "uuid": str(task.uuid),
            "parent_uuid": str(task.parent_uuid) if task.parent_uuid else None,
            "position": task.position,
            "task_type": task.task_type.value,
            "task_state": state_to_db(task.task_state),
            "sub_task_group_type": (
                task.sub_task_group_type.value if task.sub_task_group_type else None
            ),
            "created_at": task.created_at.isoformat(),
            "updated_at": task.updated_at.isoformat(),
            "percent_done": task.percent_done,
            "details": task.details,
            "owner": task.owner,
        }

    @staticmethod
    def _from_row(row: Dict[str, Any]) -> TaskInfo:
        group = row.get("sub_task_group_type")
        return TaskInfo(
            uuid=row["uuid"],
            parent_uuid=row.get("parent_uuid"),
            position=row["position"],
            task_type=TaskType(row["task_type"]),
            task_state=state_from_db(row["task_state"]),
            sub_task_group_type=SubTaskGroupType(group) if group else None,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            percent_done=row["percent_done"],
            details=row.get("details") or {},
            owner=row["owner"],
        )


# Singleton instance
_task_store: Optional[TaskStore] = None


def get_task_store() -> TaskStore:
    """Get task store singleton"""
    global _task_store
    if _task_store is None:
        _task_store = SQLiteTaskStore()
    return _task_store
