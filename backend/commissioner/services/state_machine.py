"""Task lifecycle rules and persisted state changes"""
import logging
from typing import Any, Dict, FrozenSet, Optional
from uuid import UUID

from ..exceptions import InvalidTransitionError
from ..models.task import TaskInfo, TaskState
from .task_store import TaskStore


# Created -> Initializing -> Running -> {Success | Failure}
VALID_TRANSITIONS: Dict[TaskState, FrozenSet[TaskState]] = {
    TaskState.Created: frozenset({TaskState.Initializing}),
    TaskState.Initializing: frozenset({TaskState.Running}),
    TaskState.Running: frozenset({TaskState.Success, TaskState.Failure}),
    TaskState.Success: frozenset(),
    TaskState.Failure: frozenset(),
    TaskState.Unknown: frozenset(),
}


def can_transition(from_state: TaskState, to_state: TaskState) -> bool:
    return to_state in VALID_TRANSITIONS.get(from_state, frozenset())


def validate_transition(from_state: TaskState, to_state: TaskState):
    """Raise InvalidTransitionError unless from_state -> to_state is allowed"""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)


class TaskStateMachine:
    """Applies lifecycle transitions and progress updates through a TaskStore"""

    def __init__(self, store: TaskStore, logger: Optional[logging.Logger] = None):
        self.store = store
        self.log = logger or logging.getLogger(__name__)

    def transition(self, task_uuid: UUID, new_state: TaskState) -> TaskInfo:
        """Move a task to new_state and persist it"""
        task = self.store.get_or_raise(task_uuid)
        validate_transition(task.task_state, new_state)

        old_state = task.task_state
        task.task_state = new_state
        self.store.update(task)

        self.log.info(
            f"Task {task.uuid} ({task.task_type.value}): {old_state.value} -> {new_state.value}"
        )
        return task

    def heartbeat(self, task_uuid: UUID) -> TaskInfo:
        """Refresh updated_at without changing anything else"""
        task = self.store.get_or_raise(task_uuid)
        return self.store.update(task)

    def set_percent_done(self, task_uuid: UUID, percent: int) -> TaskInfo:
        task = self.store.get_or_raise(task_uuid)
        task.percent_done = max(0, min(100, int(percent)))
        return self.store.update(task)

    def update_details(self, task_uuid: UUID, **fields: Any) -> TaskInfo:
        """Merge fields into the task's details payload"""
        task = self.store.get_or_raise(task_uuid)
        task.details = {**task.details, **fields}
        return self.store.update(task)
