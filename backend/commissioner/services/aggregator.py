"""Progress and phase aggregation over a task's direct subtasks"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from ..models.task import (
    COMPLETED_STATES,
    INCOMPLETE_STATES,
    SubTaskDetails,
    SubTaskGroupType,
    TaskInfo,
    TaskState,
    UserTaskDetails,
)
from .task_store import TaskStore

STICKY_STATES = frozenset({TaskState.Failure, TaskState.Running})


def percent_completed(subtasks: Iterable[TaskInfo]) -> float:
    """
    Share of subtasks in a completed state, as a number between 0.0 and 100.0.

    A task without subtasks counts as fully complete.
    """
    total = 0
    completed = 0
    for subtask in subtasks:
        total += 1
        if subtask.task_state in COMPLETED_STATES:
            completed += 1
    if total == 0:
        return 100.0
    return completed * 100.0 / total


def combine_state(
    current: Optional[TaskState],
    subtask_state: TaskState,
    parent_failed: bool,
) -> TaskState:
    """Displayed group state after visiting one more subtask of the group"""
    if subtask_state == TaskState.Failure:
        return TaskState.Failure
    if subtask_state == TaskState.Running:
        return TaskState.Running
    if subtask_state == TaskState.Created:
        return TaskState.Unknown if parent_failed else TaskState.Created
    # The first subtask of a group sets the baseline
    return subtask_state if current is None else current


def summarize_phases(
    parent_state: TaskState,
    subtasks: Iterable[TaskInfo],
) -> List[Tuple[SubTaskGroupType, TaskState]]:
    """
    Fold subtasks into (group, displayed state) pairs.

    Groups are returned in the order they are first met when walking subtasks by
    ascending position. Subtasks without a group, or in the Invalid group, are
    ignored. Once a group shows Failure or Running, later subtasks of the same
    group leave it unchanged.
    """
    parent_failed = parent_state == TaskState.Failure
    order: List[SubTaskGroupType] = []
    states: Dict[SubTaskGroupType, TaskState] = {}

    for subtask in sorted(subtasks, key=lambda t: t.position):
        group = subtask.sub_task_group_type
        if group is None or group == SubTaskGroupType.Invalid:
            continue
        current = states.get(group)
        if current is None:
            order.append(group)
        elif current in STICKY_STATES:
            continue
        states[group] = combine_state(current, subtask.task_state, parent_failed)

    return [(group, states[group]) for group in order]


class TaskTreeAggregator:
    """Read-only progress queries against a TaskStore"""

    def __init__(self, store: TaskStore, logger: Optional[logging.Logger] = None):
        self.store = store
        self.log = logger or logging.getLogger(__name__)

    def get_percent_completed(self, task_uuid: UUID) -> float:
        """Aggregate percentage completion across the direct subtasks of a task"""
        self.store.get_or_raise(task_uuid)
        subtasks = self.store.list_children(task_uuid)
        percent = percent_completed(subtasks)
        self.log.debug(f"Task {task_uuid}: {percent:.1f}% of {len(subtasks)} subtasks completed")
        return percent

    def get_user_task_details(self, task_uuid: UUID) -> UserTaskDetails:
        """
        Phase summary for a task.

        Meant for the user-level parent task; on a leaf subtask it returns an
        empty summary.
        """
        task = self.store.get_or_raise(task_uuid)
        subtasks = self.store.list_children(task_uuid)
        phases = summarize_phases(task.task_state, subtasks)
        return UserTaskDetails(
            task_details=[SubTaskDetails.for_group(group, state) for group, state in phases]
        )

    def get_incomplete_subtasks(self, task_uuid: UUID) -> List[TaskInfo]:
        return [
            subtask for subtask in self.store.list_children(task_uuid)
            if subtask.task_state in INCOMPLETE_STATES
        ]
