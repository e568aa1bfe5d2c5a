"""Task manager - builds task trees and drives their subtasks"""
import logging
import os
import socket
from typing import Any, Dict, List, Optional
from uuid import UUID

from ..exceptions import ConfigurationError
from ..models.task import SubTaskGroupType, TaskInfo, TaskState, TaskType
from ..tasks.base import SubTask
from .aggregator import TaskTreeAggregator
from .state_machine import TaskStateMachine
from .task_store import TaskStore, get_task_store


class TaskManager:
    """
    Sequential execution driver.

    Subtasks of one tree run strictly in position order with one in flight at a
    time. The first failed subtask aborts the run and the parent ends in Failure;
    the remaining subtasks are left in Created.
    """

    def __init__(
        self,
        store: TaskStore,
        owner: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.owner = owner or os.getenv("TASK_OWNER") or socket.gethostname()
        self.log = logger or logging.getLogger(__name__)
        self.state_machine = TaskStateMachine(store, self.log)
        self.aggregator = TaskTreeAggregator(store, self.log)
        self._subtasks: Dict[UUID, List[SubTask]] = {}

    def create_task(self, task_type: TaskType, details: Optional[Dict[str, Any]] = None) -> TaskInfo:
        """Create and persist a top-level task"""
        task = self.store.create(TaskInfo(
            task_type=task_type,
            details=details or {},
            owner=self.owner,
        ))
        self._subtasks[task.uuid] = []
        self.log.info(f"Created task {task.uuid} ({task_type.value})")
        return task

    def add_subtask(
        self,
        parent: TaskInfo,
        subtask: SubTask,
        group: SubTaskGroupType = SubTaskGroupType.Invalid,
    ) -> TaskInfo:
        """Persist a record for subtask at the next position under parent"""
        queue = self._subtasks.setdefault(parent.uuid, [])
        record = self.store.create(TaskInfo(
            parent_uuid=parent.uuid,
            position=len(queue),
            task_type=subtask.task_type,
            sub_task_group_type=group,
            details=subtask.params.model_dump(mode="json"),
            owner=self.owner,
        ))
        subtask.task_uuid = record.uuid
        queue.append(subtask)
        return record

    async def run_task(self, task_uuid: UUID) -> TaskState:
        """Run every queued subtask of a task and return the task's final state"""
        subtasks = self._subtasks.get(task_uuid, [])
        self.state_machine.transition(task_uuid, TaskState.Initializing)
        self.state_machine.transition(task_uuid, TaskState.Running)

        final_state = TaskState.Success
        try:
            for subtask in subtasks:
                state = await subtask.execute()
                self._report_progress(task_uuid)
                if state == TaskState.Failure:
                    self.log.error(f"Task {task_uuid} aborted: {subtask} failed")
                    self.state_machine.update_details(
                        task_uuid, failed_subtask=str(subtask.task_uuid)
                    )
                    final_state = TaskState.Failure
                    break
        except ConfigurationError as e:
            self.log.error(f"Task {task_uuid} failed on configuration: {e}")
            self.state_machine.update_details(task_uuid, error=str(e), error_kind="configuration")
            final_state = TaskState.Failure
        except Exception as e:
            self.log.error(f"Task {task_uuid} failed: {e}", exc_info=True)
            self.state_machine.update_details(task_uuid, error=str(e), error_kind="internal")
            final_state = TaskState.Failure
        finally:
            self._subtasks.pop(task_uuid, None)

        self._report_progress(task_uuid)
        self.state_machine.transition(task_uuid, final_state)
        return final_state

    def abort_task(self, task_uuid: UUID, error: str) -> TaskInfo:
        """Fail a task that never started, dropping any queued subtasks"""
        self._subtasks.pop(task_uuid, None)
        self.state_machine.update_details(task_uuid, error=error, error_kind="internal")
        self.state_machine.transition(task_uuid, TaskState.Initializing)
        self.state_machine.transition(task_uuid, TaskState.Running)
        self.log.error(f"Task {task_uuid} aborted before running: {error}")
        return self.state_machine.transition(task_uuid, TaskState.Failure)

    def _report_progress(self, task_uuid: UUID):
        percent = self.aggregator.get_percent_completed(task_uuid)
        self.state_machine.set_percent_done(task_uuid, int(percent))

    def get_task(self, task_uuid: UUID) -> Optional[TaskInfo]:
        return self.store.get(task_uuid)

    def find_orphaned_tasks(self) -> List[TaskInfo]:
        """Incomplete top-level tasks owned by another process, e.g. one that crashed"""
        return [task for task in self.store.list_incomplete_roots() if task.owner != self.owner]

    def restore_from_db(self) -> int:
        """Report incomplete tasks left behind by previous processes"""
        orphans = self.find_orphaned_tasks()
        for task in orphans:
            self.log.warning(
                f"Task {task.uuid} ({task.task_type.value}) left in {task.task_state.value} "
                f"by owner {task.owner}, last updated {task.updated_at.isoformat()}"
            )
        return len(orphans)


# Singleton instance
_task_manager: Optional[TaskManager] = None


def get_task_manager() -> TaskManager:
    """Get task manager singleton"""
    global _task_manager
    if _task_manager is None:
        _task_manager = TaskManager(get_task_store())
    return _task_manager
