"""Base class for infrastructure subtasks"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ValidationError

from ..exceptions import CommandExecutionError, ConfigurationError
from ..models.task import TaskState, TaskType
from ..services.account_service import AccountService
from ..services.command_runner import NodeManager, ShellResponse
from ..services.state_machine import TaskStateMachine
from ..services.task_store import TaskStore


class NodeTaskParams(BaseModel):
    """Parameters shared by every task that acts on a single node"""
    universe_uuid: UUID
    node_name: str
    provider_uuid: UUID
    az_uuid: Optional[UUID] = None
    instance_type: Optional[str] = None


class SubTask(ABC):
    """
    One step of a task tree.

    Subclasses implement run(). execute() walks the persisted record through
    Created -> Initializing -> Running and then to Success or Failure depending
    on how run() ends. Nothing is checkpointed inside a single invocation.
    """

    task_type: TaskType
    params_class = NodeTaskParams

    def __init__(
        self,
        params: NodeTaskParams,
        store: TaskStore,
        accounts: AccountService,
        node_manager: NodeManager,
        logger: Optional[logging.Logger] = None,
    ):
        if not isinstance(params, self.params_class):
            params = self.params_class.model_validate(params)
        self.params = params
        self.store = store
        self.accounts = accounts
        self.node_manager = node_manager
        self.log = logger or logging.getLogger(__name__)
        self.state_machine = TaskStateMachine(store, self.log)
        self.task_uuid: Optional[UUID] = None

    def __str__(self):
        return f"{type(self).__name__}({self.params.node_name})"

    @abstractmethod
    async def run(self):
        """Do the subtask's work; raise to fail it"""

    def process_shell_response(self, response: Any) -> ShellResponse:
        """Accept a zero-status well-formed response, raise CommandExecutionError otherwise"""
        if not isinstance(response, ShellResponse):
            try:
                response = ShellResponse.model_validate(response)
            except ValidationError:
                raise CommandExecutionError(f"Malformed command response: {response!r}") from None
        if response.code != 0:
            raise CommandExecutionError(response.message, response.code)
        return response

    async def execute(self) -> TaskState:
        """Run the subtask against its persisted record and return the final state"""
        if self.task_uuid is None:
            raise RuntimeError(f"{self} is not bound to a task record")

        self.state_machine.transition(self.task_uuid, TaskState.Initializing)
        self.state_machine.transition(self.task_uuid, TaskState.Running)

        try:
            await self.run()
        except CommandExecutionError as e:
            self.log.error(f"{self} failed with status {e.code}")
            self.state_machine.update_details(
                self.task_uuid, output=e.message, error_kind="execution"
            )
            self.state_machine.transition(self.task_uuid, TaskState.Failure)
            return TaskState.Failure
        except ConfigurationError as e:
            self.log.error(f"{self} is misconfigured: {e}")
            self.state_machine.update_details(
                self.task_uuid, error=str(e), error_kind="configuration"
            )
            self.state_machine.transition(self.task_uuid, TaskState.Failure)
            raise
        except Exception as e:
            self.log.error(f"{self} raised: {e}", exc_info=True)
            self.state_machine.update_details(self.task_uuid, error=str(e), error_kind="internal")
            self.state_machine.transition(self.task_uuid, TaskState.Failure)
            raise

        self.state_machine.set_percent_done(self.task_uuid, 100)
        self.state_machine.transition(self.task_uuid, TaskState.Success)
        return TaskState.Success
