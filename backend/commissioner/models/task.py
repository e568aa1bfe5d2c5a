"""Task data models"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator


class TaskState(Enum):
    """Lifecycle states of a task and of a displayed subtask group"""
    Created = "Created"
    Initializing = "Initializing"
    Running = "Running"
    Success = "Success"
    Failure = "Failure"
    # Display only, never persisted
    Unknown = "Unknown"


COMPLETED_STATES = frozenset({TaskState.Success, TaskState.Failure})
INCOMPLETE_STATES = frozenset({TaskState.Created, TaskState.Initializing, TaskState.Running})


class TaskType(Enum):
    """Operation performed by a task, consumed by the execution driver"""
    CreateUniverse = "CreateUniverse"
    EditUniverse = "EditUniverse"
    DestroyUniverse = "DestroyUniverse"
    ProvisionNode = "ProvisionNode"
    StartNodeInUniverse = "StartNodeInUniverse"
    StopNodeInUniverse = "StopNodeInUniverse"
    SetupServer = "SetupServer"
    ConfigureServer = "ConfigureServer"
    InstallSoftware = "InstallSoftware"
    ServerControl = "ServerControl"
    WaitForServer = "WaitForServer"
    UpdatePlacementInfo = "UpdatePlacementInfo"


class SubTaskGroupType(Enum):
    """User-facing phase a subtask belongs to"""
    Invalid = "Invalid"
    Provisioning = "Provisioning"
    Configuring = "Configuring"
    Downloading = "Downloading"
    InstallingSoftware = "InstallingSoftware"
    ConfigureUniverse = "ConfigureUniverse"
    StartingNode = "StartingNode"
    StoppingNode = "StoppingNode"
    RemovingUnusedServers = "RemovingUnusedServers"
    DeletingNode = "DeletingNode"


# (title, description) per group
GROUP_DESCRIPTIONS: Dict[SubTaskGroupType, tuple] = {
    SubTaskGroupType.Provisioning: (
        "Provisioning",
        "Creating and provisioning the nodes for this universe",
    ),
    SubTaskGroupType.Configuring: (
        "Configuring",
        "Preparing the nodes with the settings required by the database",
    ),
    SubTaskGroupType.Downloading: (
        "Downloading software",
        "Fetching the database release onto each node",
    ),
    SubTaskGroupType.InstallingSoftware: (
        "Installing software",
        "Installing the database release and starting the processes",
    ),
    SubTaskGroupType.ConfigureUniverse: (
        "Configuring universe",
        "Registering the servers and waiting for the universe to become healthy",
    ),
    SubTaskGroupType.StartingNode: (
        "Starting node",
        "Starting the processes on the node",
    ),
    SubTaskGroupType.StoppingNode: (
        "Stopping node",
        "Stopping the processes on the node",
    ),
    SubTaskGroupType.RemovingUnusedServers: (
        "Removing unused servers",
        "Removing servers that are no longer part of the placement",
    ),
    SubTaskGroupType.DeletingNode: (
        "Deleting node",
        "Releasing the node and its cloud resources",
    ),
}


class TaskInfo(BaseModel):
    """A persisted unit of work, possibly the parent of ordered subtasks"""
    uuid: UUID = Field(default_factory=uuid4)
    parent_uuid: Optional[UUID] = None
    position: int = -1
    task_type: TaskType
    task_state: TaskState = TaskState.Created
    sub_task_group_type: Optional[SubTaskGroupType] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    percent_done: int = Field(default=0, ge=0, le=100)
    details: Dict[str, Any] = Field(default_factory=dict)
    owner: str = ""

    @model_validator(mode="after")
    def check_position(self):
        """Top-level tasks sit at -1, subtasks at a non-negative position"""
        if self.parent_uuid is None and self.position != -1:
            raise ValueError("task without parent must have position -1")
        if self.parent_uuid is not None and self.position < 0:
            raise ValueError("subtask position must be >= 0")
        return self

    def has_completed(self) -> bool:
        return self.task_state in COMPLETED_STATES


class SubTaskDetails(BaseModel):
    """Displayed state of one user-facing phase"""
    sub_task_group_type: SubTaskGroupType
    title: str
    description: str
    state: TaskState

    @classmethod
    def for_group(cls, group: SubTaskGroupType, state: TaskState) -> "SubTaskDetails":
        title, description = GROUP_DESCRIPTIONS.get(group, (group.value, ""))
        return cls(sub_task_group_type=group, title=title, description=description, state=state)


class UserTaskDetails(BaseModel):
    """Ordered phase summary of a task"""
    task_details: List[SubTaskDetails] = Field(default_factory=list)


class TaskProgress(BaseModel):
    """Aggregate completion of a task's direct subtasks"""
    task_uuid: UUID
    state: TaskState
    percent: float = Field(..., ge=0.0, le=100.0)


class TaskCreate(BaseModel):
    """Task creation response"""
    task_uuid: UUID
    status: str
    message: str
