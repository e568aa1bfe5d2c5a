"""Pytest configuration"""
import sys
from pathlib import Path
from typing import List
from uuid import uuid4

import pytest

# Add backend to path
backend_path = Path(__file__).parent.parent / "backend"
sys.path.insert(0, str(backend_path))

from commissioner.db import Database
from commissioner.models.provider import CloudType
from commissioner.models.task import TaskInfo, TaskState, TaskType
from commissioner.services.account_service import AccountService
from commissioner.services.command_runner import NodeManager
from commissioner.services.task_store import SQLiteTaskStore
from commissioner.services.universe_service import UniverseService
from commissioner.tasks.setup_server import SetupServerParams

from .fakes import FakeCommandRunner


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite database per test"""
    return Database(str(tmp_path / "commissioner.db"))


@pytest.fixture
def store(db):
    return SQLiteTaskStore(db)


@pytest.fixture
def accounts(db):
    return AccountService(db)


@pytest.fixture
def universes(db):
    return UniverseService(db)


@pytest.fixture
def runner():
    return FakeCommandRunner()


@pytest.fixture
def node_manager(runner):
    return NodeManager(runner)


@pytest.fixture
def aws_provider(accounts):
    return accounts.create_provider(CloudType.aws, "aws-test", {"AWS_REGION": "us-west-2"})


@pytest.fixture
def onprem_provider(accounts):
    return accounts.create_provider(CloudType.onprem, "onprem-test")


@pytest.fixture
def make_params():
    def _make(provider, node_name: str = "universe-n1", **kwargs) -> SetupServerParams:
        return SetupServerParams(
            universe_uuid=uuid4(),
            node_name=node_name,
            provider_uuid=provider.uuid,
            **kwargs
        )
    return _make


@pytest.fixture
def make_tree(store):
    """Persist a parent task and subtasks built from (group, state) pairs"""
    def _make(
        children: List[tuple],
        parent_state: TaskState = TaskState.Running,
    ) -> TaskInfo:
        parent = store.create(TaskInfo(
            task_type=TaskType.CreateUniverse,
            task_state=parent_state,
            owner="test-host",
        ))
        for position, (group, state) in enumerate(children):
            store.create(TaskInfo(
                parent_uuid=parent.uuid,
                position=position,
                task_type=TaskType.SetupServer,
                task_state=state,
                sub_task_group_type=group,
                owner="test-host",
            ))
        return parent
    return _make
