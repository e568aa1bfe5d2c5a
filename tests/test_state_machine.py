"""Test task lifecycle transitions"""
import time
from uuid import uuid4

import pytest

from commissioner.exceptions import InvalidTransitionError, TaskNotFoundError
from commissioner.models.task import TaskInfo, TaskState, TaskType
from commissioner.services.state_machine import (
    TaskStateMachine,
    can_transition,
    validate_transition,
)


@pytest.fixture
def machine(store):
    return TaskStateMachine(store)


@pytest.fixture
def task(store):
    return store.create(TaskInfo(task_type=TaskType.CreateUniverse, owner="test-host"))


@pytest.mark.parametrize("from_state,to_state", [
    (TaskState.Created, TaskState.Initializing),
    (TaskState.Initializing, TaskState.Running),
    (TaskState.Running, TaskState.Success),
    (TaskState.Running, TaskState.Failure),
])
def test_valid_transitions(from_state, to_state):
    assert can_transition(from_state, to_state)
    validate_transition(from_state, to_state)


@pytest.mark.parametrize("from_state,to_state", [
    (TaskState.Created, TaskState.Running),
    (TaskState.Created, TaskState.Success),
    (TaskState.Created, TaskState.Created),
    (TaskState.Initializing, TaskState.Failure),
    (TaskState.Running, TaskState.Created),
    (TaskState.Running, TaskState.Unknown),
    (TaskState.Success, TaskState.Failure),
    (TaskState.Failure, TaskState.Running),
])
def test_invalid_transitions(from_state, to_state):
    assert not can_transition(from_state, to_state)
    with pytest.raises(InvalidTransitionError):
        validate_transition(from_state, to_state)


def test_full_lifecycle_is_persisted(machine, store, task):
    for state in (TaskState.Initializing, TaskState.Running, TaskState.Success):
        machine.transition(task.uuid, state)
        assert store.get(task.uuid).task_state == state
    assert store.get(task.uuid).has_completed()


def test_rejected_transition_leaves_task_unchanged(machine, store, task):
    with pytest.raises(InvalidTransitionError):
        machine.transition(task.uuid, TaskState.Success)
    assert store.get(task.uuid).task_state == TaskState.Created


def test_transition_missing_task(machine):
    with pytest.raises(TaskNotFoundError):
        machine.transition(uuid4(), TaskState.Initializing)


def test_heartbeat_refreshes_updated_at(machine, store, task):
    before = store.get(task.uuid).updated_at
    time.sleep(0.01)
    machine.heartbeat(task.uuid)
    after = store.get(task.uuid)
    assert after.updated_at > before
    assert after.task_state == TaskState.Created


def test_percent_done_is_clamped(machine, store, task):
    machine.set_percent_done(task.uuid, 140)
    assert store.get(task.uuid).percent_done == 100
    machine.set_percent_done(task.uuid, -5)
    assert store.get(task.uuid).percent_done == 0


def test_update_details_merges(machine, store, task):
    machine.update_details(task.uuid, node_name="n1")
    machine.update_details(task.uuid, output="done")
    assert store.get(task.uuid).details == {"node_name": "n1", "output": "done"}
