"""Test the SQLite task repository"""
from uuid import uuid4

import pytest
from pydantic import ValidationError

from commissioner.exceptions import TaskNotFoundError
from commissioner.models.task import SubTaskGroupType, TaskInfo, TaskState, TaskType
from commissioner.services.task_store import (
    TASK_STATE_FROM_DB,
    TASK_STATE_TO_DB,
    state_from_db,
    state_to_db,
)


def test_round_trip_preserves_fields(store):
    task = TaskInfo(
        task_type=TaskType.CreateUniverse,
        details={"universe_name": "u1", "nodes": 3},
        owner="host-a",
    )
    store.create(task)

    loaded = store.get(task.uuid)
    assert loaded.uuid == task.uuid
    assert loaded.parent_uuid is None
    assert loaded.position == -1
    assert loaded.task_type == TaskType.CreateUniverse
    assert loaded.task_state == TaskState.Created
    assert loaded.details == {"universe_name": "u1", "nodes": 3}
    assert loaded.owner == "host-a"


def test_get_missing_returns_none(store):
    assert store.get(uuid4()) is None
    with pytest.raises(TaskNotFoundError):
        store.get_or_raise(uuid4())


def test_children_ordered_by_position(store):
    parent = store.create(TaskInfo(task_type=TaskType.CreateUniverse, owner="h"))
    for position in (2, 0, 1):
        store.create(TaskInfo(
            parent_uuid=parent.uuid,
            position=position,
            task_type=TaskType.SetupServer,
            sub_task_group_type=SubTaskGroupType.Provisioning,
            owner="h",
        ))

    children = store.list_children(parent.uuid)
    assert [c.position for c in children] == [0, 1, 2]
    assert all(c.parent_uuid == parent.uuid for c in children)
    assert all(c.sub_task_group_type == SubTaskGroupType.Provisioning for c in children)


def test_update_persists_and_refreshes_timestamp(store):
    task = store.create(TaskInfo(task_type=TaskType.CreateUniverse, owner="h"))
    created_updated_at = store.get(task.uuid).updated_at

    task.task_state = TaskState.Initializing
    task.percent_done = 10
    store.update(task)

    loaded = store.get(task.uuid)
    assert loaded.task_state == TaskState.Initializing
    assert loaded.percent_done == 10
    assert loaded.updated_at >= created_updated_at


def test_update_missing_task(store):
    with pytest.raises(TaskNotFoundError):
        store.update(TaskInfo(task_type=TaskType.CreateUniverse, owner="h"))


def test_unknown_is_never_persisted(store):
    task = TaskInfo(task_type=TaskType.CreateUniverse, task_state=TaskState.Unknown, owner="h")
    with pytest.raises(ValueError):
        store.create(task)


def test_state_mapping_table():
    assert TaskState.Unknown not in TASK_STATE_TO_DB
    assert set(TASK_STATE_FROM_DB.values()) == set(TASK_STATE_TO_DB.keys())
    assert state_from_db(state_to_db(TaskState.Running)) == TaskState.Running
    with pytest.raises(ValueError):
        state_from_db("Unknown")


def test_incomplete_roots(store):
    done = TaskInfo(task_type=TaskType.CreateUniverse, task_state=TaskState.Success, owner="h")
    running = TaskInfo(task_type=TaskType.CreateUniverse, task_state=TaskState.Running, owner="h")
    store.create(done)
    store.create(running)
    store.create(TaskInfo(
        parent_uuid=running.uuid,
        position=0,
        task_type=TaskType.SetupServer,
        owner="h",
    ))

    assert [t.uuid for t in store.list_incomplete_roots()] == [running.uuid]


@pytest.mark.parametrize("parent,position", [(None, 0), (uuid4(), -1)])
def test_position_invariant(parent, position):
    with pytest.raises(ValidationError):
        TaskInfo(parent_uuid=parent, position=position, task_type=TaskType.SetupServer)
