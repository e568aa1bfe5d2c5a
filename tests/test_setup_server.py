"""Test the node provisioning subtask"""
from uuid import uuid4

import pytest

from commissioner.exceptions import ConfigurationError
from commissioner.models.provider import KeyInfo
from commissioner.models.task import SubTaskGroupType, TaskInfo, TaskState, TaskType
from commissioner.services.command_runner import NodeManager, ShellResponse, SubprocessCommandRunner
from commissioner.tasks.setup_server import SetupServer, SetupServerParams

from .fakes import FakeCommandRunner


def bind(store, subtask):
    """Persist a parent and a record for subtask, as the driver would"""
    parent = store.create(TaskInfo(task_type=TaskType.ProvisionNode, owner="test-host"))
    record = store.create(TaskInfo(
        parent_uuid=parent.uuid,
        position=0,
        task_type=subtask.task_type,
        sub_task_group_type=SubTaskGroupType.Provisioning,
        owner="test-host",
    ))
    subtask.task_uuid = record.uuid
    return record


@pytest.mark.asyncio
async def test_skip_provisioning_on_prem(store, accounts, node_manager, runner, onprem_provider, make_params):
    """On-prem provider whose first key skips provisioning never calls the runner"""
    accounts.add_access_key(onprem_provider.uuid, "key-1", KeyInfo(skip_provisioning=True))
    accounts.add_access_key(onprem_provider.uuid, "key-2", KeyInfo(skip_provisioning=False))
    subtask = SetupServer(make_params(onprem_provider), store, accounts, node_manager)
    record = bind(store, subtask)

    state = await subtask.execute()

    assert state == TaskState.Success
    assert runner.calls == []
    loaded = store.get(record.uuid)
    assert loaded.task_state == TaskState.Success
    assert loaded.percent_done == 100


@pytest.mark.asyncio
async def test_only_first_key_decides(store, accounts, node_manager, runner, onprem_provider, make_params):
    accounts.add_access_key(onprem_provider.uuid, "key-1", KeyInfo(skip_provisioning=False))
    accounts.add_access_key(onprem_provider.uuid, "key-2", KeyInfo(skip_provisioning=True))
    subtask = SetupServer(make_params(onprem_provider), store, accounts, node_manager)
    bind(store, subtask)

    assert await subtask.execute() == TaskState.Success
    assert len(runner.calls) == 1


@pytest.mark.asyncio
async def test_on_prem_without_keys_provisions(store, accounts, node_manager, runner, onprem_provider, make_params):
    subtask = SetupServer(make_params(onprem_provider), store, accounts, node_manager)
    bind(store, subtask)

    assert await subtask.execute() == TaskState.Success
    assert len(runner.calls) == 1


@pytest.mark.asyncio
async def test_skip_flag_ignored_for_cloud_providers(store, accounts, node_manager, runner, aws_provider, make_params):
    accounts.add_access_key(aws_provider.uuid, "key-1", KeyInfo(skip_provisioning=True))
    subtask = SetupServer(make_params(aws_provider), store, accounts, node_manager)
    bind(store, subtask)

    assert await subtask.execute() == TaskState.Success
    assert len(runner.calls) == 1


@pytest.mark.asyncio
async def test_provision_command_arguments(store, accounts, node_manager, runner, aws_provider, make_params):
    params = make_params(aws_provider, node_name="u1-n2", subnet_id="subnet-1", use_time_sync=True)
    subtask = SetupServer(params, store, accounts, node_manager)
    bind(store, subtask)

    await subtask.execute()

    args = runner.calls[0]
    assert args[1:3] == ["aws", "provision"]
    assert args[-1] == "u1-n2"
    assert args[args.index("--subnet_id") + 1] == "subnet-1"
    assert "--use_time_sync" in args
    assert "--assign_public_ip" in args
    assert "--cmk_arn" not in args


@pytest.mark.asyncio
async def test_non_zero_status_fails_with_verbatim_message(store, accounts, aws_provider, make_params):
    message = "ERROR: instance limit exceeded\n  region=us-west-2 \n"
    runner = FakeCommandRunner(ShellResponse(code=2, message=message))
    subtask = SetupServer(make_params(aws_provider), store, accounts, NodeManager(runner))
    record = bind(store, subtask)

    state = await subtask.execute()

    assert state == TaskState.Failure
    assert len(runner.calls) == 1
    loaded = store.get(record.uuid)
    assert loaded.task_state == TaskState.Failure
    assert loaded.details["output"] == message
    assert loaded.details["error_kind"] == "execution"


@pytest.mark.asyncio
async def test_unreadable_command_output_fails(store, accounts, aws_provider, make_params, tmp_path, monkeypatch):
    """Output the runner cannot read is an execution failure, not an internal error"""
    cli = tmp_path / "node_cli.sh"
    cli.write_text("#!/bin/sh\nhead -c 500 /dev/zero | tr '\\0' x\necho\n")
    cli.chmod(0o755)
    monkeypatch.setenv("DEVOPS_HOME", str(tmp_path))
    monkeypatch.setenv("NODE_CLI", "node_cli.sh")
    node_manager = NodeManager(SubprocessCommandRunner(timeout=10, limit=64))
    subtask = SetupServer(make_params(aws_provider), store, accounts, node_manager)
    record = bind(store, subtask)

    assert await subtask.execute() == TaskState.Failure
    loaded = store.get(record.uuid)
    assert loaded.details["error_kind"] == "execution"
    assert "Failed reading command output" in loaded.details["output"]


@pytest.mark.asyncio
async def test_malformed_response_fails(store, accounts, aws_provider, make_params):
    runner = FakeCommandRunner({"status": "weird"})
    subtask = SetupServer(make_params(aws_provider), store, accounts, NodeManager(runner))
    record = bind(store, subtask)

    assert await subtask.execute() == TaskState.Failure
    assert "Malformed command response" in store.get(record.uuid).details["output"]


@pytest.mark.asyncio
async def test_missing_provider_is_configuration_error(store, accounts, node_manager, runner):
    params = SetupServerParams(universe_uuid=uuid4(), node_name="n1", provider_uuid=uuid4())
    subtask = SetupServer(params, store, accounts, node_manager)
    record = bind(store, subtask)

    with pytest.raises(ConfigurationError):
        await subtask.execute()

    assert runner.calls == []
    loaded = store.get(record.uuid)
    assert loaded.task_state == TaskState.Failure
    assert loaded.details["error_kind"] == "configuration"


@pytest.mark.asyncio
async def test_malformed_access_key_is_configuration_error(store, db, accounts, node_manager, runner, onprem_provider, make_params):
    db.insert_access_key({
        "key_code": "broken",
        "provider_uuid": str(onprem_provider.uuid),
        "key_info": "{not json",
        "created_at": "2024-01-01T00:00:00",
    })
    subtask = SetupServer(make_params(onprem_provider), store, accounts, node_manager)
    bind(store, subtask)

    with pytest.raises(ConfigurationError):
        await subtask.execute()
    assert runner.calls == []


@pytest.mark.asyncio
async def test_unbound_subtask_refuses_to_run(store, accounts, node_manager, aws_provider, make_params):
    subtask = SetupServer(make_params(aws_provider), store, accounts, node_manager)
    with pytest.raises(RuntimeError):
        await subtask.execute()
