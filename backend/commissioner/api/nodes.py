"""Node operation API endpoints"""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from ..exceptions import ConfigurationError
from ..models.task import SubTaskGroupType, TaskCreate, TaskType
from ..services.account_service import AccountService, get_account_service
from ..services.command_runner import NodeManager, get_node_manager
from ..services.task_manager import TaskManager, get_task_manager
from ..tasks.setup_server import SetupServer, SetupServerParams

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/nodes", tags=["nodes"])


@router.post("/provision", response_model=TaskCreate, status_code=202)
async def provision_node(
    params: SetupServerParams,
    background_tasks: BackgroundTasks,
    task_manager: TaskManager = Depends(get_task_manager),
    accounts: AccountService = Depends(get_account_service),
    node_manager: NodeManager = Depends(get_node_manager),
):
    """Provision a node (async operation)"""
    try:
        # Fail fast on a missing or unreadable provider
        accounts.get_provider(params.provider_uuid)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    task = None
    try:
        subtask = SetupServer(params, task_manager.store, accounts, node_manager)
        task = task_manager.create_task(
            TaskType.ProvisionNode,
            details={"universe_uuid": str(params.universe_uuid), "node_name": params.node_name},
        )
        task_manager.add_subtask(task, subtask, SubTaskGroupType.Provisioning)

        background_tasks.add_task(task_manager.run_task, task.uuid)

        return TaskCreate(
            task_uuid=task.uuid,
            status=task.task_state.value,
            message=f"Provision task created for {params.node_name}"
        )

    except Exception as e:
        logger.error(f"Error provisioning node: {e}")
        if task is not None:
            try:
                task_manager.abort_task(task.uuid, str(e))
            except Exception as abort_error:
                logger.error(f"Could not abort task {task.uuid}: {abort_error}")
        raise HTTPException(status_code=500, detail=str(e))
