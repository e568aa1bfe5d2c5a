"""Node provisioning subtask"""
from typing import Optional

from ..models.task import TaskType
from ..services.command_runner import NodeCommandType
from .base import NodeTaskParams, SubTask


class SetupServerParams(NodeTaskParams):
    # The VPC subnet the node is provisioned into
    subnet_id: Optional[str] = None
    assign_public_ip: bool = True
    # AWS only: use the Time Sync Service
    use_time_sync: bool = False
    # Enables EBS volume encryption with this KMS key
    cmk_arn: Optional[str] = None
    # Instance profile to use instead of an access key id and secret
    ip_arn_string: Optional[str] = None


class SetupServer(SubTask):
    """Provisions a node, unless its on-prem provider says it was prepared out-of-band"""

    task_type = TaskType.SetupServer
    params_class = SetupServerParams

    async def run(self):
        provider = self.accounts.get_provider(self.params.provider_uuid)

        if self.accounts.should_skip_provisioning(provider):
            self.log.info(f"Skipping provision of {self.params.node_name}.")
            return

        response = await self.node_manager.node_command(
            NodeCommandType.Provision, self.params, cloud_code=provider.code.value
        )
        self.process_shell_response(response)
