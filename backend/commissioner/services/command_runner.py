"""Command runner - external node commands via subprocess"""
import asyncio
import logging
import os
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel


class ShellResponse(BaseModel):
    """Structured result of an external command"""
    code: int
    message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.code == 0


class CommandRunner(ABC):
    """Executes an external command and reports its status and output"""

    @abstractmethod
    async def run(self, args: List[str]) -> ShellResponse:
        """Run args, returning a ShellResponse"""


# Longest single output line accepted from a command
STREAM_LIMIT = 1024 * 1024


class SubprocessCommandRunner(CommandRunner):
    """Runs commands as local subprocesses, bounded by a timeout"""

    def __init__(
        self,
        timeout: Optional[float] = None,
        progress_callback: Optional[Callable] = None,
        logger: Optional[logging.Logger] = None,
        limit: int = STREAM_LIMIT,
    ):
        self.timeout = timeout if timeout is not None else float(os.getenv("OPERATION_TIMEOUT", "300"))
        self.progress_callback = progress_callback
        self.log = logger or logging.getLogger(__name__)
        self.limit = limit

    async def run(self, args: List[str]) -> ShellResponse:
        """
        Run a command, streaming its combined stdout/stderr

        Args:
            args: Program and its arguments

        Returns:
            ShellResponse with the exit code and the full output. A command that
            does not finish within the timeout, or whose output cannot be read,
            is killed and reported with code -1.
        """
        self.log.info(f"Executing: {' '.join(args)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                limit=self.limit
            )
        except OSError as e:
            error_msg = f"Failed to execute command: {e}"
            self.log.error(error_msg)
            return ShellResponse(code=-1, message=error_msg)

        full_output = []
        try:
            returncode = await asyncio.wait_for(
                self._stream(process, full_output),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            error_msg = f"Operation timeout after {self.timeout}s"
            self.log.error(error_msg)
            await self._kill(process)
            return ShellResponse(code=-1, message=''.join(full_output) + error_msg)
        except asyncio.CancelledError:
            self.log.warning(f"Command cancelled: {args[0]}")
            await self._kill(process)
            raise
        except Exception as e:
            error_msg = f"Failed reading command output: {e}"
            self.log.error(error_msg)
            await self._kill(process)
            return ShellResponse(code=-1, message=''.join(full_output) + error_msg)

        output = ''.join(full_output)
        if returncode != 0:
            self.log.error(f"Command failed with exit code {returncode}")
        return ShellResponse(code=returncode, message=output)

    async def _stream(self, process, full_output: list) -> int:
        while True:
            line = await process.stdout.readline()
            if not line:
                break

            decoded_line = line.decode('utf-8', errors='replace')
            full_output.append(decoded_line)

            if self.progress_callback:
                await self.progress_callback(decoded_line)

        return await process.wait()

    @staticmethod
    async def _kill(process):
        if process.returncode is None:
            process.kill()
            await process.wait()


class NodeCommandType(Enum):
    """Node-level operations understood by the node CLI"""
    Provision = "provision"
    Configure = "configure"
    Destroy = "destroy"
    Control = "control"


class NodeManager:
    """Builds node CLI invocations and hands them to a CommandRunner"""

    def __init__(self, runner: CommandRunner):
        self.runner = runner
        self.devops_home = os.getenv("DEVOPS_HOME", "/opt/devops")
        self.node_cli = os.getenv("NODE_CLI", "bin/node_cli.sh")

    def build_args(
        self,
        command_type: NodeCommandType,
        params,
        cloud_code: Optional[str] = None,
    ) -> List[str]:
        """
        Translate task parameters into node CLI arguments

        Every set parameter becomes a --flag; booleans are passed as bare flags
        when true.
        """
        cli = os.path.join(self.devops_home, self.node_cli)
        args = [cli]
        if cloud_code:
            args.append(cloud_code)
        args.append(command_type.value)

        for key, value in params.model_dump(exclude={"node_name"}, exclude_none=True).items():
            if isinstance(value, bool):
                if value:
                    args.append(f"--{key}")
                continue
            args.extend([f"--{key}", str(value)])

        args.append(params.node_name)
        return args

    async def node_command(
        self,
        command_type: NodeCommandType,
        params,
        cloud_code: Optional[str] = None,
    ) -> ShellResponse:
        return await self.runner.run(self.build_args(command_type, params, cloud_code))


# Singleton instance
_node_manager: Optional[NodeManager] = None


def get_node_manager() -> NodeManager:
    """Get node manager singleton"""
    global _node_manager
    if _node_manager is None:
        _node_manager = NodeManager(SubprocessCommandRunner())
    return _node_manager
