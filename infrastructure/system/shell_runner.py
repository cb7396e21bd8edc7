"""Local command execution for the on-node bootstrap agent."""

import asyncio
import os
import shutil
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from core.utils.logger import get_infrastructure_logger


@dataclass
class ShellResult:
    """Outcome of one local command."""
    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


class ShellRunner:
    """Runs local commands with a hard timeout. Never raises for non-zero exits."""

    TIMEOUT_EXIT_CODE = 124
    NOT_FOUND_EXIT_CODE = 127

    def __init__(self, env: Optional[Dict[str, str]] = None):
        self.env = env
        self.logger = get_infrastructure_logger(__name__)

    def which(self, tool: str) -> Optional[str]:
        """Path of an executable, either on PATH or given as an absolute path."""
        if os.path.isabs(tool):
            return tool if os.path.isfile(tool) and os.access(tool, os.X_OK) else None
        return shutil.which(tool)

    async def run(
        self,
        command: Union[str, List[str]],
        timeout_seconds: int = 300,
        env: Optional[Dict[str, str]] = None,
    ) -> ShellResult:
        """Run a command. Strings go through ``/bin/bash -c``; lists are exec'd directly."""
        if isinstance(command, str):
            args = ["/bin/bash", "-c", command]
            display = command
        else:
            args = list(command)
            display = " ".join(args)

        merged_env = {**os.environ, **(self.env or {}), **(env or {})}
        self.logger.debug(f"Running: {display}")

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=merged_env,
            )
        except FileNotFoundError as e:
            self.logger.warning(f"Command not found: {display}")
            return ShellResult(display, self.NOT_FOUND_EXIT_CODE, stderr=str(e))

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=timeout_seconds
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            self.logger.error(f"Command timed out after {timeout_seconds}s: {display}")
            return ShellResult(display, self.TIMEOUT_EXIT_CODE, timed_out=True)

        result = ShellResult(
            command=display,
            exit_code=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        if not result.ok:
            self.logger.warning(
                f"Command exited {result.exit_code}: {display}: {result.stderr.strip()[-500:]}"
            )
        return result
