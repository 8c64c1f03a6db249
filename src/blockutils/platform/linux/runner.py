"""
Linux process runner.
"""

from __future__ import annotations

import subprocess
import time
from typing import Sequence

from blockutils.core.errors import ToolInvocationFailed
from blockutils.core.logging import get_logger
from blockutils.platform.base import CommandResult, ProcessRunner

logger = get_logger(__name__)


class SubprocessRunner(ProcessRunner):
    """Runs tools with subprocess, capturing text output.

    stdin is closed so that a tool asking for interactive confirmation
    fails instead of hanging.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    def run(self, command: str, args: Sequence[str]) -> CommandResult:
        argv = [command, *args]
        logger.debug("Running command", command=argv)
        start_time = time.time()

        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                stdin=subprocess.DEVNULL,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            stdout = e.stdout.decode(errors="replace") if isinstance(e.stdout, bytes) else (e.stdout or "")
            return CommandResult(
                returncode=-1,
                stdout=stdout,
                stderr=f"Command timed out after {self.timeout}s",
                command=argv,
                duration_seconds=time.time() - start_time,
            )
        except OSError as e:
            logger.warning("Command could not be started", command=argv, error=str(e))
            raise ToolInvocationFailed(command, e) from e

        duration = time.time() - start_time
        if result.returncode != 0:
            logger.warning(
                "Command failed",
                command=argv,
                returncode=result.returncode,
                stderr=result.stderr[:500] if result.stderr else "",
            )

        return CommandResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            command=argv,
            duration_seconds=duration,
        )
