"""
Process Executor

Runs the fixed set of host tools the deployment pipeline depends on
(xcrun, codesign, unzip, PlistBuddy, open, security and the converter)
and hands back their raw output and exit status.

Architecture:
┌─────────────────┐    subprocess     ┌─────────────────┐
│   Pipeline      │──────────────────▶│   Host tool     │
│   component     │                   │   (xcrun, ...)  │
│                 │◀──────────────────│                 │
│                 │  stdout + status  │                 │
└─────────────────┘                   └─────────────────┘

Exit codes are never interpreted here; each caller decides what a
non-zero status means for its own command.
"""

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from simforge.exceptions import ToolLaunchError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class ExecutionResult:
    """Result from a single tool invocation."""
    command: list[str]
    stdout: bytes
    stderr: bytes
    return_code: int
    duration_ms: Optional[float] = None

    @property
    def success(self) -> bool:
        return self.return_code == 0

    @property
    def text(self) -> str:
        """Decoded stdout."""
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def error_text(self) -> str:
        """Decoded stderr, or stdout when the tool wrote its error there."""
        err = self.stderr.decode("utf-8", errors="replace").strip()
        return err or self.text.strip()

    @property
    def output(self) -> str:
        """Combined stdout + stderr."""
        stderr = self.stderr.decode("utf-8", errors="replace")
        return self.text + ("\n" + stderr if stderr else "")


class ProcessRunner:
    """
    Blocking subprocess gateway.

    Every component takes a runner so tests can substitute a recording
    double; nothing else in the package calls subprocess directly.
    """

    def run(
        self,
        executable: PathLike,
        args: Sequence[PathLike] = (),
        cwd: Optional[PathLike] = None,
    ) -> ExecutionResult:
        """
        Run an executable and wait for it to exit.

        Args:
            executable: Tool name (resolved via PATH) or path.
            args: Arguments passed verbatim, no shell involved.
            cwd: Working directory for the child process.

        Returns:
            ExecutionResult with raw stdout/stderr bytes and exit status.

        Raises:
            ToolLaunchError: The executable is missing or not runnable.
        """
        command = [str(executable), *(str(a) for a in args)]
        logger.debug("  $ %s", " ".join(command))
        start = time.time()

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                cwd=str(cwd) if cwd is not None else None,
            )
        except OSError as e:
            # FileNotFoundError, PermissionError, exec format errors
            raise ToolLaunchError(str(executable), e) from e

        duration = (time.time() - start) * 1000
        if result.returncode != 0:
            logger.debug("  exit %d from %s", result.returncode, command[0])

        return ExecutionResult(
            command=command,
            stdout=result.stdout,
            stderr=result.stderr,
            return_code=result.returncode,
            duration_ms=duration,
        )
