"""
Build command runner.

Runs a toolchain's install/compile commands in a repository directory.
Failures (missing executable, timeout, non-zero exit) are captured in the
returned BuildOutcome rather than raised; whether the build "worked" is
decided later by looking for output on disk.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path


logger = logging.getLogger(__name__)


@dataclass
class BuildCommand:
    """One external command: program plus arguments."""

    program: str
    args: list[str] = field(default_factory=list)

    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def __str__(self) -> str:
        return " ".join(self.argv())


@dataclass
class BuildOutcome:
    """Result of running one build command."""

    command: str
    success: bool
    returncode: int | None = None
    error: str | None = None
    executable_missing: bool = False


class BuildRunner:
    """Runs build commands with a timeout and captured output."""

    def __init__(self, timeout: int = 900):
        """Initialize the runner.

        Args:
            timeout: Maximum seconds to wait for a single command
        """
        self.timeout = timeout

    def is_available(self, program: str) -> bool:
        """Check whether an executable is on PATH."""
        return shutil.which(program) is not None

    def run(self, command: BuildCommand, cwd: Path) -> BuildOutcome:
        """Run a command in ``cwd``.

        Returns:
            BuildOutcome describing what happened
        """
        logger.info("Executing %s in %s", command, cwd)

        if not self.is_available(command.program):
            logger.error("Error executing '%s': %s not found in PATH", command, command.program)
            return BuildOutcome(
                command=str(command),
                success=False,
                error=f"{command.program} not found in PATH",
                executable_missing=True,
            )

        try:
            result = subprocess.run(
                command.argv(),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=cwd,
            )
        except subprocess.TimeoutExpired:
            logger.error("'%s' timed out after %ss", command, self.timeout)
            return BuildOutcome(
                command=str(command),
                success=False,
                error=f"timed out after {self.timeout}s",
            )
        except OSError as e:
            logger.error("Error executing '%s': %s", command, e)
            return BuildOutcome(command=str(command), success=False, error=str(e))

        if result.returncode != 0:
            error_msg = (result.stderr or result.stdout or "").strip()
            logger.warning("'%s' exited with %d: %s", command, result.returncode, error_msg[:200])
            return BuildOutcome(
                command=str(command),
                success=False,
                returncode=result.returncode,
                error=error_msg[:500],
            )

        return BuildOutcome(command=str(command), success=True, returncode=0)
