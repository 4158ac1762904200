"""
Local repository workspace.

Clones discovered repositories, pins them to a commit when one is known and
moves repositories that fail to build out of the way.
"""

import logging
import shutil
import subprocess
from pathlib import Path

from extensions.artifacts import BountyForgeError

from .repository import RepositoryReference


logger = logging.getLogger(__name__)


class CloneError(BountyForgeError):
    """A repository could not be cloned or checked out."""
    pass


class RepositoryWorkspace:
    """Directory of cloned repositories plus a quarantine area."""

    def __init__(
        self,
        base_dir: Path | None = None,
        quarantine_dir: Path | None = None,
        timeout: int = 600,
    ):
        """Initialize the workspace.

        Args:
            base_dir: Directory that ``repos/<name>`` paths are relative to
            quarantine_dir: Where failed repositories are moved
            timeout: Maximum seconds for a git command
        """
        self.base_dir = base_dir or Path.cwd()
        self.quarantine_dir = quarantine_dir or self.base_dir / "quarantine"
        self.timeout = timeout

    def path_for(self, ref: RepositoryReference) -> Path:
        return self.base_dir / ref.name

    def _git(self, args: list[str], cwd: Path | None = None) -> None:
        if shutil.which("git") is None:
            raise CloneError("git not found in PATH")
        try:
            result = subprocess.run(
                ["git", *args],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=cwd,
            )
        except subprocess.TimeoutExpired:
            raise CloneError(f"git {args[0]} timed out after {self.timeout}s")
        except OSError as e:
            raise CloneError(f"git {args[0]} failed: {e}")

        if result.returncode != 0:
            raise CloneError(f"git {args[0]} failed: {result.stderr.strip()[:300]}")

    def clone(self, ref: RepositoryReference) -> Path:
        """Clone a repository, replacing any existing checkout.

        Raises:
            CloneError: If cloning or checking out the commit fails
        """
        target = self.path_for(ref)
        if target.exists():
            shutil.rmtree(target)
        target.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Cloning the repo %s into %s", ref.url, target)
        self._git(["clone", "--recurse-submodules", ref.url, str(target)])

        if ref.commit:
            logger.info("Checking out %s in %s", ref.commit, target)
            self._git(["checkout", ref.commit], cwd=target)

        return target

    def quarantine(self, repo_path: Path) -> Path | None:
        """Move a repository that failed to build into the quarantine area."""
        repo_path = Path(repo_path)
        if not repo_path.exists():
            return None

        self.quarantine_dir.mkdir(parents=True, exist_ok=True)
        destination = self.quarantine_dir / repo_path.name
        if destination.exists():
            shutil.rmtree(destination)

        shutil.move(str(repo_path), str(destination))
        logger.warning("Quarantined %s to %s", repo_path, destination)
        return destination

    def remove(self, repo_path: Path) -> bool:
        """Delete a repository checkout."""
        repo_path = Path(repo_path)
        if not repo_path.exists():
            return False
        shutil.rmtree(repo_path)
        logger.info("Removed unsupported repository %s", repo_path)
        return True
