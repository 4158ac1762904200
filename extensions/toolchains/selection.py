"""
Toolchain selection policy.

Given a repository root:

1. Walk directories depth-first (the root first, then subdirectories in
   sorted order) and stop at the first directory holding any toolchain
   marker file. Sibling directories are not tried.
2. Try each toolchain detected there, in preference order, each with its
   build modes in order. The first non-empty result wins.
3. If every detected toolchain yields zero contracts the repository is a
   build failure; with no marker at all it is unsupported. Either outcome is
   handed to a caller-supplied callback (quarantine, cleanup).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator

from extensions.artifacts import BountyForgeError, RepositoryBuildResult

from .runner import BuildRunner
from .strategies import STRATEGIES, ToolchainStrategy


logger = logging.getLogger(__name__)

# Directories never searched for markers
SKIP_DIRS = {"node_modules"}


class UnknownToolchainError(BountyForgeError, ValueError):
    """Requested toolchain is not supported."""
    pass


class SelectionStatus(Enum):
    BUILT = "built"
    BUILD_FAILED = "build_failed"
    UNSUPPORTED = "unsupported"


@dataclass
class SelectionOutcome:
    """What happened when selecting and building one repository."""

    repository: str
    status: SelectionStatus
    result: RepositoryBuildResult
    project_root: Path | None = None
    attempted: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == SelectionStatus.BUILT


OutcomeCallback = Callable[[SelectionOutcome], None]


def make_strategies(
    names: list[str] | None = None,
    runner: BuildRunner | None = None,
) -> list[ToolchainStrategy]:
    """Instantiate strategies in preference order.

    Args:
        names: Restrict to these toolchains (order given is kept)
        runner: Shared build runner

    Raises:
        UnknownToolchainError: If a name is not a supported toolchain
    """
    runner = runner or BuildRunner()
    if names is None:
        names = list(STRATEGIES.keys())

    strategies = []
    for name in names:
        if name not in STRATEGIES:
            raise UnknownToolchainError(
                f"Unknown toolchain: {name}. Available: {list(STRATEGIES.keys())}"
            )
        strategies.append(STRATEGIES[name](runner))
    return strategies


def iter_directories(root: Path) -> Iterator[Path]:
    """Depth-first, preorder walk of ``root`` and its subdirectories.

    Hidden directories, ``node_modules`` and symlinked directories are not
    descended into.
    """
    yield root

    try:
        children = sorted(p for p in root.iterdir() if p.is_dir())
    except OSError as e:
        logger.warning("Cannot list %s: %s", root, e)
        return

    for child in children:
        if child.name.startswith(".") or child.name in SKIP_DIRS or child.is_symlink():
            continue
        yield from iter_directories(child)


class ToolchainSelector:
    """Picks and runs the right toolchain for a repository."""

    def __init__(
        self,
        strategies: list[ToolchainStrategy] | None = None,
        build: bool = True,
        on_build_failure: OutcomeCallback | None = None,
        on_unsupported: OutcomeCallback | None = None,
    ):
        """Initialize the selector.

        Args:
            strategies: Strategies in preference order (defaults to all)
            build: Run build commands before extracting
            on_build_failure: Called when every detected toolchain yields nothing
            on_unsupported: Called when no toolchain marker is found
        """
        self.strategies = strategies if strategies is not None else make_strategies()
        self.build = build
        self.on_build_failure = on_build_failure
        self.on_unsupported = on_unsupported

    def locate(self, repo_root: Path) -> tuple[Path, list[ToolchainStrategy]] | None:
        """Find the first directory with markers and the toolchains it declares."""
        for directory in iter_directories(repo_root):
            detected = [s for s in self.strategies if s.detect(directory)]
            if detected:
                logger.debug(
                    "Found %s markers in %s",
                    ", ".join(s.name for s in detected), directory,
                )
                return directory, detected
        return None

    def select(self, repo_root: Path) -> SelectionOutcome:
        """Select a toolchain, build and extract.

        Returns:
            SelectionOutcome; never raises for build or extraction failures
        """
        repo_root = Path(repo_root)
        repository = str(repo_root)

        located = self.locate(repo_root) if repo_root.is_dir() else None
        if located is None:
            logger.warning("No supported toolchain found in %s", repo_root)
            outcome = SelectionOutcome(
                repository=repository,
                status=SelectionStatus.UNSUPPORTED,
                result=RepositoryBuildResult(repository=repository),
            )
            if self.on_unsupported:
                self.on_unsupported(outcome)
            return outcome

        project_root, detected = located
        attempted = []

        for strategy in detected:
            attempted.append(strategy.name)
            result = strategy.build_and_extract(project_root, build=self.build)
            if not result.is_empty:
                result.repository = repository
                return SelectionOutcome(
                    repository=repository,
                    status=SelectionStatus.BUILT,
                    result=result,
                    project_root=project_root,
                    attempted=attempted,
                )
            logger.warning("%s yielded no contracts for %s, trying next toolchain", strategy.name, repo_root)

        logger.error("All toolchains (%s) failed for %s", ", ".join(attempted), repo_root)
        outcome = SelectionOutcome(
            repository=repository,
            status=SelectionStatus.BUILD_FAILED,
            result=RepositoryBuildResult(repository=repository),
            project_root=project_root,
            attempted=attempted,
        )
        if self.on_build_failure:
            self.on_build_failure(outcome)
        return outcome
