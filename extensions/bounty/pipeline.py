"""
End-to-end bounty pipeline.

For each discovered repository: clone → select toolchain and build →
extract contracts → save a snapshot. Repositories are processed
concurrently in worker threads, bounded by a concurrency limit; each one
works in its own checkout directory.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from extensions.artifacts import RepositoryBuildResult
from extensions.settings import Settings
from extensions.toolchains import (
    BuildRunner,
    SelectionOutcome,
    SelectionStatus,
    ToolchainSelector,
    make_strategies,
)

from .repository import RepositoryReference
from .results import ResultStore
from .workspace import CloneError, RepositoryWorkspace


logger = logging.getLogger(__name__)

CLONE_FAILED = "clone_failed"


@dataclass
class RepositoryReport:
    """Outcome of processing one repository."""

    reference: RepositoryReference
    status: str  # built, build_failed, unsupported, clone_failed
    result: RepositoryBuildResult | None = None
    result_path: Path | None = None
    error: str | None = None

    @property
    def contract_count(self) -> int:
        return len(self.result.contracts) if self.result else 0


class BountyPipeline:
    """Clones, builds and extracts discovered repositories."""

    def __init__(
        self,
        settings: Settings | None = None,
        workspace: RepositoryWorkspace | None = None,
        store: ResultStore | None = None,
        build: bool = True,
        toolchains: list[str] | None = None,
    ):
        self.settings = settings or Settings()
        self.workspace = workspace or RepositoryWorkspace(
            base_dir=self.settings.repos_dir,
            quarantine_dir=self.settings.quarantine_dir,
        )
        self.store = store or ResultStore(self.settings.results_dir)
        self.build = build
        self.toolchains = toolchains

    def _selector(self) -> ToolchainSelector:
        runner = BuildRunner(timeout=self.settings.build_timeout)
        return ToolchainSelector(
            strategies=make_strategies(self.toolchains, runner=runner),
            build=self.build,
            on_build_failure=self._quarantine,
            on_unsupported=self._discard,
        )

    def _quarantine(self, outcome: SelectionOutcome) -> None:
        self.workspace.quarantine(Path(outcome.repository))

    def _discard(self, outcome: SelectionOutcome) -> None:
        self.workspace.remove(Path(outcome.repository))

    def process(self, ref: RepositoryReference) -> RepositoryReport:
        """Process one repository synchronously."""
        try:
            repo_path = self.workspace.clone(ref)
        except CloneError as e:
            logger.error("Error cloning %s: %s", ref.url, e)
            return RepositoryReport(reference=ref, status=CLONE_FAILED, error=str(e))

        outcome = self._selector().select(repo_path)
        if outcome.status != SelectionStatus.BUILT:
            return RepositoryReport(reference=ref, status=outcome.status.value)

        result = outcome.result
        result.repository = ref.name
        path = self.store.save(ref.parser, result)
        return RepositoryReport(
            reference=ref,
            status=outcome.status.value,
            result=result,
            result_path=path,
        )

    async def run(
        self,
        references: list[RepositoryReference],
        concurrency: int | None = None,
    ) -> list[RepositoryReport]:
        """Process repositories concurrently.

        References sharing a checkout path are processed once (first wins).
        """
        limit = max(1, concurrency or self.settings.concurrency)
        semaphore = asyncio.Semaphore(limit)

        unique: dict[str, RepositoryReference] = {}
        for ref in references:
            if ref.name in unique:
                logger.debug("Skipping duplicate checkout %s (%s)", ref.name, ref.url)
                continue
            unique[ref.name] = ref

        async def process_one(ref: RepositoryReference) -> RepositoryReport:
            async with semaphore:
                return await asyncio.to_thread(self.process, ref)

        return list(await asyncio.gather(*[process_one(ref) for ref in unique.values()]))
