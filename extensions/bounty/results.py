"""
Result snapshots.

Stores one JSON document per processed repository:

    results/
        {parser}_{repository-path}_contracts.json
"""

import json
import logging
from pathlib import Path

from extensions.artifacts import RepositoryBuildResult


logger = logging.getLogger(__name__)


def result_filename(parser: str, repository: str) -> str:
    """File name for a repository's snapshot; path separators become ``_``."""
    repo_part = repository.strip("/").replace("/", "_").replace("\\", "_")
    return f"{parser}_{repo_part}_contracts.json"


class ResultStore:
    """Writes and reads contract snapshots."""

    def __init__(self, results_dir: Path | None = None):
        self.results_dir = results_dir or Path("results")

    def path_for(self, parser: str, repository: str) -> Path:
        return self.results_dir / result_filename(parser, repository)

    def save(self, parser: str, result: RepositoryBuildResult) -> Path:
        """Save a snapshot, overwriting an earlier one for the same repository."""
        self.results_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(parser, result.repository)
        path.write_text(json.dumps(result.to_dict(), indent=2))
        logger.info("Saved %d contracts to %s", len(result.contracts), path)
        return path

    def load(self, parser: str, repository: str) -> RepositoryBuildResult | None:
        path = self.path_for(parser, repository)
        if not path.exists():
            return None

        try:
            return RepositoryBuildResult.from_dict(json.loads(path.read_text()))
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            logger.warning("Failed to load result %s: %s", path, e)
            return None

    def list_results(self) -> list[Path]:
        if not self.results_dir.exists():
            return []
        return sorted(self.results_dir.glob("*_contracts.json"))
