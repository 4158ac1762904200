"""
Bounty discovery and processing.

Handles the path from a bounty listing to extracted contracts:
- Repository discovery across platforms
- Cloning and quarantine of checkouts
- Build + extraction per repository
- Result snapshots
"""

from .repository import (
    RepositoryReference,
    normalize_repo_url,
    parse_github_url,
    reference_from_link,
)
from .scraper import BountyDiscovery
from .workspace import CloneError, RepositoryWorkspace
from .results import ResultStore, result_filename
from .pipeline import BountyPipeline, RepositoryReport

__all__ = [
    # Repository references
    "RepositoryReference",
    "normalize_repo_url",
    "parse_github_url",
    "reference_from_link",
    # Discovery
    "BountyDiscovery",
    # Workspace
    "CloneError",
    "RepositoryWorkspace",
    # Results
    "ResultStore",
    "result_filename",
    # Pipeline
    "BountyPipeline",
    "RepositoryReport",
]
