"""
Artifact extraction and import-graph resolution.

Turns heterogeneous build-tool output (Foundry, Hardhat, Truffle) into a
unified, ordered list of contract records with resolved imports.
"""

from .contract import (
    BountyForgeError,
    ContractKind,
    ContractRecord,
    RepositoryBuildResult,
    EMPTY_BYTECODE,
)
from .classification import classify, order_contracts
from .registry import ContractRegistry, ImportResolution
from .adapters import (
    ArtifactAdapter,
    FoundryAdapter,
    HardhatAdapter,
    TruffleAdapter,
    ADAPTERS,
    get_adapter,
)

__all__ = [
    # Model
    "BountyForgeError",
    "ContractKind",
    "ContractRecord",
    "RepositoryBuildResult",
    "EMPTY_BYTECODE",
    # Classification
    "classify",
    "order_contracts",
    # Registry
    "ContractRegistry",
    "ImportResolution",
    # Adapters
    "ArtifactAdapter",
    "FoundryAdapter",
    "HardhatAdapter",
    "TruffleAdapter",
    "ADAPTERS",
    "get_adapter",
]
