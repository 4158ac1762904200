"""
Artifact adapters, one per build toolchain family.
"""

from .base import ArtifactAdapter
from .foundry import FoundryAdapter
from .hardhat import HardhatAdapter
from .truffle import TruffleAdapter

ADAPTERS = {
    "foundry": FoundryAdapter,
    "hardhat": HardhatAdapter,
    "truffle": TruffleAdapter,
}


def get_adapter(toolchain: str) -> ArtifactAdapter:
    """Get an adapter instance by toolchain name."""
    if toolchain not in ADAPTERS:
        raise ValueError(f"Unknown toolchain: {toolchain}. Available: {list(ADAPTERS.keys())}")
    return ADAPTERS[toolchain]()


__all__ = [
    "ArtifactAdapter",
    "FoundryAdapter",
    "HardhatAdapter",
    "TruffleAdapter",
    "ADAPTERS",
    "get_adapter",
]
