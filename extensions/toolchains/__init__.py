"""
Toolchain selection and build invocation.

Supported toolchains (in preference order):
- Foundry (forge)
- Hardhat (yarn or npm)
- Truffle
"""

from .runner import BuildCommand, BuildOutcome, BuildRunner
from .strategies import (
    BuildMode,
    ToolchainStrategy,
    FoundryStrategy,
    HardhatStrategy,
    TruffleStrategy,
    STRATEGIES,
)
from .selection import (
    SelectionOutcome,
    SelectionStatus,
    ToolchainSelector,
    UnknownToolchainError,
    make_strategies,
)

__all__ = [
    # Runner
    "BuildCommand",
    "BuildOutcome",
    "BuildRunner",
    # Strategies
    "BuildMode",
    "ToolchainStrategy",
    "FoundryStrategy",
    "HardhatStrategy",
    "TruffleStrategy",
    "STRATEGIES",
    # Selection
    "SelectionOutcome",
    "SelectionStatus",
    "ToolchainSelector",
    "UnknownToolchainError",
    "make_strategies",
]
