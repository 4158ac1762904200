"""
Contract record model.

A ContractRecord is one compiled unit pulled out of a toolchain's build
output. Records are created during the populate pass, receive their import
list exactly once during the resolve pass, and are read-only afterwards.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


EMPTY_BYTECODE = "0x"


class BountyForgeError(Exception):
    """Base error for bountyforge."""
    pass


class ContractKind(Enum):
    """Kind of compiled unit, derived from its creation bytecode."""
    INTERFACE = "interface"  # No executable code
    CONTRACT = "contract"


def normalize_bytecode(bytecode: str | None) -> str:
    """Normalize a bytecode string to a 0x-prefixed hex string.

    Hardhat build-info stores bytecode without the prefix and uses an empty
    string for code-less units; Foundry and Truffle use ``"0x"``.
    """
    if not bytecode:
        return EMPTY_BYTECODE
    if bytecode.startswith("0x"):
        return bytecode
    return f"0x{bytecode}"


@dataclass
class ContractRecord:
    """One compiled contract or interface."""

    name: str
    kind: ContractKind
    bytecode: str = EMPTY_BYTECODE

    # Runtime data, when the toolchain exposes it
    deployed_bytecode: str | None = None
    source_map: str | None = None
    deployed_source_map: str | None = None

    # Source location
    absolute_path: str | None = None
    source_id: int | None = None
    file_contents: str | None = None

    # Filled by the resolve pass; None until then
    imports: list["ContractRecord"] | None = None

    @property
    def is_interface(self) -> bool:
        return self.kind == ContractKind.INTERFACE

    @property
    def import_names(self) -> list[str]:
        """Names of directly imported contracts."""
        return [imported.name for imported in self.imports or []]

    def clone(self) -> "ContractRecord":
        """Return an independent deep copy."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "kind": self.kind.value,
            "bytecode": self.bytecode,
            "deployedBytecode": self.deployed_bytecode,
            "sourceMap": self.source_map,
            "deployedSourceMap": self.deployed_source_map,
            "absolutePath": self.absolute_path,
            "sourceId": self.source_id,
            "fileContents": self.file_contents,
            "imports": (
                [imported.to_dict() for imported in self.imports]
                if self.imports is not None else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContractRecord":
        """Create from dictionary."""
        imports = data.get("imports")
        return cls(
            name=data["name"],
            kind=ContractKind(data.get("kind", "contract")),
            bytecode=data.get("bytecode", EMPTY_BYTECODE),
            deployed_bytecode=data.get("deployedBytecode"),
            source_map=data.get("sourceMap"),
            deployed_source_map=data.get("deployedSourceMap"),
            absolute_path=data.get("absolutePath"),
            source_id=data.get("sourceId"),
            file_contents=data.get("fileContents"),
            imports=[cls.from_dict(item) for item in imports] if imports is not None else None,
        )

    def __str__(self) -> str:
        return f"ContractRecord({self.name}, kind={self.kind.value})"


@dataclass
class RepositoryBuildResult:
    """Ordered contract records extracted from one repository."""

    repository: str
    contracts: list[ContractRecord] = field(default_factory=list)
    toolchain: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.contracts

    @property
    def interfaces(self) -> list[ContractRecord]:
        return [c for c in self.contracts if c.kind == ContractKind.INTERFACE]

    @property
    def implementations(self) -> list[ContractRecord]:
        return [c for c in self.contracts if c.kind == ContractKind.CONTRACT]

    def get(self, name: str) -> ContractRecord | None:
        for contract in self.contracts:
            if contract.name == name:
                return contract
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "repository": self.repository,
            "toolchain": self.toolchain,
            "contracts": [c.to_dict() for c in self.contracts],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RepositoryBuildResult":
        return cls(
            repository=data["repository"],
            contracts=[ContractRecord.from_dict(c) for c in data.get("contracts", [])],
            toolchain=data.get("toolchain"),
        )
