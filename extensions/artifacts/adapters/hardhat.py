"""
Hardhat artifact adapter.

Layout::

    artifacts/
        build-info/
            <hash>.json              # one per compilation, many contracts
        contracts/Token.sol/
            Token.json               # per-contract artifact
            Token.dbg.json           # debug pointer to the build info

Records come from the build-info files: bytecode and source maps from
``output.contracts[path][name].evm``, AST metadata from
``output.sources[path]`` and source text from ``input.sources[path]``.
Imports come from the per-contract artifacts' ``linkReferences``, which are
keyed by source path and then by contract name.
"""

import logging
from pathlib import Path
from typing import Any

from .base import (
    ArtifactAdapter,
    ArtifactModel,
    BytecodeObject,
    SourceUnitAst,
    iter_json_files,
    load_artifact,
    make_record,
    validate_artifact,
)
from ..registry import ContractRegistry


logger = logging.getLogger(__name__)

BUILD_INFO_DIR = "build-info"
DEBUG_SUFFIX = ".dbg"


class InputSource(ArtifactModel):
    content: str | None = None


class BuildInput(ArtifactModel):
    sources: dict[str, InputSource] = {}


class OutputSource(ArtifactModel):
    id: int | None = None
    ast: SourceUnitAst | None = None


class EvmOutput(ArtifactModel):
    bytecode: BytecodeObject
    deployed_bytecode: BytecodeObject | None = None


class ContractOutput(ArtifactModel):
    evm: EvmOutput


class BuildOutput(ArtifactModel):
    sources: dict[str, OutputSource] = {}
    # Validated per contract so one bad entry does not drop the whole file
    contracts: dict[str, dict[str, Any]] = {}


class BuildInfo(ArtifactModel):
    input: BuildInput
    output: BuildOutput


class HardhatArtifact(ArtifactModel):
    contract_name: str | None = None
    source_name: str | None = None
    bytecode: str | None = None
    link_references: dict[str, dict[str, list[Any]]] = {}

    def linked_contracts(self) -> list[str]:
        return [
            contract_name
            for by_name in self.link_references.values()
            for contract_name in by_name
        ]


def is_debug_artifact(path: Path) -> bool:
    """Hardhat writes ``<Name>.dbg.json`` next to every artifact."""
    return path.stem.endswith(DEBUG_SUFFIX)


class HardhatAdapter(ArtifactAdapter):
    """Adapter for Hardhat's ``artifacts/`` directory."""

    name = "hardhat"
    OUTPUT_DIRS = ("artifacts",)

    def populate(self, output_root: Path, source_root: Path | None = None) -> ContractRegistry:
        registry = ContractRegistry()
        build_info_dir = output_root / BUILD_INFO_DIR

        for path in iter_json_files(build_info_dir):
            if is_debug_artifact(path):
                continue

            build_info = load_artifact(path, BuildInfo)
            if build_info is None:
                continue

            self._populate_build_info(output_root, path, build_info, registry)

        logger.debug("hardhat populate: %d contracts from %s", len(registry), build_info_dir)
        return registry

    def _populate_build_info(
        self,
        output_root: Path,
        path: Path,
        build_info: BuildInfo,
        registry: ContractRegistry,
    ) -> None:
        """Insert every contract of one compilation.

        Each record is tied to its per-contract artifact,
        ``<output_root>/<source path>/<Name>.json``.
        """
        output = build_info.output

        for source_path, contracts in output.contracts.items():
            source_info = output.sources.get(source_path)
            if source_info is None:
                logger.warning("Output sources entry not found for %s in '%s'", source_path, path)
                continue

            input_info = build_info.input.sources.get(source_path)
            if input_info is None:
                logger.warning("Input sources entry not found for %s in '%s'", source_path, path)
                continue

            for contract_name, raw_contract in contracts.items():
                contract = validate_artifact(raw_contract, ContractOutput, f"{path}:{source_path}:{contract_name}")
                if contract is None:
                    continue

                bytecode = contract.evm.bytecode
                deployed = contract.evm.deployed_bytecode
                ast = source_info.ast

                record = make_record(
                    contract_name,
                    bytecode.object,
                    deployed_bytecode=deployed.object if deployed else None,
                    source_map=bytecode.source_map,
                    deployed_source_map=deployed.source_map if deployed else None,
                    absolute_path=ast.absolute_path if ast and ast.absolute_path else source_path,
                    source_id=source_info.id,
                    file_contents=input_info.content,
                )
                registry.insert(contract_name, record, origin=output_root / source_path / f"{contract_name}.json")

    def resolve_imports(self, output_root: Path, registry: ContractRegistry) -> ContractRegistry:
        with registry.resolution() as resolution:
            for path in iter_json_files(output_root, (BUILD_INFO_DIR,)):
                if is_debug_artifact(path):
                    continue

                name = path.stem
                if not registry.owns(name, path):
                    logger.debug("No record for artifact '%s'", path)
                    continue

                artifact = load_artifact(path, HardhatArtifact)
                if artifact is None:
                    continue

                for foreign_name in artifact.linked_contracts():
                    resolution.link(name, foreign_name)

        return registry
