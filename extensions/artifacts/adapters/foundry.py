"""
Foundry (forge) artifact adapter.

Layout::

    out/
        Counter.sol/
            Counter.json         # one artifact per contract
            ICounter.json
        build-info/              # compiler build info, not artifacts
            <hash>.json

Each artifact inlines bytecode, deployed bytecode and the source unit AST.
Imports are ImportDirective nodes; the imported contracts are named by the
directive's symbol aliases (``import {IERC20} from "..."``), falling back to
the imported file's stem for plain ``import "..."`` directives.
"""

import logging
import re
from pathlib import Path, PurePosixPath

from .base import (
    ArtifactAdapter,
    ArtifactModel,
    AstNode,
    BytecodeObject,
    SourceUnitAst,
    iter_json_files,
    load_artifact,
    make_record,
    read_source,
)
from ..registry import ContractRegistry


logger = logging.getLogger(__name__)

# Forge suffixes the compiler version when one contract is built by several
# solc versions: Counter.0.8.19.json
_VERSION_SUFFIX = re.compile(r"\.\d+\.\d+\.\d+$")


class FoundryArtifact(ArtifactModel):
    bytecode: BytecodeObject
    deployed_bytecode: BytecodeObject | None = None
    ast: SourceUnitAst | None = None
    id: int | None = None


def foundry_contract_name(path: Path) -> str:
    """Contract name from an artifact path, without any version suffix."""
    return _VERSION_SUFFIX.sub("", path.stem)


def imported_names(node: AstNode) -> list[str]:
    """Contract names brought in by one import directive."""
    aliased = [alias.foreign.name for alias in node.symbol_aliases if alias.foreign.name]
    if aliased:
        return aliased

    path = node.absolute_path or node.file
    if not path:
        return []
    return [PurePosixPath(path).stem]


class FoundryAdapter(ArtifactAdapter):
    """Adapter for forge's ``out/`` directory."""

    name = "foundry"
    OUTPUT_DIRS = ("out",)
    SKIP_DIRS = ("build-info",)

    def populate(self, output_root: Path, source_root: Path | None = None) -> ContractRegistry:
        registry = ContractRegistry()

        for path in iter_json_files(output_root, self.SKIP_DIRS):
            artifact = load_artifact(path, FoundryArtifact)
            if artifact is None:
                continue

            name = foundry_contract_name(path)
            absolute_path = artifact.ast.absolute_path if artifact.ast else None
            deployed = artifact.deployed_bytecode

            record = make_record(
                name,
                artifact.bytecode.object,
                deployed_bytecode=deployed.object if deployed else None,
                source_map=artifact.bytecode.source_map,
                deployed_source_map=deployed.source_map if deployed else None,
                absolute_path=absolute_path,
                source_id=artifact.id,
                file_contents=read_source(source_root, absolute_path),
            )
            registry.insert(name, record, origin=path)

        logger.debug("foundry populate: %d contracts from %s", len(registry), output_root)
        return registry

    def resolve_imports(self, output_root: Path, registry: ContractRegistry) -> ContractRegistry:
        with registry.resolution() as resolution:
            for path in iter_json_files(output_root, self.SKIP_DIRS):
                name = foundry_contract_name(path)
                if not registry.owns(name, path):
                    continue

                artifact = load_artifact(path, FoundryArtifact)
                if artifact is None:
                    continue
                if artifact.ast is None:
                    logger.warning("No AST in '%s', imports not resolved", path)
                    continue

                for node in artifact.ast.import_directives():
                    for foreign_name in imported_names(node):
                        resolution.link(name, foreign_name)

        return registry
