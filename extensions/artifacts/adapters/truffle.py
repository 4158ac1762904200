"""
Truffle artifact adapter.

Truffle writes one JSON artifact per contract (``build/contracts/Name.json``)
with bytecode, source maps, the full source text and the AST inlined.
Import directives in the AST carry only a file path, so the imported
contract name is the path's last segment without ``.sol``.
"""

import logging
from pathlib import Path

from .base import (
    ArtifactAdapter,
    ArtifactModel,
    AstNode,
    SourceUnitAst,
    iter_json_files,
    load_artifact,
    make_record,
)
from ..registry import ContractRegistry


logger = logging.getLogger(__name__)


class TruffleArtifact(ArtifactModel):
    contract_name: str | None = None
    bytecode: str
    deployed_bytecode: str | None = None
    source_map: str | None = None
    deployed_source_map: str | None = None
    source: str | None = None
    source_path: str | None = None
    ast: SourceUnitAst | None = None


def imported_name(node: AstNode) -> str | None:
    """Contract name for a path-only import directive."""
    path = node.file or node.absolute_path
    if not path:
        return None
    last_segment = path.split("/")[-1]
    return last_segment.removesuffix(".sol")


class TruffleAdapter(ArtifactAdapter):
    """Adapter for Truffle's ``build/`` output (or ``src/`` where configured)."""

    name = "truffle"
    OUTPUT_DIRS = ("build", "src")

    def populate(self, output_root: Path, source_root: Path | None = None) -> ContractRegistry:
        registry = ContractRegistry()

        for path in iter_json_files(output_root):
            artifact = load_artifact(path, TruffleArtifact)
            if artifact is None:
                continue

            name = path.stem
            ast = artifact.ast

            record = make_record(
                name,
                artifact.bytecode,
                deployed_bytecode=artifact.deployed_bytecode,
                source_map=artifact.source_map,
                deployed_source_map=artifact.deployed_source_map,
                absolute_path=ast.absolute_path if ast and ast.absolute_path else artifact.source_path,
                source_id=ast.id if ast else None,
                file_contents=artifact.source,
            )
            registry.insert(name, record, origin=path)

        logger.debug("truffle populate: %d contracts from %s", len(registry), output_root)
        return registry

    def resolve_imports(self, output_root: Path, registry: ContractRegistry) -> ContractRegistry:
        with registry.resolution() as resolution:
            for path in iter_json_files(output_root):
                name = path.stem
                if not registry.owns(name, path):
                    continue

                artifact = load_artifact(path, TruffleArtifact)
                if artifact is None:
                    continue
                if artifact.ast is None:
                    logger.warning("No AST in '%s', imports not resolved", path)
                    continue

                for node in artifact.ast.import_directives():
                    foreign_name = imported_name(node)
                    if foreign_name:
                        resolution.link(name, foreign_name)

        return registry
