"""
Base class and shared schema pieces for artifact adapters.

Each adapter reads one toolchain's JSON build output in two passes:

1. populate()        - one walk, inserting records into a fresh registry
2. resolve_imports() - a second walk, linking imports against a snapshot

Per-file problems (unreadable file, bad JSON, schema mismatch) are logged
and the file is skipped; they never abort the walk.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterator, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from ..classification import classify, order_contracts
from ..contract import ContractRecord, RepositoryBuildResult, normalize_bytecode
from ..registry import ContractRegistry


logger = logging.getLogger(__name__)

IMPORT_DIRECTIVE = "ImportDirective"

T = TypeVar("T", bound=BaseModel)


class ArtifactModel(BaseModel):
    """Base for artifact schemas: camelCase keys, unknown keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ForeignSymbol(ArtifactModel):
    name: str | None = None


class SymbolAlias(ArtifactModel):
    foreign: ForeignSymbol
    local: str | None = None


class AstNode(ArtifactModel):
    """A top-level node of a compiler SourceUnit AST."""

    node_type: str
    absolute_path: str | None = None
    file: str | None = None
    symbol_aliases: list[SymbolAlias] = []

    @property
    def is_import(self) -> bool:
        return self.node_type == IMPORT_DIRECTIVE


class SourceUnitAst(ArtifactModel):
    absolute_path: str | None = None
    id: int | None = None
    node_type: str | None = None
    nodes: list[AstNode] = []

    def import_directives(self) -> list[AstNode]:
        return [node for node in self.nodes if node.is_import]


class BytecodeObject(ArtifactModel):
    """Compiler bytecode block (``{"object": ..., "sourceMap": ...}``)."""

    object: str
    source_map: str | None = None


def iter_json_files(root: Path, skip_dirs: tuple[str, ...] = ()) -> Iterator[Path]:
    """Walk ``root`` recursively yielding JSON files in sorted order.

    Args:
        root: Directory to walk
        skip_dirs: Directory names to leave out anywhere below root
    """
    if not root.is_dir():
        return

    for path in sorted(root.rglob("*.json")):
        if not path.is_file():
            continue
        parents = path.relative_to(root).parts[:-1]
        if any(part in skip_dirs for part in parents):
            continue
        yield path


def load_artifact(path: Path, schema: type[T]) -> T | None:
    """Read and validate one JSON artifact.

    Returns:
        The validated model, or None if the file was skipped
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Error reading JSON file '%s': %s", path, e)
        return None

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Error parsing JSON file '%s': %s", path, e)
        return None

    return validate_artifact(data, schema, path)


def validate_artifact(data: Any, schema: type[T], origin: Path | str) -> T | None:
    """Validate already-parsed JSON against an artifact schema."""
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        problems = ", ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()[:3]
        )
        logger.warning("Skipping '%s' (%s)", origin, problems)
        return None


def read_source(source_root: Path | None, relative_path: str | None) -> str | None:
    """Read a contract's source text relative to the repository root."""
    if source_root is None or not relative_path:
        return None

    path = source_root / relative_path
    if not path.is_file():
        return None

    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Could not read source %s: %s", path, e)
        return None


def make_record(name: str, bytecode: str | None, **metadata: Any) -> ContractRecord:
    """Create a record, classifying it from its creation bytecode."""
    normalized = normalize_bytecode(bytecode)
    if metadata.get("deployed_bytecode") is not None:
        metadata["deployed_bytecode"] = normalize_bytecode(metadata["deployed_bytecode"])
    return ContractRecord(
        name=name,
        kind=classify(normalized),
        bytecode=normalized,
        **metadata,
    )


class ArtifactAdapter(ABC):
    """Reads one toolchain's build output into contract records."""

    name: str = "unknown"

    # Candidate output directories under the repository root, in preference order
    OUTPUT_DIRS: tuple[str, ...] = ()

    def output_root(self, repo_root: Path) -> Path | None:
        """Find the build output directory, or None if nothing was built."""
        for dirname in self.OUTPUT_DIRS:
            candidate = repo_root / dirname
            if candidate.is_dir():
                return candidate
        return None

    @abstractmethod
    def populate(self, output_root: Path, source_root: Path | None = None) -> ContractRegistry:
        """First pass: build a registry with one record per contract.

        Args:
            output_root: The toolchain's build output directory
            source_root: Repository root used to locate source files
        """
        pass

    @abstractmethod
    def resolve_imports(self, output_root: Path, registry: ContractRegistry) -> ContractRegistry:
        """Second pass: attach imports to every record in ``registry``."""
        pass

    def extract(self, repo_root: Path) -> RepositoryBuildResult:
        """Run both passes over a repository and order the result.

        An absent output directory yields an empty result.
        """
        repo_root = Path(repo_root)
        result = RepositoryBuildResult(repository=str(repo_root), toolchain=self.name)

        output_root = self.output_root(repo_root)
        if output_root is None:
            logger.info(
                "No %s output directory (%s) in %s",
                self.name, ", ".join(self.OUTPUT_DIRS), repo_root,
            )
            return result

        logger.info("Looking for built contracts in %s", output_root)
        registry = self.populate(output_root, source_root=repo_root)
        self.resolve_imports(output_root, registry)

        result.contracts = order_contracts(registry.finalize())
        logger.info("%s: extracted %d contracts from %s", self.name, len(result.contracts), repo_root)
        return result
