"""
Contract registry.

Keyed collection of contract records, built in two passes:

    populate:  insert() one record per artifact (last write wins)
    resolve:   with resolution() as res: res.link(importer, foreign_name)

The resolve pass reads from a frozen deep-copy snapshot taken when the pass
starts and stages edges separately; the live records only receive their
import lists when the pass commits.
"""

import copy
import logging
from contextlib import contextmanager
from types import MappingProxyType
from pathlib import Path
from typing import Iterator, Mapping

from .contract import ContractRecord


logger = logging.getLogger(__name__)


class ImportResolution:
    """Staged import edges for one resolve pass."""

    def __init__(self, snapshot: Mapping[str, ContractRecord]):
        self.snapshot = snapshot
        self._pending: dict[str, list[ContractRecord]] = {}
        self.unresolved: set[str] = set()

    def link(self, importer: str, foreign_name: str) -> bool:
        """Stage an import of ``foreign_name`` into ``importer``.

        Self-imports, unknown names and repeats of an already staged name are
        ignored.

        Returns:
            True if a new edge was staged
        """
        if not foreign_name or foreign_name == importer:
            return False

        imported = self.snapshot.get(foreign_name)
        if imported is None:
            # Vendor or external dependency not present in this build
            self.unresolved.add(foreign_name)
            logger.debug("Unresolved import %s in %s", foreign_name, importer)
            return False

        staged = self._pending.setdefault(importer, [])
        if any(existing.name == foreign_name for existing in staged):
            return False

        staged.append(imported.clone())
        return True

    def staged_names(self, importer: str) -> list[str]:
        return [record.name for record in self._pending.get(importer, [])]

    def commit(self, registry: "ContractRegistry") -> None:
        """Attach staged imports to the live records.

        Every record gets a list, empty when nothing was staged for it.
        """
        for name in registry.names():
            record = registry.get_mut(name)
            record.imports = self._pending.get(name, [])


class ContractRegistry:
    """In-memory registry of contract records keyed by name."""

    def __init__(self):
        self._records: dict[str, ContractRecord] = {}
        # Artifact each surviving record was read from
        self._origins: dict[str, Path] = {}

    def insert(self, name: str, record: ContractRecord, origin: Path | None = None) -> None:
        """Insert a record, replacing any earlier record with the same name.

        Args:
            name: Contract name
            record: The record
            origin: Artifact file the record came from
        """
        if name in self._records:
            logger.debug("Duplicate contract name %s, keeping the latest (%s)", name, origin)
        self._records[name] = record
        if origin is None:
            self._origins.pop(name, None)
        else:
            self._origins[name] = origin

    def owns(self, name: str, path: Path) -> bool:
        """Whether ``path`` is the artifact behind the record for ``name``.

        A record inserted without an origin accepts any path.
        """
        if name not in self._records:
            return False
        origin = self._origins.get(name)
        return origin is None or origin == path

    def get(self, name: str) -> ContractRecord | None:
        """Get an independent copy of a record."""
        record = self._records.get(name)
        return record.clone() if record is not None else None

    def get_mut(self, name: str) -> ContractRecord | None:
        """Get the live record for amendment."""
        return self._records.get(name)

    def snapshot(self) -> Mapping[str, ContractRecord]:
        """Return a frozen deep copy of the registry contents."""
        return MappingProxyType(copy.deepcopy(self._records))

    @contextmanager
    def resolution(self) -> Iterator[ImportResolution]:
        """Run an import resolution pass against a snapshot.

        Staged edges are committed when the block exits normally and
        discarded if it raises.
        """
        resolution = ImportResolution(self.snapshot())
        yield resolution
        resolution.commit(self)

    def names(self) -> list[str]:
        return list(self._records)

    def finalize(self) -> list[ContractRecord]:
        """Drain the registry into a list of records."""
        records = list(self._records.values())
        self._records = {}
        self._origins = {}
        return records

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, name: object) -> bool:
        return name in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._records))
