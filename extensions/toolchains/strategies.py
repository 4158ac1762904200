"""
Toolchain strategies.

A strategy knows a toolchain's marker files, the ways to invoke its build
(modes, tried in order) and which artifact adapter reads its output.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from extensions.artifacts import (
    ArtifactAdapter,
    FoundryAdapter,
    HardhatAdapter,
    RepositoryBuildResult,
    TruffleAdapter,
)

from .runner import BuildCommand, BuildOutcome, BuildRunner


logger = logging.getLogger(__name__)


@dataclass
class BuildMode:
    """One way of installing dependencies and compiling."""

    name: str
    commands: list[BuildCommand] = field(default_factory=list)


class ToolchainStrategy:
    """Detects, builds and extracts one toolchain."""

    name: str = "unknown"
    MARKERS: tuple[str, ...] = ()
    MODES: tuple[BuildMode, ...] = ()
    adapter_class: type[ArtifactAdapter]

    def __init__(self, runner: BuildRunner | None = None):
        self.runner = runner or BuildRunner()
        self.adapter = self.adapter_class()

    def detect(self, root: Path) -> bool:
        """Check whether ``root`` holds one of this toolchain's marker files."""
        return any((root / marker).is_file() for marker in self.MARKERS)

    def build(self, root: Path, mode: BuildMode) -> list[BuildOutcome]:
        """Run a mode's commands in order.

        Stops early only when an executable is missing; a failing install
        step can still leave a usable compile.
        """
        outcomes = []
        for command in mode.commands:
            outcome = self.runner.run(command, root)
            outcomes.append(outcome)
            if outcome.executable_missing:
                break
        return outcomes

    def extract(self, root: Path) -> RepositoryBuildResult:
        """Read whatever build output already exists under ``root``."""
        return self.adapter.extract(root)

    def build_and_extract(self, root: Path, build: bool = True) -> RepositoryBuildResult:
        """Build with each mode until one yields contracts.

        Args:
            root: Project directory holding the marker file
            build: Run build commands; when False only existing output is read

        Returns:
            First non-empty result, or an empty result if every mode failed
        """
        if not build:
            return self.extract(root)

        result = RepositoryBuildResult(repository=str(root), toolchain=self.name)
        for mode in self.MODES:
            logger.info("Building %s with %s (%s)", root, self.name, mode.name)
            self.build(root, mode)

            result = self.extract(root)
            if not result.is_empty:
                return result

            logger.warning("%s (%s) produced no contracts in %s", self.name, mode.name, root)

        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class FoundryStrategy(ToolchainStrategy):
    name = "foundry"
    MARKERS = ("foundry.toml",)
    MODES = (
        BuildMode("forge", [
            BuildCommand("forge", ["install"]),
            BuildCommand("forge", ["build"]),
        ]),
    )
    adapter_class = FoundryAdapter


class HardhatStrategy(ToolchainStrategy):
    name = "hardhat"
    MARKERS = (
        "hardhat.config.js",
        "hardhat.config.ts",
        "hardhat.config.cjs",
        "hardhat.config.mjs",
    )
    MODES = (
        BuildMode("yarn", [
            BuildCommand("yarn", ["install"]),
            BuildCommand("yarn", ["compile"]),
        ]),
        BuildMode("npm", [
            BuildCommand("npm", ["install"]),
            BuildCommand("npx", ["hardhat", "compile"]),
        ]),
    )
    adapter_class = HardhatAdapter


class TruffleStrategy(ToolchainStrategy):
    name = "truffle"
    MARKERS = ("truffle-config.js", "truffle.js")
    MODES = (
        BuildMode("npm", [
            BuildCommand("npm", ["install"]),
            BuildCommand("truffle", ["compile"]),
        ]),
    )
    adapter_class = TruffleAdapter


# Preference order when a directory declares several toolchains
STRATEGIES: dict[str, type[ToolchainStrategy]] = {
    "foundry": FoundryStrategy,
    "hardhat": HardhatStrategy,
    "truffle": TruffleStrategy,
}
