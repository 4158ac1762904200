"""
Extract command: build a local repository and list its contracts.

Usage:
    ./bountyforge.py extract <repo_path> [--toolchain foundry|hardhat|truffle|auto]
                                         [--no-build] [--json <path>] [--truncate]
"""

import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

sys.path.insert(0, str(Path(__file__).parent.parent))

from extensions.artifacts import ContractKind, RepositoryBuildResult
from extensions.settings import Settings
from extensions.toolchains import (
    STRATEGIES,
    BuildRunner,
    SelectionStatus,
    ToolchainSelector,
    make_strategies,
)


console = Console()

MAX_BYTECODE_LENGTH = 100


def load_settings(config_path: Path | None, **overrides) -> Settings:
    """Resolve settings, reporting a bad value as a usage error."""
    try:
        return Settings.load(config_path, **overrides)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--config")


def truncate_bytecode(bytecode: str, limit: int = MAX_BYTECODE_LENGTH) -> str:
    if len(bytecode) > limit:
        return f"{bytecode[:limit]}..."
    return bytecode


def render_result(result: RepositoryBuildResult, truncate: bool) -> None:
    """Print a contract table for one repository."""
    table = Table(show_header=True, header_style="bold", title=f"Repository: {result.repository}")
    table.add_column("Contract")
    table.add_column("Type", width=10)
    table.add_column("Imports", width=8)
    table.add_column("Bytecode", overflow="fold")

    for contract in result.contracts:
        kind_style = "cyan" if contract.kind == ContractKind.INTERFACE else "green"
        bytecode = truncate_bytecode(contract.bytecode) if truncate else contract.bytecode
        table.add_row(
            contract.name,
            f"[{kind_style}]{contract.kind.value.title()}[/{kind_style}]",
            str(len(contract.imports or [])),
            bytecode,
        )

    console.print(table)
    console.print(
        f"[dim]{len(result.interfaces)} interfaces, "
        f"{len(result.implementations)} contracts ({result.toolchain})[/dim]"
    )


@click.command("extract")
@click.argument("repo_path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option(
    "--toolchain",
    type=click.Choice(["auto", *STRATEGIES.keys()]),
    default="auto",
    help="Toolchain to use (auto-detected by default)",
)
@click.option("--no-build", is_flag=True, help="Read existing build output without building")
@click.option("--json", "json_path", type=click.Path(dir_okay=False, path_type=Path), help="Write contracts as JSON")
@click.option("--truncate", is_flag=True, help="Truncate bytecode in the table")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), help="Settings YAML file")
def extract(
    repo_path: Path,
    toolchain: str,
    no_build: bool,
    json_path: Path | None,
    truncate: bool,
    config_path: Path | None,
):
    """Build a repository and extract its contracts."""
    settings = load_settings(config_path)
    runner = BuildRunner(timeout=settings.build_timeout)
    names = None if toolchain == "auto" else [toolchain]

    selector = ToolchainSelector(
        strategies=make_strategies(names, runner=runner),
        build=not no_build,
    )

    console.print(f"\n[bold]Extracting contracts: {repo_path}[/bold]\n")
    outcome = selector.select(repo_path)

    if outcome.status == SelectionStatus.UNSUPPORTED:
        console.print("[yellow]No supported toolchain found (foundry.toml, hardhat.config.*, truffle-config.js)[/yellow]")
        raise SystemExit(1)

    if outcome.status == SelectionStatus.BUILD_FAILED:
        console.print(f"[red]No contracts produced by: {', '.join(outcome.attempted)}[/red]")
        raise SystemExit(1)

    render_result(outcome.result, truncate)

    if json_path:
        json_path.parent.mkdir(parents=True, exist_ok=True)
        json_path.write_text(json.dumps(outcome.result.to_dict(), indent=2))
        console.print(f"\n[dim]Results saved to: {json_path}[/dim]")
