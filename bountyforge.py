#!/usr/bin/env python3
"""bountyforge - Contract extraction for audit bounty repositories.

Discovers repositories behind bounty listings, builds them with the
toolchain they declare and extracts compiled contracts with their import
graph.
"""

import logging
import sys
from enum import Enum
from pathlib import Path

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

import click
import typer
from rich.console import Console
from rich.logging import RichHandler

_BASE_DIR_STR = str(Path(__file__).resolve().parent)
if _BASE_DIR_STR not in sys.path:
    sys.path.insert(0, _BASE_DIR_STR)

from extensions.settings import Settings

console = Console()


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


app = typer.Typer(
    name="bountyforge",
    help="Extract compiled contracts from audit bounty repositories",
    add_completion=False,
)


def setup_logging(level: str) -> None:
    """Route log records through rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _invoke_click(command: click.Command, params: dict) -> None:
    """Run a click command with already-parsed parameters."""
    ctx = click.Context(command, info_name=command.name)
    with ctx:
        ctx.invoke(command, **params)


@app.callback()
def main_callback(
    log_level: LogLevel = typer.Option(None, "--log-level", case_sensitive=False, help="Logging level"),
):
    """Extract compiled contracts from audit bounty repositories."""
    try:
        settings = Settings.load(log_level=log_level.value if log_level else None)
    except ValueError as e:
        console.print(f"[red]Invalid settings:[/red] {e}")
        raise typer.Exit(2)
    setup_logging(settings.log_level)


# ─────────────────────────────────────────────────────────────────────────────
# Extraction Commands
# ─────────────────────────────────────────────────────────────────────────────

@app.command("extract")
def extract_cmd(
    repo_path: Path = typer.Argument(..., help="Repository directory"),
    toolchain: str = typer.Option("auto", "--toolchain", "-t", help="Toolchain (auto, foundry, hardhat, truffle)"),
    no_build: bool = typer.Option(False, "--no-build", help="Read existing build output without building"),
    json_path: Path = typer.Option(None, "--json", "-j", help="Write contracts as JSON"),
    truncate: bool = typer.Option(False, "--truncate", help="Truncate bytecode in the table"),
    config_path: Path = typer.Option(None, "--config", help="Settings YAML file"),
):
    """Build a repository and extract its contracts."""
    from commands.extract import extract
    _invoke_click(extract, {
        'repo_path': repo_path,
        'toolchain': toolchain,
        'no_build': no_build,
        'json_path': json_path,
        'truncate': truncate,
        'config_path': config_path,
    })


# ─────────────────────────────────────────────────────────────────────────────
# Bounty Commands
# ─────────────────────────────────────────────────────────────────────────────

@app.command("discover")
def discover_cmd(
    platform: str = typer.Option(None, "--platform", "-p", help="Specific platform to scrape"),
    config_path: Path = typer.Option(None, "--config", help="Settings YAML file"),
):
    """Discover repositories behind active bounty listings."""
    from commands.bounty import discover
    _invoke_click(discover, {'platform': platform, 'config_path': config_path})


@app.command("run")
def run_cmd(
    platform: str = typer.Option(None, "--platform", "-p", help="Specific platform to scrape"),
    concurrency: int = typer.Option(None, "--concurrency", "-c", help="Repositories processed at once"),
    no_build: bool = typer.Option(False, "--no-build", help="Read existing build output without building"),
    truncate: bool = typer.Option(False, "--truncate", help="Truncate bytecode in the tables"),
    config_path: Path = typer.Option(None, "--config", help="Settings YAML file"),
):
    """Discover, clone, build and extract contracts for every listing."""
    from commands.bounty import run
    _invoke_click(run, {
        'platform': platform,
        'concurrency': concurrency,
        'no_build': no_build,
        'truncate': truncate,
        'config_path': config_path,
    })


@app.command()
def version():
    """Show bountyforge version."""
    console.print("[bold]bountyforge[/bold] v0.1.0")
    console.print("Contract extraction for audit bounty repositories")


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
