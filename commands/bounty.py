"""
Bounty CLI commands.

Usage:
    ./bountyforge.py discover [--platform <platform>]        # List repos behind active bounties
    ./bountyforge.py run [--platform <platform>] [--concurrency N] [--no-build] [--truncate]
"""

import sys
import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

sys.path.insert(0, str(Path(__file__).parent.parent))

from extensions.bounty import BountyDiscovery, BountyPipeline, RepositoryReference
from commands.extract import load_settings, render_result


console = Console()

STATUS_COLORS = {
    "built": "green",
    "build_failed": "red",
    "unsupported": "yellow",
    "clone_failed": "red",
}


async def _discover(platform: str | None, timeout: int) -> dict[str, list[RepositoryReference]]:
    async with BountyDiscovery(timeout=timeout) as discovery:
        if platform:
            return {platform: await discovery.discover_platform(platform)}
        return await discovery.discover_all()


def _print_references(results: dict[str, list[RepositoryReference]]) -> int:
    total = 0
    for plat, references in results.items():
        if not references:
            console.print(f"[dim]{plat}: no repositories found[/dim]")
            continue

        console.print(f"\n[bold cyan]{plat.upper()}[/bold cyan] ({len(references)} found)")

        table = Table(show_header=True, header_style="bold")
        table.add_column("Repository", width=50)
        table.add_column("Checkout", width=30)
        table.add_column("Commit", width=12)

        for ref in references:
            table.add_row(ref.url, ref.name, (ref.commit or "-")[:10])
            total += 1

        console.print(table)
    return total


@click.command("discover")
@click.option("--platform", "-p", type=click.Choice(BountyDiscovery.available_platforms()), help="Specific platform")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), help="Settings YAML file")
def discover(platform: str | None, config_path: Path | None):
    """Discover repositories behind active bounty listings."""
    settings = load_settings(config_path)
    console.print("\n[bold]Discovering Bounty Repositories[/bold]\n")

    results = asyncio.run(_discover(platform, settings.http_timeout))
    total = _print_references(results)

    console.print(f"\n[dim]Total: {total} repositories[/dim]")


@click.command("run")
@click.option("--platform", "-p", type=click.Choice(BountyDiscovery.available_platforms()), help="Specific platform")
@click.option("--concurrency", "-c", type=int, default=None, help="Repositories processed at once")
@click.option("--no-build", is_flag=True, help="Read existing build output without building")
@click.option("--truncate", is_flag=True, help="Truncate bytecode in the tables")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), help="Settings YAML file")
def run(
    platform: str | None,
    concurrency: int | None,
    no_build: bool,
    truncate: bool,
    config_path: Path | None,
):
    """Discover, clone, build and extract contracts for every listing."""
    settings = load_settings(config_path, concurrency=concurrency)

    console.print("\n[bold]Discovering Bounty Repositories[/bold]\n")
    results = asyncio.run(_discover(platform, settings.http_timeout))
    references = [ref for refs in results.values() for ref in refs]

    if not references:
        console.print("[yellow]No repositories found.[/yellow]")
        return

    console.print(f"[dim]Processing {len(references)} repositories ({settings.concurrency} at a time)...[/dim]\n")
    pipeline = BountyPipeline(settings=settings, build=not no_build)
    reports = asyncio.run(pipeline.run(references))

    for report in reports:
        if report.result:
            render_result(report.result, truncate)

    summary = Table(show_header=True, header_style="bold", title="Summary")
    summary.add_column("Source", width=10)
    summary.add_column("Repository", width=40)
    summary.add_column("Status", width=14)
    summary.add_column("Contracts", width=10)
    summary.add_column("Snapshot")

    for report in reports:
        color = STATUS_COLORS.get(report.status, "white")
        summary.add_row(
            report.reference.parser,
            report.reference.name,
            f"[{color}]{report.status}[/{color}]",
            str(report.contract_count),
            str(report.result_path or report.error or "-"),
        )

    console.print(summary)
    built = sum(1 for r in reports if r.status == "built")
    console.print(f"\n[bold green]{built}/{len(reports)} repositories built[/bold green]")
