"""Typer CLI entrypoint for the election orchestrator."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Optional, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import commands
from .config import OrchestratorConfig
from .errors import OrchestratorError
from .logging_utils import configure_logging
from .models import GRADE_LABELS

app = typer.Typer(help="Majority judgment election orchestrator")
console = Console()

T = TypeVar("T")


def _run(awaitable: Awaitable[T]) -> T:
    try:
        return asyncio.run(awaitable)
    except OrchestratorError as exc:
        console.print(Panel(str(exc), title=type(exc).__name__, style="bold red"))
        raise typer.Exit(code=1) from exc


def _config(ctx: typer.Context) -> OrchestratorConfig:
    return ctx.obj["config"]


async def _runtime(ctx: typer.Context) -> commands.Runtime:
    return await commands.Runtime.connect(_config(ctx))


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML settings file"),
    log_file: Optional[Path] = typer.Option(None, help="JSON lines audit log"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(str(log_file) if log_file else None, level=logging.DEBUG if verbose else logging.INFO)
    ctx.obj = {"config": OrchestratorConfig.load(config_path)}


@app.command()
def deploy(ctx: typer.Context) -> None:
    """Deploy the election contract and record its address."""

    address = _run(commands.deploy(_config(ctx)))
    console.print(Panel.fit(f"Contract deployed at [bold]{address}[/]"))


@app.command("create-election")
def create_election(
    ctx: typer.Context,
    candidate_number: int = typer.Option(1, "--candidates", min=1, help="Number of candidates"),
    label: str = typer.Option("", help="Label of the new election"),
) -> None:
    """Create a new election on the contract."""

    async def run():
        runtime = await _runtime(ctx)
        return await commands.create_election(runtime, candidate_number, label)

    election = _run(run())
    console.print(Panel.fit(f"Election created, ID: [bold]{election.id}[/], Block number: {election.block_number}"))


@app.command("set-voting-state")
def set_voting_state(
    ctx: typer.Context,
    election_id: int = typer.Argument(..., help="Target election ID"),
    state: bool = typer.Option(..., "--open/--closed", help="New voting state"),
) -> None:
    """Open or close voting for an election."""

    async def run():
        runtime = await _runtime(ctx)
        return await commands.set_voting_state(runtime, election_id, state)

    receipt = _run(run())
    console.print(f"Change voting state tx status : {receipt.status}")


@app.command("random-vote")
def random_vote(ctx: typer.Context, election_id: int = typer.Argument(..., help="Target election ID")) -> None:
    """Cast a random ballot on an election."""

    async def run():
        runtime = await _runtime(ctx)
        return await commands.cast_random_ballot(runtime, election_id)

    grades, receipt = _run(run())
    for index, grade in enumerate(grades):
        console.print(f"Candidate {index} grade : {grade.label}")
    console.print(f"Vote tx status : {receipt.status}")


@app.command("decrypt-election")
def decrypt_election(ctx: typer.Context, election_id: int = typer.Argument(..., help="Target election ID")) -> None:
    """Decrypt every candidate's tally, one candidate at a time."""

    async def run():
        runtime = await _runtime(ctx)
        return await commands.decrypt_election(runtime, election_id)

    requests = _run(run())
    console.print(Panel.fit(f"Decrypted {len(requests)} candidates of election {election_id}"))


@app.command("get-results")
def get_results(
    ctx: typer.Context,
    election_id: int = typer.Argument(..., help="Target election ID"),
    chart: bool = typer.Option(False, help="Render the stacked percentage chart"),
    output: Optional[Path] = typer.Option(None, help="Chart output path"),
) -> None:
    """Show decrypted election results."""

    async def run():
        runtime = await _runtime(ctx)
        return runtime, await commands.get_results(runtime, election_id)

    runtime, results = _run(run())
    _print_results(results)
    if chart:
        path = commands.render_chart(runtime, results, output)
        console.print(f"Chart image saved as {path}")


@app.command()
def demo(
    ctx: typer.Context,
    candidate_number: int = typer.Option(2, "--candidates", min=1),
    voters: int = typer.Option(15, min=0),
    illicit: int = typer.Option(0, min=0, help="Extra ballots carrying no grade bit"),
    seed: int = typer.Option(7, help="Random grade seed"),
    output: Optional[Path] = typer.Option(None, help="Chart output path"),
) -> None:
    """Run a complete election against the in-memory ledger."""

    config = _config(ctx).model_copy(update={"random_seed": seed, "poll_interval": 0.01})
    runtime = commands.Runtime.simulated(config)
    illicit_ballots = [[0] * candidate_number for _ in range(illicit)]
    results = _run(
        commands.run_scenario(
            runtime,
            candidate_number=candidate_number,
            label="demo",
            voters=voters,
            illicit_ballots=illicit_ballots,
        )
    )
    _print_results(results)
    path = commands.render_chart(runtime, results, output)
    console.print(f"Chart image saved as {path}")


def _print_results(results: commands.ElectionResults) -> None:
    table = Table(title=f"Election {results.election_id}")
    table.add_column("Candidate")
    for label in GRADE_LABELS:
        table.add_column(label, justify="right")
    table.add_column("Votes", justify="right")
    table.add_column("Majority grade")
    for summary in results.aggregated.candidates:
        grade = summary.majority_grade.label if summary.majority_grade is not None else "-"
        table.add_row(
            f"Candidate {summary.candidate_id + 1}",
            *(str(count) for count in summary.counts),
            str(summary.licit_votes),
            grade,
        )
    console.print(table)
    console.print(f"Total number of votes (including illicit votes) : {results.vote_count}")
    if results.aggregated.has_discrepancy:
        console.print(
            f"[yellow]{results.aggregated.illicit_votes} ballots are not reflected in the licit tally[/]"
        )


if __name__ == "__main__":  # pragma: no cover
    app()
