"""Retune CLI — parameter estimation, retention optimization and config commands."""

import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError

from retune.application.config import AppConfig, resolve_config
from retune.application.stats.progress import ProgressHandler
from retune.domain.errors import (
    BackendUnavailableError,
    EngineFailureError,
    InsufficientDataError,
    InvalidInputError,
    RetuneError,
    SimulationAbortedError,
)
from retune.domain.stats.models import ComputeRetentionProgress

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="retune: find the desired retention that minimises your Anki study time.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage retune configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def humanize_error(error: RetuneError) -> tuple[str, int]:
    """Map a retune error to a user-facing message and exit code."""
    if isinstance(error, InsufficientDataError):
        return (
            f"Not enough review history to compute {error.statistic}. "
            "Review more cards or broaden the search.",
            2,
        )
    if isinstance(error, InvalidInputError):
        return f"Invalid input: {error}", 2
    if isinstance(error, BackendUnavailableError):
        return f"Cannot read review history: {error}", 1
    if isinstance(error, SimulationAbortedError):
        return "Optimization cancelled.", 130
    if isinstance(error, EngineFailureError):
        return f"Simulation failed: {error}", 1
    return str(error), 1


def _fail(error: RetuneError) -> None:
    message, code = humanize_error(error)
    typer.secho(message, fg="red", err=True)
    raise typer.Exit(code)


def _resolve(overrides: dict) -> AppConfig:
    try:
        return resolve_config(overrides)
    except ValidationError as e:
        typer.secho(f"Invalid configuration: {e}", fg="red", err=True)
        raise typer.Exit(2) from e


def _print_progress(p: ComputeRetentionProgress) -> None:
    typer.echo(f"\rSimulating {p.current}/{p.total}", nl=False, err=True)


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for retune."""
    if verbose >= 2:
        logging.getLogger().setLevel(logging.DEBUG)
    elif verbose == 1:
        logging.getLogger().setLevel(logging.INFO)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def params(
    search: Annotated[
        str | None,
        typer.Argument(help="Anki search selecting the cards to learn from. Defaults to config."),
    ] = None,
    backend: Annotated[
        str | None, typer.Option(help="Anki backend: auto, ankiconnect, direct.")
    ] = None,
    anki_base: Annotated[Path | None, typer.Option(help="Anki data directory.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Estimate rating probabilities and time costs from your review history."""
    from retune.application.factory import get_retention_service

    config = _resolve({"search": search, "backend": backend, "anki_base": anki_base})

    async def run():
        service = await get_retention_service(config)
        return await service.estimate_parameters(config.search)

    try:
        bundle = asyncio.run(run())
    except RetuneError as e:
        _fail(e)

    if json_output:
        typer.echo(json.dumps(bundle.to_dict(), indent=2))
        return

    again, hard, good, easy = bundle.first_rating_probability
    typer.echo(
        f"First rating:   again={again:.1%} hard={hard:.1%} good={good:.1%} easy={easy:.1%}"
    )
    hard, good, easy = bundle.review_rating_probability
    typer.echo(f"Review rating:  hard={hard:.1%} good={good:.1%} easy={easy:.1%}")
    costs = " ".join(
        f"{name}={secs:.1f}s"
        for name, secs in zip(("again", "hard", "good", "easy"), bundle.recall_cost)
    )
    typer.echo(f"Recall cost:    {costs}")
    typer.echo(f"Learn cost:     {bundle.learn_cost:.1f}s")
    typer.echo(f"Forget cost:    {bundle.forget_cost:.1f}s")


@app.command()
def optimize(
    search: Annotated[
        str | None,
        typer.Argument(help="Anki search selecting the cards to learn from. Defaults to config."),
    ] = None,
    deck_size: Annotated[int | None, typer.Option(help="Cards in the simulated deck.")] = None,
    days: Annotated[int | None, typer.Option(help="Days to simulate.")] = None,
    minutes: Annotated[
        int | None, typer.Option(help="Maximum minutes of study per day.")
    ] = None,
    max_interval: Annotated[int | None, typer.Option(help="Maximum interval in days.")] = None,
    loss_aversion: Annotated[
        float | None, typer.Option(help="Weight applied to the cost of forgetting.")
    ] = None,
    weights: Annotated[
        str | None, typer.Option(help="Comma-separated FSRS parameters.")
    ] = None,
    backend: Annotated[
        str | None, typer.Option(help="Anki backend: auto, ankiconnect, direct.")
    ] = None,
    anki_base: Annotated[Path | None, typer.Option(help="Anki data directory.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """[bold green]Compute[/bold green] the optimal desired retention for your collection."""
    from retune.application.factory import get_retention_service

    config = _resolve(
        {
            "search": search,
            "deck_size": deck_size,
            "days_to_simulate": days,
            "max_minutes_of_study_per_day": minutes,
            "max_interval": max_interval,
            "loss_aversion": loss_aversion,
            "weights": weights,
            "backend": backend,
            "anki_base": anki_base,
        }
    )
    progress = ProgressHandler(listener=None if json_output else _print_progress)

    async def run():
        service = await get_retention_service(config)
        return await service.compute_optimal_retention(config.to_request(), progress)

    # Ctrl-C asks the engine to stop at its next progress report
    previous = signal.signal(signal.SIGINT, lambda *_: progress.cancel())
    try:
        retention = asyncio.run(run())
    except RetuneError as e:
        _fail(e)
    finally:
        signal.signal(signal.SIGINT, previous)

    if json_output:
        typer.echo(json.dumps({"optimal_retention": retention}))
    else:
        typer.echo("", err=True)
        typer.secho(f"Optimal retention: {retention:.2f}", fg="green")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


def _dump_config(config: AppConfig) -> dict:
    return {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    typer.echo(json.dumps(_dump_config(config), indent=2))


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8777,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP server."""
    import uvicorn

    uvicorn.run("retune.server:app", host=host, port=port, reload=reload)
