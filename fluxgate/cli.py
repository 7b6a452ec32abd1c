"""Fluxgate CLI: Typer + Rich terminal interface.

Commands: check, stage, stages, config, history.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from fluxgate import __version__
from fluxgate.cli_display import render_run, render_run_list
from fluxgate.config_loader import default_config_path, load_gate_config
from fluxgate.pipeline.runner import PipelineRunner
from fluxgate.pipeline.scope import resolve_scope
from fluxgate.pipeline.stages import STAGE_REGISTRY
from fluxgate.reporting import ConsoleSink, RecordingSink, ReportSink
from fluxgate.schemas.pipeline import GateConfig, PipelineResult

console = Console()

# ── App and sub-apps ─────────────────────────────────────────────

app = typer.Typer(
    name="fluxgate",
    help="Specification-driven validation gate for endpoint-based API projects.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    name="config",
    help="Show gate configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")

history_app = typer.Typer(
    name="history",
    help="Query run history.",
    no_args_is_help=True,
)
app.add_typer(history_app, name="history")


# ── Version callback ───────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"fluxgate {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Enable debug logging.",
    ),
) -> None:
    """Fluxgate: validate endpoints against their implementation specifications."""
    ctx.obj = {"verbose": verbose}
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


# ── Helpers ──────────────────────────────────────────────────────

def _load_config(config_path: Path | None) -> GateConfig:
    """Load the gate config, exit on error."""
    try:
        return load_gate_config(config_path)
    except (FileNotFoundError, ValueError, ValidationError) as e:
        console.print(f"[red]Error loading config:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None


async def _save_history(config: GateConfig, result: PipelineResult) -> None:
    from fluxgate.persistence.database import close_db, init_db
    from fluxgate.persistence.history import RunStore, record_from_result

    db = await init_db(config.history_db)
    try:
        await RunStore(db).save_run(record_from_result(result))
    finally:
        await close_db(db)


def _execute(
    ctx: typer.Context,
    target: str | None,
    stages: list[str] | None,
    root: Path,
    config_path: Path | None,
    json_output: bool,
    no_history: bool,
) -> None:
    config = _load_config(config_path)
    try:
        scope = resolve_scope(target)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None

    if not root.is_dir():
        console.print(f"[red]Project root not found:[/red] {escape(str(root))}")
        raise typer.Exit(1) from None

    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    sink: ReportSink = RecordingSink() if json_output else ConsoleSink(console, verbose)
    runner = PipelineRunner(root, config, sink)
    try:
        runner.resolve_stages(stages)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None

    async def _run() -> PipelineResult:
        result = await runner.run(scope, stages)
        if config.history_enabled and not no_history:
            await _save_history(config, result)
        return result

    result = asyncio.run(_run())

    if json_output:
        typer.echo(result.model_dump_json(indent=2))
    if not result.success:
        raise typer.Exit(1)


_ROOT_OPTION = typer.Option(Path("."), "--root", "-r", help="Project root directory")
_CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to a gate config TOML file")
_JSON_OPTION = typer.Option(False, "--json", help="Print the run result as JSON")
_NO_HISTORY_OPTION = typer.Option(False, "--no-history", help="Do not record this run")


# ── fluxgate check / stage / stages ──────────────────────────────

@app.command()
def check(
    ctx: typer.Context,
    target: str = typer.Argument(
        None, help="feature, feature/endpoint or feature/endpoint.type.ts (default: all)"
    ),
    root: Path = _ROOT_OPTION,
    config_path: Path = _CONFIG_OPTION,
    json_output: bool = _JSON_OPTION,
    no_history: bool = _NO_HISTORY_OPTION,
) -> None:
    """Run the full validation pipeline."""
    _execute(ctx, target, None, root, config_path, json_output, no_history)


@app.command()
def stage(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Stage to run (see `fluxgate stages`)"),
    target: str = typer.Argument(None, help="Validation target (default: all)"),
    root: Path = _ROOT_OPTION,
    config_path: Path = _CONFIG_OPTION,
    json_output: bool = _JSON_OPTION,
    no_history: bool = _NO_HISTORY_OPTION,
) -> None:
    """Run a single pipeline stage."""
    _execute(ctx, target, [name], root, config_path, json_output, no_history)


@app.command()
def stages(config_path: Path = _CONFIG_OPTION) -> None:
    """List the available stages in configured order."""
    config = _load_config(config_path)

    table = Table(title="Pipeline Stages")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Stage", style="cyan")
    table.add_column("Description")
    table.add_column("Enabled")

    position = {name: i for i, name in enumerate(config.stage_order, start=1)}
    for name, stage_cls in STAGE_REGISTRY.items():
        index = position.get(name)
        table.add_row(
            str(index) if index else "-",
            name,
            stage_cls.description,
            "[green]yes[/green]" if index else "[dim]no[/dim]",
        )
    console.print(table)


# ── fluxgate config ──────────────────────────────────────────────

@config_app.command("show")
def config_show(config_path: Path = _CONFIG_OPTION) -> None:
    """Show the effective gate configuration."""
    config = _load_config(config_path)

    table = Table(title="Gate Configuration", show_header=False, show_lines=True)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row("Config File", str(config_path or default_config_path()))
    table.add_row("Stage Order", ", ".join(config.stage_order))
    table.add_row("Features Dir", config.features_dir)
    table.add_row("Notes Suffix", config.notes_suffix)
    table.add_row("Scoring Policy", config.scoring_policy)
    table.add_row("Max Parallel Endpoints", str(config.max_parallel_endpoints))
    table.add_row("History", f"{config.history_enabled} ({config.history_db})")
    type_check = config.type_check
    table.add_row(
        "Type Check",
        f"{' '.join(type_check.command)} ({type_check.timeout}s)"
        if type_check.enabled else "disabled",
    )
    test_command = config.test_command
    table.add_row(
        "Test Command",
        f"{' '.join(test_command.command)} ({test_command.timeout}s)"
        if test_command.command else "(static checks only)",
    )
    console.print(table)

    conventions = Table(title="Framework Conventions", show_header=False)
    conventions.add_column("Convention", style="bold")
    conventions.add_column("Value")
    for key, value in config.conventions.model_dump().items():
        if isinstance(value, list):
            value = ", ".join(value)
        elif isinstance(value, dict):
            value = ", ".join(f"{k} -> {v}" for k, v in value.items())
        conventions.add_row(key, str(value))
    console.print()
    console.print(conventions)


# ── fluxgate history ─────────────────────────────────────────────

@history_app.command("list")
def history_list(
    limit: int = typer.Option(20, "--limit", "-n", help="Max runs to show"),
    target_filter: str = typer.Option(None, "--target", help="Filter by target text"),
    failed_only: bool = typer.Option(False, "--failed", help="Only failed runs"),
    config_path: Path = _CONFIG_OPTION,
) -> None:
    """Show recent runs."""
    from fluxgate.persistence.database import close_db, init_db
    from fluxgate.persistence.history import RunStore
    from fluxgate.schemas.history import RunQuery

    config = _load_config(config_path)
    query = RunQuery(limit=limit, target_filter=target_filter, failed_only=failed_only)

    async def _list():
        db = await init_db(config.history_db)
        try:
            return await RunStore(db).list_runs(query)
        finally:
            await close_db(db)

    summaries = asyncio.run(_list())

    if not summaries:
        console.print("[dim]No runs found.[/dim]")
        return
    render_run_list(console, summaries)


@history_app.command("show")
def history_show(
    run_id: str = typer.Argument(..., help="Run ID or prefix (min 4 chars)"),
    config_path: Path = _CONFIG_OPTION,
) -> None:
    """Show full run details."""
    from fluxgate.persistence.database import close_db, init_db
    from fluxgate.persistence.history import RunStore

    config = _load_config(config_path)

    async def _get():
        db = await init_db(config.history_db)
        try:
            return await RunStore(db).get_run(run_id)
        finally:
            await close_db(db)

    record = asyncio.run(_get())

    if not record:
        console.print(f"[red]Run not found:[/red] {escape(run_id)}")
        raise typer.Exit(1) from None
    render_run(console, record)


@history_app.command("delete")
def history_delete(
    run_id: str = typer.Argument(..., help="Run ID or prefix (min 4 chars)"),
    yes: bool = typer.Option(
        False, "--yes", "-y",
        help="Skip confirmation prompt",
    ),
    config_path: Path = _CONFIG_OPTION,
) -> None:
    """Delete a run from history."""
    if not yes:
        confirm = typer.confirm(f"Delete run {run_id}? This cannot be undone.")
        if not confirm:
            console.print("[dim]Cancelled.[/dim]")
            return

    from fluxgate.persistence.database import close_db, init_db
    from fluxgate.persistence.history import RunStore

    config = _load_config(config_path)

    async def _delete():
        db = await init_db(config.history_db)
        try:
            return await RunStore(db).delete_run(run_id)
        finally:
            await close_db(db)

    deleted = asyncio.run(_delete())

    if deleted:
        console.print(f"[green]Run deleted:[/green] {run_id}")
    else:
        console.print(f"[red]Run not found:[/red] {escape(run_id)}")
        raise typer.Exit(1) from None
