"""Rich rendering for pipeline results and run history."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from fluxgate.schemas.history import RunRecord, RunSummary
from fluxgate.schemas.pipeline import PipelineResult, StageResult, StageStatus

_STATUS_TEXT = {
    StageStatus.PASSED: Text("PASS", style="green"),
    StageStatus.FAILED: Text("FAIL", style="red"),
    StageStatus.CRASHED: Text("CRASH", style="bright_red"),
    StageStatus.SKIPPED: Text("SKIP", style="dim"),
}


def format_duration(seconds: float) -> str:
    """Format seconds as ``850ms``, ``4.2s`` or ``1m 05s``."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs:02d}s"


def stage_table(stages: list[StageResult], title: str = "Stages") -> Table:
    table = Table(title=title)
    table.add_column("Stage", style="cyan")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Message")
    for stage in stages:
        table.add_row(
            stage.name,
            _STATUS_TEXT[stage.status],
            format_duration(stage.duration_seconds),
            Text(stage.message),
        )
    return table


def _score_style(score: int, reliable: bool) -> str:
    if reliable:
        return "green"
    return "yellow" if score >= 75 else "red"


def render_pipeline_summary(console: Console, result: PipelineResult) -> None:
    """Print the stage table, endpoint scores and the verdict panel."""
    console.print()
    console.print(stage_table(result.stages))

    if result.endpoint_scores:
        scores = Table(title="Endpoint Reliability")
        scores.add_column("Endpoint", style="cyan")
        scores.add_column("Score", justify="right")
        scores.add_column("Policy", style="dim")
        scores.add_column("Deployable")
        for entry in result.endpoint_scores:
            style = _score_style(entry.reliability_score, entry.overall_reliable)
            scores.add_row(
                f"{entry.feature}/{entry.endpoint}",
                Text(f"{entry.reliability_score}%", style=style),
                entry.scoring_policy,
                Text("yes" if entry.overall_reliable else "no", style=style),
            )
        console.print()
        console.print(scores)

    if result.success:
        body = Text(
            f"All {len(result.stages)} stage(s) passed for {result.scope.description} "
            f"in {format_duration(result.duration_seconds)}",
            style="green",
        )
        console.print(Panel(body, title="[bold green]Validation passed[/bold green]"))
        return

    lines = Text()
    lines.append(
        f"Stopped at {result.failed_stage} after {format_duration(result.duration_seconds)}\n",
        style="red",
    )
    for number, step in enumerate(result.next_steps, start=1):
        lines.append(f"\n{number}. {step}")
    console.print(Panel(lines, title="[bold red]Validation failed[/bold red]"))


def render_run_list(console: Console, summaries: list[RunSummary]) -> None:
    table = Table(title=f"Runs ({len(summaries)} shown)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Target", max_width=40)
    table.add_column("Scope", style="dim")
    table.add_column("Status")
    table.add_column("Stages", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Started", style="dim")

    for s in summaries:
        status = Text("OK", style="green") if s.success else Text(
            f"FAIL ({s.failed_stage})" if s.failed_stage else "FAIL", style="red"
        )
        table.add_row(
            s.run_id[:8],
            Text(s.target or "(all)"),
            s.scope_type,
            status,
            str(s.stage_count),
            format_duration(s.duration_seconds),
            s.started_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


def render_run(console: Console, record: RunRecord) -> None:
    meta = Table(title=f"Run: {record.run_id}", show_header=False, show_lines=True)
    meta.add_column("Field", style="bold")
    meta.add_column("Value")
    meta.add_row("Target", record.target or "(all)")
    meta.add_row("Scope", record.scope_type)
    meta.add_row("Started", record.started_at.isoformat())
    meta.add_row("Duration", format_duration(record.duration_seconds))
    meta.add_row("Status", "Success" if record.success else f"Failed at {record.failed_stage}")
    console.print(meta)

    if record.stages:
        console.print()
        console.print(stage_table(record.stages))
        for stage in record.stages:
            if stage.details and not stage.ok:
                console.print()
                console.print(f"[bold red]{stage.name}[/bold red]")
                for detail in stage.details:
                    console.print(f"  {detail}", markup=False)

    if record.endpoint_scores:
        console.print()
        scores = Table(title="Endpoint Reliability")
        scores.add_column("Endpoint", style="cyan")
        scores.add_column("Score", justify="right")
        scores.add_column("Deployable")
        for entry in record.endpoint_scores:
            style = _score_style(entry.reliability_score, entry.overall_reliable)
            scores.add_row(
                f"{entry.feature}/{entry.endpoint}",
                Text(f"{entry.reliability_score}%", style=style),
                Text("yes" if entry.overall_reliable else "no", style=style),
            )
        console.print(scores)
