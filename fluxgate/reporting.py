"""User-facing progress reporting.

The runner and stages never print. They call leveled methods on an
injected ReportSink; the CLI passes a ConsoleSink, JSON output and tests
use a RecordingSink.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field
from rich.console import Console
from rich.text import Text

from fluxgate.cli_display import render_pipeline_summary
from fluxgate.schemas.pipeline import PipelineResult, StageResult, StageStatus


class ReportLevel(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    STEP = "step"
    STAGE_FINISHED = "stage_finished"
    PIPELINE_FINISHED = "pipeline_finished"


class ReportEvent(BaseModel):
    """One reported message."""

    level: ReportLevel
    message: str = ""
    timestamp: float = Field(default_factory=time.time)
    data: dict[str, Any] = Field(default_factory=dict)


class ReportSink(ABC):
    """Receives progress and outcome messages from the pipeline."""

    @abstractmethod
    def info(self, message: str) -> None: ...

    @abstractmethod
    def success(self, message: str) -> None: ...

    @abstractmethod
    def warning(self, message: str) -> None: ...

    @abstractmethod
    def error(self, message: str) -> None: ...

    @abstractmethod
    def step(self, index: int, total: int, name: str) -> None:
        """A stage is about to run."""

    @abstractmethod
    def stage_finished(self, result: StageResult) -> None: ...

    @abstractmethod
    def pipeline_finished(self, result: PipelineResult) -> None: ...


class RecordingSink(ReportSink):
    """Collects every event in memory."""

    def __init__(self) -> None:
        self.events: list[ReportEvent] = []

    def _record(self, level: ReportLevel, message: str = "", **data: Any) -> None:
        self.events.append(ReportEvent(level=level, message=message, data=data))

    def messages(self, level: ReportLevel | None = None) -> list[str]:
        return [e.message for e in self.events if level is None or e.level == level]

    def info(self, message: str) -> None:
        self._record(ReportLevel.INFO, message)

    def success(self, message: str) -> None:
        self._record(ReportLevel.SUCCESS, message)

    def warning(self, message: str) -> None:
        self._record(ReportLevel.WARNING, message)

    def error(self, message: str) -> None:
        self._record(ReportLevel.ERROR, message)

    def step(self, index: int, total: int, name: str) -> None:
        self._record(ReportLevel.STEP, name, index=index, total=total)

    def stage_finished(self, result: StageResult) -> None:
        self._record(ReportLevel.STAGE_FINISHED, result.name, status=result.status.value)

    def pipeline_finished(self, result: PipelineResult) -> None:
        self._record(
            ReportLevel.PIPELINE_FINISHED,
            result.run_id,
            success=result.success,
            failed_stage=result.failed_stage,
        )


_STATUS_STYLE = {
    StageStatus.PASSED: ("PASS", "green"),
    StageStatus.FAILED: ("FAIL", "red"),
    StageStatus.CRASHED: ("CRASH", "bright_red"),
    StageStatus.SKIPPED: ("SKIP", "dim"),
}


class ConsoleSink(ReportSink):
    """Writes Rich-styled lines to a console."""

    def __init__(self, console: Console | None = None, verbose: bool = False) -> None:
        self._console = console or Console()
        self._verbose = verbose

    def info(self, message: str) -> None:
        self._console.print(f"  {message}", style="dim", markup=False)

    def success(self, message: str) -> None:
        self._console.print(Text(f"  ✓ {message}", style="green"))

    def warning(self, message: str) -> None:
        self._console.print(Text(f"  ⚠ {message}", style="yellow"))

    def error(self, message: str) -> None:
        self._console.print(Text(f"  ✗ {message}", style="red"))

    def step(self, index: int, total: int, name: str) -> None:
        self._console.print()
        self._console.print(f"[bold cyan][{index}/{total}][/bold cyan] [bold]{name}[/bold]")

    def stage_finished(self, result: StageResult) -> None:
        label, style = _STATUS_STYLE[result.status]
        line = Text()
        line.append(f"  {label}", style=f"bold {style}")
        line.append(f"  {result.name}", style="bold")
        line.append(f"  {result.duration_seconds:.2f}s", style="dim")
        if result.message:
            line.append(f"  {result.message}")
        self._console.print(line)
        if result.traceback and self._verbose:
            self._console.print(result.traceback, style="dim", markup=False)

    def pipeline_finished(self, result: PipelineResult) -> None:
        render_pipeline_summary(self._console, result)
