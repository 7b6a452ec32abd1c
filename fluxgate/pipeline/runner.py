"""Sequential, fail-fast pipeline runner."""

from __future__ import annotations

import logging
import time
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path

from fluxgate.pipeline.stages import STAGE_REGISTRY, Stage, StageContext
from fluxgate.pipeline.typecheck import TscTypeChecker, TypeChecker
from fluxgate.reporting import ReportSink
from fluxgate.schemas.pipeline import (
    GateConfig,
    PipelineResult,
    ScopeType,
    StageResult,
    StageStatus,
    ValidationScope,
)
from fluxgate.validate.endpoint import EndpointValidator
from fluxgate.validate.sources import FileSystemReader, SourceReader

logger = logging.getLogger(__name__)

TRACEBACK_FRAMES = 3


def traceback_head(exc: BaseException, frames: int = TRACEBACK_FRAMES) -> str:
    """The innermost ``frames`` frames of ``exc``'s traceback plus its message."""
    return "".join(traceback.format_exception(exc, limit=-frames)).rstrip()


def next_steps(result: PipelineResult) -> list[str]:
    """Actionable follow-ups for a failed run, most useful first."""
    if result.success or result.failed_stage is None:
        return []
    scope = result.scope
    stage = result.failed_stage
    steps = [
        f"Fix the {stage} issues listed above",
        f"Rerun it alone: fluxgate stage {stage} {scope.target}".rstrip(),
    ]
    if scope.type == ScopeType.FULL:
        steps.append("Narrow the run to one feature: fluxgate check <feature>")
    elif scope.type == ScopeType.FEATURE:
        steps.append(f"Narrow the run to one endpoint: fluxgate check {scope.feature}/<endpoint>")
    return steps


class PipelineRunner:
    """Runs the configured stages in order and stops at the first failure.

    Args:
        root: Project root the stages read from and write manifests to.
        config: The gate configuration.
        sink: Where progress is reported.
        reader: Source reader; defaults to the filesystem under ``root``.
        type_checker: Type checker; defaults to the configured compiler command.
    """

    def __init__(
        self,
        root: Path,
        config: GateConfig,
        sink: ReportSink,
        reader: SourceReader | None = None,
        type_checker: TypeChecker | None = None,
        registry: dict[str, type[Stage]] | None = None,
    ) -> None:
        self._root = Path(root)
        self._config = config
        self._sink = sink
        self._reader = reader or FileSystemReader(self._root)
        self._type_checker = type_checker or TscTypeChecker(
            self._root, config.type_check, config.features_dir
        )
        self._registry = registry if registry is not None else STAGE_REGISTRY

    def resolve_stages(self, names: list[str] | None = None) -> list[Stage]:
        """Instantiate stages by name, in the given or configured order.

        Raises:
            ValueError: If a name is not in the registry.
        """
        order = names if names is not None else self._config.stage_order
        unknown = [n for n in order if n not in self._registry]
        if unknown:
            known = ", ".join(self._registry)
            raise ValueError(f"Unknown stage(s): {', '.join(unknown)} (known: {known})")
        return [self._registry[name]() for name in order]

    async def run(
        self, scope: ValidationScope, stages: list[str] | None = None
    ) -> PipelineResult:
        selected = self.resolve_stages(stages)
        ctx = StageContext(
            root=self._root,
            config=self._config,
            reader=self._reader,
            sink=self._sink,
            type_checker=self._type_checker,
            validator=EndpointValidator(self._reader, self._config),
        )
        result = PipelineResult(
            run_id=uuid.uuid4().hex,
            scope=scope,
            started_at=datetime.now(timezone.utc).isoformat(),
        )
        self._sink.info(f"Validating {scope.description}")
        logger.info("Run %s started for %s", result.run_id, scope.description)

        started = time.monotonic()
        for index, stage in enumerate(selected, start=1):
            self._sink.step(index, len(selected), f"{stage.name}: {stage.description}")
            stage_result = await self._run_stage(stage, scope, ctx)
            result.stages.append(stage_result)
            self._sink.stage_finished(stage_result)
            for detail in stage_result.details:
                if stage_result.ok:
                    self._sink.info(detail)
                else:
                    self._sink.error(detail)
            if not stage_result.ok:
                result.failed_stage = stage.name
                break

        result.success = result.failed_stage is None
        result.duration_seconds = time.monotonic() - started
        result.endpoint_scores = list(ctx.endpoint_scores)
        result.next_steps = next_steps(result)
        logger.info(
            "Run %s finished: %s in %.2fs",
            result.run_id,
            "passed" if result.success else f"failed at {result.failed_stage}",
            result.duration_seconds,
        )
        self._sink.pipeline_finished(result)
        return result

    async def _run_stage(
        self, stage: Stage, scope: ValidationScope, ctx: StageContext
    ) -> StageResult:
        started = time.monotonic()
        try:
            stage_result = await stage.run(scope, ctx)
        except Exception as exc:
            logger.exception("Stage %s crashed", stage.name)
            stage_result = StageResult(
                name=stage.name,
                status=StageStatus.CRASHED,
                message=f"{stage.name} crashed: {exc}",
                error=str(exc),
                traceback=traceback_head(exc),
            )
        stage_result.duration_seconds = time.monotonic() - started
        return stage_result
