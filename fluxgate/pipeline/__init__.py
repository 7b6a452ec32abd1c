"""Pipeline runner, stages and scope resolution."""

from fluxgate.pipeline.runner import PipelineRunner
from fluxgate.pipeline.scope import resolve_scope
from fluxgate.pipeline.stages import STAGE_REGISTRY, Stage, StageContext
from fluxgate.pipeline.typecheck import TscTypeChecker, TypeChecker

__all__ = [
    "PipelineRunner",
    "STAGE_REGISTRY",
    "Stage",
    "StageContext",
    "TscTypeChecker",
    "TypeChecker",
    "resolve_scope",
]
