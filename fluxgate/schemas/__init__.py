"""Fluxgate schema definitions.

All Pydantic v2 models used across extraction, scoring, reporting and
the pipeline runner.
"""

from fluxgate.schemas.facts import FactSet, ImportFacts
from fluxgate.schemas.history import RunQuery, RunRecord, RunSummary
from fluxgate.schemas.pipeline import (
    ConventionsConfig,
    EndpointScore,
    GateConfig,
    PipelineResult,
    ScopeType,
    StageResult,
    StageStatus,
    TestCommandConfig,
    TypeCheckConfig,
    TypeCheckResult,
    ValidationScope,
)
from fluxgate.schemas.reconciliation import ReconciliationResult
from fluxgate.schemas.report import (
    AcceptableSharedPattern,
    BreakingChangeAnalysis,
    ComplianceSummary,
    DuplicationAnalysis,
    EndpointManifest,
    FeatureEndpointEntry,
    FeatureValidationReport,
    ProblematicDuplication,
    RouteCollision,
    RouteOverlap,
)
from fluxgate.schemas.scoring import (
    Dimension,
    DimensionScore,
    DimensionStatus,
    EndpointValidationRecord,
    ScoringPolicy,
    ValidationStep,
    completion_ratio,
    round_half_up,
)
from fluxgate.schemas.spec import (
    EndpointSpec,
    FeatureSpecification,
    ScoringWeights,
    SpecificationDocument,
    ValidationTargets,
)

__all__ = [
    "AcceptableSharedPattern",
    "BreakingChangeAnalysis",
    "ComplianceSummary",
    "ConventionsConfig",
    "Dimension",
    "DimensionScore",
    "DimensionStatus",
    "DuplicationAnalysis",
    "EndpointManifest",
    "EndpointScore",
    "EndpointSpec",
    "EndpointValidationRecord",
    "FactSet",
    "FeatureEndpointEntry",
    "FeatureSpecification",
    "FeatureValidationReport",
    "GateConfig",
    "ImportFacts",
    "PipelineResult",
    "ProblematicDuplication",
    "ReconciliationResult",
    "RouteCollision",
    "RouteOverlap",
    "RunQuery",
    "RunRecord",
    "RunSummary",
    "ScopeType",
    "ScoringPolicy",
    "ScoringWeights",
    "SpecificationDocument",
    "StageResult",
    "StageStatus",
    "TestCommandConfig",
    "TypeCheckConfig",
    "TypeCheckResult",
    "ValidationScope",
    "ValidationStep",
    "ValidationTargets",
    "completion_ratio",
    "round_half_up",
]
