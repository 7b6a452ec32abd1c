"""Persisted artifact schemas: endpoint manifests and feature reports.

Duplication findings are a tagged union: an acceptable shared pattern and
a problematic duplication are two distinct cases discriminated by ``kind``
rather than one shape carrying an ``acceptable`` flag.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field


class EndpointManifest(BaseModel):
    """Per-endpoint manifest written next to the endpoint's sources."""

    endpoint: str
    feature: str
    route: str = ""
    status: str = Field(description="'compliant' or 'issues_found'")
    generated_at: str = Field(description="ISO-8601 UTC timestamp")
    validation_scope: str = ""
    scoring_policy: str = ""
    reliability_validation: dict[str, dict[str, Any]] = Field(default_factory=dict)
    overall_reliability: str = Field(description="Reliability score as 'NN%'")
    reliability_score: int = 0
    deployment_ready: bool = False
    blocking_issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    specification: dict[str, Any] = Field(default_factory=dict)
    validation_targets: dict[str, Any] = Field(default_factory=dict)


class AcceptableSharedPattern(BaseModel):
    """A configured pattern legitimately repeated across endpoints."""

    kind: Literal["acceptable"] = "acceptable"
    pattern: str
    endpoints: list[str] = Field(default_factory=list)


class ProblematicDuplication(BaseModel):
    """A pair of endpoints sharing too many long, unconfigured lines."""

    kind: Literal["problematic"] = "problematic"
    endpoints: list[str] = Field(default_factory=list)
    duplicate_lines: int = 0
    concern: str = "Large non-configured code blocks duplicated"


DuplicationFinding = Annotated[
    AcceptableSharedPattern | ProblematicDuplication,
    Field(discriminator="kind"),
]


class DuplicationAnalysis(BaseModel):
    findings: list[DuplicationFinding] = Field(default_factory=list)
    independence_score: int = Field(default=100, ge=0, le=100)
    endpoints_analyzed: int = 0

    @property
    def acceptable(self) -> list[AcceptableSharedPattern]:
        return [f for f in self.findings if isinstance(f, AcceptableSharedPattern)]

    @property
    def problematic(self) -> list[ProblematicDuplication]:
        return [f for f in self.findings if isinstance(f, ProblematicDuplication)]

    @property
    def isolated(self) -> bool:
        return not self.problematic


class RouteCollision(BaseModel):
    """The same route string claimed by more than one endpoint."""

    route: str
    endpoints: list[str]
    handlers: dict[str, str] = Field(default_factory=dict)


class RouteOverlap(BaseModel):
    """Two distinct parameterised paths that can match the same request."""

    routes: list[str]
    endpoints: list[str]


class BreakingChangeAnalysis(BaseModel):
    api_compatibility: str = "stable"
    collisions: list[RouteCollision] = Field(default_factory=list)
    overlaps: list[RouteOverlap] = Field(default_factory=list)
    drift: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    prevention_rules_applied: list[str] = Field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.errors)


class ComplianceSummary(BaseModel):
    total_endpoints: int = 0
    compliant_endpoints: int = 0
    compliance_rate: int = 0
    average_reliability: int = 0
    meets_minimum_threshold: bool = False


class FeatureEndpointEntry(BaseModel):
    name: str
    route: str = ""
    status: str = ""
    reliability_score: int = 0
    blocking_issues: list[str] = Field(default_factory=list)
    routes: dict[str, str] = Field(default_factory=dict)
    files: dict[str, str] = Field(default_factory=dict)


class FeatureValidationReport(BaseModel):
    """Feature-wide roll-up; regenerated wholesale on feature-or-broader runs."""

    feature: str
    status: str
    generated_at: str
    validation_scope: str = ""
    compliance_summary: ComplianceSummary = Field(default_factory=ComplianceSummary)
    breaking_change_analysis: BreakingChangeAnalysis = Field(
        default_factory=BreakingChangeAnalysis
    )
    duplication_analysis: DuplicationAnalysis = Field(default_factory=DuplicationAnalysis)
    endpoints: list[FeatureEndpointEntry] = Field(default_factory=list)
