"""Specification document schemas.

Models the per-feature ``{feature}.implementation.json`` document: the
endpoint table (route, folder, contract/logic/test expectations and
endpoint-specific validation settings) and the feature-wide
``validation_targets`` holding thresholds, weights and required patterns.

Keys ending in the notes suffix are documentation only; they are stripped
by the loader before these models are built. Unknown keys are ignored.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class ImportSpec(BaseModel):
    """Required import module names.

    Accepts the legacy ``appkit`` key as an alias for ``framework``.
    """

    framework: list[str] = Field(default_factory=list, description="Framework modules")
    external: list[str] = Field(default_factory=list, description="External modules")

    @model_validator(mode="before")
    @classmethod
    def _accept_appkit_alias(cls, data: Any) -> Any:
        if isinstance(data, dict) and "appkit" in data and "framework" not in data:
            data = dict(data)
            data["framework"] = data.pop("appkit")
        return data


class ContractSpec(BaseModel):
    """What the endpoint's contract file must declare."""

    file: str = Field(default="", description="Contract file name")
    routes: dict[str, str] = Field(default_factory=dict, description="Route -> handler")
    imports: ImportSpec = Field(default_factory=ImportSpec)
    exports: list[str] = Field(default_factory=list, description="Required exports")


class LogicSpec(BaseModel):
    """What the endpoint's logic file must export and import."""

    file: str = Field(default="", description="Logic file name")
    exports: list[str] = Field(default_factory=list, description="Required exported names")
    imports: ImportSpec = Field(default_factory=ImportSpec)


class TestCase(BaseModel):
    """A required test case; only ``name`` takes part in comparisons."""

    __test__ = False

    name: str = Field(description="Human-readable test-case name")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _split_metadata(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"name": data}
        if isinstance(data, dict) and "metadata" not in data:
            extra = {k: v for k, v in data.items() if k != "name"}
            return {"name": data.get("name", ""), "metadata": extra}
        return data


class TestSpec(BaseModel):
    """What the endpoint's test file must implement."""

    __test__ = False

    file: str = Field(default="", description="Test file name")
    test_cases: list[TestCase] = Field(default_factory=list)
    coverage_target: int | None = Field(default=None, ge=0, le=100)


class ValidationSpecifics(BaseModel):
    """Endpoint-level overrides of the feature-wide validation targets."""

    required_test_patterns: list[str] | None = None
    security_requirements: list[str] = Field(default_factory=list)
    input_validation_requirements: list[str] = Field(default_factory=list)
    required_voilajsx_patterns: list[str] | None = None

    @property
    def security_sensitive(self) -> bool:
        return bool(self.security_requirements or self.input_validation_requirements)


class EndpointSpec(BaseModel):
    """One endpoint entry of the specification document."""

    id: str | int | None = None
    route: str = Field(default="", description="Primary route of the endpoint")
    folder: str = Field(default="", description="Endpoint folder relative to the project root")
    contract: ContractSpec = Field(default_factory=ContractSpec)
    logic: LogicSpec = Field(default_factory=LogicSpec)
    test: TestSpec = Field(default_factory=TestSpec)
    validation_specifics: ValidationSpecifics = Field(default_factory=ValidationSpecifics)


class ReliabilityThresholds(BaseModel):
    """Overall and per-dimension minimum scores."""

    overall_reliability_minimum: int = Field(default=90, ge=0, le=100)
    contract_compliance_minimum: int = Field(default=90, ge=0, le=100)
    test_validation_minimum: int = Field(default=90, ge=0, le=100)
    types_validation_minimum: int = Field(default=90, ge=0, le=100)
    lint_validation_minimum: int = Field(default=90, ge=0, le=100)
    code_quality_minimum: int = Field(default=90, ge=0, le=100)

    def minimum_for(self, dimension: str) -> int:
        return getattr(self, f"{dimension}_minimum", 90)


class ScoringWeights(BaseModel):
    """Relative weight of each dimension in the reliability score."""

    contract_compliance: float = Field(default=25, ge=0)
    test_validation: float = Field(default=25, ge=0)
    types_validation: float = Field(default=20, ge=0)
    lint_validation: float = Field(default=15, ge=0)
    code_quality: float = Field(default=15, ge=0)

    @model_validator(mode="after")
    def _positive_total(self) -> ScoringWeights:
        if self.total <= 0:
            raise ValueError("scoring_weights must not all be zero")
        return self

    @property
    def total(self) -> float:
        return (
            self.contract_compliance
            + self.test_validation
            + self.types_validation
            + self.lint_validation
            + self.code_quality
        )


class FrameworkPatterns(BaseModel):
    """Required naming/usage patterns (``voilajsx_patterns`` in the document)."""

    required_patterns: list[str] | None = None
    security_patterns: list[str] | None = None
    response_patterns: list[str] = Field(default_factory=list)
    module_initialization: list[str] = Field(default_factory=list)
    required_modules: list[str] = Field(default_factory=list)


class TestRequirements(BaseModel):
    __test__ = False

    critical_test_patterns: list[str] | None = None
    minimum_critical_coverage: int | None = Field(default=None, ge=0)
    security_test_patterns: list[str] | None = None


class CodeQualityTargets(BaseModel):
    error_handling_required: bool = True
    structured_logging_required: bool = True
    voilajsx_compliance_minimum: int = Field(default=75, ge=0, le=100)


class BreakingChangePrevention(BaseModel):
    route_conflicts_blocked: bool = True
    parameter_overlap_warning: bool = True
    api_contract_locked: bool = False
    response_schema_stable: bool = False
    backward_compatibility_required: bool = False


class ValidationTargets(BaseModel):
    """Feature-wide thresholds, weights and patterns.

    ``reliability_thresholds`` and ``scoring_weights`` stay ``None`` when the
    document omits them; their presence selects the configurable scoring
    policy.
    """

    reliability_thresholds: ReliabilityThresholds | None = None
    scoring_weights: ScoringWeights | None = None
    required_coverage: int | None = Field(default=None, ge=0, le=100)
    voilajsx_patterns: FrameworkPatterns = Field(default_factory=FrameworkPatterns)
    test_requirements: TestRequirements = Field(default_factory=TestRequirements)
    code_quality_targets: CodeQualityTargets = Field(default_factory=CodeQualityTargets)
    breaking_change_prevention: BreakingChangePrevention = Field(
        default_factory=BreakingChangePrevention
    )

    @property
    def thresholds(self) -> ReliabilityThresholds:
        return self.reliability_thresholds or ReliabilityThresholds()

    @property
    def weights(self) -> ScoringWeights:
        return self.scoring_weights or ScoringWeights()

    @property
    def explicitly_configured(self) -> bool:
        """Whether the document supplies its own weights or thresholds."""
        return self.scoring_weights is not None or self.reliability_thresholds is not None


class SpecificationDocument(BaseModel):
    """A feature's full specification document."""

    version: str = Field(default="1.0.0")
    endpoints: dict[str, EndpointSpec] = Field(default_factory=dict)
    validation_targets: ValidationTargets = Field(default_factory=ValidationTargets)

    @field_validator("endpoints", mode="before")
    @classmethod
    def _drop_null_endpoints(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: v for k, v in value.items() if v is not None}
        return value


class FeatureSpecification(BaseModel):
    """A loaded specification document tagged with its feature name."""

    feature: str = Field(description="Feature directory name")
    path: str = Field(default="", description="Where the document was read from")
    spec: SpecificationDocument = Field(default_factory=SpecificationDocument)
