"""Pipeline configuration, scope and result schemas.

Defines the gate configuration loaded from TOML, the validation scope
computed once per run, and the per-stage and whole-run results.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


class ScopeType(StrEnum):
    """Breadth of a validation run; ``file ⊂ endpoint ⊂ feature ⊂ full``."""

    FULL = "full"
    FEATURE = "feature"
    ENDPOINT = "endpoint"
    FILE = "file"


_BREADTH = {
    ScopeType.FILE: 0,
    ScopeType.ENDPOINT: 1,
    ScopeType.FEATURE: 2,
    ScopeType.FULL: 3,
}


class ValidationScope(BaseModel):
    """Which features, endpoints and files a run visits."""

    type: ScopeType = ScopeType.FULL
    feature: str | None = None
    endpoint: str | None = None
    file: str | None = None
    target: str = Field(default="", description="Raw target string as given")

    @property
    def feature_or_broader(self) -> bool:
        return _BREADTH[self.type] >= _BREADTH[ScopeType.FEATURE]

    @property
    def description(self) -> str:
        if self.type == ScopeType.FULL:
            return "full project"
        if self.type == ScopeType.FEATURE:
            return f"feature '{self.feature}'"
        if self.type == ScopeType.ENDPOINT:
            return f"endpoint '{self.feature}/{self.endpoint}'"
        return f"file '{self.feature}/{self.endpoint}/{self.file}'"

    def includes_feature(self, feature: str) -> bool:
        return self.type == ScopeType.FULL or self.feature == feature

    def includes_endpoint(self, feature: str, endpoint: str) -> bool:
        if not self.includes_feature(feature):
            return False
        return self.type in (ScopeType.FULL, ScopeType.FEATURE) or self.endpoint == endpoint


class StageStatus(StrEnum):
    """Outcome of one pipeline stage."""

    PASSED = "passed"
    FAILED = "failed"
    CRASHED = "crashed"
    SKIPPED = "skipped"


class StageResult(BaseModel):
    """Result of one stage execution."""

    name: str = Field(description="Registry name of the stage")
    status: StageStatus = Field(default=StageStatus.PASSED)
    duration_seconds: float = Field(default=0.0, ge=0.0)
    message: str = Field(default="", description="One-line outcome summary")
    details: list[str] = Field(default_factory=list, description="Issues found by the stage")
    error: str = Field(default="", description="Exception message when the stage crashed")
    traceback: str = Field(default="", description="Head of the traceback when crashed")

    @property
    def ok(self) -> bool:
        return self.status in (StageStatus.PASSED, StageStatus.SKIPPED)


class EndpointScore(BaseModel):
    """Reliability verdict of one endpoint, kept on the run result."""

    feature: str
    endpoint: str
    reliability_score: int = Field(default=0, ge=0, le=100)
    overall_reliable: bool = False
    scoring_policy: str = ""


class PipelineResult(BaseModel):
    """Outcome of a whole pipeline run."""

    run_id: str = Field(description="Unique run identifier (UUID hex)")
    scope: ValidationScope = Field(default_factory=ValidationScope)
    stages: list[StageResult] = Field(default_factory=list)
    success: bool = Field(default=False)
    failed_stage: str | None = Field(default=None)
    duration_seconds: float = Field(default=0.0, ge=0.0)
    started_at: str = Field(default="", description="ISO-8601 UTC start time")
    endpoint_scores: list[EndpointScore] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)


class TypeCheckResult(BaseModel):
    """What an external type checker reported."""

    success: bool = False
    diagnostics: list[str] = Field(default_factory=list)
    error_count: int = 0
    timed_out: bool = False


class TypeCheckConfig(BaseModel):
    enabled: bool = True
    command: list[str] = Field(
        default_factory=lambda: ["npx", "tsc", "--noEmit", "--pretty", "false"]
    )
    timeout: int = Field(default=120, gt=0, description="Seconds before the checker is killed")


class TestCommandConfig(BaseModel):
    """Optional external test runner invoked by the test stage."""

    __test__ = False

    command: list[str] = Field(default_factory=list, description="Empty disables the runner")
    timeout: int = Field(default=300, gt=0)


class ConventionsConfig(BaseModel):
    """Target-framework conventions the heuristics look for.

    Specification documents override the pattern lists per feature; these
    are the fallbacks when a document is silent.
    """

    import_prefix: str = "@voilajsx/appkit"
    module_aliases: dict[str, str] = Field(
        default_factory=lambda: {
            "utility": "utils",
            "logger": "logging",
        }
    )
    event_emit_call: str = "eventBus.emit"
    event_subscribe_call: str = "eventBus.on"
    initialization_call: str = ".get("
    required_patterns: list[str] = Field(
        default_factory=lambda: [".get()", "utils.uuid()", "log.info("]
    )
    security_patterns: list[str] = Field(
        default_factory=lambda: ["secure.input(", "utils.get("]
    )
    critical_test_patterns: list[str] = Field(
        default_factory=lambda: ["error", "validation", "response"]
    )
    minimum_critical_coverage: int = Field(default=2, ge=0)
    security_test_patterns: list[str] = Field(
        default_factory=lambda: ["XSS", "sanitiz", "reject"]
    )
    error_calls: list[str] = Field(
        default_factory=lambda: ["err.badRequest", "err.serverError", "err.notFound"]
    )
    logging_call: str = "log.info("
    correlation_token: str = "requestId"
    logic_suffix: str = ".logic.ts"
    contract_suffix: str = ".contract.ts"
    test_suffix: str = ".test.ts"
    helper_suffix: str = ".helper.ts"


class GateConfig(BaseModel):
    """Top-level configuration of the validation gate."""

    stage_order: list[str] = Field(
        default_factory=lambda: ["types", "lint", "contract", "test", "compliance"]
    )
    features_dir: str = Field(default="src/features")
    notes_suffix: str = Field(default="_notes")
    scoring_policy: str = Field(
        default="auto", description="'auto', 'configurable' or 'strict'"
    )
    max_parallel_endpoints: int = Field(default=4, ge=1)
    history_enabled: bool = True
    history_db: str = Field(default="~/.fluxgate/history.db")
    type_check: TypeCheckConfig = Field(default_factory=TypeCheckConfig)
    test_command: TestCommandConfig = Field(default_factory=TestCommandConfig)
    conventions: ConventionsConfig = Field(default_factory=ConventionsConfig)

    @field_validator("scoring_policy")
    @classmethod
    def _known_policy(cls, value: str) -> str:
        if value not in ("auto", "configurable", "strict"):
            raise ValueError(
                f"scoring_policy must be auto, configurable or strict, got {value!r}"
            )
        return value

    @field_validator("stage_order")
    @classmethod
    def _non_empty_order(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("stage_order must name at least one stage")
        return value
