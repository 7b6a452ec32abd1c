"""Dimension score and endpoint validation record schemas.

Every endpoint is scored on five dimensions. A DimensionScore starts at
the 100 ceiling and is only ever lowered: hard failures cap it at the
completion ratio, soft violations clamp it to a tiered ceiling.
"""

from __future__ import annotations

import math
from enum import StrEnum

from pydantic import BaseModel, Field


class DimensionStatus(StrEnum):
    """Outcome of one scoring dimension."""

    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"


class Dimension(StrEnum):
    """The five reliability dimensions, in reporting order."""

    CONTRACT_COMPLIANCE = "contract_compliance"
    TEST_VALIDATION = "test_validation"
    TYPES_VALIDATION = "types_validation"
    LINT_VALIDATION = "lint_validation"
    CODE_QUALITY = "code_quality"


class ScoringPolicy(StrEnum):
    """How the deployability verdict is derived.

    CONFIGURABLE: weighted reliability score >= configured minimum.
    STRICT: every individual dimension must score >= 90.
    """

    CONFIGURABLE = "configurable"
    STRICT = "strict"


class ValidationStep(StrEnum):
    """Endpoint validator states; AGGREGATED is terminal."""

    NOT_STARTED = "not_started"
    FILES_CHECKED = "files_checked"
    FACTS_EXTRACTED = "facts_extracted"
    RECONCILED = "reconciled"
    SCORED = "scored"
    AGGREGATED = "aggregated"


SCORE_CEILING = 100


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives (88.5 -> 89)."""
    return math.floor(value + 0.5)


def completion_ratio(matched: int, expected: int) -> int:
    """Percentage of expected items matched; 100 when nothing is expected."""
    if expected <= 0:
        return SCORE_CEILING
    return max(0, min(SCORE_CEILING, round_half_up(matched / expected * 100)))


class DimensionScore(BaseModel):
    """Status, score, issues and audit metrics for one dimension."""

    dimension: Dimension = Field(description="Which dimension this score belongs to")
    status: DimensionStatus = Field(default=DimensionStatus.PASS)
    score: int = Field(default=SCORE_CEILING, ge=0, le=SCORE_CEILING)
    issues: list[str] = Field(default_factory=list)
    metrics: dict[str, str] = Field(default_factory=dict)

    def fail_with_ratio(self, matched: int, expected: int, issues: list[str]) -> None:
        """Record missing required items: FAIL, score capped at the completion ratio."""
        self.status = DimensionStatus.FAIL
        self.score = min(self.score, completion_ratio(matched, expected))
        self.issues.extend(issues)

    def soften(self, ceiling: int, issue: str) -> None:
        """Record an advisory violation: WARN (unless FAIL) and clamp to ``ceiling``."""
        if self.status != DimensionStatus.FAIL:
            self.status = DimensionStatus.WARN
        self.score = max(0, min(self.score, ceiling))
        self.issues.append(issue)

    def harden(self, ceiling: int, issue: str) -> None:
        """Record a hard heuristic violation: FAIL and clamp to ``ceiling``."""
        self.status = DimensionStatus.FAIL
        self.score = max(0, min(self.score, ceiling))
        self.issues.append(issue)

    @classmethod
    def crashed(cls, dimension: Dimension, message: str) -> DimensionScore:
        """A dimension whose computation raised: FAIL with score 0."""
        return cls(
            dimension=dimension,
            status=DimensionStatus.FAIL,
            score=0,
            issues=[f"{dimension.value} validation error: {message}"],
        )


class EndpointValidationRecord(BaseModel):
    """Aggregated validation outcome for one endpoint.

    Created fresh for every pipeline run and persisted as the endpoint's
    manifest; the next run supersedes it rather than merging.
    """

    feature: str
    endpoint: str
    route: str = ""
    dimensions: dict[Dimension, DimensionScore] = Field(default_factory=dict)
    reliability_score: int = Field(default=0, ge=0, le=SCORE_CEILING)
    overall_reliable: bool = False
    blocking_issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    scoring_policy: ScoringPolicy = ScoringPolicy.STRICT
    minimum_threshold: int = Field(default=90, ge=0, le=SCORE_CEILING)
    state: ValidationStep = ValidationStep.NOT_STARTED
    short_circuited: bool = Field(
        default=False, description="True when a required file was missing"
    )

    @property
    def key(self) -> str:
        return f"{self.feature}/{self.endpoint}"

    def score_of(self, dimension: Dimension) -> int | None:
        found = self.dimensions.get(dimension)
        return found.score if found else None
