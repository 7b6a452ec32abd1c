"""Aggregation of dimension scores into an endpoint verdict.

Two deployability policies exist side by side and are always named on
the record they produce:

* CONFIGURABLE: the weighted reliability score must reach the minimum
  (``overall_reliability_minimum``, default 90).
* STRICT: every dimension must individually score at least 90.

The policy is CONFIGURABLE when the specification supplies its own
scoring weights or reliability thresholds, STRICT otherwise, unless the
gate configuration forces one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from fluxgate.schemas.scoring import (
    SCORE_CEILING,
    Dimension,
    DimensionScore,
    DimensionStatus,
    ScoringPolicy,
    round_half_up,
)
from fluxgate.schemas.spec import ReliabilityThresholds, ScoringWeights, ValidationTargets

logger = logging.getLogger(__name__)

STRICT_DIMENSION_MINIMUM = 90


def weighted_reliability(
    scores: Mapping[Dimension, int], weights: ScoringWeights | None = None
) -> int:
    """Weighted mean of dimension scores, rounded and clamped to [0, 100].

    Dimensions without a score count as 0.
    """
    weights = weights or ScoringWeights()
    weighted = sum(
        scores.get(dimension, 0) * getattr(weights, dimension.value) for dimension in Dimension
    )
    return max(0, min(SCORE_CEILING, round_half_up(weighted / weights.total)))


def resolve_policy(targets: ValidationTargets, override: str = "auto") -> ScoringPolicy:
    """Pick the deployability policy for one feature's validation targets."""
    if override in (ScoringPolicy.CONFIGURABLE, ScoringPolicy.STRICT):
        return ScoringPolicy(override)
    if targets.explicitly_configured:
        return ScoringPolicy.CONFIGURABLE
    return ScoringPolicy.STRICT


def minimum_threshold(targets: ValidationTargets, policy: ScoringPolicy) -> int:
    if policy == ScoringPolicy.STRICT:
        return STRICT_DIMENSION_MINIMUM
    return targets.thresholds.overall_reliability_minimum


def is_deployable(
    scores: Mapping[Dimension, int],
    reliability: int,
    policy: ScoringPolicy,
    minimum: int = 90,
) -> bool:
    """Deployability verdict under ``policy``."""
    if policy == ScoringPolicy.STRICT:
        if not scores:
            return False
        return all(score >= STRICT_DIMENSION_MINIMUM for score in scores.values())
    return reliability >= minimum


def collect_blocking_issues(
    dimensions: Mapping[Dimension, DimensionScore],
    thresholds: ReliabilityThresholds | None = None,
) -> list[str]:
    """Issues of FAIL dimensions and of WARN dimensions under their minimum."""
    thresholds = thresholds or ReliabilityThresholds()
    blocking: list[str] = []
    for dimension in Dimension:
        result = dimensions.get(dimension)
        if result is None:
            continue
        if result.status == DimensionStatus.FAIL or (
            result.status == DimensionStatus.WARN
            and result.score < thresholds.minimum_for(dimension.value)
        ):
            blocking.extend(result.issues)
    return blocking


def guarded(dimension: Dimension, compute: Callable[[], DimensionScore]) -> DimensionScore:
    """Run one dimension check; an exception becomes a FAIL/0 score.

    Sibling dimensions are unaffected because nothing propagates.
    """
    try:
        return compute()
    except Exception as exc:
        logger.warning("%s check raised: %s", dimension.value, exc, exc_info=True)
        return DimensionScore.crashed(dimension, str(exc))
