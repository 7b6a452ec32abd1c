"""Scorer: dimension checks and reliability aggregation."""

from fluxgate.scoring.dimensions import DIMENSION_CHECKS
from fluxgate.scoring.scorer import (
    collect_blocking_issues,
    guarded,
    is_deployable,
    resolve_policy,
    weighted_reliability,
)

__all__ = [
    "DIMENSION_CHECKS",
    "collect_blocking_issues",
    "guarded",
    "is_deployable",
    "resolve_policy",
    "weighted_reliability",
]
