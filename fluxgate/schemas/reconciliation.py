"""Reconciliation result schema.

One ReconciliationResult describes the bidirectional comparison of a
declared collection against an observed collection for a single fact
category (routes, exports, imports, tests, helpers, events).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ReconciliationResult(BaseModel):
    """Symmetric difference between declared and observed items.

    ``missing`` items are declared but not observed (hard errors);
    ``extra`` items are observed but not declared (warnings, or purely
    informational for some categories such as extra test cases).
    """

    category: str = Field(default="", description="Fact category compared")
    missing: list[Any] = Field(
        default_factory=list, description="Declared items absent from the observation"
    )
    extra: list[Any] = Field(
        default_factory=list, description="Observed items absent from the declaration"
    )
    matched_count: int = Field(default=0, ge=0, description="Declared items observed")
    expected_count: int = Field(default=0, ge=0, description="Distinct declared items")

    @property
    def complete(self) -> bool:
        """True when nothing declared is missing."""
        return not self.missing

    @property
    def fraction(self) -> str:
        """Audit-friendly ``matched/expected`` string (e.g. ``"3/3"``)."""
        return f"{self.matched_count}/{self.expected_count}"

    def merged(self, other: ReconciliationResult, category: str = "") -> ReconciliationResult:
        """Combine two results into one, summing counts."""
        return ReconciliationResult(
            category=category or self.category,
            missing=[*self.missing, *other.missing],
            extra=[*self.extra, *other.extra],
            matched_count=self.matched_count + other.matched_count,
            expected_count=self.expected_count + other.expected_count,
        )
