"""Fact set schemas produced by the static extractors.

A FactSet is the normalized bag of declarations found in one artifact
(contract, logic, test or helper file). It is a pure function of the
text it was extracted from and holds no reference to the specification.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ImportFacts(BaseModel):
    """Module names split into framework modules and external modules."""

    framework: set[str] = Field(
        default_factory=set, description="Framework module names (e.g. 'logging')"
    )
    external: set[str] = Field(
        default_factory=set, description="Third-party module specifiers (e.g. 'express')"
    )

    def is_empty(self) -> bool:
        return not self.framework and not self.external


class FactSet(BaseModel):
    """Structured facts extracted from one block of source text."""

    routes: dict[str, str] = Field(
        default_factory=dict, description="Route string -> handler name"
    )
    imports: ImportFacts = Field(
        default_factory=ImportFacts, description="Declared or used import modules"
    )
    exports: set[str] = Field(
        default_factory=set, description="Exported function and constant names"
    )
    tests: list[str] = Field(
        default_factory=list, description="Declared or implemented test-case names"
    )
    helpers: list[str] = Field(
        default_factory=list, description="Declared helper file names"
    )
    publishes: set[str] = Field(
        default_factory=set, description="Event names published"
    )
    subscribes: set[str] = Field(
        default_factory=set, description="Event names subscribed to"
    )
    bindings: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Framework module -> names imported from it (logic files only)",
    )
