"""Inputs shared by the five dimension checks of one endpoint."""

from __future__ import annotations

from dataclasses import dataclass, field

from fluxgate.schemas.facts import FactSet
from fluxgate.schemas.pipeline import ConventionsConfig
from fluxgate.schemas.reconciliation import ReconciliationResult
from fluxgate.schemas.spec import EndpointSpec, ValidationTargets


def _empty() -> ReconciliationResult:
    return ReconciliationResult()


@dataclass
class EndpointSources:
    """Texts of one endpoint's artifacts; ``test`` is None when the file is absent."""

    folder: str
    contract_file: str
    logic_file: str
    test_file: str
    contract: str
    logic: str
    test: str | None = None
    helpers: dict[str, str] = field(default_factory=dict)
    helper_files: list[str] = field(default_factory=list)


@dataclass
class SpecificationPass:
    """Specification -> contract (and logic) reconciliation."""

    routes: ReconciliationResult = field(default_factory=_empty)
    contract_imports: ReconciliationResult = field(default_factory=_empty)
    exports: ReconciliationResult = field(default_factory=_empty)
    tests: ReconciliationResult = field(default_factory=_empty)

    def contract_results(self) -> list[ReconciliationResult]:
        return [self.routes, self.contract_imports, self.exports]


@dataclass
class ImplementationPass:
    """Contract -> implementation reconciliation."""

    handlers: ReconciliationResult = field(default_factory=_empty)
    imports: ReconciliationResult = field(default_factory=_empty)
    publishes: ReconciliationResult = field(default_factory=_empty)
    subscribes: ReconciliationResult = field(default_factory=_empty)
    helpers: ReconciliationResult = field(default_factory=_empty)
    tests: ReconciliationResult = field(default_factory=_empty)
    undeclared_imports: list[str] = field(default_factory=list)
    undeclared_helpers: list[str] = field(default_factory=list)

    def contract_results(self) -> list[ReconciliationResult]:
        return [self.handlers, self.imports, self.publishes, self.subscribes, self.helpers]


@dataclass
class ScoringContext:
    """Everything a dimension check may look at."""

    endpoint: str
    spec: EndpointSpec
    targets: ValidationTargets
    conventions: ConventionsConfig
    sources: EndpointSources
    contract_facts: FactSet
    logic_facts: FactSet
    implemented_tests: list[str] = field(default_factory=list)
    specification: SpecificationPass = field(default_factory=SpecificationPass)
    implementation: ImplementationPass = field(default_factory=ImplementationPass)

    @property
    def declared_test_count(self) -> int:
        return self.specification.tests.expected_count + self.implementation.tests.expected_count
