"""The two reconciliation passes run for every endpoint.

The specification is the ground truth the contract must match; the
contract is the ground truth the implementation must match. Each pass
yields ReconciliationResults that the dimension checks and the contract
stage turn into errors and warnings.
"""

from __future__ import annotations

from collections.abc import Iterable

from fluxgate.extract.source import extract_exports
from fluxgate.reconcile.messages import extra_messages
from fluxgate.reconcile.reconciler import (
    module_import_path,
    reconcile,
    reconcile_imports,
    reconcile_routes,
    reconcile_tests,
)
from fluxgate.schemas.facts import FactSet
from fluxgate.schemas.pipeline import ConventionsConfig
from fluxgate.schemas.reconciliation import ReconciliationResult
from fluxgate.schemas.spec import EndpointSpec
from fluxgate.scoring.context import EndpointSources, ImplementationPass, SpecificationPass


def _nothing(category: str) -> ReconciliationResult:
    return ReconciliationResult(category=category)


def specification_pass(spec: EndpointSpec, contract: FactSet, logic: FactSet) -> SpecificationPass:
    """Reconcile what the specification requires against the contract and exports.

    Categories the specification leaves empty are not compared.
    """
    routes = (
        reconcile_routes(spec.contract.routes, contract.routes)
        if spec.contract.routes
        else _nothing("routes")
    )

    declared_imports = spec.contract.imports
    if declared_imports.framework or declared_imports.external:
        contract_imports = reconcile(
            declared_imports.framework, contract.imports.framework
        ).merged(reconcile(declared_imports.external, contract.imports.external))
        contract_imports.category = "contract_imports"
    else:
        contract_imports = _nothing("contract_imports")

    required_exports = [*spec.logic.exports, *spec.contract.exports]
    exports = (
        reconcile(required_exports, logic.exports & set(required_exports), category="exports")
        if required_exports
        else _nothing("exports")
    )

    spec_tests = [case.name for case in spec.test.test_cases]
    tests = reconcile_tests(spec_tests, contract.tests) if spec_tests else _nothing("tests")
    tests.category = "spec_tests"

    return SpecificationPass(
        routes=routes, contract_imports=contract_imports, exports=exports, tests=tests
    )


def implementation_pass(
    contract: FactSet,
    logic: FactSet,
    sources: EndpointSources,
    implemented_tests: list[str],
    conventions: ConventionsConfig,
    spec: EndpointSpec | None = None,
    required_modules: Iterable[str] = (),
) -> ImplementationPass:
    """Reconcile the contract's declarations against logic, helper and test files."""
    aliases = conventions.module_aliases
    prefix = conventions.import_prefix

    framework = list(contract.imports.framework)
    external = list(contract.imports.external)
    if spec is not None:
        framework.extend(spec.logic.imports.framework)
        external.extend(spec.logic.imports.external)
    framework.extend(required_modules)
    framework = sorted(set(framework))
    external = sorted(set(external))

    expected_paths = [module_import_path(m, prefix, aliases) for m in framework] + external
    imports = reconcile_imports(expected_paths, sources.logic)

    declared_tails = set(framework) | {aliases.get(m, m) for m in framework}
    undeclared = [
        module_import_path(m, prefix, {})
        for m in sorted(logic.imports.framework)
        if m not in declared_tails
    ]
    undeclared.extend(e for e in sorted(logic.imports.external) if e not in external)

    with_exports = [
        name
        for name in contract.helpers
        if name in sources.helpers and extract_exports(sources.helpers[name])
    ]

    return ImplementationPass(
        handlers=reconcile(list(contract.routes.values()), logic.exports, category="handlers"),
        imports=imports,
        publishes=reconcile(contract.publishes, logic.publishes, category="publishes"),
        subscribes=reconcile(contract.subscribes, logic.subscribes, category="subscribes"),
        helpers=reconcile(contract.helpers, with_exports, category="helpers"),
        tests=reconcile_tests(contract.tests, implemented_tests),
        undeclared_imports=undeclared,
        undeclared_helpers=[h for h in sources.helper_files if h not in contract.helpers],
    )


def implementation_warnings(result: ImplementationPass) -> list[str]:
    warnings: list[str] = []
    for part in result.contract_results():
        warnings.extend(extra_messages(part))
    warnings.extend(
        f"Module '{name}' imported but not declared in contract"
        for name in result.undeclared_imports
    )
    warnings.extend(
        f"Helper file '{name}' exists but not declared in contract helpers"
        for name in result.undeclared_helpers
    )
    return warnings


def specification_warnings(result: SpecificationPass) -> list[str]:
    warnings: list[str] = []
    for part in result.contract_results():
        warnings.extend(extra_messages(part))
    return warnings
