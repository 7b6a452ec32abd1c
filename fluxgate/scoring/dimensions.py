"""The five dimension checks.

Each check starts from a PASS/100 score and only lowers it: missing
declared items FAIL at the completion ratio, heuristic violations WARN
or FAIL at a tiered ceiling.
"""

from __future__ import annotations

from fluxgate.extract.contract import contract_import_statements
from fluxgate.reconcile.messages import missing_messages
from fluxgate.schemas.reconciliation import ReconciliationResult
from fluxgate.schemas.scoring import Dimension, DimensionScore, completion_ratio
from fluxgate.scoring.context import ScoringContext

NO_TESTS_DECLARED = "No tests declared in contract"


def _combined(results: list[ReconciliationResult], category: str) -> ReconciliationResult:
    combined = ReconciliationResult(category=category)
    for result in results:
        combined = combined.merged(result, category=category)
    return combined


def _found(text: str, patterns: list[str]) -> list[str]:
    return [p for p in patterns if p in text]


def check_contract_compliance(ctx: ScoringContext) -> DimensionScore:
    """Routes, exports, imports, events and helpers across both passes."""
    result = DimensionScore(dimension=Dimension.CONTRACT_COMPLIANCE)
    spec_pass = ctx.specification
    impl_pass = ctx.implementation

    parts = [*spec_pass.contract_results(), *impl_pass.contract_results()]
    combined = _combined(parts, "contract")
    events = impl_pass.publishes.merged(impl_pass.subscribes)

    result.metrics = {
        "routes_declared_vs_implemented": spec_pass.routes.fraction,
        "functions_exported": impl_pass.handlers.fraction,
        "imports_validated": impl_pass.imports.fraction,
        "events_validated": events.fraction,
        "helper_files_declared": impl_pass.helpers.fraction,
    }

    if not combined.complete:
        issues: list[str] = []
        for part in parts:
            issues.extend(missing_messages(part))
        result.fail_with_ratio(combined.matched_count, combined.expected_count, issues)
    return result


def check_test_validation(ctx: ScoringContext) -> DimensionScore:
    """Declared versus implemented tests, coverage and critical test patterns."""
    result = DimensionScore(dimension=Dimension.TEST_VALIDATION)
    sources = ctx.sources
    if sources.test is None:
        result.harden(0, f"Missing test file: {sources.test_file}")
        return result

    declared = ctx.specification.tests.merged(ctx.implementation.tests, category="tests")
    if ctx.declared_test_count == 0:
        result.soften(100, NO_TESTS_DECLARED)
        result.metrics = {"test_cases_found": f"{len(ctx.implemented_tests)}/0"}
        return result

    implemented = ctx.implementation.tests
    found = len(ctx.implemented_tests)
    result.metrics["test_cases_found"] = f"{found}/{implemented.expected_count}"
    result.metrics["test_descriptions_match"] = declared.fraction
    if not declared.complete:
        result.fail_with_ratio(
            declared.matched_count,
            declared.expected_count,
            missing_messages(ctx.specification.tests) + missing_messages(implemented),
        )

    coverage = completion_ratio(implemented.matched_count, implemented.expected_count)
    target = ctx.spec.test.coverage_target or ctx.targets.required_coverage or 100
    result.metrics["coverage_actual"] = f"{coverage}%"
    result.metrics["coverage_target"] = f"{target}%"
    if coverage < target:
        result.soften(coverage, f"Test coverage {coverage}% below target {target}%")

    requirements = ctx.targets.test_requirements
    conventions = ctx.conventions
    test_text = sources.test.lower()
    critical = (
        ctx.spec.validation_specifics.required_test_patterns
        or requirements.critical_test_patterns
        or conventions.critical_test_patterns
    )
    minimum = requirements.minimum_critical_coverage
    if minimum is None:
        minimum = conventions.minimum_critical_coverage
    tested = [p for p in critical if p.lower() in test_text]
    result.metrics["critical_paths_tested"] = f"{len(tested)}/{len(critical)}"
    if len(tested) < minimum:
        result.soften(
            80, f"Critical test patterns coverage below minimum ({len(tested)}/{minimum})"
        )

    if ctx.spec.validation_specifics.security_requirements:
        security = requirements.security_test_patterns or conventions.security_test_patterns
        if not [p for p in security if p.lower() in test_text]:
            result.soften(85, "Missing security test patterns for security-sensitive endpoint")
    return result


def check_types_validation(ctx: ScoringContext) -> DimensionScore:
    """Shallow type-safety heuristics over the logic file."""
    result = DimensionScore(dimension=Dimension.TYPES_VALIDATION)
    logic = ctx.sources.logic

    if not ("import {" in logic and "} from" in logic):
        result.soften(90, "Missing proper TypeScript imports")
    if "export async function" not in logic and "export function" not in logic:
        result.harden(60, "Missing typed function exports")
    if not ("Request" in logic and "Response" in logic):
        result.soften(85, "Missing Request/Response types")

    result.metrics = {
        "typescript_compilation": "PASS" if result.score >= 90 else "FAIL",
        "type_safety_score": f"{result.score}%",
    }
    return result


def check_lint_validation(ctx: ScoringContext) -> DimensionScore:
    """Framework patterns, naming, contract purity and module initialisation."""
    result = DimensionScore(dimension=Dimension.LINT_VALIDATION)
    logic = ctx.sources.logic
    conventions = ctx.conventions
    patterns = ctx.targets.voilajsx_patterns
    result.metrics = {
        "voilajsx_patterns": "PASS",
        "naming_conventions": "PASS",
        "security_patterns": "PASS",
        "file_structure": "PASS",
        "module_initialization": "PASS",
    }

    required = (
        ctx.spec.validation_specifics.required_voilajsx_patterns
        or patterns.required_patterns
        or conventions.required_patterns
    )
    compliance = completion_ratio(len(_found(logic, required)), len(required))
    minimum = ctx.targets.code_quality_targets.voilajsx_compliance_minimum
    if compliance < minimum:
        result.soften(compliance, f"VoilaJSX pattern compliance {compliance}% below minimum")
        result.metrics["voilajsx_patterns"] = "WARN"

    if ctx.spec.validation_specifics.security_requirements:
        security = patterns.security_patterns or conventions.security_patterns
        if not _found(logic, security):
            result.soften(
                75, "Missing required security patterns for security-sensitive endpoint"
            )
            result.metrics["security_patterns"] = "WARN"

    proper_name = f"{ctx.endpoint}{conventions.logic_suffix}"
    if ctx.sources.logic_file != proper_name:
        result.harden(70, f"File should be named {proper_name}")
        result.metrics["naming_conventions"] = "FAIL"

    if contract_import_statements(ctx.sources.contract):
        result.harden(70, "Contract file must not contain import statements")
        result.metrics["file_structure"] = "FAIL"

    for module, names in sorted(ctx.logic_facts.bindings.items()):
        calls = [f"{name}{conventions.initialization_call}" for name in names]
        if calls and not _found(logic, calls):
            result.soften(90, f"Module '{module}' imported but never initialised with .get()")
            result.metrics["module_initialization"] = "WARN"
    return result


def check_code_quality(ctx: ScoringContext) -> DimensionScore:
    """Error handling, sanitisation, structured logging and pattern compliance."""
    result = DimensionScore(dimension=Dimension.CODE_QUALITY)
    logic = ctx.sources.logic
    conventions = ctx.conventions
    targets = ctx.targets.code_quality_targets
    patterns = ctx.targets.voilajsx_patterns
    result.metrics = {
        "error_handling_implemented": "PASS",
        "input_sanitization": "PASS",
        "logging_structured": "PASS",
        "voilajsx_compliance": "100%",
    }

    if targets.error_handling_required:
        has_try = "try {" in logic and "catch" in logic
        if not has_try and not _found(logic, conventions.error_calls):
            result.soften(80, "Missing comprehensive error handling")
            result.metrics["error_handling_implemented"] = "WARN"

    if ctx.spec.validation_specifics.security_sensitive:
        security = patterns.security_patterns or conventions.security_patterns
        if not _found(logic, security):
            result.harden(
                60, "Missing required input sanitization for security-sensitive endpoint"
            )
            result.metrics["input_sanitization"] = "FAIL"
    else:
        result.metrics["input_sanitization"] = "N/A"

    if targets.structured_logging_required:
        if not (conventions.logging_call in logic and conventions.correlation_token in logic):
            result.soften(85, f"Missing structured logging with {conventions.correlation_token}")
            result.metrics["logging_structured"] = "WARN"

    all_patterns = [*(patterns.required_patterns or []), *patterns.response_patterns]
    if all_patterns:
        compliance = completion_ratio(len(_found(logic, all_patterns)), len(all_patterns))
        result.metrics["voilajsx_compliance"] = f"{compliance}%"
        minimum = targets.voilajsx_compliance_minimum
        if compliance < minimum:
            result.soften(
                compliance, f"VoilaJSX compliance {compliance}% below minimum {minimum}%"
            )
    return result


DIMENSION_CHECKS = {
    Dimension.CONTRACT_COMPLIANCE: check_contract_compliance,
    Dimension.TEST_VALIDATION: check_test_validation,
    Dimension.TYPES_VALIDATION: check_types_validation,
    Dimension.LINT_VALIDATION: check_lint_validation,
    Dimension.CODE_QUALITY: check_code_quality,
}
