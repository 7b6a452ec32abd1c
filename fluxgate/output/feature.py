"""Feature-wide report: compliance roll-up, breaking changes and duplication.

Reports are only produced for feature-or-broader runs. They are written
to ``{features_dir}/{feature}/{feature}.report.json`` and replaced
wholesale; the previous report is read only to detect route drift.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import re
from pathlib import Path

from pydantic import ValidationError

from fluxgate.output.manifest import COMPLIANT, ISSUES_FOUND, utc_timestamp, write_json
from fluxgate.schemas.pipeline import ConventionsConfig, ValidationScope
from fluxgate.schemas.report import (
    AcceptableSharedPattern,
    BreakingChangeAnalysis,
    ComplianceSummary,
    DuplicationAnalysis,
    FeatureEndpointEntry,
    FeatureValidationReport,
    ProblematicDuplication,
    RouteCollision,
    RouteOverlap,
)
from fluxgate.schemas.scoring import EndpointValidationRecord, round_half_up
from fluxgate.schemas.spec import (
    BreakingChangePrevention,
    FeatureSpecification,
    ValidationTargets,
)

logger = logging.getLogger(__name__)

# Lines shorter than this (trimmed) are ignored by the pairwise comparison.
MIN_COMPARED_LINE = 10
# Only repeated lines longer than this count as duplicated code.
MIN_DUPLICATE_LINE = 50
# A pair is flagged once it shares more than this many duplicated lines.
DUPLICATE_LINE_LIMIT = 3
INDEPENDENCE_PENALTY = 20

_HTTP_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "ALL"}
_PARAM_SEGMENT = re.compile(r"^(?::\w+\??|@\w+|\{\w+\}|\*)$")


def report_path(features_dir: str, feature: str) -> str:
    return f"{features_dir.rstrip('/')}/{feature}/{feature}.report.json"


def acceptable_patterns(targets: ValidationTargets, conventions: ConventionsConfig) -> list[str]:
    """Patterns allowed to repeat across endpoints without counting as duplication."""
    patterns = targets.voilajsx_patterns
    required = patterns.required_patterns
    if required is None:
        required = conventions.required_patterns
    combined = [*required, *patterns.module_initialization, *patterns.response_patterns]
    return list(dict.fromkeys(p for p in combined if p))


# ---------------------------------------------------------------------------
# Duplication
# ---------------------------------------------------------------------------


def _duplicated_line_count(first: str, second: str, allowed: list[str]) -> int:
    second_lines = {
        line for line in second.splitlines() if len(line.strip()) > MIN_COMPARED_LINE
    }
    count = 0
    for line in first.splitlines():
        if len(line.strip()) <= MIN_COMPARED_LINE or len(line) <= MIN_DUPLICATE_LINE:
            continue
        if line in second_lines and not any(p in line for p in allowed):
            count += 1
    return count


def analyze_duplication(
    logic_texts: dict[str, str], acceptable: list[str]
) -> DuplicationAnalysis:
    """Find shared configured patterns and problematic copy-paste between endpoints.

    Args:
        logic_texts: Logic file text keyed by endpoint name.
        acceptable: Patterns that may legitimately repeat.

    Returns:
        A DuplicationAnalysis whose independence score drops by 20 per
        problematic pair, floored at 0.
    """
    findings: list[AcceptableSharedPattern | ProblematicDuplication] = []
    for pattern in acceptable:
        sharing = [name for name, text in logic_texts.items() if pattern in text]
        if len(sharing) > 1:
            findings.append(AcceptableSharedPattern(pattern=pattern, endpoints=sharing))

    problematic = 0
    for first, second in itertools.combinations(sorted(logic_texts), 2):
        count = _duplicated_line_count(logic_texts[first], logic_texts[second], acceptable)
        if count > DUPLICATE_LINE_LIMIT:
            problematic += 1
            findings.append(
                ProblematicDuplication(endpoints=[first, second], duplicate_lines=count)
            )

    return DuplicationAnalysis(
        findings=findings,
        independence_score=max(0, 100 - INDEPENDENCE_PENALTY * problematic),
        endpoints_analyzed=len(logic_texts),
    )


# ---------------------------------------------------------------------------
# Breaking changes
# ---------------------------------------------------------------------------


def split_route(route: str) -> tuple[str, list[str]]:
    """Split ``"GET /users/:id"`` into ``("GET", ["users", ":id"])``; method may be empty."""
    method = ""
    path = route.strip()
    head, _, rest = path.partition(" ")
    if head.upper() in _HTTP_METHODS and rest:
        method, path = head.upper(), rest.strip()
    return method, [segment for segment in path.split("/") if segment]


def routes_overlap(first: str, second: str) -> bool:
    """Whether two distinct routes can match the same request through parameters."""
    if first == second:
        return False
    method_a, segments_a = split_route(first)
    method_b, segments_b = split_route(second)
    if method_a and method_b and method_a != method_b:
        return False
    if len(segments_a) != len(segments_b):
        return False
    parameterised = False
    for a, b in zip(segments_a, segments_b):
        a_param = bool(_PARAM_SEGMENT.match(a))
        b_param = bool(_PARAM_SEGMENT.match(b))
        if a_param or b_param:
            parameterised = True
        elif a != b:
            return False
    return parameterised


def _route_drift(
    current: dict[str, dict[str, str]], previous: FeatureValidationReport
) -> list[str]:
    drift: list[str] = []
    for entry in previous.endpoints:
        now = current.get(entry.name)
        if now is None:
            drift.append(f"Endpoint removed since last report: {entry.name}")
            continue
        for route, handler in entry.routes.items():
            if route not in now:
                drift.append(f"Route removed since last report: {route} ({entry.name})")
            elif handler and now[route] and now[route] != handler:
                drift.append(
                    f"Route re-mapped since last report: {route} ({handler} -> {now[route]})"
                )
    return drift


def analyze_breaking_changes(
    endpoint_routes: dict[str, dict[str, str]],
    prevention: BreakingChangePrevention,
    previous: FeatureValidationReport | None = None,
) -> BreakingChangeAnalysis:
    """Detect route collisions, parameter overlaps and drift since the last report.

    Args:
        endpoint_routes: ``route -> handler`` per endpoint; a handler may be
            empty when only the endpoint's primary route is known.
        prevention: The feature's breaking-change prevention rules.
        previous: The last written report for the feature, if any.
    """
    analysis = BreakingChangeAnalysis()

    claimed: dict[str, list[str]] = {}
    for endpoint, routes in endpoint_routes.items():
        for route in routes:
            claimed.setdefault(route, []).append(endpoint)

    for route, endpoints in claimed.items():
        if len(endpoints) < 2:
            continue
        handlers = {e: endpoint_routes[e].get(route, "") for e in endpoints}
        analysis.collisions.append(
            RouteCollision(route=route, endpoints=endpoints, handlers=handlers)
        )
        message = f"Route conflict: {route} used by {', '.join(endpoints)}"
        if prevention.route_conflicts_blocked:
            analysis.errors.append(message)
        else:
            analysis.warnings.append(message)
    if prevention.route_conflicts_blocked:
        analysis.prevention_rules_applied.append("route_conflicts_blocked")

    if prevention.parameter_overlap_warning:
        analysis.prevention_rules_applied.append("parameter_overlap_warning")
        for first, second in itertools.combinations(sorted(claimed), 2):
            owners_a, owners_b = claimed[first], claimed[second]
            if set(owners_a) == set(owners_b) and len(owners_a) == 1:
                continue
            if routes_overlap(first, second):
                owners = list(dict.fromkeys([*owners_a, *owners_b]))
                analysis.overlaps.append(RouteOverlap(routes=[first, second], endpoints=owners))
                analysis.warnings.append(f"Parameterised routes overlap: {first} and {second}")

    locked = prevention.api_contract_locked or prevention.backward_compatibility_required
    for rule in ("api_contract_locked", "response_schema_stable", "backward_compatibility_required"):
        if getattr(prevention, rule):
            analysis.prevention_rules_applied.append(rule)
    if locked and previous is not None:
        analysis.drift = _route_drift(endpoint_routes, previous)
        analysis.warnings.extend(analysis.drift)

    if analysis.errors:
        analysis.api_compatibility = "conflicts"
    elif analysis.warnings:
        analysis.api_compatibility = "warnings"
    return analysis


def endpoint_route_table(feature_spec: FeatureSpecification) -> dict[str, dict[str, str]]:
    """``route -> handler`` per endpoint: the contract routes plus the primary route."""
    table: dict[str, dict[str, str]] = {}
    for name, endpoint in feature_spec.spec.endpoints.items():
        routes = dict(endpoint.contract.routes)
        if endpoint.route and endpoint.route not in routes:
            routes[endpoint.route] = ""
        table[name] = routes
    return table


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


def build_feature_report(
    feature_spec: FeatureSpecification,
    records: dict[str, EndpointValidationRecord],
    logic_texts: dict[str, str],
    scope: ValidationScope,
    conventions: ConventionsConfig,
    previous: FeatureValidationReport | None = None,
) -> FeatureValidationReport:
    """Roll one feature's endpoint records up into a FeatureValidationReport.

    Averages and the compliance rate are taken over the endpoints that were
    actually validated in this run.
    """
    document = feature_spec.spec
    targets = document.validation_targets

    validated = list(records.values())
    compliant = [r for r in validated if r.overall_reliable and not r.blocking_issues]
    average = round_half_up(
        sum(r.reliability_score for r in validated) / len(validated)
    ) if validated else 0
    rate = round_half_up(len(compliant) / len(validated) * 100) if validated else 0
    summary = ComplianceSummary(
        total_endpoints=len(document.endpoints),
        compliant_endpoints=len(compliant),
        compliance_rate=rate,
        average_reliability=average,
        meets_minimum_threshold=average >= targets.thresholds.overall_reliability_minimum,
    )

    breaking = analyze_breaking_changes(
        endpoint_route_table(feature_spec), targets.breaking_change_prevention, previous
    )
    duplication = analyze_duplication(logic_texts, acceptable_patterns(targets, conventions))

    entries: list[FeatureEndpointEntry] = []
    for name, endpoint in document.endpoints.items():
        record = records.get(name)
        ok = record is not None and record.overall_reliable and not record.blocking_issues
        entries.append(
            FeatureEndpointEntry(
                name=name,
                route=endpoint.route,
                status=COMPLIANT if ok else ISSUES_FOUND,
                reliability_score=record.reliability_score if record else 0,
                blocking_issues=list(record.blocking_issues) if record else [],
                routes=dict(endpoint.contract.routes),
                files={
                    "contract": endpoint.contract.file,
                    "logic": endpoint.logic.file,
                    "test": endpoint.test.file,
                },
            )
        )

    passed = bool(validated) and len(compliant) == len(validated) and not breaking.has_conflicts
    return FeatureValidationReport(
        feature=feature_spec.feature,
        status=COMPLIANT if passed else ISSUES_FOUND,
        generated_at=utc_timestamp(),
        validation_scope=scope.type.value,
        compliance_summary=summary,
        breaking_change_analysis=breaking,
        duplication_analysis=duplication,
        endpoints=entries,
    )


async def load_previous_report(
    root: Path, features_dir: str, feature: str
) -> FeatureValidationReport | None:
    """The last written report, or None when absent or unreadable."""
    path = Path(root) / report_path(features_dir, feature)

    def _read() -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    text = await asyncio.to_thread(_read)
    if text is None:
        return None
    try:
        return FeatureValidationReport.model_validate_json(text)
    except ValidationError as exc:
        logger.warning("Ignoring unreadable previous report %s: %s", path, exc)
        return None


async def write_feature_report(
    root: Path, features_dir: str, report: FeatureValidationReport
) -> Path:
    target = Path(root) / report_path(features_dir, report.feature)
    await asyncio.to_thread(write_json, target, report.model_dump(mode="json"))
    logger.debug("Wrote feature report %s", target)
    return target
