"""Endpoint validator: one EndpointValidationRecord per endpoint.

Steps run in a fixed order and the record's ``state`` follows them::

    NOT_STARTED -> FILES_CHECKED -> FACTS_EXTRACTED -> RECONCILED -> SCORED -> AGGREGATED

A missing contract or logic file, or any required file that cannot be
decoded, jumps straight to AGGREGATED with a zero score and one blocking
issue per such file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial

from fluxgate.extract.contract import extract_contract_facts
from fluxgate.extract.source import extract_logic_facts, extract_test_names
from fluxgate.reconcile.messages import missing_messages
from fluxgate.schemas.pipeline import ConventionsConfig, GateConfig
from fluxgate.schemas.scoring import (
    DimensionStatus,
    EndpointValidationRecord,
    ValidationStep,
)
from fluxgate.schemas.spec import EndpointSpec, ValidationTargets
from fluxgate.scoring.context import EndpointSources, ScoringContext
from fluxgate.scoring.dimensions import DIMENSION_CHECKS
from fluxgate.scoring.scorer import (
    collect_blocking_issues,
    guarded,
    is_deployable,
    minimum_threshold,
    resolve_policy,
    weighted_reliability,
)
from fluxgate.validate.passes import (
    implementation_pass,
    implementation_warnings,
    specification_pass,
    specification_warnings,
)
from fluxgate.validate.sources import (
    ArtifactUnreadableError,
    SourceReader,
    default_endpoint_folder,
    discover_helpers,
    join,
)

logger = logging.getLogger(__name__)


@dataclass
class ContractCheck:
    """Contract -> implementation findings for one endpoint, without a specification."""

    feature: str
    endpoint: str
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    test_file: str = ""
    test_text: str | None = None
    declared_tests: list[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.feature}/{self.endpoint}"


def artifact_names(
    endpoint: str, spec: EndpointSpec, conventions: ConventionsConfig
) -> dict[str, str]:
    """Contract, logic and test file names, falling back to ``{endpoint}.<kind>.ts``."""
    return {
        "contract": spec.contract.file or f"{endpoint}{conventions.contract_suffix}",
        "logic": spec.logic.file or f"{endpoint}{conventions.logic_suffix}",
        "test": spec.test.file or f"{endpoint}{conventions.test_suffix}",
    }


class EndpointValidator:
    """Validates endpoints of one project tree against their specification entries."""

    def __init__(self, reader: SourceReader, config: GateConfig) -> None:
        self._reader = reader
        self._config = config

    @property
    def conventions(self) -> ConventionsConfig:
        return self._config.conventions

    def endpoint_folder(self, feature: str, endpoint: str, spec: EndpointSpec) -> str:
        return spec.folder or default_endpoint_folder(self._config.features_dir, feature, endpoint)

    async def validate(
        self,
        feature: str,
        endpoint: str,
        spec: EndpointSpec,
        targets: ValidationTargets,
    ) -> EndpointValidationRecord:
        record = self._new_record(feature, endpoint, spec, targets)
        sources = await self._read_required(feature, endpoint, spec, record)
        if sources is None:
            record.short_circuited = True
            record.state = ValidationStep.AGGREGATED
            logger.info("%s short-circuited: %s", record.key, "; ".join(record.blocking_issues))
            return record
        record.state = ValidationStep.FILES_CHECKED

        ctx = await self._extract(endpoint, spec, targets, sources)
        record.state = ValidationStep.FACTS_EXTRACTED

        try:
            self._reconcile(ctx)
        except Exception as exc:
            logger.warning("Reconciliation of %s raised: %s", record.key, exc, exc_info=True)
            record.blocking_issues.append(f"Reconciliation error: {exc}")
        record.state = ValidationStep.RECONCILED

        record.dimensions = {
            dimension: guarded(dimension, partial(check, ctx))
            for dimension, check in DIMENSION_CHECKS.items()
        }
        record.state = ValidationStep.SCORED

        self._aggregate(record, ctx, targets)
        record.state = ValidationStep.AGGREGATED
        logger.debug(
            "%s scored %d (%s)", record.key, record.reliability_score, record.scoring_policy
        )
        return record

    def failed_record(
        self,
        feature: str,
        endpoint: str,
        spec: EndpointSpec,
        targets: ValidationTargets,
        error: Exception,
    ) -> EndpointValidationRecord:
        """A zero-score record for an endpoint whose validation raised."""
        record = self._new_record(feature, endpoint, spec, targets)
        record.blocking_issues.append(f"Validation error: {error}")
        record.short_circuited = True
        record.state = ValidationStep.AGGREGATED
        return record

    def _new_record(
        self, feature: str, endpoint: str, spec: EndpointSpec, targets: ValidationTargets
    ) -> EndpointValidationRecord:
        policy = resolve_policy(targets, self._config.scoring_policy)
        return EndpointValidationRecord(
            feature=feature,
            endpoint=endpoint,
            route=spec.route,
            scoring_policy=policy,
            minimum_threshold=minimum_threshold(targets, policy),
        )

    async def check_contract(self, feature: str, endpoint: str) -> ContractCheck:
        """Reconcile an endpoint's contract against its implementation only.

        Used by the contract and test stages, which run without a
        specification document.
        """
        spec = EndpointSpec()
        check = ContractCheck(feature=feature, endpoint=endpoint)
        scratch = EndpointValidationRecord(feature=feature, endpoint=endpoint)
        sources = await self._read_required(feature, endpoint, spec, scratch)
        if sources is None:
            check.errors.extend(scratch.blocking_issues)
            return check

        ctx = await self._extract(endpoint, spec, ValidationTargets(), sources)
        implementation = implementation_pass(
            ctx.contract_facts,
            ctx.logic_facts,
            sources,
            ctx.implemented_tests,
            self.conventions,
        )
        for part in implementation.contract_results():
            check.errors.extend(missing_messages(part))
        if sources.test is not None:
            check.errors.extend(missing_messages(implementation.tests))
        elif ctx.contract_facts.tests:
            check.errors.append(f"Missing test file: {sources.test_file}")
        check.warnings = implementation_warnings(implementation)

        check.test_file = join(sources.folder, sources.test_file)
        check.test_text = sources.test
        check.declared_tests = list(ctx.contract_facts.tests)
        return check

    async def _read_required(
        self,
        feature: str,
        endpoint: str,
        spec: EndpointSpec,
        record: EndpointValidationRecord,
    ) -> EndpointSources | None:
        folder = self.endpoint_folder(feature, endpoint, spec)
        names = artifact_names(endpoint, spec, self.conventions)

        texts: dict[str, str | None] = {}
        unreadable: dict[str, str] = {}
        for kind in ("contract", "logic", "test"):
            try:
                texts[kind] = await self._reader.read_optional(join(folder, names[kind]))
            except ArtifactUnreadableError as exc:
                texts[kind] = None
                unreadable[kind] = exc.reason
        for kind in ("contract", "logic"):
            if texts[kind] is None and kind not in unreadable:
                record.blocking_issues.append(f"Missing {kind} file: {names[kind]}")
        record.blocking_issues.extend(
            f"Unreadable {kind} file: {names[kind]} ({reason})"
            for kind, reason in unreadable.items()
        )
        if texts["contract"] is None or texts["logic"] is None or unreadable:
            return None

        return EndpointSources(
            folder=folder,
            contract_file=names["contract"],
            logic_file=names["logic"],
            test_file=names["test"],
            contract=texts["contract"],
            logic=texts["logic"],
            test=texts["test"],
        )

    async def _extract(
        self,
        endpoint: str,
        spec: EndpointSpec,
        targets: ValidationTargets,
        sources: EndpointSources,
    ) -> ScoringContext:
        conventions = self.conventions
        contract_facts = extract_contract_facts(sources.contract)
        logic_facts = extract_logic_facts(
            sources.logic,
            conventions.import_prefix,
            conventions.event_emit_call,
            conventions.event_subscribe_call,
        )

        sources.helper_files = await discover_helpers(
            self._reader, sources.folder, endpoint, conventions.helper_suffix
        )
        for name in dict.fromkeys([*contract_facts.helpers, *sources.helper_files]):
            try:
                text = await self._reader.read_optional(join(sources.folder, name))
            except ArtifactUnreadableError as exc:
                logger.warning("Skipping helper %s: %s", name, exc)
                continue
            if text is not None:
                sources.helpers[name] = text

        return ScoringContext(
            endpoint=endpoint,
            spec=spec,
            targets=targets,
            conventions=conventions,
            sources=sources,
            contract_facts=contract_facts,
            logic_facts=logic_facts,
            implemented_tests=extract_test_names(sources.test) if sources.test else [],
        )

    def _reconcile(self, ctx: ScoringContext) -> None:
        ctx.specification = specification_pass(ctx.spec, ctx.contract_facts, ctx.logic_facts)
        ctx.implementation = implementation_pass(
            ctx.contract_facts,
            ctx.logic_facts,
            ctx.sources,
            ctx.implemented_tests,
            ctx.conventions,
            spec=ctx.spec,
            required_modules=ctx.targets.voilajsx_patterns.required_modules,
        )

    def _aggregate(
        self,
        record: EndpointValidationRecord,
        ctx: ScoringContext,
        targets: ValidationTargets,
    ) -> None:
        scores = {dimension: result.score for dimension, result in record.dimensions.items()}
        record.reliability_score = weighted_reliability(scores, targets.weights)
        record.overall_reliable = is_deployable(
            scores, record.reliability_score, record.scoring_policy, record.minimum_threshold
        )

        blocking = collect_blocking_issues(record.dimensions, targets.thresholds)
        record.blocking_issues.extend(blocking)

        warnings = specification_warnings(ctx.specification)
        warnings.extend(implementation_warnings(ctx.implementation))
        for result in record.dimensions.values():
            if result.status == DimensionStatus.WARN:
                warnings.extend(issue for issue in result.issues if issue not in blocking)
        record.warnings = warnings
