"""The five pipeline stages and their static registry.

Every stage receives the run's ValidationScope unchanged and returns a
StageResult; the runner adds timings and turns exceptions into crashed
stages.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from fluxgate.extract.source import extract_test_names
from fluxgate.output.feature import (
    build_feature_report,
    load_previous_report,
    write_feature_report,
)
from fluxgate.output.manifest import build_manifest, write_manifest
from fluxgate.pipeline.commands import run_command
from fluxgate.pipeline.typecheck import TypeChecker
from fluxgate.reconcile.messages import missing_messages
from fluxgate.reconcile.reconciler import reconcile_tests
from fluxgate.reporting import ReportSink
from fluxgate.schemas.pipeline import (
    EndpointScore,
    GateConfig,
    ScopeType,
    StageResult,
    StageStatus,
    ValidationScope,
)
from fluxgate.schemas.report import FeatureValidationReport
from fluxgate.schemas.scoring import EndpointValidationRecord
from fluxgate.schemas.spec import FeatureSpecification
from fluxgate.validate.endpoint import EndpointValidator, artifact_names
from fluxgate.validate.lint import Severity, lint_file, lint_test
from fluxgate.validate.sources import (
    ArtifactNotFoundError,
    ArtifactUnreadableError,
    SourceReader,
    default_endpoint_folder,
    discover_endpoints,
    discover_features,
    join,
)
from fluxgate.validate.specs import UnknownEndpointError, load_specifications

logger = logging.getLogger(__name__)


@dataclass
class StageContext:
    """Collaborators shared by every stage of one run."""

    root: Path
    config: GateConfig
    reader: SourceReader
    sink: ReportSink
    type_checker: TypeChecker
    validator: EndpointValidator
    endpoint_scores: list[EndpointScore] = field(default_factory=list)


class Stage(ABC):
    """One step of the validation pipeline."""

    name: str = ""
    description: str = ""

    @abstractmethod
    async def run(self, scope: ValidationScope, ctx: StageContext) -> StageResult:
        ...

    def passed(self, message: str, details: list[str] | None = None) -> StageResult:
        return StageResult(name=self.name, message=message, details=details or [])

    def failed(self, message: str, details: list[str] | None = None) -> StageResult:
        return StageResult(
            name=self.name, status=StageStatus.FAILED, message=message, details=details or []
        )


async def scoped_endpoints(
    scope: ValidationScope, ctx: StageContext
) -> list[tuple[str, str]]:
    """``(feature, endpoint)`` pairs on disk that ``scope`` visits."""
    features_dir = ctx.config.features_dir
    conventions = ctx.config.conventions
    if scope.type in (ScopeType.ENDPOINT, ScopeType.FILE):
        return [(scope.feature, scope.endpoint)]
    if scope.type == ScopeType.FEATURE:
        features = [scope.feature]
    else:
        features = [
            f
            for f in await discover_features(ctx.reader, features_dir)
            if not f.startswith(("_", "."))
        ]
    pairs: list[tuple[str, str]] = []
    for feature in features:
        for endpoint in await discover_endpoints(ctx.reader, features_dir, feature, conventions):
            pairs.append((feature, endpoint))
    return pairs


def _no_endpoints(stage: Stage, scope: ValidationScope) -> StageResult:
    return stage.failed(f"No endpoints found for {scope.description}")


class TypesStage(Stage):
    name = "types"
    description = "Type checking"

    async def run(self, scope: ValidationScope, ctx: StageContext) -> StageResult:
        if not ctx.config.type_check.enabled:
            return StageResult(
                name=self.name, status=StageStatus.SKIPPED, message="Type checking disabled"
            )
        result = await ctx.type_checker.run(scope)
        if result.success:
            return self.passed(f"No type errors in {scope.description}")
        if result.timed_out:
            return self.failed("Type checker timed out", result.diagnostics)
        count = result.error_count or len(result.diagnostics)
        return self.failed(f"{count} type error(s) in {scope.description}", result.diagnostics)


class LintStage(Stage):
    name = "lint"
    description = "Structural lint of endpoint files"

    async def run(self, scope: ValidationScope, ctx: StageContext) -> StageResult:
        conventions = ctx.config.conventions
        extension = PurePosixPath(conventions.logic_suffix).suffix
        endpoints = await scoped_endpoints(scope, ctx)
        if not endpoints:
            return _no_endpoints(self, scope)

        errors: list[str] = []
        files_checked = 0
        for feature, endpoint in endpoints:
            folder = default_endpoint_folder(ctx.config.features_dir, feature, endpoint)
            if scope.type == ScopeType.FILE:
                names = [scope.file]
            else:
                names = [n for n in await ctx.reader.list_files(folder) if n.endswith(extension)]
            for name in names:
                path = join(folder, name)
                try:
                    text = await ctx.reader.read_optional(path)
                except ArtifactUnreadableError as exc:
                    errors.append(f"{path}: {exc.reason}")
                    continue
                if text is None:
                    errors.append(f"{path}: file not found")
                    continue
                files_checked += 1
                for violation in lint_file(name, text, path, conventions):
                    if violation.severity == Severity.ERROR:
                        errors.append(str(violation))
                    elif violation.severity == Severity.WARNING:
                        ctx.sink.warning(str(violation))
                    else:
                        logger.debug("Suggestion: %s", violation)

        if errors:
            return self.failed(f"{len(errors)} lint error(s) in {files_checked} file(s)", errors)
        return self.passed(f"{files_checked} file(s) clean")


class ContractStage(Stage):
    name = "contract"
    description = "Contract and implementation consistency"

    async def run(self, scope: ValidationScope, ctx: StageContext) -> StageResult:
        endpoints = await scoped_endpoints(scope, ctx)
        if not endpoints:
            return _no_endpoints(self, scope)

        errors: list[str] = []
        for feature, endpoint in endpoints:
            check = await ctx.validator.check_contract(feature, endpoint)
            errors.extend(f"{check.key}: {issue}" for issue in check.errors)
            for warning in check.warnings:
                ctx.sink.warning(f"{check.key}: {warning}")

        if errors:
            return self.failed(f"{len(errors)} contract issue(s)", errors)
        return self.passed(f"{len(endpoints)} endpoint contract(s) consistent")


class TestStage(Stage):
    """Static test checks, then the configured test command if any."""

    __test__ = False

    name = "test"
    description = "Test structure and execution"

    async def run(self, scope: ValidationScope, ctx: StageContext) -> StageResult:
        endpoints = await scoped_endpoints(scope, ctx)
        if not endpoints:
            return _no_endpoints(self, scope)

        errors: list[str] = []
        for feature, endpoint in endpoints:
            check = await ctx.validator.check_contract(feature, endpoint)
            if check.test_text is None:
                missing = check.test_file or f"{endpoint}{ctx.config.conventions.test_suffix}"
                errors.append(f"{check.key}: Missing test file: {missing}")
                continue
            for violation in lint_test(check.test_text, check.test_file):
                if violation.severity == Severity.ERROR:
                    errors.append(str(violation))
            implemented = extract_test_names(check.test_text)
            missing_tests = reconcile_tests(check.declared_tests, implemented)
            errors.extend(f"{check.key}: {m}" for m in missing_messages(missing_tests))

        if errors:
            return self.failed(f"{len(errors)} test issue(s)", errors)

        command = ctx.config.test_command
        if not command.command:
            return self.passed(f"{len(endpoints)} test file(s) structurally valid")

        args = [part.replace("{target}", scope.target) for part in command.command]
        args = [part for part in args if part]
        outcome = await run_command(args, ctx.root, command.timeout)
        if not outcome.ok:
            tail = outcome.output.strip().splitlines()[-20:]
            reason = "timed out" if outcome.timed_out else f"exited with {outcome.returncode}"
            return self.failed(f"Test command {reason}", tail)
        return self.passed(f"{len(endpoints)} test file(s) valid, test command passed")


class ComplianceStage(Stage):
    name = "compliance"
    description = "Specification compliance and reliability scoring"

    async def run(self, scope: ValidationScope, ctx: StageContext) -> StageResult:
        config = ctx.config
        try:
            specifications = await load_specifications(
                ctx.reader, config.features_dir, scope, config.notes_suffix
            )
        except (ArtifactNotFoundError, ArtifactUnreadableError, UnknownEndpointError) as exc:
            return self.failed(str(exc))
        if not specifications:
            return self.failed(f"No specification documents found for {scope.description}")

        semaphore = asyncio.Semaphore(config.max_parallel_endpoints)
        jobs = [
            self._validate_endpoint(feature_spec, endpoint, scope, ctx, semaphore)
            for feature_spec in specifications
            for endpoint in feature_spec.spec.endpoints
            if scope.includes_endpoint(feature_spec.feature, endpoint)
        ]
        records = await asyncio.gather(*jobs)

        details: list[str] = []
        for record in records:
            ctx.endpoint_scores.append(
                EndpointScore(
                    feature=record.feature,
                    endpoint=record.endpoint,
                    reliability_score=record.reliability_score,
                    overall_reliable=record.overall_reliable,
                    scoring_policy=record.scoring_policy.value,
                )
            )
            if record.overall_reliable and not record.blocking_issues:
                ctx.sink.success(f"{record.key}: {record.reliability_score}% reliable")
                continue
            details.append(
                f"{record.key}: {record.reliability_score}% "
                f"(minimum {record.minimum_threshold}%, {record.scoring_policy} policy)"
            )
            details.extend(f"{record.key}: {issue}" for issue in record.blocking_issues)

        if scope.feature_or_broader:
            for feature_spec in specifications:
                feature_records = {r.endpoint: r for r in records if r.feature == feature_spec.feature}
                report = await self._feature_report(feature_spec, feature_records, scope, ctx)
                details.extend(
                    f"{feature_spec.feature}: {error}"
                    for error in report.breaking_change_analysis.errors
                )
                for warning in report.breaking_change_analysis.warnings:
                    ctx.sink.warning(f"{feature_spec.feature}: {warning}")
        else:
            ctx.sink.info("Skipping feature report generation for endpoint-level validation")

        if details:
            return self.failed(f"{len(records)} endpoint(s) validated, issues found", details)
        return self.passed(f"{len(records)} endpoint(s) compliant")

    async def _validate_endpoint(
        self,
        feature_spec: FeatureSpecification,
        endpoint: str,
        scope: ValidationScope,
        ctx: StageContext,
        semaphore: asyncio.Semaphore,
    ) -> EndpointValidationRecord:
        spec = feature_spec.spec.endpoints[endpoint]
        targets = feature_spec.spec.validation_targets
        async with semaphore:
            try:
                record = await ctx.validator.validate(
                    feature_spec.feature, endpoint, spec, targets
                )
            except Exception as exc:
                logger.exception("Validation of %s/%s raised", feature_spec.feature, endpoint)
                record = ctx.validator.failed_record(
                    feature_spec.feature, endpoint, spec, targets, exc
                )
            manifest = build_manifest(
                record,
                spec,
                scope,
                targets,
                files=artifact_names(endpoint, spec, ctx.config.conventions),
            )
            folder = ctx.validator.endpoint_folder(feature_spec.feature, endpoint, spec)
            await write_manifest(ctx.root, folder, manifest)
        return record

    async def _feature_report(
        self,
        feature_spec: FeatureSpecification,
        records: dict[str, EndpointValidationRecord],
        scope: ValidationScope,
        ctx: StageContext,
    ) -> FeatureValidationReport:
        config = ctx.config
        logic_texts: dict[str, str] = {}
        for endpoint, spec in feature_spec.spec.endpoints.items():
            folder = ctx.validator.endpoint_folder(feature_spec.feature, endpoint, spec)
            logic_file = artifact_names(endpoint, spec, config.conventions)["logic"]
            try:
                text = await ctx.reader.read_optional(join(folder, logic_file))
            except ArtifactUnreadableError as exc:
                logger.warning("Leaving %s out of duplication analysis: %s", endpoint, exc)
                continue
            if text is not None:
                logic_texts[endpoint] = text

        previous = await load_previous_report(ctx.root, config.features_dir, feature_spec.feature)
        report = build_feature_report(
            feature_spec, records, logic_texts, scope, config.conventions, previous
        )
        path = await write_feature_report(ctx.root, config.features_dir, report)
        ctx.sink.info(f"Feature report written to {path}")
        return report


STAGE_REGISTRY: dict[str, type[Stage]] = {
    TypesStage.name: TypesStage,
    LintStage.name: LintStage,
    ContractStage.name: ContractStage,
    TestStage.name: TestStage,
    ComplianceStage.name: ComplianceStage,
}
