"""Tests for pipeline stages and the fail-fast runner.

Runs the real stages against a project tree written to tmp_path; the
type checker is stubbed or disabled so no compiler is needed.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from fluxgate.pipeline import PipelineRunner, resolve_scope
from fluxgate.pipeline.commands import CommandResult
from fluxgate.pipeline.stages import STAGE_REGISTRY, Stage
from fluxgate.pipeline.typecheck import TypeChecker
from fluxgate.reporting import RecordingSink, ReportLevel
from fluxgate.schemas.pipeline import (
    StageResult,
    StageStatus,
    TestCommandConfig,
    TypeCheckConfig,
    TypeCheckResult,
)
from fluxgate.validate import EndpointValidator

_STAGE_RUN_COMMAND = "fluxgate.pipeline.stages.run_command"


class StubTypeChecker(TypeChecker):
    def __init__(self, result: TypeCheckResult) -> None:
        self.result = result
        self.scopes = []

    async def run(self, scope):
        self.scopes.append(scope)
        return self.result


class ExplodingStage(Stage):
    name = "explode"
    description = "Always raises"

    async def run(self, scope, ctx):
        raise RuntimeError("kaboom")


class RecordingStage(Stage):
    name = "after"
    description = "Records that it ran"
    ran = False

    async def run(self, scope, ctx):
        RecordingStage.ran = True
        return self.passed("ran")


def _runner(project, config, sink=None, **kwargs) -> PipelineRunner:
    return PipelineRunner(project.root, config, sink or RecordingSink(), **kwargs)


# ── Full pipeline ───────────────────────────────────────────────


class TestFullPipeline:
    @pytest.mark.asyncio
    async def test_compliant_project_passes(self, project, gate_config):
        sink = RecordingSink()
        result = await _runner(project, gate_config, sink).run(resolve_scope(None))

        assert result.success, [s.details for s in result.stages]
        assert [s.name for s in result.stages] == gate_config.stage_order
        assert result.stages[0].status == StageStatus.SKIPPED
        assert all(s.ok for s in result.stages)
        assert result.failed_stage is None
        assert result.next_steps == []
        assert [(e.endpoint, e.reliability_score) for e in result.endpoint_scores] == [
            ("hello", 100)
        ]
        assert "greeting/hello: 100% reliable" in sink.messages(ReportLevel.SUCCESS)
        assert len(sink.messages(ReportLevel.STEP)) == 5

    @pytest.mark.asyncio
    async def test_writes_manifest_and_feature_report(self, project, gate_config):
        await _runner(project, gate_config).run(resolve_scope(None))

        manifest_file = project.folder("greeting", "hello") / "hello.manifest.json"
        manifest = json.loads(manifest_file.read_text())
        assert manifest["status"] == "compliant"
        assert manifest["overall_reliability"] == "100%"
        assert manifest["validation_scope"] == "full"

        report_file = project.root / "src/features/greeting/greeting.report.json"
        report = json.loads(report_file.read_text())
        assert report["status"] == "compliant"
        assert report["compliance_summary"]["compliance_rate"] == 100

    @pytest.mark.asyncio
    async def test_fail_fast_on_missing_test_file(self, project, gate_config):
        (project.folder("greeting", "hello") / "hello.test.ts").unlink()
        sink = RecordingSink()
        result = await _runner(project, gate_config, sink).run(resolve_scope(None))

        assert not result.success
        assert result.failed_stage == "contract"
        assert [s.name for s in result.stages] == ["types", "lint", "contract"]
        assert result.stages[-1].details == ["greeting/hello: Missing test file: hello.test.ts"]
        assert "greeting/hello: Missing test file: hello.test.ts" in sink.messages(
            ReportLevel.ERROR
        )
        assert result.next_steps == [
            "Fix the contract issues listed above",
            "Rerun it alone: fluxgate stage contract",
            "Narrow the run to one feature: fluxgate check <feature>",
        ]

    @pytest.mark.asyncio
    async def test_endpoint_scope_skips_feature_report(self, project, gate_config):
        sink = RecordingSink()
        result = await _runner(project, gate_config, sink).run(resolve_scope("greeting/hello"))

        assert result.success
        assert (
            "Skipping feature report generation for endpoint-level validation"
            in sink.messages(ReportLevel.INFO)
        )
        assert not (project.root / "src/features/greeting/greeting.report.json").exists()
        assert (project.folder("greeting", "hello") / "hello.manifest.json").exists()


# ── Runner mechanics ────────────────────────────────────────────


class TestRunnerMechanics:
    @pytest.mark.asyncio
    async def test_crashing_stage(self, project, gate_config):
        RecordingStage.ran = False
        registry = {"explode": ExplodingStage, "after": RecordingStage}
        runner = _runner(project, gate_config, registry=registry)
        result = await runner.run(resolve_scope("greeting"), ["explode", "after"])

        crashed = result.stages[0]
        assert crashed.status == StageStatus.CRASHED
        assert crashed.message == "explode crashed: kaboom"
        assert crashed.error == "kaboom"
        assert "RuntimeError: kaboom" in crashed.traceback
        assert result.failed_stage == "explode"
        assert len(result.stages) == 1
        assert not RecordingStage.ran
        assert result.next_steps[-1] == (
            "Narrow the run to one endpoint: fluxgate check greeting/<endpoint>"
        )

    def test_unknown_stage(self, project, gate_config):
        with pytest.raises(ValueError, match="Unknown stage"):
            _runner(project, gate_config).resolve_stages(["types", "nope"])

    def test_registry_order(self):
        assert list(STAGE_REGISTRY) == ["types", "lint", "contract", "test", "compliance"]

    @pytest.mark.asyncio
    async def test_pipeline_finished_reported(self, project, gate_config):
        sink = RecordingSink()
        result = await _runner(project, gate_config, sink).run(resolve_scope(None), ["lint"])
        finished = [e for e in sink.events if e.level == ReportLevel.PIPELINE_FINISHED]
        assert len(finished) == 1
        assert finished[0].message == result.run_id
        assert finished[0].data["success"] is True


# ── Individual stages ───────────────────────────────────────────


class TestTypesStage:
    @pytest.mark.asyncio
    async def test_type_errors_fail(self, project, gate_config):
        config = gate_config.model_copy(update={"type_check": TypeCheckConfig()})
        checker = StubTypeChecker(
            TypeCheckResult(success=False, diagnostics=["a.ts(1,1): error TS1: bad"], error_count=1)
        )
        result = await _runner(project, config, type_checker=checker).run(
            resolve_scope("greeting"), ["types"]
        )
        stage = result.stages[0]
        assert stage.status == StageStatus.FAILED
        assert stage.message == "1 type error(s) in feature 'greeting'"
        assert stage.details == ["a.ts(1,1): error TS1: bad"]
        assert checker.scopes[0].feature == "greeting"

    @pytest.mark.asyncio
    async def test_clean_types_pass(self, project, gate_config):
        config = gate_config.model_copy(update={"type_check": TypeCheckConfig()})
        checker = StubTypeChecker(TypeCheckResult(success=True))
        result = await _runner(project, config, type_checker=checker).run(
            resolve_scope(None), ["types"]
        )
        assert result.success
        assert result.stages[0].status == StageStatus.PASSED


class TestLintStage:
    @pytest.mark.asyncio
    async def test_file_scope_lints_only_target(self, project, gate_config):
        (project.folder("greeting", "hello") / "hello.test.ts").write_text("const nothing = 1;")
        result = await _runner(project, gate_config).run(
            resolve_scope("greeting/hello.logic.ts"), ["lint"]
        )
        assert result.success
        assert result.stages[0].message == "1 file(s) clean"

    @pytest.mark.asyncio
    async def test_lint_errors_fail(self, project, gate_config):
        (project.folder("greeting", "hello") / "hello.test.ts").write_text("const nothing = 1;")
        result = await _runner(project, gate_config).run(resolve_scope("greeting"), ["lint"])
        stage = result.stages[0]
        assert stage.status == StageStatus.FAILED
        assert stage.details == [
            "src/features/greeting/hello/hello.test.ts: Test file should have describe blocks",
            "src/features/greeting/hello/hello.test.ts: Test file should have test cases",
        ]

    @pytest.mark.asyncio
    async def test_no_endpoints(self, builder, gate_config):
        (builder.root / "src/features").mkdir(parents=True)
        result = await _runner(builder, gate_config).run(resolve_scope(None), ["lint"])
        assert result.stages[0].message == "No endpoints found for full project"


class TestTestStage:
    @pytest.mark.asyncio
    async def test_unimplemented_test_fails(self, builder, gate_config):
        builder.add_endpoint("greeting", "hello")
        test_file = builder.folder("greeting", "hello") / "hello.test.ts"
        test_file.write_text(
            "describe('hello', () => {\n  test('should return greeting', () => {});\n});\n"
        )
        result = await _runner(builder, gate_config).run(resolve_scope("greeting/hello"), ["test"])
        assert result.stages[0].details == [
            'greeting/hello: Contract test not implemented: "should handle validation error"'
        ]

    @pytest.mark.asyncio
    async def test_command_target_substitution(self, project, gate_config):
        config = gate_config.model_copy(
            update={"test_command": TestCommandConfig(command=["npx", "vitest", "run", "{target}"])}
        )
        mock = AsyncMock(return_value=CommandResult(0, "ok"))
        with patch(_STAGE_RUN_COMMAND, new=mock):
            result = await _runner(project, config).run(resolve_scope("greeting"), ["test"])
        assert result.success
        assert mock.call_args.args[0] == ["npx", "vitest", "run", "greeting"]

    @pytest.mark.asyncio
    async def test_empty_target_dropped_from_command(self, project, gate_config):
        config = gate_config.model_copy(
            update={"test_command": TestCommandConfig(command=["npx", "vitest", "run", "{target}"])}
        )
        mock = AsyncMock(return_value=CommandResult(0, "ok"))
        with patch(_STAGE_RUN_COMMAND, new=mock):
            await _runner(project, config).run(resolve_scope(None), ["test"])
        assert mock.call_args.args[0] == ["npx", "vitest", "run"]

    @pytest.mark.asyncio
    async def test_failing_command(self, project, gate_config):
        config = gate_config.model_copy(
            update={"test_command": TestCommandConfig(command=["npx", "vitest", "run"])}
        )
        mock = AsyncMock(return_value=CommandResult(3, "1 test failed\n"))
        with patch(_STAGE_RUN_COMMAND, new=mock):
            result = await _runner(project, config).run(resolve_scope(None), ["test"])
        stage = result.stages[0]
        assert stage.status == StageStatus.FAILED
        assert stage.message == "Test command exited with 3"
        assert stage.details == ["1 test failed"]


class TestComplianceStage:
    @pytest.mark.asyncio
    async def test_route_conflict_fails_feature(self, builder, gate_config):
        route = "GET /api/greeting/hello"
        builder.add_endpoint("greeting", "hello")
        builder.add_endpoint("greeting", "bye", route=route)
        builder.write_spec(
            "greeting",
            {
                "hello": builder.endpoint_spec("greeting", "hello"),
                "bye": builder.endpoint_spec("greeting", "bye", route=route),
            },
        )
        result = await _runner(builder, gate_config).run(
            resolve_scope("greeting"), ["compliance"]
        )
        stage = result.stages[0]
        assert stage.status == StageStatus.FAILED
        assert stage.details == [
            f"greeting: Route conflict: {route} used by hello, bye"
        ]
        assert all(e.overall_reliable for e in result.endpoint_scores)

    @pytest.mark.asyncio
    async def test_missing_specification(self, builder, gate_config):
        builder.add_endpoint("greeting", "hello")
        result = await _runner(builder, gate_config).run(
            resolve_scope("greeting"), ["compliance"]
        )
        stage = result.stages[0]
        assert stage.status == StageStatus.FAILED
        assert stage.message.startswith("Artifact not found:")

    @pytest.mark.asyncio
    async def test_no_specifications_in_project(self, builder, gate_config):
        builder.add_endpoint("greeting", "hello")
        result = await _runner(builder, gate_config).run(resolve_scope(None), ["compliance"])
        assert result.stages[0].message == (
            "No specification documents found for full project"
        )

    @pytest.mark.asyncio
    async def test_unreliable_endpoint_details(self, project, gate_config):
        (project.folder("greeting", "hello") / "hello.test.ts").unlink()
        result = await _runner(project, gate_config).run(
            resolve_scope("greeting/hello"), ["compliance"]
        )
        stage = result.stages[0]
        assert stage.status == StageStatus.FAILED
        assert stage.details[0] == "greeting/hello: 75% (minimum 90%, strict policy)"
        assert "greeting/hello: Missing test file: hello.test.ts" in stage.details
        assert result.endpoint_scores[0].reliability_score == 75

    @pytest.mark.asyncio
    async def test_undecodable_endpoint_fails_alone(self, builder, gate_config):
        builder.add_endpoint("greeting", "hello")
        broken = builder.add_endpoint("greeting", "bye")
        (broken / "bye.logic.ts").write_bytes(b"export function list() {}\n\xff\xfe broken\n")
        builder.write_spec(
            "greeting",
            {
                "hello": builder.endpoint_spec("greeting", "hello"),
                "bye": builder.endpoint_spec("greeting", "bye"),
            },
        )
        result = await _runner(builder, gate_config).run(
            resolve_scope("greeting"), ["compliance"]
        )
        stage = result.stages[0]
        assert stage.status == StageStatus.FAILED
        assert (
            "greeting/bye: Unreadable logic file: bye.logic.ts (not valid UTF-8 at byte 26)"
            in stage.details
        )
        assert [(e.endpoint, e.reliability_score) for e in result.endpoint_scores] == [
            ("hello", 100),
            ("bye", 0),
        ]
        assert (builder.folder("greeting", "hello") / "hello.manifest.json").exists()
        assert (builder.folder("greeting", "bye") / "bye.manifest.json").exists()
        assert (builder.root / "src/features/greeting/greeting.report.json").exists()

    @pytest.mark.asyncio
    async def test_raising_endpoint_becomes_failed_record(self, builder, gate_config):
        builder.add_endpoint("greeting", "hello")
        builder.add_endpoint("greeting", "bye")
        builder.write_spec(
            "greeting",
            {
                "hello": builder.endpoint_spec("greeting", "hello"),
                "bye": builder.endpoint_spec("greeting", "bye"),
            },
        )
        original = EndpointValidator.validate

        async def flaky(self, feature, endpoint, spec, targets):
            if endpoint == "bye":
                raise RuntimeError("scanner exploded")
            return await original(self, feature, endpoint, spec, targets)

        with patch.object(EndpointValidator, "validate", flaky):
            result = await _runner(builder, gate_config).run(
                resolve_scope("greeting"), ["compliance"]
            )

        stage = result.stages[0]
        assert stage.status == StageStatus.FAILED
        assert "greeting/bye: Validation error: scanner exploded" in stage.details
        assert [(e.endpoint, e.reliability_score) for e in result.endpoint_scores] == [
            ("hello", 100),
            ("bye", 0),
        ]
        assert (builder.folder("greeting", "hello") / "hello.manifest.json").exists()

