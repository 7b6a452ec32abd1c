"""Tests for the endpoint validator and contract checks."""

from __future__ import annotations

import pytest

from fluxgate.schemas.scoring import (
    Dimension,
    DimensionStatus,
    ScoringPolicy,
    ValidationStep,
)
from fluxgate.schemas.spec import EndpointSpec, ScoringWeights, ValidationTargets
from fluxgate.validate import ArtifactUnreadableError, EndpointValidator, FileSystemReader


def _validator(builder, config) -> EndpointValidator:
    return EndpointValidator(FileSystemReader(builder.root), config)


def _spec(builder, endpoint: str = "hello", **overrides) -> EndpointSpec:
    return EndpointSpec.model_validate(builder.endpoint_spec("greeting", endpoint, **overrides))


class TestValidate:
    @pytest.mark.asyncio
    async def test_compliant_endpoint(self, project, gate_config):
        record = await _validator(project, gate_config).validate(
            "greeting", "hello", _spec(project), ValidationTargets()
        )
        assert record.state == ValidationStep.AGGREGATED
        assert record.reliability_score == 100
        assert record.overall_reliable
        assert record.blocking_issues == []
        assert record.warnings == []
        assert record.scoring_policy == ScoringPolicy.STRICT
        assert set(record.dimensions) == set(Dimension)
        assert record.route == "GET /api/greeting/hello"

    @pytest.mark.asyncio
    async def test_missing_logic_short_circuits(self, project, gate_config):
        (project.folder("greeting", "hello") / "hello.logic.ts").unlink()
        record = await _validator(project, gate_config).validate(
            "greeting", "hello", _spec(project), ValidationTargets()
        )
        assert record.short_circuited
        assert record.state == ValidationStep.AGGREGATED
        assert record.reliability_score == 0
        assert not record.overall_reliable
        assert record.dimensions == {}
        assert record.blocking_issues == ["Missing logic file: hello.logic.ts"]

    @pytest.mark.asyncio
    async def test_missing_contract_and_logic(self, builder, gate_config):
        builder.folder("greeting", "hello").mkdir(parents=True)
        record = await _validator(builder, gate_config).validate(
            "greeting", "hello", _spec(builder), ValidationTargets()
        )
        assert record.blocking_issues == [
            "Missing contract file: hello.contract.ts",
            "Missing logic file: hello.logic.ts",
        ]

    @pytest.mark.asyncio
    async def test_undecodable_logic_short_circuits(self, project, gate_config):
        prefix = b"export function list() {}\n"
        logic = project.folder("greeting", "hello") / "hello.logic.ts"
        logic.write_bytes(prefix + b"\xff\xfe broken\n")
        record = await _validator(project, gate_config).validate(
            "greeting", "hello", _spec(project), ValidationTargets()
        )
        assert record.short_circuited
        assert record.state == ValidationStep.AGGREGATED
        assert record.reliability_score == 0
        assert record.dimensions == {}
        assert record.blocking_issues == [
            f"Unreadable logic file: hello.logic.ts (not valid UTF-8 at byte {len(prefix)})"
        ]

    @pytest.mark.asyncio
    async def test_undecodable_helper_is_skipped(self, project, gate_config):
        helper = project.folder("greeting", "hello") / "hello.format.helper.ts"
        helper.write_bytes(b"\xff export function format() {}\n")
        record = await _validator(project, gate_config).validate(
            "greeting", "hello", _spec(project), ValidationTargets()
        )
        assert not record.short_circuited
        assert set(record.dimensions) == set(Dimension)

    @pytest.mark.asyncio
    async def test_validating_twice_gives_identical_results(
        self, builder, gate_config, logic_source
    ):
        logic = logic_source("list").replace(
            "export async function list",
            "import dayjs from 'dayjs';\n"
            "import { nanoid } from 'nanoid';\n\n"
            "export function helperOnly() {\n"
            "  eventBus.emit('greeting.viewed');\n"
            "  eventBus.emit('greeting.listed');\n"
            "  eventBus.on('user.created', () => {});\n"
            "}\n\n"
            "export async function list",
        )
        builder.add_endpoint("greeting", "hello", logic=logic)
        builder.write_spec("greeting", {"hello": builder.endpoint_spec("greeting", "hello")})
        validator = _validator(builder, gate_config)

        first = await validator.validate(
            "greeting", "hello", _spec(builder), ValidationTargets()
        )
        second = await validator.validate(
            "greeting", "hello", _spec(builder), ValidationTargets()
        )

        assert first.warnings
        assert {d: s.model_dump() for d, s in first.dimensions.items()} == {
            d: s.model_dump() for d, s in second.dimensions.items()
        }
        assert first.reliability_score == second.reliability_score
        assert first.overall_reliable == second.overall_reliable
        assert first.blocking_issues == second.blocking_issues
        assert first.warnings == second.warnings

    @pytest.mark.asyncio
    async def test_missing_test_file(self, builder, gate_config):
        builder.add_endpoint("greeting", "hello", with_test_file=False)
        record = await _validator(builder, gate_config).validate(
            "greeting", "hello", _spec(builder), ValidationTargets()
        )
        test_result = record.dimensions[Dimension.TEST_VALIDATION]
        assert test_result.status == DimensionStatus.FAIL
        assert test_result.score == 0
        assert "Missing test file: hello.test.ts" in record.blocking_issues
        assert record.reliability_score == 75
        assert not record.overall_reliable

    @pytest.mark.asyncio
    async def test_explicit_weights_select_configurable_policy(self, project, gate_config):
        targets = ValidationTargets(scoring_weights=ScoringWeights())
        record = await _validator(project, gate_config).validate(
            "greeting", "hello", _spec(project), targets
        )
        assert record.scoring_policy == ScoringPolicy.CONFIGURABLE
        assert record.minimum_threshold == 90
        assert record.overall_reliable

    @pytest.mark.asyncio
    async def test_config_forces_policy(self, project, gate_config):
        config = gate_config.model_copy(update={"scoring_policy": "configurable"})
        record = await _validator(project, config).validate(
            "greeting", "hello", _spec(project), ValidationTargets()
        )
        assert record.scoring_policy == ScoringPolicy.CONFIGURABLE

    @pytest.mark.asyncio
    async def test_folder_defaults_when_spec_has_none(self, project, gate_config):
        spec = _spec(project)
        spec.folder = ""
        record = await _validator(project, gate_config).validate(
            "greeting", "hello", spec, ValidationTargets()
        )
        assert not record.short_circuited
        assert record.reliability_score == 100

    @pytest.mark.asyncio
    async def test_undeclared_helper_warns(self, project, gate_config):
        helper = project.folder("greeting", "hello") / "hello.format.helper.ts"
        helper.write_text("export function format(name: string) { return name; }\n")
        record = await _validator(project, gate_config).validate(
            "greeting", "hello", _spec(project), ValidationTargets()
        )
        assert (
            "Helper file 'hello.format.helper.ts' exists but not declared in contract helpers"
            in record.warnings
        )
        assert record.overall_reliable


class TestFileSystemReader:
    @pytest.mark.asyncio
    async def test_undecodable_file(self, tmp_path):
        (tmp_path / "bad.ts").write_bytes(b"ok\xff")
        reader = FileSystemReader(tmp_path)
        with pytest.raises(ArtifactUnreadableError) as info:
            await reader.read_optional("bad.ts")
        assert info.value.path == "bad.ts"
        assert info.value.reason == "not valid UTF-8 at byte 2"

    @pytest.mark.asyncio
    async def test_absent_file_is_none(self, tmp_path):
        assert await FileSystemReader(tmp_path).read_optional("nope.ts") is None


class TestCheckContract:
    @pytest.mark.asyncio
    async def test_consistent_contract(self, project, gate_config):
        check = await _validator(project, gate_config).check_contract("greeting", "hello")
        assert check.errors == []
        assert check.key == "greeting/hello"
        assert check.test_file == "src/features/greeting/hello/hello.test.ts"
        assert check.test_text is not None
        assert len(check.declared_tests) == 2

    @pytest.mark.asyncio
    async def test_missing_test_file_with_declared_tests(self, builder, gate_config):
        builder.add_endpoint("greeting", "hello", with_test_file=False)
        check = await _validator(builder, gate_config).check_contract("greeting", "hello")
        assert check.errors == ["Missing test file: hello.test.ts"]
        assert check.test_text is None

    @pytest.mark.asyncio
    async def test_unexported_handler(self, builder, gate_config, logic_source):
        builder.add_endpoint("greeting", "hello", logic=logic_source("show"))
        check = await _validator(builder, gate_config).check_contract("greeting", "hello")
        assert (
            "Route handler 'list' declared in contract but not exported by logic file"
            in check.errors
        )
        assert "Function 'show' exported but not mapped to any contract route" in check.warnings

    @pytest.mark.asyncio
    async def test_missing_files(self, builder, gate_config):
        check = await _validator(builder, gate_config).check_contract("greeting", "nowhere")
        assert check.errors == [
            "Missing contract file: nowhere.contract.ts",
            "Missing logic file: nowhere.logic.ts",
        ]
