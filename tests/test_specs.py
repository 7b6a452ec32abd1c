"""Tests for specification loading and project discovery."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from fluxgate.pipeline.scope import resolve_scope
from fluxgate.schemas.pipeline import ConventionsConfig
from fluxgate.schemas.spec import SpecificationDocument
from fluxgate.validate import FileSystemReader
from fluxgate.validate.sources import (
    ArtifactNotFoundError,
    discover_endpoints,
    discover_helpers,
    is_endpoint_helper,
    join,
)
from fluxgate.validate.specs import (
    UnknownEndpointError,
    load_specifications,
    parse_specification,
    strip_notes,
)

_FEATURES = "src/features"


class TestStripNotes:
    def test_nested_notes_removed(self):
        raw = {
            "_notes": "top",
            "endpoints": {"hello": {"route": "GET /", "route_notes": "why"}},
            "list": [{"a_notes": 1, "b": 2}],
        }
        assert strip_notes(raw) == {
            "endpoints": {"hello": {"route": "GET /"}},
            "list": [{"b": 2}],
        }

    def test_custom_suffix(self):
        assert strip_notes({"x_doc": 1, "y": 2}, "_doc") == {"y": 2}


class TestParseSpecification:
    def test_valid_document(self):
        document = parse_specification(
            '{"_notes": "x", "endpoints": {"hello": {"route": "GET /hello",'
            ' "test": {"test_cases": ["a", {"name": "b", "priority": "high"}]}}}}'
        )
        assert isinstance(document, SpecificationDocument)
        cases = document.endpoints["hello"].test.test_cases
        assert [c.name for c in cases] == ["a", "b"]
        assert cases[1].metadata == {"priority": "high"}
        assert not document.validation_targets.explicitly_configured

    def test_invalid_json(self):
        with pytest.raises(ValueError, match="Invalid specification JSON"):
            parse_specification("{not json")

    def test_not_an_object(self):
        with pytest.raises(ValueError, match="JSON object"):
            parse_specification("[1, 2]")

    def test_schema_mismatch(self):
        with pytest.raises(ValidationError):
            parse_specification('{"endpoints": {"hello": {"test": {"coverage_target": 150}}}}')

    def test_appkit_imports_alias(self):
        document = parse_specification(
            '{"endpoints": {"hello": {"contract": {"imports": {"appkit": ["logger"]}}}}}'
        )
        assert document.endpoints["hello"].contract.imports.framework == ["logger"]

    def test_null_endpoints_dropped(self):
        document = parse_specification('{"endpoints": {"hello": null}}')
        assert document.endpoints == {}


class TestLoadSpecifications:
    @pytest.mark.asyncio
    async def test_full_scope_skips_features_without_spec(self, project):
        project.add_endpoint("drafts", "idea")
        specs = await load_specifications(
            FileSystemReader(project.root), _FEATURES, resolve_scope(None)
        )
        assert [s.feature for s in specs] == ["greeting"]
        assert specs[0].path == "src/features/greeting/greeting.implementation.json"

    @pytest.mark.asyncio
    async def test_feature_scope_requires_spec(self, project):
        project.add_endpoint("drafts", "idea")
        with pytest.raises(ArtifactNotFoundError):
            await load_specifications(
                FileSystemReader(project.root), _FEATURES, resolve_scope("drafts")
            )

    @pytest.mark.asyncio
    async def test_unknown_endpoint(self, project):
        with pytest.raises(UnknownEndpointError, match="nowhere"):
            await load_specifications(
                FileSystemReader(project.root), _FEATURES, resolve_scope("greeting/nowhere")
            )

    @pytest.mark.asyncio
    async def test_endpoint_scope(self, project):
        specs = await load_specifications(
            FileSystemReader(project.root), _FEATURES, resolve_scope("greeting/hello")
        )
        assert list(specs[0].spec.endpoints) == ["hello"]


class TestDiscovery:
    @pytest.mark.asyncio
    async def test_discover_endpoints(self, project):
        project.folder("greeting", "assets").mkdir(parents=True)
        (project.folder("greeting", "assets") / "logo.svg").write_text("<svg/>")
        endpoints = await discover_endpoints(
            FileSystemReader(project.root), _FEATURES, "greeting", ConventionsConfig()
        )
        assert endpoints == ["hello"]

    @pytest.mark.asyncio
    async def test_discover_helpers(self, project):
        folder = project.folder("greeting", "hello")
        (folder / "hello.helper.ts").write_text("export const a = 1;")
        (folder / "hello.format.helper.ts").write_text("export const b = 1;")
        (folder / "other.helper.ts").write_text("export const c = 1;")
        helpers = await discover_helpers(
            FileSystemReader(project.root), "src/features/greeting/hello", "hello"
        )
        assert helpers == ["hello.format.helper.ts", "hello.helper.ts"]

    def test_is_endpoint_helper(self):
        assert is_endpoint_helper("hello.helper.ts", "hello")
        assert is_endpoint_helper("hello.x.helper.ts", "hello")
        assert not is_endpoint_helper("hellos.helper.ts", "hello")
        assert not is_endpoint_helper("hello.logic.ts", "hello")

    @pytest.mark.asyncio
    async def test_reader_missing_file(self, tmp_path):
        reader = FileSystemReader(tmp_path)
        with pytest.raises(ArtifactNotFoundError):
            await reader.read_text("missing.ts")
        assert await reader.read_optional("missing.ts") is None
        assert await reader.list_files("nowhere") == []

    def test_join(self):
        assert join("src/features", "", "greeting") == "src/features/greeting"
        assert join() == ""
