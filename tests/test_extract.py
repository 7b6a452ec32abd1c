"""Tests for the scanner and fact extraction."""

from fluxgate.extract import (
    contract_body,
    contract_import_statements,
    extract_contract_facts,
    extract_exports,
    extract_logic_facts,
    extract_test_names,
    find_block,
    normalize_test_name,
    quoted_pairs,
    quoted_strings,
)
from fluxgate.extract.scanner import match_span, strip_comments
from fluxgate.reconcile import reconcile_tests

_CONTRACT = """
// Greeting contract
export const CONTRACT = {
  routes: {
    "GET /api/greeting": "list",
    'GET /api/greeting/:name': 'get', // by name
  },
  imports: {
    framework: ['logging', 'utils'],
    external: ["express"],
  },
  publishes: ['greeting.sent'],
  subscribes: [],
  helpers: ['greeting.format.helper.ts'],
  tests: [
    'should return welcome message',
    "should handle { braces } in names",
  ],
} as const;
"""


class TestScanner:
    def test_strip_comments_keeps_strings(self):
        text = "a // gone\nb /* gone */ c 'x // kept'"
        stripped = strip_comments(text)
        assert "gone" not in stripped
        assert "'x // kept'" in stripped

    def test_match_span_ignores_brackets_in_strings(self):
        text = "{ a: '}', b: [1, 2] }"
        assert match_span(text, 0) == len(text) - 1

    def test_match_span_unbalanced_returns_none(self):
        assert match_span("{ a: [1, 2 }", 0) is None
        assert match_span("abc", 0) is None

    def test_find_block_top_level_only(self):
        body = "outer: { routes: { 'x': 'y' } }, routes: { 'a': 'b' }"
        assert quoted_pairs(find_block(body, "routes")) == {"a": "b"}

    def test_find_block_missing(self):
        assert find_block("tests: []", "routes") is None
        assert find_block(None, "routes") is None

    def test_quoted_helpers_accept_none(self):
        assert quoted_strings(None) == []
        assert quoted_pairs(None) == {}

    def test_quoted_helpers_unescape(self):
        assert quoted_strings(r"['it\'s', `a\`b`]") == ["it's", "a`b"]
        assert quoted_pairs(r"{ 'GET \'x\'': 'list' }") == {"GET 'x'": "list"}


class TestContractFacts:
    def test_contract_body_found(self):
        body = contract_body(_CONTRACT)
        assert body is not None
        assert "routes" in body

    def test_extracts_every_section(self):
        facts = extract_contract_facts(_CONTRACT)
        assert facts.routes == {
            "GET /api/greeting": "list",
            "GET /api/greeting/:name": "get",
        }
        assert facts.imports.framework == {"logging", "utils"}
        assert facts.imports.external == {"express"}
        assert facts.publishes == {"greeting.sent"}
        assert facts.subscribes == set()
        assert facts.helpers == ["greeting.format.helper.ts"]
        assert facts.tests == [
            "should return welcome message",
            "should handle { braces } in names",
        ]

    def test_appkit_key_is_framework_alias(self):
        text = "export const CONTRACT = { imports: { appkit: ['logger'] } };"
        assert extract_contract_facts(text).imports.framework == {"logger"}

    def test_missing_sections_are_empty(self):
        facts = extract_contract_facts("export const CONTRACT = { routes: {} };")
        assert facts.routes == {}
        assert facts.tests == []
        assert facts.imports.is_empty()

    def test_no_contract_object(self):
        facts = extract_contract_facts("const nothing = 1;")
        assert facts.routes == {}
        assert facts.tests == []

    def test_default_export_fallback(self):
        facts = extract_contract_facts("export default { routes: { 'GET /x': 'x' } };")
        assert facts.routes == {"GET /x": "x"}

    def test_contract_import_statements(self):
        text = "import { x } from 'y';\n// import z from 'q';\nconst a = require('b');\n"
        found = contract_import_statements(text)
        assert "import { x } from 'y';" in found
        assert "require('b')" in found
        assert len(found) == 2


class TestSourceFacts:
    _LOGIC = """
import type { Request, Response } from 'express';
import { loggerClass } from '@voilajsx/appkit/logging';
import { utilClass as U, errorClass } from '@voilajsx/appkit/utils';
import { formatName } from './greeting.format.helper';
import 'reflect-metadata';

const log = loggerClass.get('greeting');

export async function list(req: Request, res: Response) {
  eventBus.emit('greeting.sent', {});
  eventBus.on("user.created", () => {});
}

export const get = async () => {};
// export function commented() {}
"""

    def test_exports(self):
        assert extract_exports(self._LOGIC) == {"list", "get"}

    def test_framework_and_external_imports(self):
        facts = extract_logic_facts(self._LOGIC, "@voilajsx/appkit")
        assert facts.imports.framework == {"logging", "utils"}
        assert facts.imports.external == {"express", "reflect-metadata"}

    def test_relative_imports_skipped(self):
        facts = extract_logic_facts(self._LOGIC, "@voilajsx/appkit")
        assert not any(path.startswith(".") for path in facts.imports.external)

    def test_bindings_use_local_names(self):
        facts = extract_logic_facts(self._LOGIC, "@voilajsx/appkit")
        assert facts.bindings["logging"] == ["loggerClass"]
        assert facts.bindings["utils"] == ["U", "errorClass"]

    def test_events(self):
        facts = extract_logic_facts(self._LOGIC, "@voilajsx/appkit")
        assert facts.publishes == {"greeting.sent"}
        assert facts.subscribes == {"user.created"}

    def test_custom_event_calls(self):
        text = "bus.publish('a.b'); bus.listen('c.d');"
        facts = extract_logic_facts(text, "@x/y", "bus.publish", "bus.listen")
        assert facts.publishes == {"a.b"}
        assert facts.subscribes == {"c.d"}

    def test_bare_prefix_import_is_neither(self):
        facts = extract_logic_facts("import { a } from '@voilajsx/appkit';", "@voilajsx/appkit")
        assert facts.imports.is_empty()


class TestTestNames:
    def test_test_and_it_calls(self):
        text = """
describe('suite', () => {
  test('should return greeting', () => {});
  it("handles errors", () => {});
  test.only(`runs only this`, () => {});
  it.skip('is skipped', () => {});
  expect(result.test('not a test')).toBe(true);
  // test('commented out', () => {});
});
"""
        assert extract_test_names(text) == [
            "should return greeting",
            "handles errors",
            "runs only this",
            "is skipped",
        ]

    def test_normalize(self):
        assert normalize_test_name("  Should   Return\tGreeting ") == "should return greeting"

    def test_escaped_quotes_resolved(self):
        text = "test('doesn\\'t crash', () => {});\nit(\"says \\\"hi\\\"\", () => {});\n"
        assert extract_test_names(text) == ["doesn't crash", 'says "hi"']

    def test_escaped_test_name_matches_contract(self):
        contract = extract_contract_facts(
            "export const CONTRACT = { tests: [\"doesn't crash\"] };"
        )
        implemented = extract_test_names("test('doesn\\'t crash', () => {});")
        result = reconcile_tests(contract.tests, implemented)
        assert result.missing == []
        assert result.extra == []
