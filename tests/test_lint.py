"""Tests for the structural lint rules."""

from __future__ import annotations

from fluxgate.schemas.pipeline import ConventionsConfig
from fluxgate.validate.lint import (
    LintViolation,
    Severity,
    file_kind,
    lint_contract,
    lint_file,
    lint_helper,
    lint_logic,
    lint_test,
)

_CONVENTIONS = ConventionsConfig()


def _by_severity(violations: list[LintViolation], severity: Severity) -> list[str]:
    return [v.message for v in violations if v.severity == severity]


class TestFileKind:
    def test_known_suffixes(self):
        assert file_kind("hello.contract.ts", _CONVENTIONS) == "contract"
        assert file_kind("hello.logic.ts", _CONVENTIONS) == "logic"
        assert file_kind("hello.test.ts", _CONVENTIONS) == "test"
        assert file_kind("hello.format.helper.ts", _CONVENTIONS) == "helper"
        assert file_kind("index.ts", _CONVENTIONS) is None

    def test_unknown_file_is_an_error(self):
        violations = lint_file("index.ts", "", "src/index.ts", _CONVENTIONS)
        assert len(violations) == 1
        assert violations[0].severity == Severity.ERROR
        assert str(violations[0]) == (
            "src/index.ts: Filename should follow {endpoint}.{type}.ts convention"
        )


class TestContractLint:
    def test_clean_contract(self, contract_source):
        text = contract_source("GET /x", "list", ["a"])
        assert lint_contract(text, "x.contract.ts") == []

    def test_missing_export(self):
        violations = lint_contract("const CONTRACT = {};", "x.contract.ts")
        assert "Contract file must export const CONTRACT" in _by_severity(
            violations, Severity.ERROR
        )
        warnings = _by_severity(violations, Severity.WARNING)
        assert "Contract should include routes property" in warnings
        assert len(warnings) == 4
        assert _by_severity(violations, Severity.SUGGESTION)


class TestLogicLint:
    def test_clean_logic(self, logic_source):
        violations = lint_logic(logic_source("list"), "x.logic.ts", _CONVENTIONS)
        assert violations == []

    def test_bare_framework_import(self, logic_source):
        text = "import { utils } from '@voilajsx/appkit';\n" + logic_source("list")
        errors = _by_severity(lint_logic(text, "x.logic.ts", _CONVENTIONS), Severity.ERROR)
        assert errors == [
            "Use direct module imports: @voilajsx/appkit/<module> instead of @voilajsx/appkit"
        ]

    def test_unsanitised_input(self, logic_source):
        text = logic_source("list").replace("try {", "const name = req.body.name;\n  try {")
        errors = _by_severity(lint_logic(text, "x.logic.ts", _CONVENTIONS), Severity.ERROR)
        assert errors == ["User input should be sanitized with secure.input()"]

    def test_module_variable_without_get(self):
        text = "const utils = makeUtils();\nexport function list() {}\n"
        warnings = _by_severity(lint_logic(text, "x.logic.ts", _CONVENTIONS), Severity.WARNING)
        assert warnings == ['Variable "utils" should use .get() pattern']

    def test_plain_throw(self):
        text = "export function list() { throw new Error('x'); }\n"
        warnings = _by_severity(lint_logic(text, "x.logic.ts", _CONVENTIONS), Severity.WARNING)
        assert warnings == ["Use framework error types (err.badRequest, err.notFound, etc.)"]

    def test_no_exported_function(self):
        errors = _by_severity(lint_logic("const a = 1;", "x.logic.ts", _CONVENTIONS), Severity.ERROR)
        assert errors == ["Logic file should export at least one function"]


class TestTestLint:
    def test_clean_tests(self, test_source):
        assert lint_test(test_source("list", ["a"]), "x.test.ts") == []

    def test_missing_structure(self):
        errors = _by_severity(lint_test("const x = 1;", "x.test.ts"), Severity.ERROR)
        assert errors == [
            "Test file should have describe blocks",
            "Test file should have test cases",
        ]

    def test_happy_path_only(self):
        text = "describe('x', () => { it('ok', () => request.get('/').expect(200)); });"
        suggestions = _by_severity(lint_test(text, "x.test.ts"), Severity.SUGGESTION)
        assert len(suggestions) == 1


class TestHelperLint:
    def test_helper_without_exports(self):
        errors = _by_severity(
            lint_helper("function a() {}", "x.helper.ts", _CONVENTIONS), Severity.ERROR
        )
        assert errors == ["Helper file should export at least one function or constant"]

    def test_helper_with_export(self):
        assert lint_helper("export const a = 1;", "x.helper.ts", _CONVENTIONS) == []
