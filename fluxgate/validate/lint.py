"""Structural lint rules for endpoint artifacts.

Each rule looks at one file's text and yields LintViolations. Only
``error`` severity fails the lint stage; warnings and suggestions are
reported.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

from fluxgate.extract.source import extract_exports
from fluxgate.schemas.pipeline import ConventionsConfig


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    SUGGESTION = "suggestion"


@dataclass
class LintViolation:
    severity: Severity
    file: str
    message: str

    def __str__(self) -> str:
        return f"{self.file}: {self.message}"


CONTRACT_PROPERTIES = ("routes", "imports", "publishes", "subscribes")
_MODULE_VARIABLES = ("utils", "err", "config", "auth", "secure", "cache", "db")
_USER_INPUT = ("req.params", "req.body", "req.query")


def file_kind(file_name: str, conventions: ConventionsConfig) -> str | None:
    """``contract``, ``logic``, ``test`` or ``helper`` from the file suffix."""
    suffixes = {
        "contract": conventions.contract_suffix,
        "logic": conventions.logic_suffix,
        "test": conventions.test_suffix,
        "helper": conventions.helper_suffix,
    }
    for kind, suffix in suffixes.items():
        if file_name.endswith(suffix):
            return kind
    return None


def lint_contract(text: str, path: str) -> list[LintViolation]:
    violations: list[LintViolation] = []
    if not re.search(r"export\s+const\s+CONTRACT\b", text):
        violations.append(
            LintViolation(Severity.ERROR, path, "Contract file must export const CONTRACT")
        )
    for prop in CONTRACT_PROPERTIES:
        if not re.search(rf"['\"]?{prop}['\"]?\s*:", text):
            violations.append(
                LintViolation(Severity.WARNING, path, f"Contract should include {prop} property")
            )
    if not re.search(r"['\"]?helpers['\"]?\s*:", text):
        violations.append(
            LintViolation(
                Severity.SUGGESTION,
                path,
                "Consider adding helpers array to CONTRACT for helper file declarations",
            )
        )
    return violations


def _framework_patterns(text: str, path: str, conventions: ConventionsConfig) -> list[LintViolation]:
    violations: list[LintViolation] = []
    prefix = conventions.import_prefix
    if re.search(rf"from\s+['\"]{re.escape(prefix)}['\"]", text):
        violations.append(
            LintViolation(
                Severity.ERROR,
                path,
                f"Use direct module imports: {prefix}/<module> instead of {prefix}",
            )
        )
    for name in _MODULE_VARIABLES:
        declared = re.search(rf"\bconst\s+{name}\s*=", text)
        initialised = re.search(rf"\bconst\s+{name}\s*=\s*\w+\.get\(", text)
        if declared and not initialised:
            violations.append(
                LintViolation(
                    Severity.WARNING, path, f'Variable "{name}" should use .get() pattern'
                )
            )
    return violations


def _security_patterns(text: str, path: str) -> list[LintViolation]:
    violations: list[LintViolation] = []
    if any(token in text for token in _USER_INPUT) and "secure.input" not in text:
        violations.append(
            LintViolation(
                Severity.ERROR, path, "User input should be sanitized with secure.input()"
            )
        )
    if re.search(r"\bthrow\s", text) and "err." not in text:
        violations.append(
            LintViolation(
                Severity.WARNING,
                path,
                "Use framework error types (err.badRequest, err.notFound, etc.)",
            )
        )
    return violations


def lint_logic(text: str, path: str, conventions: ConventionsConfig) -> list[LintViolation]:
    violations = _framework_patterns(text, path, conventions)
    violations.extend(_security_patterns(text, path))
    if not re.search(r"export\s+(?:async\s+)?function\s+\w+", text):
        violations.append(
            LintViolation(Severity.ERROR, path, "Logic file should export at least one function")
        )
    if "utils.uuid()" not in text:
        violations.append(
            LintViolation(
                Severity.SUGGESTION,
                path,
                "Consider generating request IDs with utils.uuid() for correlation",
            )
        )
    if "log." in text and conventions.correlation_token not in text:
        violations.append(
            LintViolation(
                Severity.SUGGESTION,
                path,
                f"Include {conventions.correlation_token} in log entries for correlation",
            )
        )
    return violations


def lint_test(text: str, path: str) -> list[LintViolation]:
    violations: list[LintViolation] = []
    if "describe(" not in text:
        violations.append(
            LintViolation(Severity.ERROR, path, "Test file should have describe blocks")
        )
    if not re.search(r"(?<![\w.])(?:test|it)\s*\(", text):
        violations.append(
            LintViolation(Severity.ERROR, path, "Test file should have test cases")
        )
    if ".expect(200)" in text and ".expect(400)" not in text:
        violations.append(
            LintViolation(
                Severity.SUGGESTION,
                path,
                "Consider testing error scenarios (400, 404, etc.) for comprehensive coverage",
            )
        )
    return violations


def lint_helper(text: str, path: str, conventions: ConventionsConfig) -> list[LintViolation]:
    violations = _framework_patterns(text, path, conventions)
    violations.extend(_security_patterns(text, path))
    if not extract_exports(text):
        violations.append(
            LintViolation(
                Severity.ERROR, path, "Helper file should export at least one function or constant"
            )
        )
    return violations


def lint_file(
    file_name: str, text: str, path: str, conventions: ConventionsConfig
) -> list[LintViolation]:
    kind = file_kind(file_name, conventions)
    if kind == "contract":
        return lint_contract(text, path)
    if kind == "logic":
        return lint_logic(text, path, conventions)
    if kind == "test":
        return lint_test(text, path)
    if kind == "helper":
        return lint_helper(text, path, conventions)
    return [
        LintViolation(
            Severity.ERROR, path, "Filename should follow {endpoint}.{type}.ts convention"
        )
    ]
