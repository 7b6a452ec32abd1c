"""Fact extraction from logic, helper and test files.

Each scan is an independent regular expression over comment-stripped
text; results are unioned. Nothing here knows about the specification.
"""

from __future__ import annotations

import re

from fluxgate.extract.scanner import strip_comments, unescape_quotes
from fluxgate.schemas.facts import FactSet, ImportFacts

_IDENT = r"[A-Za-z_$][\w$]*"
_EXPORT_FUNCTION = re.compile(rf"export\s+(?:async\s+)?function\s*\*?\s*({_IDENT})")
_EXPORT_CONST = re.compile(rf"export\s+const\s+({_IDENT})")
_TEST_CALL = re.compile(
    r"""(?<![\w$.])(?:test|it)(?:\.only|\.skip)?\s*\(\s*(["'`])((?:\\.|(?!\1)[^\\])*)\1"""
)
_IMPORT_FROM = re.compile(r"""\bimport\s+(?:type\s+)?([^;'"`]*?)\s*\bfrom\s*(['"])([^'"]+)\2""")
_SIDE_EFFECT_IMPORT = re.compile(r"""\bimport\s*(['"])([^'"]+)\1""")
_WHITESPACE = re.compile(r"\s+")


def extract_exports(text: str) -> set[str]:
    """Names of exported functions and exported constants."""
    code = strip_comments(text)
    names = {m.group(1) for m in _EXPORT_FUNCTION.finditer(code)}
    names.update(m.group(1) for m in _EXPORT_CONST.finditer(code))
    return names


def extract_test_names(text: str) -> list[str]:
    """First quoted argument of every ``test(...)`` / ``it(...)`` call."""
    return [unescape_quotes(m.group(2)) for m in _TEST_CALL.finditer(strip_comments(text))]


def normalize_test_name(name: str) -> str:
    """Lower-case, collapse whitespace runs and trim."""
    return _WHITESPACE.sub(" ", name.lower()).strip()


def _binding_names(clause: str) -> list[str]:
    """Local names introduced by an import clause such as ``a, { b as c }``."""
    names: list[str] = []
    clause = clause.strip()
    named = re.search(r"\{([^}]*)\}", clause)
    if named:
        for part in named.group(1).split(","):
            part = part.strip()
            if not part:
                continue
            if part.startswith("type "):
                part = part[5:].strip()
            names.append(part.split(" as ")[-1].strip())
        clause = clause[: named.start()] + clause[named.end() :]
    for part in clause.split(","):
        part = part.strip()
        if not part:
            continue
        if part.startswith("*"):
            names.append(part.split(" as ")[-1].strip())
        else:
            names.append(part)
    return [n for n in names if re.fullmatch(_IDENT, n)]


def _call_arguments(code: str, call: str) -> set[str]:
    pattern = re.compile(re.escape(call) + r"""\s*\(\s*(["'`])([^"'`]+)\1""")
    return {m.group(2) for m in pattern.finditer(code)}


def extract_logic_facts(
    text: str,
    framework_prefix: str,
    emit_call: str = "eventBus.emit",
    subscribe_call: str = "eventBus.on",
) -> FactSet:
    """Exports, imports, events and framework bindings of a logic file.

    ``'<framework_prefix>/<module>'`` imports count as framework modules;
    other non-relative specifiers are external. Relative imports are
    neither.
    """
    code = strip_comments(text)
    framework: set[str] = set()
    external: set[str] = set()
    bindings: dict[str, list[str]] = {}

    specifiers: list[tuple[str, str]] = [
        (m.group(3), m.group(1)) for m in _IMPORT_FROM.finditer(code)
    ]
    specifiers.extend((m.group(2), "") for m in _SIDE_EFFECT_IMPORT.finditer(code))

    prefix = framework_prefix.rstrip("/") + "/"
    for path, clause in specifiers:
        if path.startswith("."):
            continue
        if path.startswith(prefix):
            module = path[len(prefix) :].split("/")[0]
            if not module:
                continue
            framework.add(module)
            known = bindings.setdefault(module, [])
            for name in _binding_names(clause):
                if name not in known:
                    known.append(name)
        elif path != framework_prefix:
            external.add(path)

    return FactSet(
        imports=ImportFacts(framework=framework, external=external),
        exports=extract_exports(code),
        publishes=_call_arguments(code, emit_call),
        subscribes=_call_arguments(code, subscribe_call),
        bindings=bindings,
    )
