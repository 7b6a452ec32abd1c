"""Fact extraction from contract files.

A contract is a pure-data module exporting one object literal::

    export const CONTRACT = {
      routes: { "GET /hello": "list" },
      imports: { framework: ["logging"], external: ["express"] },
      tests: ["should return welcome message"],
      helpers: [], publishes: [], subscribes: [],
    } as const;

Sections are read independently; an absent section is simply empty.
"""

from __future__ import annotations

import logging
import re

from fluxgate.extract.scanner import (
    find_block,
    match_span,
    quoted_pairs,
    quoted_strings,
    strip_comments,
)
from fluxgate.schemas.facts import FactSet, ImportFacts

logger = logging.getLogger(__name__)

_CONTRACT_DECL = re.compile(r"export\s+const\s+CONTRACT\b[^=;]*=\s*")
_EXPORTED_OBJECT = re.compile(r"export\s+(?:const\s+[A-Za-z_$][\w$]*[^=;]*=|default)\s*")
_IMPORT_STATEMENT = re.compile(r"^[ \t]*import\b[^\n]*", re.MULTILINE)
_REQUIRE_CALL = re.compile(r"\brequire\s*\(\s*['\"`][^'\"`]+['\"`]\s*\)")


def contract_body(text: str) -> str | None:
    """Inside of the exported CONTRACT object, else of the first exported object literal."""
    for pattern in (_CONTRACT_DECL, _EXPORTED_OBJECT):
        for found in pattern.finditer(text):
            start = found.end()
            if start < len(text) and text[start] == "{":
                end = match_span(text, start)
                if end is not None:
                    return text[start + 1 : end]
    return None


def extract_contract_facts(text: str) -> FactSet:
    """Read the routes, imports, tests, helpers and events a contract declares."""
    body = contract_body(text)
    if body is None:
        logger.debug("No exported contract object found")
        return FactSet()

    imports_block = find_block(body, "imports")
    framework_block = find_block(imports_block, "framework")
    if framework_block is None:
        framework_block = find_block(imports_block, "appkit")

    return FactSet(
        routes=quoted_pairs(find_block(body, "routes")),
        imports=ImportFacts(
            framework=set(quoted_strings(framework_block)),
            external=set(quoted_strings(find_block(imports_block, "external"))),
        ),
        tests=quoted_strings(find_block(body, "tests")),
        helpers=quoted_strings(find_block(body, "helpers")),
        publishes=set(quoted_strings(find_block(body, "publishes"))),
        subscribes=set(quoted_strings(find_block(body, "subscribes"))),
    )


def contract_import_statements(text: str) -> list[str]:
    """Import statements and require calls in a contract file."""
    code = strip_comments(text)
    found = [m.group(0).strip() for m in _IMPORT_STATEMENT.finditer(code)]
    found.extend(m.group(0) for m in _REQUIRE_CALL.finditer(code))
    return found
