"""Bidirectional reconciliation of declared against observed facts.

Every comparison runs in both directions: declared-but-absent items are
``missing`` (errors), observed-but-undeclared items are ``extra``
(warnings). Inputs are de-duplicated in order, and unordered inputs
(sets) are sorted first so results are deterministic.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Collection, Hashable, Iterable, Mapping
from typing import Any

from fluxgate.extract.source import normalize_test_name
from fluxgate.schemas.reconciliation import ReconciliationResult

KeyFunc = Callable[[Any], Hashable]


def _ordered_unique(items: Iterable[Any], key: KeyFunc) -> list[Any]:
    if isinstance(items, (set, frozenset)):
        items = sorted(items, key=repr)
    seen: set[Hashable] = set()
    unique: list[Any] = []
    for item in items:
        k = key(item)
        if k in seen:
            continue
        seen.add(k)
        unique.append(item)
    return unique


def _identity(item: Any) -> Hashable:
    return item


def reconcile(
    declared: Iterable[Any],
    observed: Iterable[Any],
    key: KeyFunc | None = None,
    category: str = "",
) -> ReconciliationResult:
    """Compare two collections in both directions.

    Args:
        declared: What the contract or specification promises.
        observed: What the implementation actually contains.
        key: Comparison key; items are compared directly when omitted.
        category: Fact category label carried on the result.
    """
    key = key or _identity
    declared_items = _ordered_unique(declared, key)
    observed_items = _ordered_unique(observed, key)
    declared_keys = {key(item) for item in declared_items}
    observed_keys = {key(item) for item in observed_items}

    missing = [item for item in declared_items if key(item) not in observed_keys]
    extra = [item for item in observed_items if key(item) not in declared_keys]
    return ReconciliationResult(
        category=category,
        missing=missing,
        extra=extra,
        matched_count=len(declared_items) - len(missing),
        expected_count=len(declared_items),
    )


def reconcile_routes(
    declared: Mapping[str, str], observed: Mapping[str, str]
) -> ReconciliationResult:
    """Compare route tables as (route, handler) pairs.

    A route mapped to a different handler is one missing and one extra
    pair, never a partial match.
    """
    return reconcile(list(declared.items()), list(observed.items()), category="routes")


def reconcile_tests(declared: Iterable[str], observed: Iterable[str]) -> ReconciliationResult:
    """Compare test-case names after normalisation."""
    return reconcile(declared, observed, key=normalize_test_name, category="tests")


def quoted_path_pattern(path: str) -> re.Pattern[str]:
    """Matches ``path`` only as a complete quoted string literal."""
    return re.compile(r"""(['"`])""" + re.escape(path) + r"\1")


def reconcile_imports(
    expected_paths: Collection[str], text: str, category: str = "imports"
) -> ReconciliationResult:
    """Check each expected import path appears as a quoted literal in ``text``.

    Presence-only: the text is not parsed, so ``extra`` is always empty.
    """
    expected = _ordered_unique(expected_paths, _identity)
    present = [path for path in expected if quoted_path_pattern(path).search(text)]
    return reconcile(expected, present, category=category)


def module_import_path(module: str, prefix: str, aliases: Mapping[str, str]) -> str:
    """Import path of a declared framework module (``logger`` -> ``<prefix>/logging``)."""
    return f"{prefix.rstrip('/')}/{aliases.get(module, module)}"


def module_path_tail(module: str, aliases: Mapping[str, str]) -> str:
    """Last path segment a declared framework module is imported under."""
    return aliases.get(module, module)


def describe_item(item: Any) -> str:
    """Human-readable rendering of a reconciled item."""
    if isinstance(item, tuple) and len(item) == 2:
        return f"{item[0]} -> {item[1]}"
    return str(item)
