"""User-facing wording for reconciliation differences, keyed by category."""

from __future__ import annotations

from fluxgate.reconcile.reconciler import describe_item
from fluxgate.schemas.reconciliation import ReconciliationResult

_MISSING = {
    "routes": "Route '{item}' required by specification but not declared in contract",
    "contract_imports": "Import '{item}' required by specification but not declared in contract",
    "exports": "Missing function export: {item}",
    "spec_tests": "Test case '{item}' required by specification but not declared in contract",
    "handlers": "Route handler '{item}' declared in contract but not exported by logic file",
    "imports": "Import '{item}' declared but not imported in logic file",
    "publishes": "Event '{item}' declared in publishes but never emitted",
    "subscribes": "Event '{item}' declared in subscribes but never subscribed to",
    "helpers": "Helper file '{item}' declared in contract but missing or without exports",
    "tests": 'Contract test not implemented: "{item}"',
}

# Categories absent here (tests, imports, helpers) report extras elsewhere or not at all.
_EXTRA = {
    "routes": "Route '{item}' declared in contract but not in specification",
    "contract_imports": "Import '{item}' declared in contract but not in specification",
    "handlers": "Function '{item}' exported but not mapped to any contract route",
    "publishes": "Event '{item}' emitted but not declared in publishes",
    "subscribes": "Event '{item}' subscribed to but not declared in subscribes",
}


def missing_messages(result: ReconciliationResult) -> list[str]:
    template = _MISSING.get(result.category, "Missing {item}")
    return [template.format(item=describe_item(item)) for item in result.missing]


def extra_messages(result: ReconciliationResult) -> list[str]:
    template = _EXTRA.get(result.category)
    if template is None:
        return []
    return [template.format(item=describe_item(item)) for item in result.extra]
