"""Reconciler: symmetric comparison of declared and observed facts."""

from fluxgate.reconcile.messages import extra_messages, missing_messages
from fluxgate.reconcile.reconciler import (
    describe_item,
    module_import_path,
    reconcile,
    reconcile_imports,
    reconcile_routes,
    reconcile_tests,
)

__all__ = [
    "extra_messages",
    "missing_messages",
    "describe_item",
    "module_import_path",
    "reconcile",
    "reconcile_imports",
    "reconcile_routes",
    "reconcile_tests",
]
