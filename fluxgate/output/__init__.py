"""Manifest and feature report builders."""

from fluxgate.output.feature import (
    acceptable_patterns,
    analyze_breaking_changes,
    analyze_duplication,
    build_feature_report,
    load_previous_report,
    write_feature_report,
)
from fluxgate.output.manifest import build_manifest, write_manifest

__all__ = [
    "acceptable_patterns",
    "analyze_breaking_changes",
    "analyze_duplication",
    "build_feature_report",
    "build_manifest",
    "load_previous_report",
    "write_feature_report",
    "write_manifest",
]
