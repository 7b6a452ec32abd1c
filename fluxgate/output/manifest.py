"""Per-endpoint manifest building and writing.

A manifest is the persisted form of one EndpointValidationRecord. It is
written to ``{folder}/{endpoint}.manifest.json`` and overwritten on every
run; nothing from a previous manifest is merged back in.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from fluxgate.schemas.pipeline import ValidationScope
from fluxgate.schemas.report import EndpointManifest
from fluxgate.schemas.scoring import EndpointValidationRecord
from fluxgate.schemas.spec import EndpointSpec, ValidationTargets

logger = logging.getLogger(__name__)

COMPLIANT = "compliant"
ISSUES_FOUND = "issues_found"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def manifest_status(record: EndpointValidationRecord) -> str:
    return COMPLIANT if record.overall_reliable and not record.blocking_issues else ISSUES_FOUND


def manifest_path(folder: str, endpoint: str) -> str:
    return f"{folder.rstrip('/')}/{endpoint}.manifest.json" if folder else f"{endpoint}.manifest.json"


def build_manifest(
    record: EndpointValidationRecord,
    endpoint_spec: EndpointSpec,
    scope: ValidationScope,
    targets: ValidationTargets,
    files: dict[str, str] | None = None,
) -> EndpointManifest:
    """Build the manifest for one validated endpoint.

    Args:
        record: The aggregated validation record.
        endpoint_spec: The endpoint's specification entry.
        scope: The run's validation scope.
        targets: The feature's validation targets.
        files: Artifact file names keyed by kind (contract, logic, test).

    Returns:
        An EndpointManifest ready for serialisation.
    """
    files = files or {}
    reliability: dict[str, dict] = {}
    for dimension, result in record.dimensions.items():
        entry: dict = dict(result.metrics)
        entry["status"] = result.status.value
        entry["score"] = result.score
        if result.issues:
            entry["issues"] = list(result.issues)
        reliability[dimension.value] = entry

    specification = {
        "folder": endpoint_spec.folder,
        "contract_file": files.get("contract", endpoint_spec.contract.file),
        "logic_file": files.get("logic", endpoint_spec.logic.file),
        "test_file": files.get("test", endpoint_spec.test.file),
        "routes": dict(endpoint_spec.contract.routes),
        "functions": list(endpoint_spec.logic.exports),
        "test_cases": len(endpoint_spec.test.test_cases),
    }
    coverage = endpoint_spec.test.coverage_target
    if coverage is None:
        coverage = targets.required_coverage
    validation_targets = {
        "routes_count": len(endpoint_spec.contract.routes),
        "functions_count": len(endpoint_spec.logic.exports),
        "tests_count": len(endpoint_spec.test.test_cases),
        "coverage_target": coverage,
        "minimum_threshold": record.minimum_threshold,
        "weights": targets.weights.model_dump(),
    }

    return EndpointManifest(
        endpoint=record.endpoint,
        feature=record.feature,
        route=record.route,
        status=manifest_status(record),
        generated_at=utc_timestamp(),
        validation_scope=scope.type.value,
        scoring_policy=record.scoring_policy.value,
        reliability_validation=reliability,
        overall_reliability=f"{record.reliability_score}%",
        reliability_score=record.reliability_score,
        deployment_ready=record.overall_reliable and not record.blocking_issues,
        blocking_issues=list(record.blocking_issues),
        warnings=list(record.warnings),
        specification=specification,
        validation_targets=validation_targets,
    )


def write_json(path: Path, payload: dict) -> None:
    """Write ``payload`` as indented JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, default=str) + "\n", encoding="utf-8")


async def write_manifest(root: Path, folder: str, manifest: EndpointManifest) -> Path:
    """Write the manifest under ``root`` and return its path."""
    target = Path(root) / manifest_path(folder, manifest.endpoint)
    await asyncio.to_thread(write_json, target, manifest.model_dump(mode="json"))
    logger.debug("Wrote manifest %s", target)
    return target
