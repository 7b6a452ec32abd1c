"""Loading ``{feature}.implementation.json`` specification documents."""

from __future__ import annotations

import json
import logging
from typing import Any

from fluxgate.schemas.pipeline import ScopeType, ValidationScope
from fluxgate.schemas.spec import FeatureSpecification, SpecificationDocument
from fluxgate.validate.sources import (
    ArtifactNotFoundError,
    SourceReader,
    discover_features,
    join,
)

logger = logging.getLogger(__name__)


class UnknownEndpointError(LookupError):
    """The target endpoint has no entry in its feature's specification."""


def strip_notes(value: Any, suffix: str = "_notes") -> Any:
    """Recursively drop every mapping key ending in ``suffix``."""
    if isinstance(value, dict):
        return {
            key: strip_notes(item, suffix)
            for key, item in value.items()
            if not (isinstance(key, str) and key.endswith(suffix))
        }
    if isinstance(value, list):
        return [strip_notes(item, suffix) for item in value]
    return value


def specification_path(features_dir: str, feature: str) -> str:
    return join(features_dir, feature, f"{feature}.implementation.json")


def parse_specification(text: str, notes_suffix: str = "_notes") -> SpecificationDocument:
    """Parse and validate a specification document.

    Raises:
        ValueError: If the text is not JSON or not a JSON object.
        pydantic.ValidationError: If the document does not match the schema.
    """
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid specification JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ValueError("Specification document must be a JSON object")
    return SpecificationDocument.model_validate(strip_notes(raw, notes_suffix))


async def load_feature_specification(
    reader: SourceReader, features_dir: str, feature: str, notes_suffix: str = "_notes"
) -> FeatureSpecification:
    path = specification_path(features_dir, feature)
    text = await reader.read_text(path)
    document = parse_specification(text, notes_suffix)
    logger.debug("Loaded %s (%d endpoints)", path, len(document.endpoints))
    return FeatureSpecification(feature=feature, path=path, spec=document)


async def load_specifications(
    reader: SourceReader,
    features_dir: str,
    scope: ValidationScope,
    notes_suffix: str = "_notes",
) -> list[FeatureSpecification]:
    """Specifications visited by ``scope``.

    A full-scope run skips features that have no specification; a narrower
    scope requires its feature's specification and, for endpoint and file
    scopes, an entry for the target endpoint.

    Raises:
        ArtifactNotFoundError: The targeted feature has no specification.
        UnknownEndpointError: The targeted endpoint is not in the specification.
    """
    if scope.type == ScopeType.FULL:
        loaded: list[FeatureSpecification] = []
        for feature in await discover_features(reader, features_dir):
            if feature.startswith(("_", ".")):
                continue
            try:
                loaded.append(
                    await load_feature_specification(reader, features_dir, feature, notes_suffix)
                )
            except ArtifactNotFoundError:
                logger.info("Feature '%s' has no specification, skipping", feature)
        return loaded

    if not scope.feature:
        raise ValueError(f"Scope '{scope.type}' names no feature")
    specification = await load_feature_specification(
        reader, features_dir, scope.feature, notes_suffix
    )
    if scope.type in (ScopeType.ENDPOINT, ScopeType.FILE):
        if scope.endpoint not in specification.spec.endpoints:
            raise UnknownEndpointError(
                f"Endpoint '{scope.endpoint}' not found in {specification.path}"
            )
    return [specification]
