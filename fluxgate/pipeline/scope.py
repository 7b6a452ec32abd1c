"""Turning a CLI target string into a ValidationScope."""

from __future__ import annotations

from fluxgate.schemas.pipeline import ScopeType, ValidationScope


def resolve_scope(target: str | None) -> ValidationScope:
    """Resolve a target string into the scope of a run.

    ``None`` or an empty string is the full project; ``feature`` a feature;
    ``feature/endpoint`` an endpoint; ``feature/endpoint.type.ext`` and
    ``feature/endpoint/endpoint.type.ext`` a single file.

    Raises:
        ValueError: If the target has empty or too many path segments.
    """
    if target is None or not target.strip():
        return ValidationScope(type=ScopeType.FULL)

    raw = target.strip()
    parts = raw.strip("/").split("/")
    if any(not part for part in parts) or len(parts) > 3:
        raise ValueError(f"Invalid target '{target}': expected feature[/endpoint[/file]]")

    if len(parts) == 1:
        if "." in parts[0]:
            raise ValueError(f"Invalid target '{target}': a file target needs its feature")
        return ValidationScope(type=ScopeType.FEATURE, feature=parts[0], target=raw)

    feature = parts[0]
    if len(parts) == 2:
        name = parts[1]
        if "." not in name:
            return ValidationScope(
                type=ScopeType.ENDPOINT, feature=feature, endpoint=name, target=raw
            )
        endpoint = name.split(".", 1)[0]
        return ValidationScope(
            type=ScopeType.FILE, feature=feature, endpoint=endpoint, file=name, target=raw
        )

    endpoint, name = parts[1], parts[2]
    if "." in endpoint:
        raise ValueError(f"Invalid target '{target}': endpoint folder cannot contain '.'")
    return ValidationScope(
        type=ScopeType.FILE, feature=feature, endpoint=endpoint, file=name, target=raw
    )
