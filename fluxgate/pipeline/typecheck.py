"""Type checking behind a small interface so tests can stub the compiler.

The default TscTypeChecker runs the configured compiler command over the
whole project, parses its diagnostics and keeps only those that fall inside
the run's scope.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path

from fluxgate.pipeline.commands import run_command, strip_ansi
from fluxgate.schemas.pipeline import (
    ScopeType,
    TypeCheckConfig,
    TypeCheckResult,
    ValidationScope,
)

logger = logging.getLogger(__name__)

# src/file.ts:12:34 - error TS2345: Message
_COLON_FORMAT = re.compile(r"^(?P<file>\S.*?):(?P<line>\d+):(?P<col>\d+)\s*-\s*error\s+TS\d+:")
# src/file.ts(12,34): error TS2345: Message
_PAREN_FORMAT = re.compile(r"^(?P<file>\S.*?)\((?P<line>\d+),(?P<col>\d+)\):\s*error\s+TS\d+:")
# error TS5058: Message  (no file context)
_BARE_FORMAT = re.compile(r"^error\s+TS\d+:")


class TypeChecker(ABC):
    """Runs a type checker and reports diagnostics relevant to a scope."""

    @abstractmethod
    async def run(self, scope: ValidationScope) -> TypeCheckResult:
        ...


def parse_diagnostics(output: str) -> list[tuple[str, str]]:
    """``(file, line)`` pairs for every error line; file is empty for bare errors."""
    diagnostics: list[tuple[str, str]] = []
    for raw in strip_ansi(output).splitlines():
        line = raw.strip()
        match = _COLON_FORMAT.match(line) or _PAREN_FORMAT.match(line)
        if match:
            diagnostics.append((match.group("file").replace("\\", "/"), line))
        elif _BARE_FORMAT.match(line):
            diagnostics.append(("", line))
    return diagnostics


def in_scope(file: str, scope: ValidationScope, features_dir: str) -> bool:
    """Whether a diagnostic's file belongs to ``scope``; file-less diagnostics always do."""
    if scope.type == ScopeType.FULL or not file:
        return True
    base = f"{features_dir.strip('/')}/{scope.feature}/"
    if scope.type == ScopeType.FEATURE:
        return base in file or file.startswith(f"{scope.feature}/")
    folder = f"{base}{scope.endpoint}/"
    if scope.type == ScopeType.ENDPOINT:
        return folder in file
    return folder in file and file.endswith(f"/{scope.file}")


class TscTypeChecker(TypeChecker):
    """Runs the configured compiler command (``npx tsc --noEmit`` by default)."""

    def __init__(self, root: Path, config: TypeCheckConfig, features_dir: str) -> None:
        self._root = Path(root)
        self._config = config
        self._features_dir = features_dir

    async def run(self, scope: ValidationScope) -> TypeCheckResult:
        outcome = await run_command(self._config.command, self._root, self._config.timeout)
        if outcome.timed_out or outcome.not_found:
            return TypeCheckResult(
                success=False, diagnostics=[outcome.output], timed_out=outcome.timed_out
            )

        parsed = parse_diagnostics(outcome.output)
        if outcome.ok:
            return TypeCheckResult(success=True)
        if not parsed:
            head = outcome.output.strip().splitlines()[:5]
            return TypeCheckResult(
                success=False,
                diagnostics=head or [f"Type checker exited with code {outcome.returncode}"],
            )

        scoped = [line for file, line in parsed if in_scope(file, scope, self._features_dir)]
        logger.debug(
            "Type checker reported %d errors, %d in %s", len(parsed), len(scoped), scope.description
        )
        return TypeCheckResult(success=not scoped, diagnostics=scoped, error_count=len(scoped))
