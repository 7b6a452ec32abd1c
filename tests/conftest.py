"""Shared fixtures: a small endpoint project written into tmp_path."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from fluxgate.schemas.pipeline import GateConfig, TypeCheckConfig

FEATURES_DIR = "src/features"


def _contract(route: str, handler: str, tests: list[str]) -> str:
    test_lines = ",\n".join(f"    '{name}'" for name in tests)
    return f"""/**
 * Contract for the endpoint.
 */
export const CONTRACT = {{
  routes: {{
    '{route}': '{handler}',
  }},
  imports: {{
    appkit: ['utils', 'logger', 'error'],
    external: ['express'],
  }},
  publishes: [],
  subscribes: [],
  helpers: [],
  tests: [
{test_lines}
  ],
}};
"""


def _logic(handler: str) -> str:
    return f"""/**
 * Endpoint logic.
 */
import type {{ Request, Response }} from 'express';
import {{ utilClass }} from '@voilajsx/appkit/utils';
import {{ loggerClass }} from '@voilajsx/appkit/logging';
import {{ errorClass }} from '@voilajsx/appkit/error';

const utils = utilClass.get();
const log = loggerClass.get('{handler}');
const err = errorClass.get();

export async function {handler}(req: Request, res: Response): Promise<void> {{
  const requestId = utils.uuid();
  try {{
    log.info('Request received', {{ requestId }});
    res.json({{ success: true, requestId }});
  }} catch (error) {{
    throw err.serverError('Request failed');
  }}
}}
"""


def _tests(handler: str, tests: list[str]) -> str:
    cases = "\n".join(
        f"  test('{name}', async () => {{\n    expect({handler}).toBeDefined();\n  }});"
        for name in tests
    )
    return f"""import {{ describe, test, expect }} from 'vitest';
import {{ {handler} }} from './{handler}.logic';

describe('{handler}', () => {{
{cases}
}});
"""


DEFAULT_TESTS = ["should return greeting", "should handle validation error"]


class ProjectBuilder:
    """Writes features, endpoints and specification documents under a root."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def folder(self, feature: str, endpoint: str) -> Path:
        return self.root / FEATURES_DIR / feature / endpoint

    def add_endpoint(
        self,
        feature: str,
        endpoint: str,
        route: str | None = None,
        handler: str = "list",
        tests: list[str] | None = None,
        with_test_file: bool = True,
        logic: str | None = None,
    ) -> Path:
        tests = DEFAULT_TESTS if tests is None else tests
        route = route or f"GET /api/{feature}/{endpoint}"
        folder = self.folder(feature, endpoint)
        folder.mkdir(parents=True, exist_ok=True)
        (folder / f"{endpoint}.contract.ts").write_text(
            _contract(route, handler, tests), encoding="utf-8"
        )
        (folder / f"{endpoint}.logic.ts").write_text(
            logic if logic is not None else _logic(handler), encoding="utf-8"
        )
        if with_test_file:
            (folder / f"{endpoint}.test.ts").write_text(
                _tests(handler, tests), encoding="utf-8"
            )
        return folder

    def endpoint_spec(
        self,
        feature: str,
        endpoint: str,
        route: str | None = None,
        handler: str = "list",
        tests: list[str] | None = None,
    ) -> dict:
        route = route or f"GET /api/{feature}/{endpoint}"
        return {
            "id": endpoint,
            "route": route,
            "folder": f"{FEATURES_DIR}/{feature}/{endpoint}",
            "contract": {
                "file": f"{endpoint}.contract.ts",
                "routes": {route: handler},
            },
            "logic": {"file": f"{endpoint}.logic.ts", "exports": [handler]},
            "test": {
                "file": f"{endpoint}.test.ts",
                "test_cases": DEFAULT_TESTS if tests is None else tests,
            },
        }

    def write_spec(
        self, feature: str, endpoints: dict[str, dict], validation_targets: dict | None = None
    ) -> Path:
        document = {
            "version": "1.0.0",
            "_notes": "Documentation only",
            "endpoints": endpoints,
            "validation_targets": validation_targets or {},
        }
        path = self.root / FEATURES_DIR / feature / f"{feature}.implementation.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        return path


@pytest.fixture
def builder(tmp_path: Path) -> ProjectBuilder:
    return ProjectBuilder(tmp_path)


@pytest.fixture
def project(builder: ProjectBuilder) -> ProjectBuilder:
    """One feature ``greeting`` with one fully compliant endpoint ``hello``."""
    builder.add_endpoint("greeting", "hello")
    builder.write_spec("greeting", {"hello": builder.endpoint_spec("greeting", "hello")})
    return builder


@pytest.fixture
def gate_config(tmp_path: Path) -> GateConfig:
    return GateConfig(
        type_check=TypeCheckConfig(enabled=False),
        history_enabled=False,
        history_db=str(tmp_path / "history.db"),
    )


@pytest.fixture
def logic_source() -> Callable[[str], str]:
    return _logic


@pytest.fixture
def contract_source() -> Callable[[str, str, list[str]], str]:
    return _contract


@pytest.fixture
def test_source() -> Callable[[str, list[str]], str]:
    return _tests
