"""TOML configuration loader.

Loads the gate configuration from the packaged defaults.toml or from a
file given on the command line.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from fluxgate.schemas.pipeline import GateConfig

# Default config directory relative to the fluxgate package
_CONFIG_DIR = Path(__file__).parent / "config"


def default_config_path() -> Path:
    return _CONFIG_DIR / "defaults.toml"


def load_gate_config(config_path: Path | None = None) -> GateConfig:
    """Load the gate configuration from a TOML file.

    Args:
        config_path: Path to a TOML file with a ``[gate]`` table. Defaults to
            fluxgate/config/defaults.toml.

    Returns:
        GateConfig with values from the file; absent keys keep their defaults.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the file is not valid TOML or has no [gate] table.
        pydantic.ValidationError: If a value has the wrong type or range.
    """
    path = Path(config_path) if config_path else default_config_path()
    if not path.exists():
        raise FileNotFoundError(f"Gate config not found: {path}")

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in {path}: {exc}") from exc

    gate_section = raw.get("gate")
    if not isinstance(gate_section, dict):
        raise ValueError(f"No [gate] section found in {path}")

    return GateConfig.model_validate(gate_section)
