"""
ops_config -- single public entrypoint for engine settings.

Responsibility:
    ``load_settings()`` reads a YAML settings file, parses it into frozen
    ``EngineSettings`` and validates every section by building the
    module-level config objects from it.

Architecture position:
    Configuration.  Sits above ``ops_kernel`` and ``ops_modules``; neither
    of them may import from ``ops_config``.  ``ops_config.bridges``
    translates settings into the objects the services take.

Failure modes:
    - ``FileNotFoundError`` -- an explicit settings path does not exist.
    - ``ConfigurationError`` -- malformed YAML, unknown keys, bad values.
"""

from __future__ import annotations

from pathlib import Path

from ops_config.bridges import validate_settings
from ops_config.loader import load_yaml_file, parse_settings
from ops_config.schema import (
    CustomerSettings,
    DatabaseSettings,
    EngineSettings,
    InventorySettings,
    OrderSettings,
    ReconciliationSettings,
)

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "sets" / "default.yaml"


def load_settings(path: Path | str | None = None) -> EngineSettings:
    """Load and validate settings from ``path`` (default: the bundled set)."""
    resolved = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    settings = parse_settings(load_yaml_file(resolved), source=str(resolved))
    validate_settings(settings)
    return settings


__all__ = [
    "CustomerSettings",
    "DEFAULT_SETTINGS_PATH",
    "DatabaseSettings",
    "EngineSettings",
    "InventorySettings",
    "OrderSettings",
    "ReconciliationSettings",
    "load_settings",
]
