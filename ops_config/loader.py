"""
Settings Loader (``ops_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen
``ops_config.schema`` dataclasses.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Imports nothing from
``ops_kernel`` except the exception hierarchy and logging.

Invariants enforced
-------------------
* Every key is optional; omitted keys take the schema default.
* Unknown sections and unknown keys are rejected, never ignored.
* Values are coerced to the schema type (``Decimal`` from strings or
  numbers); a value that cannot be coerced is rejected.
* ``compute_checksum`` is deterministic over the parsed document.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML, unknown keys, bad values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ops_config.schema import (
    CustomerSettings,
    DatabaseSettings,
    EngineSettings,
    InventorySettings,
    OrderSettings,
    ReconciliationSettings,
)
from ops_kernel.exceptions import ConfigurationError
from ops_kernel.logging_config import get_logger

logger = get_logger("config.loader")

SECTIONS: dict[str, type] = {
    "database": DatabaseSettings,
    "inventory": InventorySettings,
    "customers": CustomerSettings,
    "orders": OrderSettings,
    "reconciliation": ReconciliationSettings,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        ConfigurationError: if the file is not valid YAML or not a mapping.
    """
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(str(path), f"invalid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _coerce(key: str, type_name: str, value: Any) -> Any:
    if type_name == "bool":
        if not isinstance(value, bool):
            raise ConfigurationError(key, f"expected a boolean, got {value!r}")
        return value
    if type_name == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(key, f"expected an integer, got {value!r}")
        return value
    if type_name == "Decimal":
        if isinstance(value, bool):
            raise ConfigurationError(key, f"expected a decimal, got {value!r}")
        try:
            return Decimal(str(value))
        except InvalidOperation:
            raise ConfigurationError(key, f"expected a decimal, got {value!r}") from None
    if type_name == "str":
        if not isinstance(value, str):
            raise ConfigurationError(key, f"expected a string, got {value!r}")
        return value
    raise ConfigurationError(key, f"unsupported setting type {type_name}")


def parse_section(name: str, data: Any) -> Any:
    """Parse one top-level section into its settings dataclass."""
    settings_type = SECTIONS[name]
    if data is None:
        return settings_type()
    if not isinstance(data, dict):
        raise ConfigurationError(name, "section must be a mapping")

    known = {f.name: f for f in fields(settings_type)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ConfigurationError(name, f"unknown keys {unknown}")

    kwargs = {
        key: _coerce(f"{name}.{key}", str(known[key].type), value)
        for key, value in data.items()
    }
    return settings_type(**kwargs)


def parse_settings(data: dict[str, Any], source: str | None = None) -> EngineSettings:
    """Parse an already-loaded settings document."""
    unknown = sorted(set(data) - set(SECTIONS))
    if unknown:
        raise ConfigurationError("settings", f"unknown sections {unknown}")

    settings = EngineSettings(
        **{name: parse_section(name, data.get(name)) for name in SECTIONS},
        source=source,
        checksum=compute_checksum(data),
    )
    logger.info(
        "settings_loaded",
        extra={
            "source": source,
            "sections": sorted(data.keys()),
            "checksum": settings.checksum,
        },
    )
    return settings
