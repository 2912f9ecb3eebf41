"""
Configuration Loader (``placement_config.loader``).

Responsibility
--------------
Reads the YAML configuration file, applies environment overrides, and
parses the result into ``placement_config.schema`` dataclasses.  Runtime
code goes through ``placement_config.get_active_config()`` rather than
calling this module directly.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` with a descriptive message; required
  sections have no silent defaults.
* Environment overrides win over the file.
* ``compute_checksum`` is a deterministic SHA-256 of the effective config.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing section or bad value  -> ``ValueError``.
"""

from __future__ import annotations

import copy
import hashlib
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from placement_config.schema import (
    DatabaseConfig,
    LoggingConfig,
    PlacementConfig,
    RoleOracleConfig,
)
from placement_kernel.domain.identity import Role
from placement_kernel.domain.terms import WorkloadLimits

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "PLACEMENT_DATABASE_URL": ("database", "url"),
    "PLACEMENT_ORACLE_URL": ("role_oracle", "base_url"),
    "PLACEMENT_LOG_LEVEL": ("logging", "level"),
}

_ORACLE_KINDS = ("http", "memory")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def apply_env_overrides(
    data: dict[str, Any],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    """Return a copy of ``data`` with the ``PLACEMENT_*`` variables applied."""
    result = copy.deepcopy(data)
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            result.setdefault(section, {})
            if result[section] is None:
                result[section] = {}
            result[section][key] = value
    return result


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    if not isinstance(value, dict):
        raise ValueError(f"Configuration section {name!r} is missing or not a mapping")
    return value


def _positive(value: Any, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None
    if number <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return number


def parse_workload(data: dict[str, Any]) -> WorkloadLimits:
    return WorkloadLimits(
        max_hours_per_week=_positive(
            data.get("max_hours_per_week"), "workload.max_hours_per_week"
        ),
        max_weeks=_positive(data.get("max_weeks"), "workload.max_weeks"),
    )


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    url = data.get("url")
    if not url:
        raise ValueError("database.url is required")
    return DatabaseConfig(
        url=str(url),
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
        pool_timeout=int(data.get("pool_timeout", 30)),
    )


def parse_role_oracle(data: dict[str, Any]) -> RoleOracleConfig:
    kind = str(data.get("kind", "http")).lower()
    if kind not in _ORACLE_KINDS:
        raise ValueError(f"role_oracle.kind must be one of {_ORACLE_KINDS}, got {kind!r}")
    if kind == "http" and not data.get("base_url"):
        raise ValueError("role_oracle.base_url is required for the http oracle")

    roles: list[tuple[str, str]] = []
    for identity, role in (data.get("roles") or {}).items():
        roles.append((str(identity), Role.parse(str(role)).value))

    return RoleOracleConfig(
        kind=kind,
        base_url=data.get("base_url"),
        user_path=str(data.get("user_path", "/users/{identity}/role")),
        timeout_seconds=_positive(
            data.get("timeout_seconds", 5.0), "role_oracle.timeout_seconds"
        ),
        roles=tuple(sorted(roles)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {_LOG_LEVELS}, got {level!r}")
    return LoggingConfig(level=level)


def parse_config(data: dict[str, Any]) -> PlacementConfig:
    """Parse an effective configuration dict (overrides already applied)."""
    return PlacementConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        workload=parse_workload(_section(data, "workload")),
        database=parse_database(_section(data, "database")),
        role_oracle=parse_role_oracle(_section(data, "role_oracle")),
        logging=parse_logging(data.get("logging") or {}),
        checksum=compute_checksum(data),
    )


def load_config(path: Path, environ: Mapping[str, str]) -> PlacementConfig:
    """Load ``path``, apply overrides from ``environ``, parse."""
    raw = load_yaml_file(path)
    return parse_config(apply_env_overrides(raw, environ))
