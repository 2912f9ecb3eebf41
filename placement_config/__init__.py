"""
placement_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains settings.
    It resolves the YAML file, applies ``PLACEMENT_*`` environment
    overrides, validates, and logs a ``PLACEMENT_CONFIG_TRACE`` entry with
    the checksum of the effective configuration.

Architecture position:
    Configuration.  Sits above ``placement_kernel`` and below
    ``placement_services``; the kernel never imports from here.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- a section is missing or a value is invalid.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from placement_config.loader import compute_checksum, load_config
from placement_config.schema import (
    DatabaseConfig,
    LoggingConfig,
    PlacementConfig,
    RoleOracleConfig,
)

_logger = logging.getLogger("placement_kernel.config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"

__all__ = [
    "DatabaseConfig",
    "LoggingConfig",
    "PlacementConfig",
    "RoleOracleConfig",
    "compute_checksum",
    "get_active_config",
]


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> PlacementConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Configuration file.  Defaults to ``$PLACEMENT_CONFIG`` or the
            packaged ``sets/default.yaml``.
        environ: Environment to read overrides from.  Defaults to
            ``os.environ``.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If validation fails.
    """
    env = os.environ if environ is None else environ
    config_path = Path(path or env.get("PLACEMENT_CONFIG") or _DEFAULT_CONFIG_FILE)
    if not config_path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    config = load_config(config_path, env)

    _logger.info(
        "PLACEMENT_CONFIG_TRACE",
        extra={
            "trace_type": "PLACEMENT_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(config_path),
            "oracle_kind": config.role_oracle.kind,
        },
    )
    return config
