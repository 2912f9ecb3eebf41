"""
Placement configuration schema.

Frozen dataclasses the loader parses the YAML file into.  The workload
ceilings reuse the kernel's own ``WorkloadLimits`` so a loaded config can be
handed straight to the services.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from placement_kernel.domain.terms import WorkloadLimits


@dataclass(frozen=True)
class DatabaseConfig:
    """Store connection settings passed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class RoleOracleConfig:
    """
    Identity/role oracle settings.

    ``kind`` is ``http`` (external user service) or ``memory`` (fixed
    ``roles`` table, for embedded use and demos).
    """

    kind: str = "http"
    base_url: str | None = None
    user_path: str = "/users/{identity}/role"
    timeout_seconds: float = 5.0
    roles: tuple[tuple[str, str], ...] = field(default=())


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class PlacementConfig:
    """The effective configuration: file contents plus environment overrides."""

    config_id: str
    version: int
    workload: WorkloadLimits
    database: DatabaseConfig
    role_oracle: RoleOracleConfig
    logging: LoggingConfig
    checksum: str = ""
