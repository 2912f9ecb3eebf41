"""Boundary layer: identity oracle clients, authentication, orchestration."""

from placement_services.authentication import AuthenticationBoundary
from placement_services.identity_oracle import (
    HttpRoleOracle,
    InMemoryRoleOracle,
    RoleLookup,
    RoleOracle,
    build_role_oracle,
)
from placement_services.orchestrator import MatchOutcome, PlacementOrchestrator

__all__ = [
    "AuthenticationBoundary",
    "HttpRoleOracle",
    "InMemoryRoleOracle",
    "MatchOutcome",
    "PlacementOrchestrator",
    "RoleLookup",
    "RoleOracle",
    "build_role_oracle",
]
