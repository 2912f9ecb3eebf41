"""
placement_services.identity_oracle -- clients for the identity/role service.

Responsibility:
    Answer "which role does this identity hold, and does it exist?" for the
    authentication boundary.  The oracle being unreachable is reported as
    ``RoleOracleUnavailableError``; the oracle not knowing the identity is
    a normal answer (``RoleLookup(exists=False)``).  The two are never
    conflated.

Architecture position:
    Services layer, outbound adapter.  Only ``authentication`` calls it.

Wire format (HttpRoleOracle):
    GET {base_url}{user_path}  ->  200 {"data": {"role": "STUDENT"}}
    404 or ``"data": null`` means unknown identity.  Transport errors,
    5xx, other 4xx and bodies that are not JSON objects mean unavailable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from placement_config.schema import RoleOracleConfig
from placement_kernel.domain.identity import Role
from placement_kernel.exceptions import RoleOracleUnavailableError
from placement_kernel.logging_config import get_logger

logger = get_logger("services.identity_oracle")


@dataclass(frozen=True)
class RoleLookup:
    """Oracle answer.  ``role`` is set iff ``exists``."""

    exists: bool
    role: Role | None = None


UNKNOWN = RoleLookup(exists=False)


class RoleOracle(ABC):
    """Resolves identities to roles."""

    name: str = "oracle"

    @abstractmethod
    def resolve_role(self, identity: str) -> RoleLookup:
        """
        Raises:
            RoleOracleUnavailableError: The oracle could not be consulted.
        """


class InMemoryRoleOracle(RoleOracle):
    """Fixed identity -> role table.  Can be switched to unavailable."""

    name = "memory"

    def __init__(self, roles: Mapping[str, Role | str] | None = None):
        self._roles: dict[str, Role] = {}
        self._available = True
        for identity, role in (roles or {}).items():
            self.register(identity, role)

    def register(self, identity: str, role: Role | str) -> None:
        self._roles[identity] = role if isinstance(role, Role) else Role.parse(role)

    def set_available(self, available: bool) -> None:
        self._available = available

    def resolve_role(self, identity: str) -> RoleLookup:
        if not self._available:
            raise RoleOracleUnavailableError(identity, "oracle marked unavailable")
        role = self._roles.get(identity)
        if role is None:
            return UNKNOWN
        return RoleLookup(exists=True, role=role)


class HttpRoleOracle(RoleOracle):
    """httpx client against the external user service."""

    name = "http"

    def __init__(
        self,
        base_url: str,
        user_path: str = "/users/{identity}/role",
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ):
        self._user_path = user_path
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpRoleOracle:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def resolve_role(self, identity: str) -> RoleLookup:
        path = self._user_path.format(identity=quote(identity, safe=""))
        try:
            response = self._client.get(path)
        except httpx.HTTPError as exc:
            logger.error(
                "role_oracle_unreachable",
                extra={"identity": identity, "error": type(exc).__name__},
            )
            raise RoleOracleUnavailableError(identity, str(exc) or type(exc).__name__) from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            return UNKNOWN
        if response.status_code != httpx.codes.OK:
            logger.error(
                "role_oracle_bad_status",
                extra={"identity": identity, "status_code": response.status_code},
            )
            raise RoleOracleUnavailableError(identity, f"HTTP {response.status_code}")

        return self._parse(identity, response)

    def _parse(self, identity: str, response: httpx.Response) -> RoleLookup:
        try:
            body = response.json()
        except ValueError:
            raise RoleOracleUnavailableError(identity, "malformed response body") from None
        if not isinstance(body, dict):
            raise RoleOracleUnavailableError(identity, "malformed response body")

        data = body.get("data")
        if data is None:
            return UNKNOWN
        if not isinstance(data, dict):
            raise RoleOracleUnavailableError(identity, "malformed response body")

        label = data.get("role")
        if not label:
            return UNKNOWN
        try:
            role = Role.parse(str(label))
        except ValueError:
            raise RoleOracleUnavailableError(identity, f"unknown role label {label!r}") from None
        return RoleLookup(exists=True, role=role)


def build_role_oracle(config: RoleOracleConfig) -> RoleOracle:
    """Construct the oracle named by ``config.kind``."""
    if config.kind == "memory":
        return InMemoryRoleOracle(dict(config.roles))
    return HttpRoleOracle(
        base_url=config.base_url,
        user_path=config.user_path,
        timeout=config.timeout_seconds,
    )
