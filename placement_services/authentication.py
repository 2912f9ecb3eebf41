"""
placement_services.authentication -- the single trusted authentication boundary.

Responsibility:
    Turn an asserted identity (the ``x-user-name`` header in the HTTP
    adapter) into a verified ``Caller``.  This is the only place a
    ``Caller`` is minted; kernel services trust it and never re-derive the
    role from request input.

Failure modes:
    - AuthenticationError: identity missing or blank.
    - UnknownIdentityError: the oracle does not know the identity.
    - AccessDeniedError: an asserted role contradicts the oracle.
    - RoleOracleUnavailableError: propagated unchanged from the oracle.
"""

from __future__ import annotations

from placement_kernel.domain.identity import Caller, Role
from placement_kernel.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    UnknownIdentityError,
)
from placement_kernel.logging_config import get_logger
from placement_services.identity_oracle import RoleOracle

logger = get_logger("services.authentication")


class AuthenticationBoundary:
    """Mints ``Caller`` capabilities from oracle answers."""

    def __init__(self, oracle: RoleOracle):
        self._oracle = oracle

    def authenticate(
        self,
        identity: str | None,
        asserted_role: Role | str | None = None,
    ) -> Caller:
        """
        Verify ``identity`` and return its capability.

        Args:
            identity: Opaque user name as presented by the client.
            asserted_role: Role the client claims to act as, if any.  It
                must match the oracle's answer.
        """
        if identity is None or not identity.strip():
            raise AuthenticationError()

        lookup = self._oracle.resolve_role(identity)
        if not lookup.exists:
            logger.warning("unknown_identity", extra={"identity": identity})
            raise UnknownIdentityError(identity)

        if asserted_role is not None:
            try:
                claimed = (
                    asserted_role
                    if isinstance(asserted_role, Role)
                    else Role.parse(asserted_role)
                )
            except ValueError:
                raise AccessDeniedError(identity, f"Unknown role: {asserted_role}") from None
            if claimed != lookup.role:
                logger.warning(
                    "asserted_role_mismatch",
                    extra={
                        "identity": identity,
                        "asserted_role": claimed.value,
                        "actual_role": lookup.role.value,
                    },
                )
                raise AccessDeniedError(
                    identity, f"User does not hold the {claimed.value} role"
                )

        logger.debug(
            "caller_authenticated",
            extra={"identity": identity, "role": lookup.role.value},
        )
        return Caller(identity=identity, role=lookup.role, verified_by=self._oracle.name)
