"""
Caller identity -- the verified capability every operation receives.

Kernel services never take a raw user name plus a role string.  They take a
``Caller``, which the authentication boundary in ``placement_services`` mints
after consulting the identity/role oracle.  A ``Caller`` therefore states a
fact that has already been checked once, at one trusted place.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Roles issued by the identity service."""

    STUDENT = "STUDENT"
    COMPANY = "COMPANY"

    @classmethod
    def parse(cls, value: str) -> "Role":
        """Parse a role label case-insensitively; ValueError if unknown."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Unknown role: {value!r}") from None


@dataclass(frozen=True)
class Caller:
    """Verified ``(identity, role)`` pair.

    ``verified_by`` names the oracle that vouched for the role.
    """

    identity: str
    role: Role
    verified_by: str = "oracle"

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT

    @property
    def is_company(self) -> bool:
        return self.role == Role.COMPANY

    def is_party_to(self, company_id: str, student_id: str) -> bool:
        return self.identity in (company_id, student_id)
