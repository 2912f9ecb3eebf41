"""
Data transfer objects returned by the kernel services.

Services return these frozen dataclasses, never ORM entities, so callers
cannot mutate persistent state behind a service's back and so results stay
valid after the session closes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from placement_kernel.domain.lifecycles import (
    ApplicationStatus,
    ContractStatus,
    OfferStatus,
    ProposalStatus,
)
from placement_kernel.domain.offers import OfferKind


@dataclass(frozen=True)
class ContractDraft:
    """Terms two parties agreed on, before the lifecycle component validates them."""

    company_id: str
    student_id: str
    hours_per_week: float
    total_hours: float
    price_per_hour: Decimal


@dataclass(frozen=True)
class ContractInfo:
    """Immutable view of a contract."""

    id: UUID
    company_id: str
    student_id: str
    hours_per_week: float
    total_hours: float
    price_per_hour: Decimal
    start_date: date
    end_date: date
    status: ContractStatus

    @property
    def is_active(self) -> bool:
        return self.status == ContractStatus.ACTIVE

    def counter_party_of(self, identity: str) -> str:
        """The other party of the contract, from ``identity``'s point of view."""
        return self.student_id if identity == self.company_id else self.company_id


@dataclass(frozen=True)
class ChangeProposalInfo:
    """Immutable view of a contract change proposal."""

    id: UUID
    contract_id: UUID
    proposer_id: str
    hours_per_week: float | None
    total_hours: float | None
    price_per_hour: Decimal | None
    end_date: date | None
    status: ProposalStatus


@dataclass(frozen=True)
class OfferInfo:
    """Immutable view of an offer of any kind."""

    id: UUID
    kind: OfferKind
    author_id: str
    title: str
    description: str
    hours_per_week: float
    total_hours: float
    expertise: tuple[str, ...]
    status: OfferStatus
    requirements: tuple[str, ...]
    price_per_hour: Decimal | None
    target_id: str | None

    @property
    def is_open(self) -> bool:
        return self.status == OfferStatus.PENDING


@dataclass(frozen=True)
class ApplicationDraft:
    """A student's application before it is bound to an offer."""

    student_id: str
    price_per_hour: Decimal


@dataclass(frozen=True)
class ApplicationInfo:
    """Immutable view of an application."""

    id: UUID
    offer_id: UUID
    student_id: str
    price_per_hour: Decimal
    status: ApplicationStatus


@dataclass(frozen=True)
class TargetedOfferResponse:
    """Outcome of the target's answer to a targeted offer.

    ``contract_draft`` is set only when the target accepted.
    """

    offer: OfferInfo
    accepted: bool
    contract_draft: ContractDraft | None = None
