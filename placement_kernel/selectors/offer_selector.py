"""
Module: placement_kernel.selectors.offer_selector
Responsibility: Read-only queries over offers and applications, and the
    ORM -> DTO conversions the offer service shares.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ DTOs and selectors/base.py.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: no mutations.
    - DTO convention: OfferInfo / ApplicationInfo only.
    - Authorization is NOT applied here; OfferService.list_applications
      restricts application listings to the offer's author.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from placement_kernel.domain.dtos import ApplicationInfo, OfferInfo
from placement_kernel.domain.lifecycles import ApplicationStatus, OfferStatus
from placement_kernel.domain.offers import OfferKind
from placement_kernel.models.offer import Application, Offer
from placement_kernel.selectors.base import BaseSelector


def offer_to_info(offer: Offer) -> OfferInfo:
    """Convert ORM Offer to OfferInfo DTO."""
    return OfferInfo(
        id=offer.id,
        kind=OfferKind(offer.kind),
        author_id=offer.author_id,
        title=offer.title,
        description=offer.description,
        hours_per_week=offer.hours_per_week,
        total_hours=offer.total_hours,
        expertise=tuple(offer.expertise or ()),
        status=OfferStatus(offer.status),
        requirements=tuple(offer.requirements or ()),
        price_per_hour=offer.price_per_hour,
        target_id=offer.target_id,
    )


def application_to_info(application: Application) -> ApplicationInfo:
    """Convert ORM Application to ApplicationInfo DTO."""
    return ApplicationInfo(
        id=application.id,
        offer_id=application.offer_id,
        student_id=application.student_id,
        price_per_hour=application.price_per_hour,
        status=ApplicationStatus(application.status),
    )


class OfferSelector(BaseSelector[Offer]):
    """Selector for offer and application queries."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get_offer(self, offer_id: UUID) -> OfferInfo | None:
        offer = self.session.get(Offer, offer_id)
        return offer_to_info(offer) if offer else None

    def list_by_kind(self, kind: OfferKind, open_only: bool = True) -> list[OfferInfo]:
        """Offers of one kind, newest first.  ``open_only`` drops DISABLED offers."""
        stmt = select(Offer).where(Offer.kind == kind.value)
        if open_only:
            stmt = stmt.where(Offer.status == OfferStatus.PENDING.value)
        stmt = stmt.order_by(Offer.created_at.desc(), Offer.title)
        return [offer_to_info(o) for o in self.session.execute(stmt).scalars()]

    def list_by_author(self, author_id: str) -> list[OfferInfo]:
        """Every offer posted by ``author_id``, any status."""
        stmt = (
            select(Offer)
            .where(Offer.author_id == author_id)
            .order_by(Offer.created_at.desc(), Offer.title)
        )
        return [offer_to_info(o) for o in self.session.execute(stmt).scalars()]

    def list_targeted_at(self, target_id: str) -> list[OfferInfo]:
        """Open targeted offers addressed to ``target_id``."""
        stmt = (
            select(Offer)
            .where(
                Offer.kind == OfferKind.TARGETED_COMPANY.value,
                Offer.target_id == target_id,
                Offer.status == OfferStatus.PENDING.value,
            )
            .order_by(Offer.created_at.desc())
        )
        return [offer_to_info(o) for o in self.session.execute(stmt).scalars()]

    def applications_for(self, offer_id: UUID) -> list[ApplicationInfo]:
        stmt = (
            select(Application)
            .where(Application.offer_id == offer_id)
            .order_by(Application.created_at, Application.student_id)
        )
        return [application_to_info(a) for a in self.session.execute(stmt).scalars()]

    def applications_by_student(self, student_id: str) -> list[ApplicationInfo]:
        stmt = (
            select(Application)
            .where(Application.student_id == student_id)
            .order_by(Application.created_at.desc())
        )
        return [application_to_info(a) for a in self.session.execute(stmt).scalars()]
