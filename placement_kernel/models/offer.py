"""
Module: placement_kernel.models.offer
Responsibility: ORM persistence for offers (all three variants, one table)
    and for student applications to non-targeted company offers.
Architecture position: Kernel > Models.  May import from db/base.py and the
    enums in domain/.  MUST NOT import from services/, selectors/, or outer
    layers.

Invariants enforced:
    - One table, ``kind`` discriminator.  Variant columns (requirements,
      price_per_hour, target_id) are nullable and only meaningful for the
      variants that carry them; there is no ORM inheritance.
    - uq_application_student_offer: a student applies to an offer at most
      once.
    - Applications belong to their offer (FK ON DELETE CASCADE).  Offers
      are never deleted in practice; DISABLED rows are kept.

Failure modes:
    - IntegrityError on a duplicate (student_id, offer_id) application.
    - ValueError from StringList if an expertise/requirement item contains
      the list separator (offer_violation rejects such offers first).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from placement_kernel.db.base import StringList, TrackedBase, UUIDString
from placement_kernel.domain.lifecycles import ApplicationStatus, OfferStatus
from placement_kernel.domain.offers import OfferKind


class Offer(TrackedBase):
    """
    A posted offer of any kind.

    Guarantees:
        - status lifecycle: PENDING -> DISABLED (terminal).
        - ``applications`` is only ever populated for NON_TARGETED_COMPANY
          offers; the service refuses applications to other kinds.
    """

    __tablename__ = "offers"

    __table_args__ = (
        Index("idx_offer_kind_status", "kind", "status"),
        Index("idx_offer_author", "author_id"),
        Index("idx_offer_target", "target_id"),
    )

    kind: Mapped[OfferKind] = mapped_column(String(30), nullable=False)

    author_id: Mapped[str] = mapped_column(String(255), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    hours_per_week: Mapped[float] = mapped_column(nullable=False)

    total_hours: Mapped[float] = mapped_column(nullable=False)

    expertise: Mapped[list[str]] = mapped_column(
        StringList(),
        nullable=False,
        default=list,
        doc="Ordered, may repeat",
    )

    status: Mapped[OfferStatus] = mapped_column(
        String(20),
        nullable=False,
        default=OfferStatus.PENDING,
    )

    # Company offers
    requirements: Mapped[list[str]] = mapped_column(
        StringList(),
        nullable=False,
        default=list,
    )

    # Student and targeted offers
    price_per_hour: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Targeted offers
    target_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    applications: Mapped[list["Application"]] = relationship(
        "Application",
        back_populates="offer",
        cascade="all, delete-orphan",
        order_by="Application.created_at",
    )

    @property
    def is_pending(self) -> bool:
        return self.status == OfferStatus.PENDING

    def __repr__(self) -> str:
        return f"<Offer {self.id} {self.kind} by {self.author_id} {self.status}>"


class Application(TrackedBase):
    """A student's application to a non-targeted company offer."""

    __tablename__ = "applications"

    __table_args__ = (
        UniqueConstraint("student_id", "offer_id", name="uq_application_student_offer"),
        Index("idx_application_offer", "offer_id"),
    )

    student_id: Mapped[str] = mapped_column(String(255), nullable=False)

    price_per_hour: Mapped[Decimal] = mapped_column(nullable=False)

    offer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("offers.id", ondelete="CASCADE"),
        nullable=False,
    )

    offer: Mapped[Offer] = relationship(Offer, back_populates="applications")

    status: Mapped[ApplicationStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ApplicationStatus.PENDING,
    )

    def __repr__(self) -> str:
        return f"<Application {self.id} {self.student_id} -> {self.offer_id} {self.status}>"
