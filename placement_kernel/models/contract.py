"""
Module: placement_kernel.models.contract
Responsibility: ORM persistence for work contracts between a company and a
    student, and for the change proposals negotiated on top of them.
Architecture position: Kernel > Models.  May import from db/base.py and the
    status enums in domain/lifecycles.py.  MUST NOT import from services/,
    selectors/, or outer layers.

Invariants enforced:
    - At most one ACTIVE contract per (company_id, student_id) pair:
      partial unique index uq_contract_active_pair.  The service checks
      first for a readable error; the index closes the race between two
      concurrent creations.
    - pair_sequence is unique per pair and strictly increasing, so "most
      recent" never depends on timestamp resolution.
    - Contracts are never deleted; TERMINATED and EXPIRED rows are history.
    - A proposal references its contract (FK) but does not own it: deleting
      a proposal never touches the contract, and there is no cascade from
      contract to proposals.

Failure modes:
    - IntegrityError on a second ACTIVE contract for the same pair.
    - IntegrityError when a proposal references a missing contract.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from placement_kernel.db.base import TrackedBase, UUIDString
from placement_kernel.domain.lifecycles import ContractStatus, ProposalStatus
from placement_kernel.domain.terms import ContractTerms

_ACTIVE_ONLY = text("status = 'ACTIVE'")


class Contract(TrackedBase):
    """
    Part-time work contract between a company and a student.

    Guarantees:
        - end_date >= start_date + ceil(total_hours / hours_per_week) weeks,
          with equality unless an accepted proposal moved it later.
        - status lifecycle: ACTIVE -> TERMINATED | EXPIRED (both terminal).

    Non-goals:
        - The model does NOT validate the workload ceiling; that is
          ContractService's job.
    """

    __tablename__ = "contracts"

    __table_args__ = (
        Index(
            "uq_contract_active_pair",
            "company_id",
            "student_id",
            unique=True,
            postgresql_where=_ACTIVE_ONLY,
            sqlite_where=_ACTIVE_ONLY,
        ),
        Index(
            "uq_contract_pair_sequence",
            "company_id",
            "student_id",
            "pair_sequence",
            unique=True,
        ),
        Index("idx_contract_status", "status"),
    )

    company_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Identity of the company party",
    )

    student_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Identity of the student party",
    )

    pair_sequence: Mapped[int] = mapped_column(
        nullable=False,
        doc="Creation order within the (company_id, student_id) pair (1-based)",
    )

    hours_per_week: Mapped[float] = mapped_column(nullable=False)

    total_hours: Mapped[float] = mapped_column(nullable=False)

    price_per_hour: Mapped[Decimal] = mapped_column(nullable=False)

    start_date: Mapped[date] = mapped_column(nullable=False)

    end_date: Mapped[date] = mapped_column(nullable=False)

    status: Mapped[ContractStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ContractStatus.ACTIVE,
    )

    @property
    def is_active(self) -> bool:
        return self.status == ContractStatus.ACTIVE

    @property
    def terms(self) -> ContractTerms:
        return ContractTerms(
            hours_per_week=self.hours_per_week,
            total_hours=self.total_hours,
            price_per_hour=self.price_per_hour,
            start_date=self.start_date,
            end_date=self.end_date,
        )

    def is_party(self, identity: str) -> bool:
        return identity in (self.company_id, self.student_id)

    def __repr__(self) -> str:
        return (
            f"<Contract {self.id} {self.company_id}->{self.student_id} "
            f"{self.status}>"
        )


class ContractChangeProposal(TrackedBase):
    """
    Proposed amendment to an ACTIVE contract.

    Every term column is nullable: NULL means "leave unchanged".
    """

    __tablename__ = "contract_change_proposals"

    __table_args__ = (
        Index("uq_proposal_contract_sequence", "contract_id", "sequence", unique=True),
        Index("idx_proposal_status", "status"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id"),
        nullable=False,
    )

    contract: Mapped[Contract] = relationship(Contract)

    proposer_id: Mapped[str] = mapped_column(String(255), nullable=False)

    sequence: Mapped[int] = mapped_column(
        nullable=False,
        doc="Submission order within the contract (1-based)",
    )

    hours_per_week: Mapped[float | None] = mapped_column(nullable=True)

    total_hours: Mapped[float | None] = mapped_column(nullable=True)

    price_per_hour: Mapped[Decimal | None] = mapped_column(nullable=True)

    end_date: Mapped[date | None] = mapped_column(nullable=True)

    status: Mapped[ProposalStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ProposalStatus.PENDING,
    )

    def __repr__(self) -> str:
        return f"<ContractChangeProposal {self.id} on {self.contract_id} {self.status}>"
