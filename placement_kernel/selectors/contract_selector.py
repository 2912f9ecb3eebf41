"""
Module: placement_kernel.selectors.contract_selector
Responsibility: Read-only queries over contracts and change proposals, and
    the ORM -> DTO conversions the contract-side services share.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ DTOs and selectors/base.py.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: no mutations.
    - DTO convention: public query methods return ContractInfo /
      ChangeProposalInfo, never ORM rows.
    - Deterministic ordering: party listings newest first, proposals in
      submission order.

Failure modes:
    - Returns None or an empty list when nothing matches; never raises on
      absence.  Raising NotFound is the services' job.
"""

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from placement_kernel.domain.dtos import ChangeProposalInfo, ContractInfo
from placement_kernel.domain.lifecycles import ContractStatus, ProposalStatus
from placement_kernel.models.contract import Contract, ContractChangeProposal
from placement_kernel.selectors.base import BaseSelector


def contract_to_info(contract: Contract) -> ContractInfo:
    """Convert ORM Contract to ContractInfo DTO."""
    return ContractInfo(
        id=contract.id,
        company_id=contract.company_id,
        student_id=contract.student_id,
        hours_per_week=contract.hours_per_week,
        total_hours=contract.total_hours,
        price_per_hour=contract.price_per_hour,
        start_date=contract.start_date,
        end_date=contract.end_date,
        status=ContractStatus(contract.status),
    )


def proposal_to_info(proposal: ContractChangeProposal) -> ChangeProposalInfo:
    """Convert ORM ContractChangeProposal to ChangeProposalInfo DTO."""
    return ChangeProposalInfo(
        id=proposal.id,
        contract_id=proposal.contract_id,
        proposer_id=proposal.proposer_id,
        hours_per_week=proposal.hours_per_week,
        total_hours=proposal.total_hours,
        price_per_hour=proposal.price_per_hour,
        end_date=proposal.end_date,
        status=ProposalStatus(proposal.status),
    )


class ContractSelector(BaseSelector[Contract]):
    """
    Selector for contract and proposal queries.

    The pair lookups here back both the authorized service calls and the
    internal existence checks; authorization is not applied at this layer.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def get_by_id(self, contract_id: UUID) -> ContractInfo | None:
        contract = self.session.get(Contract, contract_id)
        return contract_to_info(contract) if contract else None

    def active_between(self, company_id: str, student_id: str) -> ContractInfo | None:
        """The ACTIVE contract of the pair, if any."""
        contract = self.session.execute(
            self.active_between_stmt(company_id, student_id)
        ).scalar_one_or_none()
        return contract_to_info(contract) if contract else None

    def most_recent_between(self, company_id: str, student_id: str) -> ContractInfo | None:
        """Latest-ending contract of the pair, any status; ties go to the later-created one."""
        contract = self.session.execute(
            self.most_recent_between_stmt(company_id, student_id)
        ).scalars().first()
        return contract_to_info(contract) if contract else None

    def for_party(self, party_id: str) -> list[ContractInfo]:
        """All contracts where ``party_id`` is company or student, newest first."""
        stmt = (
            select(Contract)
            .where(or_(Contract.company_id == party_id, Contract.student_id == party_id))
            .order_by(Contract.start_date.desc(), Contract.created_at.desc())
        )
        return [contract_to_info(c) for c in self.session.execute(stmt).scalars()]

    def proposals_for(self, contract_id: UUID) -> list[ChangeProposalInfo]:
        """Every proposal on the contract, any status, oldest first."""
        stmt = (
            select(ContractChangeProposal)
            .where(ContractChangeProposal.contract_id == contract_id)
            .order_by(ContractChangeProposal.sequence)
        )
        return [proposal_to_info(p) for p in self.session.execute(stmt).scalars()]

    def pending_proposal_count(self, contract_id: UUID) -> int:
        stmt = select(ContractChangeProposal.id).where(
            ContractChangeProposal.contract_id == contract_id,
            ContractChangeProposal.status == ProposalStatus.PENDING.value,
        )
        return len(self.session.execute(stmt).all())

    # Statements are shared with ContractService, which needs ORM rows.

    @staticmethod
    def active_between_stmt(company_id: str, student_id: str):
        return select(Contract).where(
            Contract.company_id == company_id,
            Contract.student_id == student_id,
            Contract.status == ContractStatus.ACTIVE.value,
        )

    @staticmethod
    def most_recent_between_stmt(company_id: str, student_id: str):
        return (
            select(Contract)
            .where(
                Contract.company_id == company_id,
                Contract.student_id == student_id,
            )
            .order_by(Contract.end_date.desc(), Contract.pair_sequence.desc())
        )

    @staticmethod
    def last_pair_sequence_stmt(company_id: str, student_id: str):
        return select(func.max(Contract.pair_sequence)).where(
            Contract.company_id == company_id,
            Contract.student_id == student_id,
        )
