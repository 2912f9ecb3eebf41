"""
ChangeProposalService -- negotiation of amendments to ACTIVE contracts.

Responsibility:
    Files, accepts, rejects, deletes and lists change proposals.  A
    proposal is checked for coherence when filed and fully re-validated
    against the live contract when accepted, since another proposal may
    have been accepted in between.

Architecture position:
    Kernel > Services -- imperative shell.  Delegates the actual amendment
    to ContractService.apply_proposal, the single writer of contract terms.

Invariants enforced:
    - Only a party may file or list proposals; only the counter-party of
      the proposer may accept or reject; only the proposer may delete.
    - Accept and reject re-read the contract under SELECT ... FOR UPDATE
      (populate_existing) and require it to be ACTIVE at that moment,
      whatever its status was when the proposal was filed.
    - A proposal leaves PENDING at most once.
    - Overtaken proposals are not invalidated eagerly; they stay PENDING
      and fail at accept time.
    - Submissions hold the contract row lock while numbering, so the next
      sequence is unique per contract (backed by a unique index).
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - ContractNotFoundError, ChangeProposalNotFoundError.
    - AccessDeniedError: caller lacks the right relation to the proposal.
    - InactiveContractError: contract is TERMINATED or EXPIRED.
    - InvalidChangeProposalError: reason incoherent, not_pending,
      end_date_too_soon or no_longer_valid.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from placement_kernel.domain.dtos import ChangeProposalInfo, ContractInfo
from placement_kernel.domain.identity import Caller
from placement_kernel.domain.lifecycles import (
    CONTRACT_WORKFLOW,
    PROPOSAL_WORKFLOW,
    ProposalStatus,
)
from placement_kernel.domain.terms import ProposalDelta, delta_violation
from placement_kernel.exceptions import (
    AccessDeniedError,
    ChangeProposalNotFoundError,
    ContractNotFoundError,
    InactiveContractError,
    InvalidChangeProposalError,
)
from placement_kernel.logging_config import LogContext, get_logger
from placement_kernel.models.contract import Contract, ContractChangeProposal
from placement_kernel.selectors.contract_selector import (
    ContractSelector,
    proposal_to_info,
)
from placement_kernel.services.base import BaseService
from placement_kernel.services.contract_service import ContractService

logger = get_logger("services.change_proposal")


class ChangeProposalService(BaseService[ContractChangeProposal]):
    """
    Service for the change-proposal protocol.

    Contract:
        Every public method takes a verified ``Caller``.  Returns frozen
        DTOs; accept returns the amended ``ContractInfo``.

    Non-goals:
        - Does NOT compute amended terms itself (ContractService does).
        - Does NOT reject overtaken proposals when another one is accepted.
    """

    def __init__(self, session: Session, contract_service: ContractService):
        super().__init__(session)
        self._contracts = contract_service
        self._selector = ContractSelector(session)

    def _get_proposal(self, proposal_id: UUID) -> ContractChangeProposal:
        proposal = self.session.get(ContractChangeProposal, proposal_id)
        if proposal is None:
            raise ChangeProposalNotFoundError(str(proposal_id))
        return proposal

    def _lock_proposal(self, proposal_id: UUID) -> ContractChangeProposal:
        proposal = self.session.execute(
            select(ContractChangeProposal)
            .where(ContractChangeProposal.id == proposal_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if proposal is None:
            raise ChangeProposalNotFoundError(str(proposal_id))
        return proposal

    def _get_contract(self, contract_id: UUID) -> Contract:
        contract = self.session.get(Contract, contract_id)
        if contract is None:
            raise ContractNotFoundError(contract_id=str(contract_id))
        return contract

    def _lock_for_review(
        self,
        proposal_id: UUID,
        caller: Caller,
        action: str,
    ) -> tuple[Contract, ContractChangeProposal]:
        """
        Shared preamble of accept and reject.

        Order of checks: proposal exists, caller is the counter-party,
        contract is ACTIVE (read under lock), proposal is PENDING (re-read
        after the contract lock is held).
        """
        proposal = self._get_proposal(proposal_id)
        contract = self._contracts.get_for_update(proposal.contract_id)

        if (
            not contract.is_party(caller.identity)
            or caller.identity == proposal.proposer_id
        ):
            raise AccessDeniedError(caller.identity)

        if not CONTRACT_WORKFLOW.allows(contract.status, "amend"):
            raise InactiveContractError(str(contract.id), contract.status)

        proposal = self._lock_proposal(proposal_id)
        if not PROPOSAL_WORKFLOW.allows(proposal.status, action):
            raise InvalidChangeProposalError(
                InvalidChangeProposalError.NOT_PENDING,
                f"The proposal has already been {proposal.status.lower()}.",
            )
        return contract, proposal

    def _next_sequence(self, contract_id: UUID) -> int:
        current = self.session.execute(
            select(func.max(ContractChangeProposal.sequence)).where(
                ContractChangeProposal.contract_id == contract_id
            )
        ).scalar()
        return (current or 0) + 1

    def submit_proposal(
        self,
        contract_id: UUID,
        caller: Caller,
        delta: ProposalDelta,
    ) -> ChangeProposalInfo:
        """
        File a change proposal on an ACTIVE contract.

        Raises:
            ContractNotFoundError: If the contract doesn't exist.
            InactiveContractError: If the contract is not ACTIVE.
            AccessDeniedError: If the caller is not a party.
            InvalidChangeProposalError: reason ``incoherent``.
        """
        contract = self._contracts.get_for_update(contract_id)
        if not CONTRACT_WORKFLOW.allows(contract.status, "propose"):
            raise InactiveContractError(str(contract.id), contract.status)
        if not contract.is_party(caller.identity):
            raise AccessDeniedError(caller.identity)

        message = delta_violation(contract.terms, delta, self._contracts.limits)
        if message is not None:
            raise InvalidChangeProposalError(InvalidChangeProposalError.INCOHERENT, message)

        proposal = ContractChangeProposal(
            contract_id=contract.id,
            proposer_id=caller.identity,
            sequence=self._next_sequence(contract.id),
            hours_per_week=delta.hours_per_week,
            total_hours=delta.total_hours,
            price_per_hour=delta.price_per_hour,
            end_date=delta.end_date,
            status=ProposalStatus.PENDING.value,
        )
        self.session.add(proposal)
        self.session.flush()

        logger.info(
            "proposal_submitted",
            extra={
                "proposal_id": str(proposal.id),
                "contract_id": str(contract.id),
                "proposer_id": caller.identity,
            },
        )
        return proposal_to_info(proposal)

    def accept_proposal(self, proposal_id: UUID, caller: Caller) -> ContractInfo:
        """
        Accept a proposal and amend its contract.

        Steps:
            1. Lock and re-read the contract; require ACTIVE.
            2. Require the proposal to still be PENDING.
            3. Compute the amended terms and validate them against the
               ceilings (ContractService.apply_proposal).
            4. Persist the contract and mark the proposal ACCEPTED.

        Raises:
            ChangeProposalNotFoundError, AccessDeniedError,
            InactiveContractError, InvalidChangeProposalError.
        """
        contract, proposal = self._lock_for_review(proposal_id, caller, "accept")

        with LogContext.bind(contract_id=str(contract.id), actor_id=caller.identity):
            info = self._contracts.apply_proposal(contract, proposal)
            proposal.status = ProposalStatus.ACCEPTED.value
            self.session.flush()

            logger.info(
                "proposal_accepted",
                extra={"proposal_id": str(proposal.id)},
            )
        return info

    def reject_proposal(self, proposal_id: UUID, caller: Caller) -> ChangeProposalInfo:
        """
        Reject a pending proposal.  The contract is not touched.

        Raises:
            ChangeProposalNotFoundError, AccessDeniedError,
            InactiveContractError, InvalidChangeProposalError.
        """
        contract, proposal = self._lock_for_review(proposal_id, caller, "reject")

        proposal.status = ProposalStatus.REJECTED.value
        self.session.flush()

        logger.info(
            "proposal_rejected",
            extra={
                "proposal_id": str(proposal.id),
                "contract_id": str(contract.id),
                "actor_id": caller.identity,
            },
        )
        return proposal_to_info(proposal)

    def delete_proposal(self, proposal_id: UUID, caller: Caller) -> None:
        """
        Remove a proposal, whatever its status.  Proposer only.

        Raises:
            ChangeProposalNotFoundError: If the proposal doesn't exist.
            AccessDeniedError: If the caller is not the proposer.
        """
        proposal = self._get_proposal(proposal_id)
        if proposal.proposer_id != caller.identity:
            raise AccessDeniedError(caller.identity)

        contract_id = proposal.contract_id
        self.session.delete(proposal)
        self.session.flush()

        logger.info(
            "proposal_deleted",
            extra={
                "proposal_id": str(proposal_id),
                "contract_id": str(contract_id),
            },
        )

    def get_proposals(self, contract_id: UUID, caller: Caller) -> list[ChangeProposalInfo]:
        """
        All proposals of an ACTIVE contract, any status, oldest first.

        Raises:
            ContractNotFoundError: If the contract doesn't exist.
            AccessDeniedError: If the caller is not a party.
            InactiveContractError: If the contract is not ACTIVE.
        """
        contract = self._get_contract(contract_id)
        if not contract.is_party(caller.identity):
            raise AccessDeniedError(caller.identity)
        if not contract.is_active:
            raise InactiveContractError(str(contract.id), contract.status)
        return self._selector.proposals_for(contract.id)
