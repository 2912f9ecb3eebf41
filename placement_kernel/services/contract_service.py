"""
ContractService -- contract creation, lookup, termination, expiry.

Responsibility:
    Owns the contract lifecycle (ACTIVE -> TERMINATED | EXPIRED) and is the
    only writer of contract terms: at creation through
    ``validate_and_create`` and afterwards through ``apply_proposal``.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the orchestrator
    (contract endpoints, targeted-offer and application acceptance) and by
    ChangeProposalService when a proposal is accepted.

Invariants enforced:
    - Workload ceiling: hours_per_week <= limits.max_hours_per_week and
      total_hours / hours_per_week <= limits.max_weeks at creation and
      after every amendment.
    - At most one ACTIVE contract per (company_id, student_id): pre-check
      plus the partial unique index; the loser of a concurrent creation
      gets InvalidContractError(reason="existing_contract").
    - end_date = start_date + ceil(total_hours / hours_per_week) weeks at
      creation; start_date comes from the injected clock.
    - Contracts of a pair are numbered 1, 2, ... in pair_sequence; the
      "most recent" lookup breaks end_date ties on it.
    - Status mutations re-read the row with SELECT ... FOR UPDATE.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - InvalidContractError: bad parameters or an existing active contract.
    - ContractNotFoundError: id or party pair has no contract.
    - AccessDeniedError: caller is not a party.
    - InactiveContractError: contract is not ACTIVE.
    - InvalidChangeProposalError: amendment breaks a rule (apply_proposal).
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from placement_kernel.domain.clock import Clock, SystemClock
from placement_kernel.domain.dtos import ContractDraft, ContractInfo
from placement_kernel.domain.identity import Caller
from placement_kernel.domain.lifecycles import CONTRACT_WORKFLOW, ContractStatus
from placement_kernel.domain.terms import (
    DEFAULT_LIMITS,
    ProposalDelta,
    WorkloadLimits,
    amend,
    floor_end_date,
    workload_violations,
)
from placement_kernel.exceptions import (
    AccessDeniedError,
    ContractNotFoundError,
    InactiveContractError,
    InvalidChangeProposalError,
    InvalidContractError,
)
from placement_kernel.logging_config import get_logger
from placement_kernel.models.contract import Contract, ContractChangeProposal
from placement_kernel.selectors.contract_selector import (
    ContractSelector,
    contract_to_info,
)
from placement_kernel.services.base import BaseService

logger = get_logger("services.contract")


class ContractService(BaseService[Contract]):
    """
    Service for the contract lifecycle.

    Contract:
        Accepts drafts, ids and verified ``Caller`` capabilities; returns
        frozen ``ContractInfo`` DTOs.  Mutations flush within the caller's
        transaction.

    Non-goals:
        - Does NOT negotiate amendments; ChangeProposalService does that and
          calls ``apply_proposal`` once the counter-party accepts.
        - Does NOT decide who may create a contract; contracts are created
          from an accepted application or targeted offer by the
          orchestrator.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        limits: WorkloadLimits = DEFAULT_LIMITS,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._limits = limits
        self._selector = ContractSelector(session)

    @property
    def limits(self) -> WorkloadLimits:
        return self._limits

    # =========================================================================
    # Internal lookups
    # =========================================================================

    def _get_by_id(self, contract_id: UUID) -> Contract:
        """Get contract by ID, raising if not found."""
        contract = self.session.get(Contract, contract_id)
        if contract is None:
            raise ContractNotFoundError(contract_id=str(contract_id))
        return contract

    def get_for_update(self, contract_id: UUID) -> Contract:
        """
        Re-read the contract under a row lock, bypassing the identity map.

        Returns the ORM row; used by ChangeProposalService, which must hold
        the lock for the whole accept/reject.
        """
        contract = self.session.execute(
            select(Contract)
            .where(Contract.id == contract_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if contract is None:
            raise ContractNotFoundError(contract_id=str(contract_id))
        return contract

    # =========================================================================
    # Creation
    # =========================================================================

    def _parameters_valid(self, draft: ContractDraft) -> bool:
        if not draft.company_id or not draft.student_id:
            return False
        if draft.company_id == draft.student_id:
            return False
        if draft.price_per_hour is None or draft.price_per_hour < 0:
            return False
        return not workload_violations(
            draft.hours_per_week, draft.total_hours, self._limits
        )

    def validate_and_create(self, draft: ContractDraft) -> ContractInfo:
        """
        Validate a draft and persist it as an ACTIVE contract.

        Postconditions:
            - start_date is today per the injected clock.
            - end_date is the floor end date for the workload.

        Raises:
            InvalidContractError: reason ``parameters`` when the workload,
                price or parties are invalid; reason ``existing_contract``
                when the pair already has an ACTIVE contract.
        """
        if not self._parameters_valid(draft):
            logger.warning(
                "contract_parameters_invalid",
                extra={
                    "company_id": draft.company_id,
                    "student_id": draft.student_id,
                    "hours_per_week": draft.hours_per_week,
                    "total_hours": draft.total_hours,
                },
            )
            raise InvalidContractError(InvalidContractError.PARAMETERS)

        existing = self.session.execute(
            ContractSelector.active_between_stmt(draft.company_id, draft.student_id)
        ).scalar_one_or_none()
        if existing is not None:
            raise InvalidContractError(InvalidContractError.EXISTING_CONTRACT)

        last_sequence = self.session.execute(
            ContractSelector.last_pair_sequence_stmt(draft.company_id, draft.student_id)
        ).scalar()

        start = self._clock.today()
        contract = Contract(
            company_id=draft.company_id,
            student_id=draft.student_id,
            pair_sequence=(last_sequence or 0) + 1,
            hours_per_week=draft.hours_per_week,
            total_hours=draft.total_hours,
            price_per_hour=draft.price_per_hour,
            start_date=start,
            end_date=floor_end_date(start, draft.total_hours, draft.hours_per_week),
            status=ContractStatus.ACTIVE.value,
        )

        try:
            with self.session.begin_nested():
                self.session.add(contract)
                self.session.flush()
        except IntegrityError:
            # A concurrent creation for the same pair committed first
            logger.warning(
                "concurrent_contract_creation_conflict",
                extra={
                    "company_id": draft.company_id,
                    "student_id": draft.student_id,
                },
            )
            raise InvalidContractError(InvalidContractError.EXISTING_CONTRACT)

        logger.info(
            "contract_created",
            extra={
                "contract_id": str(contract.id),
                "company_id": contract.company_id,
                "student_id": contract.student_id,
                "start_date": str(contract.start_date),
                "end_date": str(contract.end_date),
            },
        )
        return contract_to_info(contract)

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_by_id(self, contract_id: UUID) -> ContractInfo:
        """
        Get contract by ID.  Internal lookup; no authorization.

        Raises:
            ContractNotFoundError: If the contract doesn't exist.
        """
        return contract_to_info(self._get_by_id(contract_id))

    def get_contract_between(
        self,
        company_id: str,
        student_id: str,
        active: bool,
        caller: Caller,
    ) -> ContractInfo:
        """
        Get the contract between two parties.

        Args:
            active: True for the currently ACTIVE contract, False for the
                most recent one regardless of status (latest end date
                first, then latest creation).

        Raises:
            AccessDeniedError: If the caller is neither party.
            ContractNotFoundError: If no matching contract exists.
        """
        if not caller.is_party_to(company_id, student_id):
            raise AccessDeniedError(caller.identity)

        if active:
            info = self._selector.active_between(company_id, student_id)
        else:
            info = self._selector.most_recent_between(company_id, student_id)
        if info is None:
            raise ContractNotFoundError(company_id=company_id, student_id=student_id)
        return info

    def list_for_party(self, party_id: str, caller: Caller) -> list[ContractInfo]:
        """Every contract of ``party_id``, newest first.  Caller must be that party."""
        if caller.identity != party_id:
            raise AccessDeniedError(caller.identity)
        return self._selector.for_party(party_id)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def terminate(self, contract_id: UUID, caller: Caller) -> ContractInfo:
        """
        Terminate an ACTIVE contract.

        Not idempotent: terminating twice raises InactiveContractError.

        Raises:
            ContractNotFoundError: If the contract doesn't exist.
            AccessDeniedError: If the caller is not a party.
            InactiveContractError: If the contract is not ACTIVE.
        """
        contract = self.get_for_update(contract_id)
        if not contract.is_party(caller.identity):
            raise AccessDeniedError(caller.identity)
        if not CONTRACT_WORKFLOW.allows(contract.status, "terminate"):
            raise InactiveContractError(str(contract.id), contract.status)

        contract.status = ContractStatus.TERMINATED.value
        self.session.flush()

        logger.info(
            "contract_terminated",
            extra={
                "contract_id": str(contract.id),
                "actor_id": caller.identity,
                "voided_proposals": self._selector.pending_proposal_count(contract.id),
            },
        )
        return contract_to_info(contract)

    def expire_due(self, as_of: date | None = None) -> list[ContractInfo]:
        """
        Mark every ACTIVE contract that ended before ``as_of`` as EXPIRED.

        Args:
            as_of: Cut-off date; defaults to today per the injected clock.
                A contract whose end_date equals ``as_of`` is still in force.

        Returns:
            The contracts that expired in this call.
        """
        cutoff = as_of or self._clock.today()
        due = self.session.execute(
            select(Contract)
            .where(
                Contract.status == ContractStatus.ACTIVE.value,
                Contract.end_date < cutoff,
            )
            .order_by(Contract.end_date)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()

        for contract in due:
            contract.status = ContractStatus.EXPIRED.value
        self.session.flush()

        logger.info(
            "contracts_expired",
            extra={"as_of": str(cutoff), "count": len(due)},
        )
        return [contract_to_info(c) for c in due]

    # =========================================================================
    # Amendment
    # =========================================================================

    def apply_proposal(
        self,
        contract: Contract,
        proposal: ContractChangeProposal,
    ) -> ContractInfo:
        """
        Apply an accepted proposal's delta to the contract.

        The amended terms are computed and validated before any attribute of
        ``contract`` is assigned, so a failure leaves it unmodified.

        Preconditions:
            - ``contract`` was read under a row lock in this transaction
              and is ACTIVE.

        Raises:
            InactiveContractError: If the contract is not ACTIVE.
            InvalidChangeProposalError: reason ``end_date_too_soon`` or
                ``no_longer_valid``.
        """
        if not CONTRACT_WORKFLOW.allows(contract.status, "amend"):
            raise InactiveContractError(str(contract.id), contract.status)

        delta = ProposalDelta(
            hours_per_week=proposal.hours_per_week,
            total_hours=proposal.total_hours,
            price_per_hour=proposal.price_per_hour,
            end_date=proposal.end_date,
        )
        outcome = amend(contract.terms, delta, self._limits)
        if not outcome.ok:
            logger.warning(
                "contract_amendment_rejected",
                extra={
                    "contract_id": str(contract.id),
                    "proposal_id": str(proposal.id),
                    "reason": outcome.reason,
                },
            )
            raise InvalidChangeProposalError(outcome.reason, outcome.message)

        terms = outcome.terms
        contract.hours_per_week = terms.hours_per_week
        contract.total_hours = terms.total_hours
        contract.price_per_hour = terms.price_per_hour
        contract.end_date = terms.end_date
        self.session.flush()

        logger.info(
            "contract_amended",
            extra={
                "contract_id": str(contract.id),
                "proposal_id": str(proposal.id),
                "end_date": str(contract.end_date),
            },
        )
        return contract_to_info(contract)
