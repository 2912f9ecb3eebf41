"""
Tests for ChangeProposalService.

Covers:
- Filing: authorization, contract state, coherence
- Accept / reject: counter-party only, contract re-read under lock,
  compute-then-validate amendment
- Lazy invalidation of proposals overtaken by another acceptance
- Deletion by the proposer and listing
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from placement_kernel.domain.lifecycles import ContractStatus, ProposalStatus
from placement_kernel.domain.terms import ProposalDelta
from placement_kernel.exceptions import (
    AccessDeniedError,
    ChangeProposalNotFoundError,
    ContractNotFoundError,
    InactiveContractError,
    InvalidChangeProposalError,
)
from placement_kernel.models.contract import Contract, ContractChangeProposal
from tests.conftest import COMPANY_ID

START = date(2024, 1, 1)


class TestSubmitProposal:
    def test_party_files_pending_proposal(self, proposal_service, active_contract, company):
        info = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )

        assert info.status == ProposalStatus.PENDING
        assert info.proposer_id == COMPANY_ID
        assert info.total_hours == 200
        assert info.hours_per_week is None
        assert info.end_date is None

    def test_missing_contract(self, proposal_service, company):
        with pytest.raises(ContractNotFoundError):
            proposal_service.submit_proposal(uuid4(), company, ProposalDelta(total_hours=200))

    def test_outsider_denied(self, proposal_service, active_contract, outsider):
        with pytest.raises(AccessDeniedError):
            proposal_service.submit_proposal(
                active_contract.id, outsider, ProposalDelta(total_hours=200)
            )

    def test_inactive_contract_checked_before_party(
        self, proposal_service, contract_service, active_contract, company, outsider
    ):
        contract_service.terminate(active_contract.id, company)
        with pytest.raises(InactiveContractError):
            proposal_service.submit_proposal(
                active_contract.id, outsider, ProposalDelta(total_hours=200)
            )

    @pytest.mark.parametrize(
        "delta, message",
        [
            (ProposalDelta(), "The proposal does not change anything."),
            (ProposalDelta(hours_per_week=21), "Hours per week exceed the maximum of 20."),
            (ProposalDelta(total_hours=600), "The contract would exceed the maximum duration of 26 weeks."),
            (ProposalDelta(end_date=START - timedelta(days=1)), "The end date may not precede the start date."),
            (ProposalDelta(end_date=START + timedelta(weeks=40)), "The contract would exceed the maximum duration of 26 weeks."),
        ],
    )
    def test_incoherent_delta(self, proposal_service, active_contract, student, delta, message):
        with pytest.raises(InvalidChangeProposalError) as exc_info:
            proposal_service.submit_proposal(active_contract.id, student, delta)

        assert exc_info.value.reason == InvalidChangeProposalError.INCOHERENT
        assert str(exc_info.value) == message

    def test_submission_order_is_recorded(self, proposal_service, active_contract, company, student):
        first = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        second = proposal_service.submit_proposal(
            active_contract.id, student, ProposalDelta(price_per_hour=Decimal("18"))
        )

        listed = proposal_service.get_proposals(active_contract.id, company)
        assert [p.id for p in listed] == [first.id, second.id]

    def test_numbering_runs_under_contract_lock(
        self, proposal_service, contract_service, active_contract, company, monkeypatch
    ):
        locked = []
        original = contract_service.get_for_update

        def recording_lock(contract_id):
            locked.append(contract_id)
            return original(contract_id)

        monkeypatch.setattr(contract_service, "get_for_update", recording_lock)

        proposal_service.submit_proposal(active_contract.id, company, ProposalDelta(total_hours=200))

        assert locked == [active_contract.id]

    def test_duplicate_sequence_rejected_by_schema(
        self, session, proposal_service, active_contract, company
    ):
        filed = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        twin = ContractChangeProposal(
            contract_id=active_contract.id,
            proposer_id=COMPANY_ID,
            sequence=session.get(ContractChangeProposal, filed.id).sequence,
            total_hours=300,
            status=ProposalStatus.PENDING.value,
        )

        with pytest.raises(IntegrityError):
            with session.begin_nested():
                session.add(twin)
                session.flush()


class TestAcceptProposal:
    def test_counter_party_accepts_and_contract_is_amended(
        self, proposal_service, active_contract, company, student
    ):
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )

        contract = proposal_service.accept_proposal(proposal.id, student)

        assert contract.total_hours == 200
        assert contract.end_date == START + timedelta(weeks=10)
        assert contract.start_date == START
        statuses = [p.status for p in proposal_service.get_proposals(contract.id, student)]
        assert statuses == [ProposalStatus.ACCEPTED]

    def test_price_change(self, proposal_service, active_contract, company, student):
        proposal = proposal_service.submit_proposal(
            active_contract.id, student, ProposalDelta(price_per_hour=Decimal("19.50"))
        )
        contract = proposal_service.accept_proposal(proposal.id, company)
        assert contract.price_per_hour == Decimal("19.50")
        assert contract.end_date == active_contract.end_date

    def test_proposer_cannot_accept_own_proposal(
        self, proposal_service, active_contract, company
    ):
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        with pytest.raises(AccessDeniedError):
            proposal_service.accept_proposal(proposal.id, company)

    def test_outsider_cannot_accept(self, proposal_service, active_contract, company, outsider):
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        with pytest.raises(AccessDeniedError):
            proposal_service.accept_proposal(proposal.id, outsider)

    def test_missing_proposal(self, proposal_service, student):
        with pytest.raises(ChangeProposalNotFoundError):
            proposal_service.accept_proposal(uuid4(), student)

    def test_second_accept_fails(self, proposal_service, active_contract, company, student):
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        proposal_service.accept_proposal(proposal.id, student)

        with pytest.raises(InvalidChangeProposalError) as exc_info:
            proposal_service.accept_proposal(proposal.id, student)

        assert exc_info.value.reason == InvalidChangeProposalError.NOT_PENDING
        assert str(exc_info.value) == "The proposal has already been accepted."

    def test_accept_after_reject_fails(self, proposal_service, active_contract, company, student):
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        proposal_service.reject_proposal(proposal.id, student)

        with pytest.raises(InvalidChangeProposalError) as exc_info:
            proposal_service.accept_proposal(proposal.id, student)
        assert str(exc_info.value) == "The proposal has already been rejected."

    def test_terminated_contract_voids_pending_proposal(
        self, proposal_service, contract_service, active_contract, company, student
    ):
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        contract_service.terminate(active_contract.id, company)

        with pytest.raises(InactiveContractError):
            proposal_service.accept_proposal(proposal.id, student)
        with pytest.raises(InactiveContractError):
            proposal_service.reject_proposal(proposal.id, student)

    def test_expired_contract_voids_pending_proposal(
        self, proposal_service, contract_service, active_contract, company, student
    ):
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        contract_service.expire_due(as_of=date(2030, 1, 1))

        with pytest.raises(InactiveContractError):
            proposal_service.accept_proposal(proposal.id, student)
        with pytest.raises(InactiveContractError):
            proposal_service.get_proposals(active_contract.id, student)

    def test_contract_status_is_reread_not_taken_from_cache(
        self, session, proposal_service, active_contract, company, student
    ):
        """A termination the session has not seen must still block acceptance."""
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        cached = session.get(Contract, active_contract.id)
        session.execute(
            update(Contract)
            .where(Contract.id == active_contract.id)
            .values(status=ContractStatus.TERMINATED.value)
            .execution_options(synchronize_session=False)
        )
        assert cached.status == ContractStatus.ACTIVE.value

        with pytest.raises(InactiveContractError):
            proposal_service.accept_proposal(proposal.id, student)

    def test_end_date_too_soon(self, session, proposal_service, active_contract, company, student):
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(end_date=START + timedelta(weeks=10))
        )

        with pytest.raises(InvalidChangeProposalError) as exc_info:
            proposal_service.accept_proposal(proposal.id, student)

        assert exc_info.value.reason == InvalidChangeProposalError.END_DATE_TOO_SOON
        contract = session.get(Contract, active_contract.id)
        assert contract.end_date == active_contract.end_date

    def test_explicit_end_date_after_floor(
        self, proposal_service, active_contract, company, student
    ):
        end = START + timedelta(weeks=15)
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200, end_date=end)
        )
        contract = proposal_service.accept_proposal(proposal.id, student)
        assert contract.end_date == end

    def test_raising_hours_to_21_fails_at_accept(
        self, session, proposal_service, active_contract, student
    ):
        """520h at 20h/week runs the full 26 weeks; 21h/week must not be accepted.

        Filing rejects 21h/week outright, so the row is written directly, as a
        proposal filed under a laxer ceiling would be.
        """
        assert active_contract.end_date == START + timedelta(weeks=26)
        row = ContractChangeProposal(
            contract_id=active_contract.id,
            proposer_id=COMPANY_ID,
            sequence=1,
            hours_per_week=21,
            status=ProposalStatus.PENDING.value,
        )
        session.add(row)
        session.flush()

        with pytest.raises(InvalidChangeProposalError) as exc_info:
            proposal_service.accept_proposal(row.id, student)

        assert exc_info.value.reason == InvalidChangeProposalError.NO_LONGER_VALID
        contract = session.get(Contract, active_contract.id)
        assert contract.hours_per_week == 20
        assert contract.end_date == START + timedelta(weeks=26)
        assert row.status == ProposalStatus.PENDING.value

    def test_logs_acceptance_with_contract_context(
        self, proposal_service, active_contract, company, student, captured_logs
    ):
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        proposal_service.accept_proposal(proposal.id, student)

        record = next(r for r in captured_logs() if r["message"] == "proposal_accepted")
        assert record["contract_id"] == str(active_contract.id)
        assert record["proposal_id"] == str(proposal.id)


class TestLazyInvalidation:
    def test_overtaken_proposal_stays_pending_and_fails_at_accept(
        self, proposal_service, create_contract, company, student
    ):
        contract = create_contract(hours_per_week=10, total_hours=100)
        longer = proposal_service.submit_proposal(
            contract.id, company, ProposalDelta(total_hours=250)
        )
        fewer_hours = proposal_service.submit_proposal(
            contract.id, company, ProposalDelta(hours_per_week=8)
        )

        amended = proposal_service.accept_proposal(longer.id, student)
        assert amended.end_date == START + timedelta(weeks=25)

        statuses = {p.id: p.status for p in proposal_service.get_proposals(contract.id, student)}
        assert statuses[fewer_hours.id] == ProposalStatus.PENDING

        # 250h at 8h/week would take 32 weeks
        with pytest.raises(InvalidChangeProposalError) as exc_info:
            proposal_service.accept_proposal(fewer_hours.id, student)
        assert exc_info.value.reason == InvalidChangeProposalError.NO_LONGER_VALID

    def test_unrelated_pending_proposal_still_applies(
        self, proposal_service, active_contract, company, student
    ):
        shorter = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        pricier = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(price_per_hour=Decimal("16"))
        )

        proposal_service.accept_proposal(shorter.id, student)
        contract = proposal_service.accept_proposal(pricier.id, student)

        assert contract.total_hours == 200
        assert contract.price_per_hour == Decimal("16")


class TestRejectDeleteList:
    def test_reject_leaves_contract_untouched(
        self, proposal_service, contract_service, active_contract, company, student
    ):
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        info = proposal_service.reject_proposal(proposal.id, student)

        assert info.status == ProposalStatus.REJECTED
        assert contract_service.get_by_id(active_contract.id) == active_contract

    def test_proposer_cannot_reject(self, proposal_service, active_contract, company):
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        with pytest.raises(AccessDeniedError):
            proposal_service.reject_proposal(proposal.id, company)

    def test_proposer_deletes(self, proposal_service, active_contract, company):
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        proposal_service.delete_proposal(proposal.id, company)

        assert proposal_service.get_proposals(active_contract.id, company) == []
        with pytest.raises(ChangeProposalNotFoundError):
            proposal_service.delete_proposal(proposal.id, company)

    def test_accepted_proposal_may_be_deleted(
        self, proposal_service, active_contract, company, student
    ):
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        proposal_service.accept_proposal(proposal.id, student)
        proposal_service.delete_proposal(proposal.id, company)
        assert proposal_service.get_proposals(active_contract.id, company) == []

    def test_only_proposer_deletes(self, proposal_service, active_contract, company, student):
        proposal = proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        with pytest.raises(AccessDeniedError):
            proposal_service.delete_proposal(proposal.id, student)

    def test_list_requires_party(self, proposal_service, active_contract, outsider):
        with pytest.raises(AccessDeniedError):
            proposal_service.get_proposals(active_contract.id, outsider)

    def test_list_missing_contract(self, proposal_service, company):
        with pytest.raises(ContractNotFoundError):
            proposal_service.get_proposals(uuid4(), company)

    def test_terminate_reports_voided_proposals(
        self, proposal_service, contract_service, active_contract, company, captured_logs
    ):
        proposal_service.submit_proposal(
            active_contract.id, company, ProposalDelta(total_hours=200)
        )
        contract_service.terminate(active_contract.id, company)

        record = next(r for r in captured_logs() if r["message"] == "contract_terminated")
        assert record["voided_proposals"] == 1
