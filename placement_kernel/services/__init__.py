"""Write-side services for the placement kernel."""

from placement_kernel.services.change_proposal_service import ChangeProposalService
from placement_kernel.services.contract_service import ContractService
from placement_kernel.services.offer_service import OfferService

__all__ = [
    "ChangeProposalService",
    "ContractService",
    "OfferService",
]
