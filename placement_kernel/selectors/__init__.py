"""Read-only selectors for the placement kernel."""

from placement_kernel.selectors.contract_selector import ContractSelector
from placement_kernel.selectors.offer_selector import OfferSelector

__all__ = ["ContractSelector", "OfferSelector"]
