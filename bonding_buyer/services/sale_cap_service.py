"""
Sale cap bookkeeping.

``remaining`` and ``split_into_tranches`` are pure integer arithmetic with
floor division; ``read_state`` is the only ledger access. For an odd
remainder the second tranche is the larger one, and it is the buy that is
expected to exhaust the cap and trigger the sale's finalization.
"""

from __future__ import annotations

from bonding_buyer.exceptions import QueryError
from bonding_buyer.models.sale_state import SaleState
from bonding_buyer.models.tranche_plan import TranchePlan
from bonding_buyer.services.web3_service import Web3Service
from bonding_buyer.utils.logger import logger_manager

logger = logger_manager.setup_logger(__name__)


class SaleCapTracker:
    def __init__(self, w3s: Web3Service, cap_numerator: int = 30, cap_denominator: int = 100) -> None:
        self.w3s = w3s
        self.cap_numerator = cap_numerator
        self.cap_denominator = cap_denominator

    def read_state(self) -> SaleState:
        try:
            max_supply = int(self.w3s.max_supply())
            minted = int(self.w3s.sale_minted())
        except Exception as e:
            raise QueryError(f"sale state unavailable: {e}", details={"call": "maxSupply/saleMinted"}, cause=e) from e
        return SaleState(
            max_supply=max_supply,
            cap_numerator=self.cap_numerator,
            cap_denominator=self.cap_denominator,
            already_minted=minted,
        )

    @staticmethod
    def remaining(sale_state: SaleState) -> int:
        left = sale_state.cap - sale_state.already_minted
        if left < 0:
            logger.warning(f"saleMinted {sale_state.already_minted} is above cap {sale_state.cap}; treating as exhausted")
            return 0
        return left

    @staticmethod
    def split_into_tranches(remaining: int) -> TranchePlan:
        if remaining < 0:
            raise ValueError("remaining must be >= 0")
        first = remaining // 2
        return TranchePlan(first=first, second=remaining - first)
