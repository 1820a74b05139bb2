"""
Quotes from the bonding-curve sale.

Both directions are plain contract reads: free, side-effect free and
repeatable. They are never cached because every purchase moves the curve.
"""

from __future__ import annotations

from bonding_buyer.exceptions import QueryError
from bonding_buyer.models.quote import Quote
from bonding_buyer.services.web3_service import Web3Service
from bonding_buyer.utils.logger import logger_manager, log_function

logger = logger_manager.setup_logger(__name__)


class PriceOracleClient:
    def __init__(self, w3s: Web3Service) -> None:
        self.w3s = w3s

    def cost_for_tokens(self, token_quantity: int) -> int:
        """Stable-token minor units needed to mint ``token_quantity`` sale tokens."""
        if token_quantity < 0:
            raise ValueError("token_quantity must be >= 0")
        try:
            return int(self.w3s.get_usdt_to_pay(token_quantity))
        except Exception as e:
            raise QueryError(
                f"getUsdtToPay({token_quantity}) failed: {e}",
                details={"call": "getUsdtToPay", "token_quantity": token_quantity},
                cause=e,
            ) from e

    def tokens_for_cost(self, payment_cost: int) -> int:
        """Sale tokens that ``payment_cost`` mints at the current curve position."""
        if payment_cost < 0:
            raise ValueError("payment_cost must be >= 0")
        try:
            return int(self.w3s.get_amount(payment_cost))
        except Exception as e:
            raise QueryError(
                f"getAmount({payment_cost}) failed: {e}",
                details={"call": "getAmount", "payment_cost": payment_cost},
                cause=e,
            ) from e

    @log_function
    def quote(self, token_quantity: int) -> Quote:
        cost = self.cost_for_tokens(token_quantity)
        preview = self.tokens_for_cost(cost)
        q = Quote(token_quantity=token_quantity, payment_cost=cost, preview_tokens=preview)
        if abs(q.preview_drift) > 1:
            logger.warning(f"inverse quote drifts by {q.preview_drift} for {token_quantity} tokens")
        return q
