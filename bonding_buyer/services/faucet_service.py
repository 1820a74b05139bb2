"""
Stable-token faucet for test deployments.

The mock stable token exposes ``mint``; the deployer key signs it. Real
deployments leave ``faucet_mint`` off and never reach this service.
"""

from __future__ import annotations

from typing import Optional

from bonding_buyer.exceptions import PurchaseError, SubmissionError
from bonding_buyer.services.web3_service import Web3Service
from bonding_buyer.utils.logger import logger_manager, log_function

logger = logger_manager.setup_logger(__name__)


class FaucetService:
    def __init__(self, w3s: Web3Service, confirmation_timeout_secs: Optional[float] = None) -> None:
        self.w3s = w3s
        self.confirmation_timeout_secs = confirmation_timeout_secs

    @log_function
    def fund(self, to: str, amount: int) -> str:
        """Mint ``amount`` stable tokens to ``to`` and wait for the receipt."""
        if amount <= 0:
            raise ValueError("amount must be > 0")
        try:
            tx = self.w3s.build_mint(to, amount)
            tx_hash = self.w3s.sign_and_send(tx)
            receipt = self.w3s.wait_for_receipt(tx_hash, timeout=self.confirmation_timeout_secs)
        except PurchaseError:
            raise
        except Exception as e:
            raise SubmissionError(f"mint to {to} failed: {e}", details={"to": to, "amount": amount}, cause=e) from e
        if int(receipt.get("status", 0)) != 1:
            raise SubmissionError(f"mint {tx_hash} reverted", details={"tx_hash": tx_hash, "to": to, "amount": amount})
        logger.info(f"Minted {amount} stable units to {to} (tx {tx_hash})")
        return tx_hash
