"""
Allowance handling for the stable token.

``ensure_allowance`` approves at most once per (owner, spender): when the
current allowance is short it approves ``MAX_UINT256`` so later purchases,
even larger ones, are no-ops. Calls for the same pair are serialized by a
per-pair lock and re-read the allowance inside it, so concurrent callers
never issue a second approval.
"""

from __future__ import annotations

import threading
from typing import Dict, Optional, Tuple

from web3.exceptions import TimeExhausted

from bonding_buyer.exceptions import ApprovalError
from bonding_buyer.models.allowance_state import AllowanceState
from bonding_buyer.services.web3_service import Web3Service
from bonding_buyer.utils.logger import logger_manager, log_function
from bonding_buyer.utils.web3_utils import MAX_UINT256

logger = logger_manager.setup_logger(__name__)


class AllowanceManager:
    def __init__(self, w3s: Web3Service, confirmation_timeout_secs: Optional[float] = None) -> None:
        self.w3s = w3s
        self.confirmation_timeout_secs = confirmation_timeout_secs
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, owner: str, spender: str) -> threading.Lock:
        key = (owner.lower(), spender.lower())
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def current(self, owner: str, spender: str) -> AllowanceState:
        try:
            amount = int(self.w3s.allowance(owner, spender))
        except Exception as e:
            raise ApprovalError(
                f"allowance({owner}, {spender}) failed: {e}",
                details={"owner": owner, "spender": spender},
                cause=e,
            ) from e
        return AllowanceState(owner=owner, spender=spender, current_amount=amount)

    @log_function
    def ensure_allowance(self, owner: str, spender: str, min_required: int) -> AllowanceState:
        if min_required < 0:
            raise ValueError("min_required must be >= 0")

        with self._lock_for(owner, spender):
            state = self.current(owner, spender)
            if state.covers(min_required):
                logger.debug(f"allowance {state.current_amount} covers {min_required}; nothing to do")
                return state

            logger.info(f"Approving stable token: {owner} -> {spender} (had {state.current_amount}, need {min_required})")
            tx_hash = self._approve_max(owner, spender)

            after = self.current(owner, spender)
            if not after.covers(min_required):
                raise ApprovalError(
                    f"allowance still {after.current_amount} after approval {tx_hash}",
                    details={"tx_hash": tx_hash, "min_required": min_required},
                )
            return after.model_copy(update={"approval_tx": tx_hash})

    def _approve_max(self, owner: str, spender: str) -> str:
        details = {"owner": owner, "spender": spender}
        try:
            tx = self.w3s.build_approve(owner, spender, MAX_UINT256)
            tx_hash = self.w3s.sign_and_send(tx)
        except Exception as e:
            raise ApprovalError(f"approve could not be sent: {e}", details=details, cause=e) from e

        details["tx_hash"] = tx_hash
        try:
            receipt = self.w3s.wait_for_receipt(tx_hash, timeout=self.confirmation_timeout_secs)
        except TimeExhausted as e:
            raise ApprovalError(f"approve {tx_hash} not confirmed in time", details=details, cause=e) from e
        except Exception as e:
            raise ApprovalError(f"approve {tx_hash} receipt failed: {e}", details=details, cause=e) from e

        if int(receipt.get("status", 0)) != 1:
            raise ApprovalError(f"approve {tx_hash} reverted", details={**details, "receipt": dict(receipt)})
        logger.info(f"✓ approve confirmed {tx_hash}")
        return tx_hash
