"""
Pre-commit dry run of ``buyFromBondingCurve``.

The purchase is executed with ``eth_call`` from the buyer against the latest
state, so nothing is persisted and no gas is paid. A revert is decoded into a
:class:`RevertReason`. The outcome is advisory: the cap or the allowance can
still move between the dry run and the real submission.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from web3.exceptions import ContractLogicError

from bonding_buyer.exceptions import QueryError
from bonding_buyer.models.revert_reason import RevertReason
from bonding_buyer.services.revert_decoder import RevertDecoder
from bonding_buyer.services.web3_service import Web3Service
from bonding_buyer.utils.logger import logger_manager, log_function
from bonding_buyer.utils.web3_utils import extract_revert_data

logger = logger_manager.setup_logger(__name__)


@dataclass
class SimulationResult:
    """Result of a dry run. ``reason`` is set only when ``ok`` is False."""
    ok: bool
    payment_cost: int = 0
    reason: Optional[RevertReason] = None
    raw_data: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "payment_cost": self.payment_cost,
            "reason": str(self.reason) if self.reason else None,
            "raw_data": self.raw_data,
        }


class TransactionSimulator:
    def __init__(self, w3s: Web3Service, decoder: Optional[RevertDecoder] = None) -> None:
        self.w3s = w3s
        self.decoder = decoder or RevertDecoder()

    @log_function
    def simulate_purchase(self, payment_cost: int) -> SimulationResult:
        try:
            self.w3s.simulate_buy(payment_cost)
        except ContractLogicError as e:
            raw = extract_revert_data(e)
            reason = self.decoder.decode(raw, message=getattr(e, "message", None) or str(e))
            logger.warning(f"dry run of buy({payment_cost}) reverts → {reason}")
            return SimulationResult(ok=False, payment_cost=payment_cost, reason=reason, raw_data=raw)
        except Exception as e:
            raise QueryError(
                f"dry run of buy({payment_cost}) could not be executed: {e}",
                details={"call": "buyFromBondingCurve", "payment_cost": payment_cost},
                cause=e,
            ) from e
        return SimulationResult(ok=True, payment_cost=payment_cost)
