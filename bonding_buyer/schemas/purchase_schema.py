"""
Result schemas emitted by the purchase pipeline.

Dataclasses describing what the ledger looked like after a purchase, the sale
status summary, and the top-level result the entry point hands back to the
hosting process.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional, TYPE_CHECKING

from bonding_buyer.utils.web3_utils import is_zero_address

if TYPE_CHECKING:
    from bonding_buyer.models.purchase_attempt import PurchaseAttempt

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


@dataclass
class PurchaseReport:
    """Post-conditions re-read after a confirmed purchase."""

    sale_minted: int
    buyer_balance: int
    raydium_pool: str
    sale_stable_balance: int
    tx_hash: str = ""
    gas_used: int = 0

    @property
    def finalized(self) -> bool:
        return not is_zero_address(self.raydium_pool)


@dataclass
class SaleStatus:
    """Sale phase summary with raw and human-formatted amounts."""

    launch_token: str
    cap: int
    already_minted: int
    remaining: int
    raydium_pool: str
    launch_decimals: int = 18
    formatted: dict[str, str] = field(default_factory=dict)

    @property
    def finalized(self) -> bool:
        return not is_zero_address(self.raydium_pool)

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "finalized": self.finalized}


@dataclass
class RunResult:
    """What an entry point returns; the process maps it to an exit status."""

    ok: bool
    mode: str
    attempts: list["PurchaseAttempt"] = field(default_factory=list)
    status: Optional[SaleStatus] = None
    error: Optional[str] = None
    # type name of the error that ended the run, e.g. "ConfigError"
    error_kind: Optional[str] = None

    @property
    def exit_code(self) -> int:
        if self.ok:
            return EXIT_OK
        return EXIT_CONFIG if self.error_kind == "ConfigError" else EXIT_FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "mode": self.mode,
            "error": self.error,
            "status": self.status.to_dict() if self.status else None,
            "attempts": [a.to_dict() for a in self.attempts],
        }
