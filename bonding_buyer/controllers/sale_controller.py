"""
Controller for the purchase modes exposed by the entry point.

Wires the services for a configuration, reports the sale status, optionally
funds the buyer from the test faucet, and runs the orchestrator. Every mode
returns a :class:`RunResult`; only unexpected exceptions escape.
"""

from __future__ import annotations

from typing import Optional

from bonding_buyer.exceptions import ConfigError, PurchaseError, QueryError
from bonding_buyer.orchestrators.purchase_orchestrator import PurchaseOrchestrator
from bonding_buyer.schemas.purchase_schema import RunResult, SaleStatus
from bonding_buyer.services.allowance_service import AllowanceManager
from bonding_buyer.services.faucet_service import FaucetService
from bonding_buyer.services.price_oracle_service import PriceOracleClient
from bonding_buyer.services.revert_decoder import RevertDecoder
from bonding_buyer.services.sale_cap_service import SaleCapTracker
from bonding_buyer.services.simulation_service import TransactionSimulator
from bonding_buyer.services.web3_service import Web3Service
from bonding_buyer.utils.config import BuyerConfig
from bonding_buyer.utils.logger import logger_manager, log_function
from bonding_buyer.utils.web3_utils import format_units

logger = logger_manager.setup_logger(__name__)

MODES = ("status", "remaining", "remaining-single", "amount")


class SaleController:
    """Handle status and buy requests for one sale."""

    def __init__(
        self,
        config: BuyerConfig,
        w3s: Web3Service,
        orchestrator: PurchaseOrchestrator,
        faucet: Optional[FaucetService] = None,
    ) -> None:
        self.config = config
        self.w3s = w3s
        self.orchestrator = orchestrator
        self.faucet = faucet

    @classmethod
    def from_config(cls, config: BuyerConfig, w3s: Optional[Web3Service] = None) -> "SaleController":
        w3s = w3s or Web3Service(config)
        timeout = config.confirmation_timeout_secs
        decoder = RevertDecoder()
        orchestrator = PurchaseOrchestrator(
            w3s=w3s,
            oracle=PriceOracleClient(w3s),
            allowance=AllowanceManager(w3s, confirmation_timeout_secs=timeout),
            simulator=TransactionSimulator(w3s, decoder),
            cap_tracker=SaleCapTracker(w3s, config.cap_numerator, config.cap_denominator),
            decoder=decoder,
            confirmation_timeout_secs=timeout,
        )
        faucet = FaucetService(w3s, confirmation_timeout_secs=timeout) if config.faucet_mint else None
        return cls(config, w3s, orchestrator, faucet)

    @log_function
    def status(self) -> SaleStatus:
        tracker = self.orchestrator.cap_tracker
        state = tracker.read_state()
        remaining = tracker.remaining(state)
        try:
            launch_decimals = int(self.w3s.launch_decimals())
            launch_token = self.w3s.launch_token_address()
            pool = self.w3s.raydium_pool()
        except Exception as e:
            raise QueryError(f"sale status unavailable: {e}", cause=e) from e
        st = SaleStatus(
            launch_token=launch_token,
            cap=state.cap,
            already_minted=state.already_minted,
            remaining=remaining,
            raydium_pool=pool,
            launch_decimals=launch_decimals,
        )
        st.formatted = {
            "cap": format_units(st.cap, launch_decimals),
            "already_minted": format_units(st.already_minted, launch_decimals),
            "remaining": format_units(st.remaining, launch_decimals),
        }
        logger.info("─ Sale status ─")
        logger.info(f"sale cap      : {st.formatted['cap']}")
        logger.info(f"alreadyMinted : {st.formatted['already_minted']}")
        logger.info(f"tokensLeft    : {st.formatted['remaining']}")
        logger.info(f"raydium pool  : {st.raydium_pool}")
        return st

    def _fund_buyer(self, token_quantity: int) -> None:
        if not self.faucet or token_quantity <= 0:
            return
        cost = self.orchestrator.oracle.cost_for_tokens(token_quantity)
        amount = cost * self.config.faucet_buffer_multiplier
        if amount > 0:
            self.faucet.fund(self.w3s.buyer_address, amount)

    @log_function
    def run(self, mode: str = "remaining") -> RunResult:
        if mode not in MODES:
            return RunResult(ok=False, mode=mode, error=f"unknown mode {mode!r}; expected one of {MODES}")

        try:
            status = self.status()
            if mode == "status":
                return RunResult(ok=True, mode=mode, status=status)

            if mode == "amount":
                if not self.config.purchase_amount:
                    raise ConfigError("mode 'amount' needs PURCHASE_AMOUNT")
                self._fund_buyer(self.config.purchase_amount)
                attempts = [self.orchestrator.buy(self.config.purchase_amount)]
            else:
                self._fund_buyer(status.remaining)
                attempts = self.orchestrator.buy_remaining(split=(mode == "remaining"))
        except PurchaseError as e:
            logger.error(f"{mode} failed: {e}")
            return RunResult(ok=False, mode=mode, error=str(e), error_kind=e.kind)

        failed = [a for a in attempts if not a.is_success]
        error = str(failed[0].error) if failed else None
        error_kind = failed[0].error.kind if failed else None
        result = RunResult(ok=not failed, mode=mode, attempts=attempts, status=status, error=error, error_kind=error_kind)
        self._log_summary(result)
        return result

    def _stable_decimals(self) -> int:
        try:
            return int(self.w3s.stable_decimals())
        except Exception as e:
            logger.debug(f"stable decimals unavailable, assuming 18: {e}")
            return 18

    def _log_summary(self, result: RunResult) -> None:
        last = next((a.report for a in reversed(result.attempts) if a.report), None)
        logger.info("── Final state ──")
        for a in result.attempts:
            logger.info(f"{a.tag}: {a.state.value}{' → ' + str(a.error) if a.error else ''}")
        if last is not None:
            decimals = result.status.launch_decimals if result.status else 18
            logger.info(f"saleMinted   : {format_units(last.sale_minted, decimals)}")
            logger.info(f"buyer balance: {format_units(last.buyer_balance, decimals)}")
            logger.info(f"sale stable  : {format_units(last.sale_stable_balance, self._stable_decimals())}")
            logger.info(f"Raydium pool : {last.raydium_pool}")
