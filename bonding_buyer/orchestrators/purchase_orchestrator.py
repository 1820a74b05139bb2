# orchestrators/purchase_orchestrator.py
from __future__ import annotations

import threading
from typing import List, Optional

from web3.exceptions import ContractLogicError, TimeExhausted

from bonding_buyer.enums.attempt_state import AttemptState
from bonding_buyer.exceptions import (
    AttemptCancelled,
    ConfirmationTimeout,
    PurchaseError,
    QueryError,
    SimulationRevert,
    SubmissionError,
)
from bonding_buyer.models.purchase_attempt import PurchaseAttempt
from bonding_buyer.schemas.purchase_schema import PurchaseReport
from bonding_buyer.services.allowance_service import AllowanceManager
from bonding_buyer.services.price_oracle_service import PriceOracleClient
from bonding_buyer.services.revert_decoder import RevertDecoder
from bonding_buyer.services.sale_cap_service import SaleCapTracker
from bonding_buyer.services.simulation_service import TransactionSimulator
from bonding_buyer.services.web3_service import Web3Service
from bonding_buyer.utils.logger import logger_manager, log_function
from bonding_buyer.utils.web3_utils import extract_revert_data, format_units

logger = logger_manager.setup_logger(__name__)


class PurchaseOrchestrator:
    """
    Runs purchase attempts against the bonding-curve sale.

    Per attempt:
      QUOTING -> APPROVING -> SIMULATING -> SUBMITTING -> CONFIRMING -> REPORTING -> COMPLETED
    Any step failing moves the attempt to ABORTED with the typed error. The dry
    run always happens before the submission, so a revert it predicts costs
    nothing. Submissions and confirmations are never retried.

    Attempts are strictly sequential; the instance lock keeps two runs from
    interleaving.
    """

    def __init__(
        self,
        w3s: Web3Service,
        oracle: PriceOracleClient,
        allowance: AllowanceManager,
        simulator: TransactionSimulator,
        cap_tracker: SaleCapTracker,
        decoder: Optional[RevertDecoder] = None,
        confirmation_timeout_secs: Optional[float] = None,
    ) -> None:
        self.w3s = w3s
        self.oracle = oracle
        self.allowance = allowance
        self.simulator = simulator
        self.cap_tracker = cap_tracker
        self.decoder = decoder or simulator.decoder
        self.confirmation_timeout_secs = confirmation_timeout_secs
        self._run_lock = threading.RLock()
        self._stop = threading.Event()
        self._launch_decimals: Optional[int] = None
        self._stable_decimals: Optional[int] = None

    # ---------- control ----------
    def stop(self) -> None:
        logger.info("Stop requested; no new submission will be sent.")
        self._stop.set()

    def _check_stop(self, attempt: PurchaseAttempt) -> None:
        if self._stop.is_set():
            raise AttemptCancelled(f"{attempt.tag} cancelled in state {attempt.state.value}")

    # ---------- formatting ----------
    def _fmt_tokens(self, raw: int) -> str:
        if self._launch_decimals is None:
            try:
                self._launch_decimals = int(self.w3s.launch_decimals())
            except Exception as e:
                logger.debug(f"launch decimals unavailable, assuming 18: {e}")
                self._launch_decimals = 18
        return format_units(raw, self._launch_decimals)

    def _fmt_stable(self, raw: int) -> str:
        if self._stable_decimals is None:
            try:
                self._stable_decimals = int(self.w3s.stable_decimals())
            except Exception as e:
                logger.debug(f"stable decimals unavailable, assuming 18: {e}")
                self._stable_decimals = 18
        return format_units(raw, self._stable_decimals)

    # ---------- entry points ----------
    @log_function
    def buy(self, token_quantity: int) -> PurchaseAttempt:
        return self.run_attempt(token_quantity, tag="buy")

    @log_function
    def buy_remaining(self, split: bool = True) -> List[PurchaseAttempt]:
        """
        Buy whatever is left of the sale cap, as two tranches or as one.

        The closing tranche is sized from a fresh read taken right before it
        runs, so it still exhausts the cap when someone else bought in
        between. Zero-sized tranches are skipped and an aborted tranche ends
        the run.
        """
        with self._run_lock:
            state = self.cap_tracker.read_state()
            remaining = self.cap_tracker.remaining(state)
            logger.info(
                f"Sale status: cap={self._fmt_tokens(state.cap)} "
                f"alreadyMinted={self._fmt_tokens(state.already_minted)} "
                f"tokensLeft={self._fmt_tokens(remaining)}"
            )
            if state.exhausted:
                logger.info("Sale cap already exhausted; nothing to buy.")
                return []

            if split:
                quantities = self.cap_tracker.split_into_tranches(remaining).as_list()
            else:
                quantities = [remaining]

            attempts: List[PurchaseAttempt] = []
            total = len(quantities)
            for idx, qty in enumerate(quantities, start=1):
                tag = f"{idx}/{total}"
                if idx == total and idx > 1:
                    qty = self._closing_quantity(tag, qty)
                if qty == 0:
                    logger.info(f"{tag} → empty tranche, skipped")
                    continue
                attempt = self.run_attempt(qty, tag=tag)
                attempts.append(attempt)
                if not attempt.is_success:
                    logger.warning(f"{tag} ended {attempt.state.value}; remaining tranches not started")
                    break
            return attempts

    def _closing_quantity(self, tag: str, planned: int) -> int:
        try:
            fresh = self.cap_tracker.remaining(self.cap_tracker.read_state())
        except QueryError as e:
            # the attempt re-reads while quoting and aborts there if the node is still down
            logger.warning(f"{tag} → fresh read failed, keeping planned size: {e}")
            return planned
        if fresh != planned:
            logger.info(f"{tag} → resized {self._fmt_tokens(planned)} → {self._fmt_tokens(fresh)} to close the cap")
        return fresh

    # ---------- state machine ----------
    def run_attempt(self, token_quantity: int, tag: str = "buy") -> PurchaseAttempt:
        if token_quantity < 0:
            raise ValueError("token_quantity must be >= 0")

        with self._run_lock:
            attempt = PurchaseAttempt(tag=tag, token_quantity=token_quantity)
            try:
                self._check_stop(attempt)

                attempt.transition_to(AttemptState.QUOTING)
                self._quote(attempt)

                attempt.transition_to(AttemptState.APPROVING)
                self.allowance.ensure_allowance(
                    self.w3s.buyer_address, self.w3s.sale_address, attempt.quote.payment_cost
                )

                attempt.transition_to(AttemptState.SIMULATING)
                sim = self.simulator.simulate_purchase(attempt.quote.payment_cost)
                if not sim.ok:
                    raise SimulationRevert(sim.reason, details=sim.to_dict())

                self._check_stop(attempt)
                attempt.transition_to(AttemptState.SUBMITTING)
                attempt.tx_hash = self._submit(attempt.quote.payment_cost)

                attempt.transition_to(AttemptState.CONFIRMING)
                receipt = self._confirm(attempt.tx_hash)
                logger.info(f"{tag} ✓ tx {attempt.tx_hash}")

                attempt.transition_to(AttemptState.REPORTING)
                attempt.report = self._report(attempt.tx_hash, receipt)
                logger.info(f"{tag} → saleMinted now {self._fmt_tokens(attempt.report.sale_minted)}")
                if attempt.report.finalized:
                    logger.info(f"{tag} → sale finalized, pool {attempt.report.raydium_pool}")

                attempt.transition_to(AttemptState.COMPLETED)
            except PurchaseError as e:
                logger.error(f"{tag} 💥 aborted in {attempt.state.value} → {e}")
                attempt.abort(e)
            return attempt

    def _quote(self, attempt: PurchaseAttempt) -> None:
        qty = attempt.token_quantity
        # fresh read per attempt; the previous tranche moved the curve and the cap
        left = self.cap_tracker.remaining(self.cap_tracker.read_state())
        if qty > left:
            logger.warning(f"{attempt.tag} → asks {qty} but only {left} left; the dry run decides")

        attempt.quote = self.oracle.quote(qty)
        logger.info(f"{attempt.tag} → want {self._fmt_tokens(qty)} tokens")
        logger.info(f"{attempt.tag} → need {self._fmt_stable(attempt.quote.payment_cost)} stable")
        logger.info(f"{attempt.tag} → previewMint {self._fmt_tokens(attempt.quote.preview_tokens)} tokens")

    def _submit(self, payment_cost: int) -> str:
        details = {"payment_cost": payment_cost}
        try:
            tx = self.w3s.build_buy(payment_cost)
        except ContractLogicError as e:
            # gas estimation replays the call: state moved after the dry run
            reason = self.decoder.decode(extract_revert_data(e), message=str(e))
            raise SubmissionError(
                f"buy({payment_cost}) rejected at submission: {reason}",
                details={**details, "reason": str(reason), "raw_data": reason.data},
                cause=e,
            ) from e
        except Exception as e:
            raise SubmissionError(f"buy({payment_cost}) could not be built: {e}", details=details, cause=e) from e

        try:
            return self.w3s.sign_and_send(tx)
        except Exception as e:
            raise SubmissionError(f"buy({payment_cost}) could not be sent: {e}", details=details, cause=e) from e

    def _confirm(self, tx_hash: str) -> dict:
        details = {"tx_hash": tx_hash}
        try:
            receipt = self.w3s.wait_for_receipt(tx_hash, timeout=self.confirmation_timeout_secs)
        except TimeExhausted as e:
            raise ConfirmationTimeout(f"{tx_hash} not confirmed in time", details=details, cause=e) from e
        except Exception as e:
            raise ConfirmationTimeout(f"{tx_hash} confirmation not observed: {e}", details=details, cause=e) from e

        if int(receipt.get("status", 0)) != 1:
            raise SubmissionError(f"{tx_hash} reverted on-chain", details={**details, "receipt": dict(receipt)})
        return receipt

    def _report(self, tx_hash: str, receipt: dict) -> PurchaseReport:
        try:
            return PurchaseReport(
                sale_minted=int(self.w3s.sale_minted()),
                buyer_balance=int(self.w3s.launch_balance_of(self.w3s.buyer_address)),
                raydium_pool=str(self.w3s.raydium_pool()),
                sale_stable_balance=int(self.w3s.stable_balance_of(self.w3s.sale_address)),
                tx_hash=tx_hash,
                gas_used=int(receipt.get("gasUsed", 0) or 0),
            )
        except Exception as e:
            raise QueryError(
                f"{tx_hash} confirmed but post-state unavailable: {e}",
                details={"tx_hash": tx_hash},
                cause=e,
            ) from e
