"""
One purchase attempt and its state machine.

States:
  PENDING -> QUOTING -> APPROVING -> SIMULATING -> SUBMITTING -> CONFIRMING
          -> REPORTING -> COMPLETED
  any non-terminal state -> ABORTED

An attempt only lives for the duration of a run. Nothing is persisted: a
restarted process re-reads the ledger and starts new attempts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bonding_buyer.enums.attempt_state import AttemptState
from bonding_buyer.exceptions import InvalidTransitionError, PurchaseError
from bonding_buyer.models.quote import Quote
from bonding_buyer.schemas.purchase_schema import PurchaseReport

VALID_TRANSITIONS: Dict[AttemptState, List[AttemptState]] = {
    AttemptState.PENDING: [AttemptState.QUOTING, AttemptState.ABORTED],
    AttemptState.QUOTING: [AttemptState.APPROVING, AttemptState.ABORTED],
    AttemptState.APPROVING: [AttemptState.SIMULATING, AttemptState.ABORTED],
    AttemptState.SIMULATING: [AttemptState.SUBMITTING, AttemptState.ABORTED],
    AttemptState.SUBMITTING: [AttemptState.CONFIRMING, AttemptState.ABORTED],
    AttemptState.CONFIRMING: [AttemptState.REPORTING, AttemptState.ABORTED],
    AttemptState.REPORTING: [AttemptState.COMPLETED, AttemptState.ABORTED],
    AttemptState.COMPLETED: [],
    AttemptState.ABORTED: [],
}


@dataclass
class StateTransition:
    from_state: AttemptState
    to_state: AttemptState
    timestamp: str = ""
    reason: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()


@dataclass
class PurchaseAttempt:
    tag: str
    token_quantity: int
    state: AttemptState = AttemptState.PENDING
    history: List[StateTransition] = field(default_factory=list)
    quote: Optional[Quote] = None
    tx_hash: Optional[str] = None
    report: Optional[PurchaseReport] = None
    error: Optional[PurchaseError] = None

    def can_transition_to(self, new_state: AttemptState) -> bool:
        return new_state in VALID_TRANSITIONS.get(self.state, [])

    def transition_to(self, new_state: AttemptState, reason: str = "") -> StateTransition:
        if not self.can_transition_to(new_state):
            raise InvalidTransitionError(
                f"Cannot transition from {self.state.value} to {new_state.value}. "
                f"Valid transitions: {[s.value for s in VALID_TRANSITIONS.get(self.state, [])]}"
            )
        transition = StateTransition(from_state=self.state, to_state=new_state, reason=reason)
        self.history.append(transition)
        self.state = new_state
        return transition

    def abort(self, error: PurchaseError) -> StateTransition:
        self.error = error
        return self.transition_to(AttemptState.ABORTED, reason=str(error))

    @property
    def is_terminal(self) -> bool:
        return len(VALID_TRANSITIONS.get(self.state, [])) == 0

    @property
    def is_success(self) -> bool:
        return self.state == AttemptState.COMPLETED

    def visited(self, state: AttemptState) -> bool:
        return any(t.to_state == state for t in self.history)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tag": self.tag,
            "token_quantity": self.token_quantity,
            "state": self.state.value,
            "payment_cost": self.quote.payment_cost if self.quote else None,
            "tx_hash": self.tx_hash,
            "error": str(self.error) if self.error else None,
            "finalized": self.report.finalized if self.report else None,
            "history": [
                {
                    "from_state": t.from_state.value,
                    "to_state": t.to_state.value,
                    "timestamp": t.timestamp,
                    "reason": t.reason,
                }
                for t in self.history
            ],
        }
