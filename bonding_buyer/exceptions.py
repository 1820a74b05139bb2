"""
Typed errors for bonding_buyer.

Every remote failure keeps the original payload (``cause`` and ``details``)
next to the decoded kind so an aborted attempt can be diagnosed afterwards.
"""

from __future__ import annotations

from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from bonding_buyer.models.revert_reason import RevertReason


class PurchaseError(Exception):
    """Base error for the purchase pipeline."""

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        return f"[{self.kind}] {self.message}"


class ConfigError(PurchaseError):
    """Configuration missing or invalid."""


class QueryError(PurchaseError):
    """A remote read was unreachable or returned something unusable."""


class ApprovalError(PurchaseError):
    """The approval mutation failed or was not confirmed."""


class SimulationRevert(PurchaseError):
    """The dry run reverted. Nothing was sent, nothing was spent."""

    def __init__(self, reason: "RevertReason", details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(f"simulation reverted: {reason}", details=details)
        self.reason = reason

    @property
    def kind(self) -> str:
        return f"SimulationRevert({self.reason.kind.value})"


class SubmissionError(PurchaseError):
    """The purchase was rejected after the simulation had passed."""


class ConfirmationTimeout(PurchaseError):
    """The purchase was accepted but no receipt arrived in time."""


class AttemptCancelled(PurchaseError):
    """A stop was requested before the attempt could submit."""


class InvalidTransitionError(Exception):
    """Raised when an attempt is moved to a state it cannot reach."""
