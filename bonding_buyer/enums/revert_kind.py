"""
Named revert kinds raised by the bonding-curve sale contract.

The set is closed: a selector that is not registered decodes to ``UNKNOWN``.
"""

from __future__ import annotations

from enum import Enum


class RevertKind(str, Enum):
    """Custom errors declared by the sale contract."""

    ZERO_AMOUNT = "ZeroAmount"
    USDT_TRANSFER_FAILED = "UsdtTransferFailed"
    MAX_SUPPLY_REACHED = "MaxSupplyReached"
    UNKNOWN = "Unknown"
