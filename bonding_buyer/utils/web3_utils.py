"""
Small helpers shared by the ledger-facing services.

Unit formatting for log lines and extraction of the raw revert payload from
the different shapes web3.py and the RPC nodes wrap it in.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

MAX_UINT256 = 2**256 - 1
ZERO_ADDRESS = "0x" + "0" * 40


def format_units(raw: int, decimals: int = 18) -> str:
    """Render a minor-unit integer as a decimal string (``ethers.formatUnits``)."""
    value = Decimal(int(raw)).scaleb(-int(decimals))
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def is_zero_address(address: str | None) -> bool:
    if not address:
        return True
    try:
        return int(address, 16) == 0
    except ValueError:
        return False


def _hex_from(value: Any, depth: int = 0) -> str:
    if value is None or depth > 4:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex() if len(value) >= 4 else ""
    if isinstance(value, str):
        v = value.strip()
        if v[:2].lower() != "0x" or len(v) < 10 or len(v) % 2:
            return ""
        try:
            bytes.fromhex(v[2:])
        except ValueError:
            return ""
        return v.lower()
    if isinstance(value, dict):
        # node-specific nesting: {"data": ...}, {"error": {"data": ...}}
        for key in ("data", "error", "originalError"):
            found = _hex_from(value.get(key), depth + 1)
            if found:
                return found
        return ""
    if isinstance(value, (tuple, list)):
        for item in value:
            found = _hex_from(item, depth + 1)
            if found:
                return found
    return ""


def extract_revert_data(exc: BaseException) -> str:
    """Return the ``0x``-prefixed revert payload carried by ``exc`` or ``""``."""
    found = _hex_from(getattr(exc, "data", None))
    if found:
        return found
    return _hex_from(exc.args)
