"""
Decoder for the sale contract's custom-error reverts.

The registry is static and must follow the contract's error declarations by
hand; there is no ABI introspection. A selector that is not registered
decodes to ``RevertKind.UNKNOWN`` instead of raising, so an unexpected
revert is reported opaquely and never crashes the caller.
"""

from __future__ import annotations

from typing import Dict, Optional, Union

from bonding_buyer.enums.revert_kind import RevertKind
from bonding_buyer.models.revert_reason import RevertReason

SELECTOR_REGISTRY: Dict[str, RevertKind] = {
    "b12d13eb": RevertKind.ZERO_AMOUNT,
    "4bedbe89": RevertKind.USDT_TRANSFER_FAILED,
    "cf479181": RevertKind.MAX_SUPPLY_REACHED,
}


def _to_hex(failure_data: Union[bytes, bytearray, str, None]) -> str:
    if failure_data is None:
        return ""
    if isinstance(failure_data, (bytes, bytearray)):
        return bytes(failure_data).hex()
    text = failure_data.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    return text


class RevertDecoder:
    def __init__(self, registry: Optional[Dict[str, RevertKind]] = None) -> None:
        self.registry = dict(SELECTOR_REGISTRY if registry is None else registry)

    def decode(self, failure_data: Union[bytes, bytearray, str, None], message: Optional[str] = None) -> RevertReason:
        data_hex = _to_hex(failure_data)
        selector = data_hex[:8]
        try:
            bytes.fromhex(selector)
        except ValueError:
            selector = ""
        kind = self.registry.get(selector, RevertKind.UNKNOWN) if len(selector) == 8 else RevertKind.UNKNOWN
        return RevertReason(kind=kind, selector=selector, data="0x" + data_hex if data_hex else "", message=message)
