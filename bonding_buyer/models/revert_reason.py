"""
Decoded reason for a reverted sale call.

``selector`` is the 4-byte error selector as lowercase hex without prefix;
``data`` keeps the full raw revert payload for diagnostics.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from bonding_buyer.enums.revert_kind import RevertKind


class RevertReason(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: RevertKind
    selector: str = ""
    data: str = ""
    message: Optional[str] = None

    @property
    def is_known(self) -> bool:
        return self.kind is not RevertKind.UNKNOWN

    def __str__(self) -> str:
        if self.is_known:
            return f"{self.kind.value}()"
        return f"Unknown (selector 0x{self.selector})"
