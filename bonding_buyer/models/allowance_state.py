from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class AllowanceState(BaseModel):
    owner: str
    spender: str
    current_amount: int
    approval_tx: Optional[str] = None  # set only when this call had to approve

    def covers(self, amount: int) -> bool:
        return self.current_amount >= amount
