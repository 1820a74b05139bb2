"""
Price quote for a number of sale tokens.

Both amounts are minor-unit integers read from the sale contract at the
moment of quoting; a quote is never stored and goes stale as soon as anyone
else buys.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class Quote(BaseModel):
    token_quantity: int = Field(ge=0)
    payment_cost: int = Field(ge=0)
    # getAmount(payment_cost), what the curve says the cost actually mints
    preview_tokens: int = Field(default=0, ge=0)

    @property
    def preview_drift(self) -> int:
        return self.preview_tokens - self.token_quantity
