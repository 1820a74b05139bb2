"""
Snapshot of the sale phase of the launch token.

The sale may mint at most ``cap = max_supply * cap_numerator // cap_denominator``
tokens. Once ``already_minted`` reaches the cap the sale contract finalizes
(creates the pool) and further purchases revert.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class SaleState(BaseModel):
    max_supply: int = Field(ge=0)
    cap_numerator: int = Field(default=30, gt=0)
    cap_denominator: int = Field(default=100, gt=0)
    already_minted: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _fraction_le_one(self) -> "SaleState":
        if self.cap_numerator > self.cap_denominator:
            raise ValueError("cap fraction must not exceed 1")
        return self

    @property
    def cap(self) -> int:
        return (self.max_supply * self.cap_numerator) // self.cap_denominator

    @property
    def exhausted(self) -> bool:
        return self.already_minted >= self.cap
