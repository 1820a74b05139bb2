from __future__ import annotations

from pydantic import BaseModel, Field


class TranchePlan(BaseModel):
    """Two sequential buys; the second one is the one that exhausts the cap."""

    first: int = Field(ge=0)
    second: int = Field(ge=0)

    def as_list(self) -> list[int]:
        return [self.first, self.second]
