"""
Quota data models.

Persisted daily counter for video submissions and the results of checking it.
"""

from datetime import date
from pydantic import BaseModel, Field


class QuotaRecord(BaseModel):
    """Persisted submission counter scoped to one calendar day."""

    count: int = Field(default=0, ge=0)
    date: str = Field(description="ISO calendar day, e.g. 2024-05-01")

    def is_for(self, day: date) -> bool:
        return self.date == day.isoformat()


class QuotaCheck(BaseModel):
    """Result of a quota gate evaluation."""

    allowed: bool
    new_count: int = Field(ge=0)


class QuotaStatus(BaseModel):
    """Current usage against the daily limit."""

    count: int = Field(ge=0)
    limit: int = Field(ge=1)

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)
