"""
Lifecycle data models.

Per-item state exposed to the presentation layer while a batch runs.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class LifecycleState(str, Enum):
    """State of a batch item."""

    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class LifecycleEntry(BaseModel):
    """Observable state of one batch item."""

    id: str
    prompt: str
    state: LifecycleState = LifecycleState.PROCESSING
    artifact: Optional[str] = Field(default=None, repr=False)
    error_message: Optional[str] = None

    @property
    def is_processing(self) -> bool:
        return self.state == LifecycleState.PROCESSING
