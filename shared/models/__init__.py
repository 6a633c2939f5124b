"""
Data models for the batch generation pipeline.

This module exports all Pydantic models used across pipeline modules.
"""

from .generation import (
    AspectRatio,
    GenerationMode,
    GenerationOutcome,
    GenerationRequest,
    summarize_outcomes
)
from .lifecycle import LifecycleEntry, LifecycleState
from .quota import QuotaCheck, QuotaRecord, QuotaStatus
from .credentials import Credentials

__all__ = [
    # Generation models
    "AspectRatio",
    "GenerationMode",
    "GenerationOutcome",
    "GenerationRequest",
    "summarize_outcomes",
    # Lifecycle models
    "LifecycleEntry",
    "LifecycleState",
    # Quota models
    "QuotaCheck",
    "QuotaRecord",
    "QuotaStatus",
    # Credentials
    "Credentials",
]
