"""
Generation data models.

Defines GenerationRequest, GenerationOutcome and the enums shared by the
generation client and the batch orchestrator.
"""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from shared.errors import ErrorKind


class GenerationMode(str, Enum):
    """Kind of artifact to generate."""

    IMAGE = "image"
    VIDEO = "video"


class AspectRatio(str, Enum):
    """Supported video aspect ratios."""

    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"


class GenerationRequest(BaseModel):
    """A single prompt against the source image. Immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    source_image: bytes = Field(repr=False)
    source_mime_type: str = "image/png"
    prompt: str
    mode: GenerationMode = GenerationMode.IMAGE
    aspect_ratio: AspectRatio = Field(
        default=AspectRatio.LANDSCAPE,
        description="Only used in video mode"
    )


class GenerationOutcome(BaseModel):
    """Settled result for one batch item: either an artifact or an error, never both."""

    index: int = Field(ge=0)
    prompt: str
    artifact: Optional[str] = Field(
        default=None,
        repr=False,
        description="Self-contained data URI of the generated media"
    )
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None

    @model_validator(mode="after")
    def check_artifact_xor_error(self) -> "GenerationOutcome":
        """Exactly one of artifact / error_kind must be set."""
        if (self.artifact is None) == (self.error_kind is None):
            raise ValueError("GenerationOutcome needs exactly one of artifact or error_kind")
        return self

    @property
    def succeeded(self) -> bool:
        return self.artifact is not None


def summarize_outcomes(outcomes: List[GenerationOutcome]) -> Dict[str, int]:
    """Count totals for a batch result."""
    succeeded = sum(1 for outcome in outcomes if outcome.succeeded)
    return {
        "total": len(outcomes),
        "succeeded": succeeded,
        "failed": len(outcomes) - succeeded,
    }
