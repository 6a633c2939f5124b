"""
Batch generator configuration.
"""

from typing import Optional
from pydantic import BaseModel, Field

from shared.models.generation import AspectRatio

# Used when the caller supplies no prompts
DEFAULT_PROMPTS = [
    "Transform this image into a vintage sepia-toned photograph with film grain texture and nostalgic atmosphere",
    "Apply a dreamy, ethereal filter with soft lighting, pastel colors, and magical bokeh effects",
    "Create a dramatic, cinematic version with bold shadows, highlights, and moody lighting",
]


class BatchOptions(BaseModel):
    """Per-batch options."""

    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE
    max_concurrency: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum in-flight items; None runs every item at once"
    )
    source_mime_type: Optional[str] = Field(
        default=None,
        description="MIME type of the source image; detected from the bytes when omitted"
    )
