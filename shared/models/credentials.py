"""
Credential data models.
"""

from typing import Optional
from pydantic import BaseModel, Field


class Credentials(BaseModel):
    """API credentials and optional model override, read at call time."""

    api_key: Optional[str] = Field(default=None, repr=False)
    model_override: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())
