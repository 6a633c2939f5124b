"""
Credential storage.

API key and optional model override, stored in a local JSON file with the
GEMINI_API_KEY / GEMINI_MODEL_OVERRIDE settings as fallback. Values are read
on every call so a change mid-batch affects only later requests.
"""

import json
import os
from pathlib import Path
from typing import Optional

from shared.config import settings
from shared.errors import ConfigError
from shared.logging import get_logger
from shared.models.credentials import Credentials

logger = get_logger("credentials")


class CredentialStore:
    """File-backed credential collaborator."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or settings.credentials_path)

    def _read_file(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Credentials file unreadable: {str(e)}", extra={"path": str(self.path)})
            return {}
        return data if isinstance(data, dict) else {}

    def get_current_credentials(self) -> Credentials:
        """Stored credentials, falling back to settings per field."""
        stored = self._read_file()
        return Credentials(
            api_key=stored.get("api_key") or settings.gemini_api_key,
            model_override=stored.get("model_override") or settings.gemini_model_override,
        )

    def is_configured(self) -> bool:
        return self.get_current_credentials().is_configured

    def require(self) -> Credentials:
        """
        Return credentials or fail with a configuration error.

        Raises:
            ConfigError: If no API key is available
        """
        credentials = self.get_current_credentials()
        if not credentials.is_configured:
            raise ConfigError(
                "Missing API key. Configure credentials with CredentialStore.save() "
                "or set GEMINI_API_KEY."
            )
        return credentials

    def save(self, api_key: str, model_override: Optional[str] = None) -> None:
        """Persist credentials, readable only by the current user."""
        if not api_key or not api_key.strip():
            raise ConfigError("API key must not be empty")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"api_key": api_key.strip(), "model_override": (model_override or "").strip() or None}
        self.path.write_text(json.dumps(payload), encoding="utf-8")
        os.chmod(self.path, 0o600)
        logger.info("Credentials saved", extra={"path": str(self.path)})

    def clear(self) -> None:
        """Remove stored credentials (settings fallback still applies)."""
        if self.path.exists():
            self.path.unlink()
            logger.info("Credentials cleared", extra={"path": str(self.path)})
