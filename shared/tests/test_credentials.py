"""
Tests for credential storage.
"""

import json
import os
import stat

import pytest

from shared.config import settings
from shared.credentials import CredentialStore
from shared.errors import ConfigError


@pytest.fixture(autouse=True)
def no_env_credentials(monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", None)
    monkeypatch.setattr(settings, "gemini_model_override", None)


@pytest.fixture
def store(tmp_path):
    return CredentialStore(path=str(tmp_path / "creds" / "credentials.json"))


def test_unconfigured_store(store):
    assert store.is_configured() is False
    with pytest.raises(ConfigError, match="Missing API key"):
        store.require()


def test_save_and_read_back(store):
    store.save("  key-123  ", "custom-model")

    credentials = store.require()
    assert credentials.api_key == "key-123"
    assert credentials.model_override == "custom-model"
    assert store.is_configured() is True


def test_saved_file_is_private(store):
    store.save("key-123")

    mode = stat.S_IMODE(os.stat(store.path).st_mode)
    assert mode == 0o600
    assert json.loads(store.path.read_text()) == {"api_key": "key-123", "model_override": None}


def test_empty_key_rejected(store):
    with pytest.raises(ConfigError, match="must not be empty"):
        store.save("   ")
    assert not store.path.exists()


def test_settings_fallback(store, monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", "env-key")
    monkeypatch.setattr(settings, "gemini_model_override", "env-model")

    credentials = store.get_current_credentials()
    assert credentials.api_key == "env-key"
    assert credentials.model_override == "env-model"

    # File values win per field
    store.save("file-key")
    credentials = store.get_current_credentials()
    assert credentials.api_key == "file-key"
    assert credentials.model_override == "env-model"


def test_changes_visible_on_next_read(store):
    store.save("first")
    assert store.require().api_key == "first"

    store.save("second")
    assert store.require().api_key == "second"

    store.clear()
    assert store.is_configured() is False


def test_unreadable_file_treated_as_empty(store):
    store.path.parent.mkdir(parents=True)
    store.path.write_text("not json")

    assert store.get_current_credentials().api_key is None
