"""
Pytest configuration and fixtures for batch generator tests.
"""

import io

import pytest
from PIL import Image

from shared.config import settings
from shared.credentials import CredentialStore
from shared.quota import InMemoryQuotaStore, QuotaLedger
from shared.retry import RetryPolicy
from batch_fakes import NoSleep


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", None)
    monkeypatch.setattr(settings, "gemini_model_override", None)
    monkeypatch.setattr(settings, "max_concurrency", 0)


@pytest.fixture
def source_image():
    buffer = io.BytesIO()
    Image.new("RGB", (320, 240), (90, 90, 90)).save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def no_sleep():
    return NoSleep()


@pytest.fixture
def retry_policy(no_sleep):
    return RetryPolicy(max_attempts=5, initial_delay=2.0, sleep=no_sleep)


@pytest.fixture
def credential_store(tmp_path):
    store = CredentialStore(path=str(tmp_path / "credentials.json"))
    store.save("test-key")
    return store


@pytest.fixture
def ledger():
    return QuotaLedger(store=InMemoryQuotaStore(), limit=10)
