"""
Pytest configuration and fixtures for media generator tests.
"""

import io

import httpx
import pytest
from PIL import Image

from shared.config import settings
from shared.credentials import CredentialStore
from modules.media_generator.generator import GenerationClient
from gemini_fakes import API_BASE, FakeGeminiBackend


@pytest.fixture(autouse=True)
def no_env_credentials(monkeypatch):
    """Only the test credential store provides a key."""
    monkeypatch.setattr(settings, "gemini_api_key", None)
    monkeypatch.setattr(settings, "gemini_model_override", None)


@pytest.fixture
def source_png():
    buffer = io.BytesIO()
    Image.new("RGB", (640, 480), (20, 120, 220)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def credential_store(tmp_path):
    store = CredentialStore(path=str(tmp_path / "credentials.json"))
    store.save("test-key")
    return store


@pytest.fixture
def backend():
    return FakeGeminiBackend()


@pytest.fixture
def fake_sleep():
    """Records requested delays instead of sleeping."""
    delays = []

    async def _sleep(delay):
        delays.append(delay)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def make_client(backend, credential_store, fake_sleep):
    """Factory for a GenerationClient wired to the fake backend."""
    def _make_client(**kwargs) -> GenerationClient:
        options = {
            "credentials": credential_store,
            "http_client": httpx.AsyncClient(transport=httpx.MockTransport(backend)),
            "api_base": API_BASE,
            "poll_interval": 10.0,
            "max_polls": 60,
            "retry_empty_results": False,
            "sleep": fake_sleep,
        }
        options.update(kwargs)
        return GenerationClient(**options)
    return _make_client
