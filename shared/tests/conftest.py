"""
Pytest fixtures for shared tests.
"""
import io
from datetime import date

import pytest
from PIL import Image


@pytest.fixture
def make_image():
    """Factory for encoded test images."""
    def _make_image(width: int = 64, height: int = 64, image_format: str = "PNG", mode: str = "RGB") -> bytes:
        color = (200, 30, 30, 255) if mode == "RGBA" else (200, 30, 30)
        image = Image.new(mode, (width, height), color)
        buffer = io.BytesIO()
        image.save(buffer, format=image_format)
        return buffer.getvalue()
    return _make_image


@pytest.fixture
def fake_sleep():
    """Records requested delays instead of sleeping."""
    class FakeSleep:
        def __init__(self):
            self.delays = []

        async def __call__(self, delay: float) -> None:
            self.delays.append(delay)

        @property
        def elapsed(self) -> float:
            return sum(self.delays)

    return FakeSleep()


@pytest.fixture
def fixed_clock():
    """Mutable 'today' source for quota tests."""
    class Clock:
        def __init__(self):
            self.today = date(2024, 5, 1)

        def __call__(self) -> date:
            return self.today

    return Clock()
