import pathlib
import struct
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from lyria_backend.config import get_settings  # noqa: E402


def make_wav(data: bytes, *, sample_rate: int = 48000, channels: int = 2) -> bytes:
    """Build a canonical 44-byte-header PCM WAV around ``data``."""

    bits = 16
    byte_rate = sample_rate * channels * bits // 8
    block_align = channels * bits // 8
    header = b"RIFF" + struct.pack("<I", 36 + len(data)) + b"WAVE"
    header += b"fmt " + struct.pack(
        "<IHHIIHH", 16, 1, channels, sample_rate, byte_rate, block_align, bits
    )
    header += b"data" + struct.pack("<I", len(data))
    return header + data


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def wav_factory():
    return make_wav


class FakeLyria:
    """Stand-in for ``LyriaClient`` that records calls and returns canned WAVs."""

    model_name = "lyria-002"

    def __init__(self, *, error: Exception | None = None, fail_at: int | None = None):
        self.error = error
        self.fail_at = fail_at
        self.calls: list[dict] = []
        self.closed = False

    async def generate_segment(
        self, prompt, duration_seconds, *, negative_prompt=None, seed=None, temperature=None
    ) -> bytes:
        index = len(self.calls)
        self.calls.append(
            {
                "prompt": prompt,
                "duration": duration_seconds,
                "negative_prompt": negative_prompt,
                "seed": seed,
                "temperature": temperature,
            }
        )
        if self.error is not None and (self.fail_at is None or self.fail_at == index):
            raise self.error
        return make_wav(bytes([index % 256]) * 16)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_lyria() -> FakeLyria:
    return FakeLyria()


@pytest.fixture
def test_settings():
    from pydantic import SecretStr

    from lyria_backend.config import Settings

    return Settings(vertex_project_id="demo", vertex_access_token=SecretStr("token"))


@pytest.fixture
def app_factory(test_settings):
    from lyria_backend.app import create_app

    def _build(lyria: FakeLyria, **overrides):
        settings = test_settings.model_copy(update=overrides) if overrides else test_settings
        return create_app(settings, lyria_client=lyria)

    return _build


@pytest.fixture
def lyria_factory():
    return FakeLyria
