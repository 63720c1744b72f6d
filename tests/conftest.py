"""
Pytest fixtures for ugc-stitch tests.

Clips are synthesized in memory with PyAV + numpy so no test data files are
needed. They use the mpeg4 encoder, which every libav build ships, so the
whole suite runs in CI; tests that need H.264 are marked ``requires_h264``.
"""

import io
import wave
from fractions import Fraction

import av
import httpx
import numpy as np
import pytest

from ugc_stitch.render.encoder import ConcatEncoder
from ugc_stitch.services.clip_fetcher import ClipFetcher
from ugc_stitch.services.concat_service import ConcatenationService
from ugc_stitch.services.job_registry import JobRegistry
from ugc_stitch.services.result_store import InMemoryResultStore

TEST_API_KEY = "test-api-key"
API_KEY_HEADER = "x-goog-api-key"
TEST_CODEC = "mpeg4"


def _encoder_available(name: str) -> bool:
    try:
        av.Codec(name, "w")
    except ValueError:
        return False
    return True


requires_h264 = pytest.mark.skipif(
    not _encoder_available("h264"),
    reason="No H.264 encoder in this libav build",
)


def _mux_frames(container, packets) -> None:
    for packet in packets:
        # One tick of the 1/fps codec time base per frame
        if not packet.duration:
            packet.duration = 1
        container.mux(packet)


def make_clip(
    duration_s: float = 1.0,
    *,
    fps: int = 24,
    width: int = 64,
    height: int = 48,
    seed: int = 0,
) -> bytes:
    """Encode a short solid-color MP4 clip of ``duration_s`` seconds."""
    buffer = io.BytesIO()
    frame_count = round(duration_s * fps)
    with av.open(buffer, mode="w", format="mp4") as container:
        stream = container.add_stream(TEST_CODEC, rate=fps)
        stream.codec_context.width = width
        stream.codec_context.height = height
        stream.codec_context.pix_fmt = "yuv420p"
        stream.codec_context.time_base = Fraction(1, fps)
        for i in range(frame_count):
            image = np.full((height, width, 3), (seed * 40 + i * 3) % 256, dtype=np.uint8)
            frame = av.VideoFrame.from_ndarray(image, format="rgb24")
            frame.pts = i
            frame.time_base = Fraction(1, fps)
            _mux_frames(container, stream.encode(frame))
        _mux_frames(container, stream.encode(None))
    return buffer.getvalue()


def make_wav(duration_s: float = 0.5, sample_rate: int = 8000) -> bytes:
    """An audio-only container (no video track)."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(b"\x00\x00" * int(duration_s * sample_rate))
    return buffer.getvalue()


def clip_transport(clips: dict[str, bytes], failures: dict[str, int] | None = None) -> httpx.MockTransport:
    """Serve ``clips`` by URL; URLs in ``failures`` answer with that status.

    Every request must carry the test API key.
    """
    failures = failures or {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get(API_KEY_HEADER) != TEST_API_KEY:
            return httpx.Response(403, text="missing api key")
        url = str(request.url)
        if url in failures:
            return httpx.Response(failures[url], text="upstream error")
        if url not in clips:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=clips[url])

    return httpx.MockTransport(handler)


@pytest.fixture
def clip_2s() -> bytes:
    return make_clip(2.0, seed=1)


@pytest.fixture
def clip_3s() -> bytes:
    return make_clip(3.0, seed=2)


@pytest.fixture
def clip_1_5s() -> bytes:
    return make_clip(1.5, seed=3)


@pytest.fixture
def clip_urls() -> list[str]:
    return [f"https://clips.example.com/segment-{i}.mp4" for i in (1, 2, 3)]


@pytest.fixture
def three_clips(clip_urls, clip_2s, clip_3s, clip_1_5s) -> dict[str, bytes]:
    return dict(zip(clip_urls, [clip_2s, clip_3s, clip_1_5s]))


@pytest.fixture
def result_store() -> InMemoryResultStore:
    return InMemoryResultStore(ttl_seconds=3600, max_entries=8)


@pytest.fixture
def make_service(result_store):
    """Build a ConcatenationService wired to fake upstream storage."""

    def _make(clips: dict[str, bytes], failures: dict[str, int] | None = None) -> ConcatenationService:
        fetcher = ClipFetcher(
            api_key=TEST_API_KEY,
            api_key_header=API_KEY_HEADER,
            transport=clip_transport(clips, failures),
        )
        return ConcatenationService(
            result_store,
            JobRegistry(result_store),
            fetcher=fetcher,
            encoder_factory=lambda: ConcatEncoder(codec=TEST_CODEC, bitrate=400_000),
            expected_clip_count=3,
        )

    return _make
