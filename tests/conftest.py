"""
Pytest configuration and fixtures for loopjam tests.
"""
import io
from typing import Callable

import numpy as np
import pytest
import soundfile as sf

from loopjam.client.decoder import DecodedClip
from loopjam.client.loop import LoopSpec
from loopjam.client.timeline import LoopSession

TEST_SR = 8000


class FakeHandle:
    def __init__(self, buffer: np.ndarray):
        self.buffer = buffer
        self.started_at: float | None = None
        self.stopped = False

    def start(self, when: float) -> None:
        self.started_at = when

    def stop(self) -> None:
        self.stopped = True


class FakeEngine:
    """Records every source it hands out instead of producing sound."""

    def __init__(self, current_time: float = 0.0):
        self.current_time = current_time
        self.created: list[FakeHandle] = []

    def create_source(self, buffer: np.ndarray) -> FakeHandle:
        handle = FakeHandle(buffer)
        self.created.append(handle)
        return handle


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def loop_spec() -> LoopSpec:
    """100 BPM, 16 beats, 800px ruler at a small sample rate."""
    return LoopSpec(tempo_bpm=100, beats_per_loop=16, ruler_width_px=800, samplerate=TEST_SR)


@pytest.fixture
def make_clip() -> Callable[..., DecodedClip]:
    """Build a stereo clip of ``duration_s`` filled with ``value``."""
    def _make(duration_s: float, value: float = 0.25, samplerate: int = TEST_SR) -> DecodedClip:
        frames = int(round(duration_s * samplerate))
        samples = np.full((frames, 2), value, dtype=np.float32)
        samples.setflags(write=False)
        return DecodedClip(duration_s=duration_s, samples=samples, samplerate=samplerate)
    return _make


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine(current_time=1.5)


@pytest.fixture
def session(loop_spec, engine) -> LoopSession:
    return LoopSession(loop_spec, engine)


@pytest.fixture
def session_with_tracks(session, make_clip) -> LoopSession:
    """Session holding three clips of 1.2s, 2.4s and 4.8s."""
    for duration in (1.2, 2.4, 4.8):
        session.add_clip(make_clip(duration))
    return session


@pytest.fixture
def wav_bytes() -> Callable[..., bytes]:
    """Encode a sine tone as an in-memory WAV blob."""
    def _encode(duration_s: float = 0.5, samplerate: int = TEST_SR, channels: int = 1) -> bytes:
        t = np.linspace(0, duration_s, int(duration_s * samplerate), endpoint=False, dtype=np.float32)
        tone = 0.5 * np.sin(2 * np.pi * 440 * t).astype(np.float32)
        data = tone if channels == 1 else np.column_stack([tone] * channels)
        buf = io.BytesIO()
        sf.write(buf, data, samplerate, format="WAV", subtype="PCM_16")
        return buf.getvalue()
    return _encode
