"""
Playback engine for the loop.

``MixerEngine`` is a pull-based software mixer: an audio output stream calls
``render(frames)`` from its callback and receives the sum of every started
source. Sources loop over their whole buffer, counted from the frame they
were started at, so sources started at the same transport time stay in phase.

``render`` runs on the audio thread while sources are started and stopped on
the event loop, so the voice list is only touched under the engine's lock.
"""
from __future__ import annotations

import logging
import threading
from typing import Protocol

import numpy as np

from loopjam.core import settings


class PlaybackHandle(Protocol):
    def start(self, when: float) -> None:
        ...

    def stop(self) -> None:
        ...


class PlaybackEngine(Protocol):
    @property
    def current_time(self) -> float:
        ...

    def create_source(self, buffer: np.ndarray) -> PlaybackHandle:
        ...


class MixerSource:
    """A looping buffer voice owned by a ``MixerEngine``."""
    __slots__ = ("_mixer", "buffer", "start_frame", "stopped")

    def __init__(self, mixer: "MixerEngine", buffer: np.ndarray) -> None:
        self._mixer = mixer
        self.buffer = buffer
        self.start_frame: int | None = None
        self.stopped = False

    @property
    def playing(self) -> bool:
        return self.start_frame is not None and not self.stopped

    def start(self, when: float) -> None:
        if self.start_frame is not None:
            raise RuntimeError("source can only be started once")
        start_frame = int(round(when * self._mixer.samplerate))
        with self._mixer._lock:
            self.start_frame = start_frame
            self._mixer._voices.append((start_frame, self))

    def stop(self) -> None:
        if self.stopped:
            return
        self.stopped = True
        with self._mixer._lock:
            self._mixer._voices = [v for v in self._mixer._voices if v[1] is not self]


class MixerEngine:
    def __init__(self, *, samplerate: int | None = None, channels: int = 2) -> None:
        self.samplerate = samplerate if samplerate is not None else settings.SAMPLE_RATE
        self.channels = channels
        self.current_frame = 0
        self._voices: list[tuple[int, MixerSource]] = []
        self._lock = threading.Lock()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def current_time(self) -> float:
        return self.current_frame / self.samplerate

    @property
    def voices(self) -> list[MixerSource]:
        with self._lock:
            return [source for _, source in self._voices]

    def create_source(self, buffer: np.ndarray) -> MixerSource:
        if buffer.ndim != 2 or buffer.shape[1] != self.channels:
            raise ValueError(f"buffer must be shaped (frames, {self.channels}), got {buffer.shape}")
        if buffer.shape[0] == 0:
            raise ValueError("buffer is empty")
        return MixerSource(self, buffer)

    def render(self, frames: int) -> np.ndarray:
        """Mix the next ``frames`` frames and advance the transport."""
        out = np.zeros((frames, self.channels), dtype=np.float32)

        with self._lock:
            positions = self.current_frame + np.arange(frames)
            for start_frame, voice in self._voices:
                rel = positions - start_frame
                audible = rel >= 0
                if not audible.any():
                    continue
                idx = rel[audible] % voice.buffer.shape[0]
                out[audible] += voice.buffer[idx]
            self.current_frame += frames

        np.clip(out, -1.0, 1.0, out=out)
        return out
