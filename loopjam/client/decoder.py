from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import Protocol, cast

import librosa
import numpy as np
import soundfile as sf

from loopjam.core import settings
from loopjam.core.errors import DecodeError


@dataclass(frozen=True)
class DecodedClip:
    """
    duration_s: length of the recording in seconds
    samples: read-only float32 array shaped (frames, channels)
    samplerate: frames per second of ``samples``
    """
    duration_s: float
    samples: np.ndarray
    samplerate: int

    @property
    def frames(self) -> int:
        return int(self.samples.shape[0])

    @property
    def channels(self) -> int:
        return int(self.samples.shape[1])


class Decoder(Protocol):
    async def decode(self, blob: bytes) -> DecodedClip:
        ...


class SoundfileDecoder:
    """
    Decodes recorded blobs (WAV, FLAC, OGG/Vorbis, OGG/Opus) with libsndfile.

    Output is always stereo float32 at ``samplerate`` so every track of a
    session can be mixed without further conversion.
    """
    CHANNELS = 2

    def __init__(self, *, samplerate: int | None = None):
        self.samplerate = samplerate if samplerate is not None else settings.SAMPLE_RATE
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def decode(self, blob: bytes) -> DecodedClip:
        return await asyncio.to_thread(self._decode_sync, blob)

    def _decode_sync(self, blob: bytes) -> DecodedClip:
        if not blob:
            raise DecodeError("empty blob")

        try:
            read_result = sf.read(io.BytesIO(blob), dtype="float32", always_2d=True)
        except (RuntimeError, ValueError, TypeError) as e:
            raise DecodeError(f"not decodable audio ({len(blob)} bytes): {e}") from e

        y = cast(np.ndarray, read_result[0])
        sr = int(read_result[1])
        if y.shape[0] == 0:
            raise DecodeError("blob contains no audio frames")

        y = self._to_stereo(y)
        if sr != self.samplerate:
            self.logger.debug("resampling clip %d Hz -> %d Hz", sr, self.samplerate)
            y = librosa.resample(y.T, orig_sr=sr, target_sr=self.samplerate).T

        samples = np.ascontiguousarray(y, dtype=np.float32)
        samples.setflags(write=False)
        return DecodedClip(
            duration_s=samples.shape[0] / self.samplerate,
            samples=samples,
            samplerate=self.samplerate,
        )

    def _to_stereo(self, y: np.ndarray) -> np.ndarray:
        if y.shape[1] == 1:
            return np.repeat(y, self.CHANNELS, axis=1)
        if y.shape[1] > self.CHANNELS:
            return y[:, : self.CHANNELS]
        return y


def resample_clip(clip: DecodedClip, samplerate: int) -> DecodedClip:
    """Return ``clip`` at ``samplerate``; the clip itself is returned if it already matches."""
    if clip.samplerate == samplerate:
        return clip
    y = librosa.resample(clip.samples.T, orig_sr=clip.samplerate, target_sr=samplerate).T
    samples = np.ascontiguousarray(y, dtype=np.float32)
    samples.setflags(write=False)
    return DecodedClip(duration_s=clip.duration_s, samples=samples, samplerate=samplerate)
