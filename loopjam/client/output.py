"""
Audio output for the loop: a sounddevice stream whose callback pulls every
block from a ``MixerEngine``.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import numpy as np

from loopjam.client.engine import MixerEngine
from loopjam.core import settings

StreamFactory = Callable[..., Any]


class AudioOutput:
    """
    Owns the output stream feeding a ``MixerEngine``.

    The stream's callback runs on the audio thread; it renders straight into
    ``outdata`` and is also what advances the engine's transport, so
    ``current_time`` only moves while the stream is running.
    """

    def __init__(
        self,
        engine: MixerEngine,
        *,
        blocksize: int | None = None,
        stream_factory: Optional[StreamFactory] = None,
    ) -> None:
        self.engine = engine
        self.blocksize = blocksize if blocksize is not None else settings.OUTPUT_BLOCKSIZE
        self._stream_factory = stream_factory
        self._stream: Any = None
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def running(self) -> bool:
        return self._stream is not None

    def callback(self, outdata: np.ndarray, frames: int, time: object, status: Any) -> None:
        if status:
            self.logger.debug("output stream status: %s", status)
        try:
            outdata[:] = self.engine.render(frames)
        except Exception as e:
            self.logger.error("render failed: %s", e, exc_info=True)
            outdata.fill(0)

    def start(self) -> bool:
        """Open and start the stream. Returns False when no output device is usable."""
        if self._stream is not None:
            return True

        factory = self._stream_factory
        try:
            if factory is None:
                # importing sounddevice loads PortAudio
                import sounddevice as sd
                factory = sd.OutputStream
            stream = factory(
                samplerate=self.engine.samplerate,
                channels=self.engine.channels,
                blocksize=self.blocksize,
                dtype="float32",
                callback=self.callback,
            )
            stream.start()
        except Exception as e:
            self.logger.error("could not open audio output: %s", e)
            return False

        self._stream = stream
        self.logger.info(
            "audio output started (%d Hz, %d ch, block %d)",
            self.engine.samplerate, self.engine.channels, self.blocksize,
        )
        return True

    def close(self) -> None:
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        try:
            stream.stop()
            stream.close()
        except Exception as e:
            self.logger.warning("error closing audio output: %s", e)
        self.logger.info("audio output stopped")
