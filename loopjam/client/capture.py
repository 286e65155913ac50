from __future__ import annotations

import logging
from pathlib import Path
from typing import Awaitable, Callable, Protocol


class Recorder(Protocol):
    def start(self) -> None:
        ...

    def stop(self) -> bytes:
        ...


class FileRecorder:
    """
    Stand-in microphone that "records" an existing audio file.

    ``cue()`` picks the file the next recording will return.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path is not None else None

    def cue(self, path: str | Path) -> None:
        self.path = Path(path)

    def start(self) -> None:
        if self.path is None:
            raise RuntimeError("no file cued for recording")

    def stop(self) -> bytes:
        if self.path is None:
            raise RuntimeError("no file cued for recording")
        return self.path.read_bytes()


class CaptureController:
    """Keeps at most one capture running and hands each finished blob to ``on_blob``."""

    def __init__(self, recorder: Recorder, on_blob: Callable[[bytes], Awaitable[object]]):
        self.recorder = recorder
        self.on_blob = on_blob
        self.is_recording = False
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def start(self) -> bool:
        if self.is_recording:
            return False
        self.recorder.start()
        self.is_recording = True
        self.logger.info("recording")
        return True

    async def stop(self) -> bool:
        if not self.is_recording:
            return False
        self.is_recording = False
        blob = self.recorder.stop()
        self.logger.info("stopped, %d-byte clip", len(blob))
        await self.on_blob(blob)
        return True

    async def toggle(self) -> bool:
        if self.is_recording:
            await self.stop()
        else:
            self.start()
        return self.is_recording
