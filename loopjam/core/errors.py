from __future__ import annotations


class LoopjamError(Exception):
    """Base class for errors raised by loopjam."""


class DecodeError(LoopjamError, ValueError):
    """A blob is empty or is not audio we can decode."""


class RelayConnectionError(LoopjamError, ConnectionError):
    """The outbound relay connection is closed or could not take the payload."""


class InvalidIndexError(LoopjamError, IndexError):
    """A drag or delete referenced a track that does not exist (anymore)."""

    def __init__(self, index: int, size: int):
        super().__init__(f"track index {index} out of range for {size} track(s)")
        self.index = index
        self.size = size
