from loopjam.client.app import LoopClient
from loopjam.client.loop import LoopSpec
from loopjam.client.timeline import LoopSession, Track, drag_offset

__all__ = ["LoopClient", "LoopSession", "LoopSpec", "Track", "drag_offset"]
