from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

import numpy as np

from loopjam.client.decoder import DecodedClip, resample_clip
from loopjam.client.engine import PlaybackEngine, PlaybackHandle
from loopjam.client.loop import LoopSpec
from loopjam.core.errors import InvalidIndexError
from loopjam.schemas.timeline import TrackSource, TrackView


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(eq=False)
class Track:
    """One recorded clip placed on the loop ruler."""
    clip: DecodedClip
    width_px: float
    offset_px: float = 0.0
    is_dragging: bool = False
    drag_anchor_px: float = 0.0
    source: TrackSource = "local"
    created_at: datetime = field(default_factory=_utc_now)


def drag_offset(
    current_offset: float,
    anchor_px: float,
    pointer_rel_x: float,
    width_px: float,
    ruler_width_px: float,
) -> float:
    """
    New left offset of a dragged track.

    ``pointer_rel_x`` is the pointer position relative to the track's current
    left edge and ``anchor_px`` is the same measurement taken at drag start, so
    the track moves by their difference. Because the left edge moves with the
    track, repeated calls accumulate correctly however sparsely the pointer is
    sampled.
    """
    candidate = current_offset - (anchor_px - pointer_rel_x)
    return min(max(0.0, candidate), ruler_width_px - width_px)


class LoopSession:
    """
    Per-participant loop state: the ordered tracks, their geometry and the
    playback sources started for them.

    All methods are meant to be called from one event loop thread. Stale
    indices (e.g. a pointer event for a track deleted in the meantime) are
    ignored rather than raised.
    """

    def __init__(self, loop: LoopSpec, engine: PlaybackEngine):
        self.loop = loop
        self.engine = engine
        self.tracks: list[Track] = []
        self.is_playing = False
        self.active_sources: list[PlaybackHandle] = []
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    # ---------- tracks ----------

    def track(self, index: int) -> Track:
        if not 0 <= index < len(self.tracks):
            raise InvalidIndexError(index, len(self.tracks))
        return self.tracks[index]

    def add_clip(self, clip: DecodedClip, *, source: TrackSource = "local") -> Track:
        """
        Append a track for ``clip`` at the start of the loop.

        While playing, the new track stays silent until the next ``play()``.
        A clip at another sample rate is resampled to the session's rate.
        """
        if clip.samplerate != self.loop.samplerate:
            self.logger.debug("resampling clip %d Hz -> %d Hz", clip.samplerate, self.loop.samplerate)
            clip = resample_clip(clip, self.loop.samplerate)
        track = Track(clip=clip, width_px=self.loop.width_for_duration(clip.duration_s), source=source)
        self.tracks.append(track)
        self.logger.info(
            "added %s track #%d (%.2fs, %.1fpx)",
            source, len(self.tracks) - 1, clip.duration_s, track.width_px,
        )
        return track

    def track_views(self) -> list[TrackView]:
        return [
            TrackView(
                index=i,
                offset_px=t.offset_px,
                width_px=t.width_px,
                is_dragging=t.is_dragging,
                source=t.source,
            )
            for i, t in enumerate(self.tracks)
        ]

    # ---------- drag ----------

    def begin_drag(self, index: int, pointer_x: float, left_edge_x: float) -> bool:
        try:
            track = self.track(index)
        except InvalidIndexError as e:
            self.logger.debug("begin_drag ignored: %s", e)
            return False
        track.is_dragging = True
        track.drag_anchor_px = pointer_x - left_edge_x
        return True

    def update_drag(self, index: int, pointer_x: float, left_edge_x: float) -> bool:
        try:
            track = self.track(index)
        except InvalidIndexError as e:
            self.logger.debug("update_drag ignored: %s", e)
            return False
        if not track.is_dragging:
            return False
        track.offset_px = drag_offset(
            track.offset_px,
            track.drag_anchor_px,
            pointer_x - left_edge_x,
            track.width_px,
            self.loop.ruler_width_px,
        )
        return True

    def end_drag(self) -> None:
        # releasing the pointer anywhere ends whatever drag is in progress
        for track in self.tracks:
            track.is_dragging = False
            track.drag_anchor_px = 0.0

    on_pointer_down = begin_drag
    on_pointer_move = update_drag
    on_pointer_up = end_drag

    def move_track(self, index: int, offset_px: float) -> bool:
        """Place a track at an absolute offset, clamped to the ruler."""
        try:
            track = self.track(index)
        except InvalidIndexError as e:
            self.logger.debug("move_track ignored: %s", e)
            return False
        track.offset_px = min(max(0.0, offset_px), self.loop.ruler_width_px - track.width_px)
        return True

    # ---------- playback ----------

    def pause(self) -> None:
        for handle in self.active_sources:
            handle.stop()
        self.active_sources = []
        self.is_playing = False

    def play(self) -> None:
        # never let two source sets overlap
        self.pause()

        transport_zero = self.engine.current_time
        for track in self.tracks:
            handle = self.engine.create_source(self._playable_buffer(track))
            handle.start(transport_zero)
            self.active_sources.append(handle)

        self.is_playing = True
        self.logger.info("playing %d track(s) from t=%.3fs", len(self.tracks), transport_zero)

    def toggle(self) -> bool:
        if self.is_playing:
            self.pause()
        else:
            self.play()
        return self.is_playing

    def delete_track(self, index: int) -> bool:
        try:
            self.track(index)
        except InvalidIndexError as e:
            self.logger.debug("delete_track ignored: %s", e)
            return False

        if self.is_playing:
            if index < len(self.active_sources):
                self.active_sources.pop(index).stop()
            else:
                # added after play() started, so it never got a source
                self.logger.debug("track #%d has no active source to stop", index)

        del self.tracks[index]
        return True

    def _playable_buffer(self, track: Track) -> np.ndarray:
        samples = track.clip.samples
        if self.loop.overflow_policy == "drift":
            return samples

        # one loop long, clip placed at its offset and cut at the loop end
        loop_frames = self.loop.loop_frames
        buffer = np.zeros((loop_frames, samples.shape[1]), dtype=np.float32)
        start = int(round(self.loop.offset_to_seconds(track.offset_px) * self.loop.samplerate))
        start = min(max(0, start), loop_frames - 1)
        n = min(samples.shape[0], loop_frames - start)
        buffer[start:start + n] = samples[:n]
        return buffer
