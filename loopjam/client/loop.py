from __future__ import annotations

from dataclasses import dataclass

from loopjam.core.config import OverflowPolicy, Settings, settings as default_settings


@dataclass(frozen=True)
class LoopSpec:
    """Session-wide loop constants. Tempo and length never change mid-session."""
    tempo_bpm: float = 100.0
    beats_per_loop: int = 16
    ruler_width_px: float = 800.0
    samplerate: int = 44100
    overflow_policy: OverflowPolicy = "truncate"

    def __post_init__(self) -> None:
        if self.tempo_bpm <= 0:
            raise ValueError("tempo_bpm must be positive")
        if self.beats_per_loop <= 0:
            raise ValueError("beats_per_loop must be positive")
        if self.ruler_width_px <= 0:
            raise ValueError("ruler_width_px must be positive")

    @classmethod
    def from_settings(cls, s: Settings | None = None) -> "LoopSpec":
        s = s or default_settings
        return cls(
            tempo_bpm=s.TEMPO_BPM,
            beats_per_loop=s.BEATS_PER_LOOP,
            ruler_width_px=s.RULER_WIDTH_PX,
            samplerate=s.SAMPLE_RATE,
            overflow_policy=s.LOOP_OVERFLOW_POLICY,
        )

    @property
    def loop_duration_s(self) -> float:
        return self.beats_per_loop / self.tempo_bpm * 60

    @property
    def loop_frames(self) -> int:
        return int(round(self.loop_duration_s * self.samplerate))

    def width_for_duration(self, duration_s: float) -> float:
        # clips longer than the loop are drawn as wide as the ruler
        ratio = min(max(0.0, duration_s), self.loop_duration_s) / self.loop_duration_s
        return ratio * self.ruler_width_px

    def offset_to_seconds(self, offset_px: float) -> float:
        return offset_px / self.ruler_width_px * self.loop_duration_s
