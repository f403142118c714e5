"""Core data models for beat analysis."""

from dataclasses import dataclass, field

import numpy as np


@dataclass(frozen=True)
class Signal:
    """Mono audio handed over by the capture/decoding layer."""
    samples: np.ndarray
    sr: int  # Hz

    @property
    def duration(self) -> float:
        return len(self.samples) / self.sr


@dataclass
class Beat:
    """A single detected beat."""
    frame: int  # index into the novelty function
    time: float  # seconds
    strength: float = 1.0  # 0.0-1.0


@dataclass
class TempoResult:
    """Tempo estimate from a single method."""
    bpm: float
    confidence: float  # 0.0-1.0
    method: str  # e.g. "inter_beat", "online"


@dataclass
class PhaseEstimate:
    """Output of one online tracker step."""
    time: float  # seconds since the stream started
    phase: float  # 1.0 = on the beat, 0.0 = midway between beats
    bpm: float  # most probable tempo level
    confidence: float  # probability mass of that tempo level


@dataclass
class AnalysisResult:
    """Complete offline analysis result."""
    novelty: np.ndarray
    beats: list[Beat]
    tempo: TempoResult | None
    frame_rate: float  # novelty frames per second
    duration: float = 0.0
    method: str = "superflux"
    beat_frames: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))
