"""Offline beat tracking by dynamic programming.

Finds the globally best sequence of beats for a known tempo, following
"Beat Tracking by Dynamic Programming" (Ellis, JNMR 2007): each frame's
cumulative score is its novelty plus the best predecessor score, where
predecessors between half and double the expected period back are
penalized by the squared log ratio of their distance to the period.
"""

import logging
import math

import numpy as np

from pulsetrack.analysis.models import Beat
from pulsetrack.analysis.spectrogram import frames_to_time
from pulsetrack.errors import InsufficientNoveltyLengthError, InvalidTempoError

logger = logging.getLogger(__name__)


def beat_period(sr: int, hop: int, tempo: float) -> int:
    """Expected inter-beat spacing in novelty frames."""
    if tempo <= 0:
        raise InvalidTempoError(f"Tempo must be positive, got {tempo}")
    period = math.floor((60 * sr / hop) / tempo)
    if period < 1:
        raise InvalidTempoError(
            f"Tempo {tempo} BPM is faster than one beat per frame at sr={sr}, hop={hop}"
        )
    return period


def transition_cost(offsets: np.ndarray, period: int, alpha: float) -> np.ndarray:
    """Penalty ``-alpha * ln(-d / period)^2`` for backward offsets ``d < 0``."""
    return -alpha * np.log(-offsets / period) ** 2


def track_beats(
    novfn: np.ndarray,
    sr: int,
    hop: int,
    tempo: float,
    alpha: float,
) -> np.ndarray:
    """Return the optimal beat frames (strictly increasing) for ``novfn``.

    Ties between equally good predecessors or endpoints go to the first
    (earliest) candidate, so the result is deterministic.
    """
    novfn = np.asarray(novfn, dtype=float).ravel()
    period = beat_period(sr, hop, tempo)
    i1 = math.floor(-2 * period)
    i2 = math.floor(-period / 2)
    start = -i1 + 1

    n = len(novfn)
    if n <= start:
        raise InsufficientNoveltyLengthError(
            f"Novelty function has {n} frames; tempo {tempo} BPM needs more than {start}"
        )

    offsets = np.arange(i1, i2 + 1)
    txcost = transition_cost(offsets, period, alpha)

    cscore = novfn.copy()
    backlink = np.arange(n)
    for i in range(start, n):
        candidates = txcost + cscore[i + i1:i + i2 + 1]
        k = int(np.argmax(candidates))
        cscore[i] = novfn[i] + candidates[k]
        backlink[i] = i + i1 + k

    best = start + int(np.argmax(cscore[start:]))

    beats = [best]
    while backlink[beats[-1]] != beats[-1]:
        beats.append(int(backlink[beats[-1]]))
    beats.reverse()

    logger.debug(f"DP beat tracking: period={period} frames, {len(beats)} beats, end={best}")
    return np.array(beats, dtype=int)


def beats_to_objects(
    beat_frames: np.ndarray,
    novfn: np.ndarray,
    sr: int,
    hop: int,
) -> list[Beat]:
    """Wrap beat frames as ``Beat`` objects with times and normalized strengths."""
    novfn = np.asarray(novfn, dtype=float)
    times = frames_to_time(beat_frames, sr, hop)
    finite = novfn[np.isfinite(novfn)]
    max_strength = finite.max() if len(finite) and finite.max() > 0 else 1.0

    beats = []
    for frame, t in zip(beat_frames, times):
        strength = float(min(novfn[frame] / max_strength, 1.0))
        beats.append(Beat(frame=int(frame), time=float(t), strength=strength))
    return beats
