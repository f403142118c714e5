"""Tempo estimation from tracked beats."""

import numpy as np

from pulsetrack.analysis.models import TempoResult
from pulsetrack.errors import InvalidTempoError


def estimate_from_ibi(
    beat_times: np.ndarray,
    min_bpm: float = 40,
    max_bpm: float = 300,
    target_bpm: float | None = None,
) -> TempoResult | None:
    """Estimate tempo from the intervals between tracked beats.

    The BPM is taken from the median in-range interval. Confidence starts
    from the interval spread (``1 - 2 * std / median``) and is scaled by the
    share of intervals that fell in range. With ``target_bpm``, the tempo the
    beat tracker was run at, it is also scaled by ``min(bpm, target) /
    max(bpm, target)``: a tracker forced away from its target period
    reports that as lower confidence.

    Returns None with fewer than 3 beats or fewer than 2 usable intervals.
    """
    if target_bpm is not None and target_bpm <= 0:
        raise InvalidTempoError(f"Target tempo must be positive, got {target_bpm}")

    times = np.asarray(beat_times, dtype=float)
    if len(times) < 3:
        return None

    ibis = np.diff(times)
    valid = ibis[(ibis > 60.0 / max_bpm) & (ibis < 60.0 / min_bpm)]
    if len(valid) < 2:
        return None

    median_ibi = float(np.median(valid))
    bpm = 60.0 / median_ibi

    spread = float(np.std(valid)) / median_ibi
    confidence = float(np.clip(1.0 - 2.0 * spread, 0.0, 1.0))
    confidence *= len(valid) / len(ibis)
    if target_bpm is not None:
        confidence *= min(bpm, target_bpm) / max(bpm, target_bpm)

    return TempoResult(bpm=round(bpm, 1), confidence=confidence, method="inter_beat")
