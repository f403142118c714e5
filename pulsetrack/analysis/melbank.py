"""Triangular mel-style filterbank over FFT bins."""

from functools import lru_cache

import numpy as np

from pulsetrack.errors import InvalidFilterbankError, InvalidWindowError


def note_num_to_freq(p: float) -> float:
    """Convert a note number to a frequency in Hz (A440 is note 0)."""
    return 440.0 * 2 ** (p / 12)


def _bin_edges(win: int, sr: int, min_freq: float, max_freq: float, n_bins: int) -> np.ndarray:
    """Return ``n_bins + 2`` geometrically spaced edges as FFT bin indices."""
    a = np.exp(np.log(max_freq / min_freq) / (n_bins + 1))
    edges = np.empty(n_bins + 2)
    edges[0] = min_freq * win / sr
    for i in range(1, n_bins + 2):
        edges[i] = edges[i - 1] * a
    # Round half up, matching the edge placement of the reference filterbank
    return np.floor(edges + 0.5).astype(int)


@lru_cache(maxsize=32)
def build_mel_filterbank(
    win: int,
    sr: int,
    min_freq: float,
    max_freq: float,
    n_bins: int,
) -> np.ndarray:
    """Build a ``(win // 2 + 1, n_bins)`` triangular filterbank.

    Parameters
    ----------
    win:
        FFT window length (even).
    sr:
        Sample rate in Hz.
    min_freq, max_freq:
        Frequencies in Hz of the first and last bin edges.
    n_bins:
        Number of triangular filters.

    Each column rises linearly from 0 at its left edge to 1 at its center
    bin, then falls back towards 0 at its right edge. Triangles narrower
    than one bin are widened to keep a minimum width of one bin.

    Results are memoized by argument tuple and returned read-only, so the
    same array is shared by every caller.
    """
    if win <= 0 or win % 2 != 0:
        raise InvalidWindowError(f"Window length must be even and positive, got {win}")
    if sr <= 0:
        raise InvalidFilterbankError(f"Sample rate must be positive, got {sr}")
    if n_bins < 1:
        raise InvalidFilterbankError(f"Need at least one mel bin, got {n_bins}")
    if min_freq <= 0 or max_freq <= min_freq:
        raise InvalidFilterbankError(
            f"Need 0 < min_freq < max_freq, got {min_freq} and {max_freq}"
        )

    n_fft_bins = win // 2 + 1
    edges = _bin_edges(win, sr, min_freq, max_freq, n_bins)
    mel = np.zeros((n_fft_bins, n_bins))

    for i in range(n_bins):
        i1, i2, i3 = int(edges[i]), int(edges[i + 1]), int(edges[i + 2])
        if i1 == i2:
            i2 += 1
        if i3 <= i2:
            i3 = i2 + 1

        # Rising edge over [i1, i2)
        for k in range(max(i1, 0), min(i2, n_fft_bins)):
            mel[k, i] = (k - i1) / (i2 - i1)
        # Falling edge over [i2, i3)
        for k in range(max(i2, 0), min(i3, n_fft_bins)):
            mel[k, i] = 1 - (k - i2) / (i3 - i2)

    mel.setflags(write=False)
    return mel
