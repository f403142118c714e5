"""Audio preprocessing utilities."""

from __future__ import annotations

import numpy as np

from pulsetrack.errors import InvalidSignalError


def normalize(samples: np.ndarray) -> np.ndarray:
    """Peak-normalize mono samples to [-1, 1] as float64.

    Digital silence stays all zeros, so the spectrogram still sees exact
    silence (``-inf`` dB) rather than rescaled noise.
    """
    samples = np.asarray(samples, dtype=np.float64)
    if samples.ndim != 1:
        raise InvalidSignalError(f"Expected mono samples of shape (n,), got {samples.shape}")
    peak = np.max(np.abs(samples), initial=0.0)
    if peak == 0:
        return samples
    return samples / peak
