"""Onset novelty functions: naive spectral flux and Superflux.

Superflux follows "Maximum Filter Vibrato Suppression for Onset Detection"
(Boeck and Widmer, DAFx 2013).
"""

import logging

import numpy as np
from scipy.ndimage import maximum_filter1d

from pulsetrack.analysis.melbank import build_mel_filterbank
from pulsetrack.analysis.spectrogram import compute_spectrogram
from pulsetrack.errors import InsufficientSamplesError

logger = logging.getLogger(__name__)

NOVELTY_METHODS = ("naive", "superflux")


def rectified_flux(current: np.ndarray, reference: np.ndarray) -> np.ndarray:
    """Sum of positive differences ``current - reference`` along the last axis.

    NaN differences (e.g. ``-inf - -inf`` between silent dB frames) count
    as zero.
    """
    diff = current - reference
    return np.where(diff > 0, diff, 0.0).sum(axis=-1)


def compute_novelty(samples: np.ndarray, win: int, hop: int) -> np.ndarray:
    """Naive spectral-flux novelty on a dB spectrogram.

    Returns one value per adjacent frame pair (``W - 1`` values).
    """
    s_db = compute_spectrogram(samples, win, hop, use_db=True)
    with np.errstate(invalid="ignore"):
        return rectified_flux(s_db[1:], s_db[:-1])


def cap_infinite(novfn: np.ndarray) -> np.ndarray:
    """Replace ``+inf`` novelty with the largest finite value.

    Naive dB flux is ``+inf`` wherever sound starts out of digital silence.
    Accumulating trackers cannot rank such values, so each becomes an
    ordinary peak of the finite maximum (1.0 if no finite value is positive).
    """
    novfn = np.asarray(novfn, dtype=float)
    infinite = np.isposinf(novfn)
    if not infinite.any():
        return novfn
    finite = novfn[np.isfinite(novfn)]
    peak = finite.max() if len(finite) and finite.max() > 0 else 1.0
    return np.where(infinite, peak, novfn)


def superflux_spectrogram(
    samples: np.ndarray,
    sr: int,
    win: int,
    hop: int,
    gamma: float = 1.0,
    min_freq: float = 27.5,
    max_freq: float = 16000.0,
    n_bins: int = 138,
) -> np.ndarray:
    """Log-compressed mel spectrogram ``log10(S @ M + gamma)``, shape ``(W, n_bins)``."""
    validate_gamma(gamma)
    mel = _mel_magnitude(samples, sr, win, hop, min_freq, max_freq, n_bins)
    return np.log10(mel + gamma)


def _mel_magnitude(samples, sr, win, hop, min_freq, max_freq, n_bins) -> np.ndarray:
    s = compute_spectrogram(samples, win, hop, use_db=False)
    fb = build_mel_filterbank(win, sr, min_freq, min(max_freq, sr / 2), n_bins)
    return s @ fb


def validate_gamma(gamma: float) -> None:
    """Raise unless ``log10(0 + gamma)`` is finite on silent bands."""
    if not gamma > 0:
        raise ValueError(f"gamma must be positive, got {gamma}")


def compute_superflux(
    samples: np.ndarray,
    sr: int,
    win: int,
    hop: int,
    mu: int = 3,
    gamma: float = 1.0,
    max_win: int = 1,
    min_freq: float = 27.5,
    max_freq: float = 16000.0,
    n_bins: int = 138,
) -> np.ndarray:
    """Superflux novelty function.

    Parameters
    ----------
    samples:
        Mono audio samples.
    sr:
        Sample rate in Hz.
    win, hop:
        STFT window and hop length.
    mu:
        Frame gap between compared frames. Defaults to 3.
    gamma:
        Offset inside the log, ``log10(|S| + gamma)``. Defaults to 1.
    max_win:
        Width in mel bands of the maximum filter applied to the reference
        frame before the log. ``1`` disables the filter.
    min_freq, max_freq, n_bins:
        Mel filterbank layout. ``max_freq`` is capped at Nyquist.

    Returns ``W - mu`` values, ``sum_k max(0, L[i+mu, k] - Lref[i, k])``.
    """
    if mu < 1:
        raise ValueError(f"mu must be at least 1, got {mu}")
    if max_win < 1:
        raise ValueError(f"max_win must be at least 1, got {max_win}")
    validate_gamma(gamma)

    mel = _mel_magnitude(samples, sr, win, hop, min_freq, max_freq, n_bins)
    if mel.shape[0] <= mu:
        raise InsufficientSamplesError(
            f"Superflux with mu={mu} needs more than {mu} frames, got {mel.shape[0]}"
        )

    current = np.log10(mel + gamma)
    if max_win > 1:
        reference = np.log10(maximum_filter1d(mel, size=max_win, axis=1) + gamma)
    else:
        reference = current
    logger.debug(f"Superflux: {mel.shape[0]} frames x {n_bins} bands, mu={mu}, max_win={max_win}")
    return rectified_flux(current[mu:], reference[:-mu])


def novelty_function(
    method: str,
    samples: np.ndarray,
    sr: int,
    win: int,
    hop: int,
    **superflux_kwargs,
) -> tuple[np.ndarray, int]:
    """Compute the novelty function for ``method``.

    Returns (novelty, offset) where offset is the number of spectrogram
    frames the novelty function is shorter by (1 for naive, ``mu`` for
    Superflux).
    """
    if method == "naive":
        return compute_novelty(samples, win, hop), 1
    if method == "superflux":
        mu = superflux_kwargs.get("mu", 3)
        return compute_superflux(samples, sr, win, hop, **superflux_kwargs), mu
    raise ValueError(f"Unknown novelty method {method!r}, use one of {NOVELTY_METHODS}")
