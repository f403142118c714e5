"""Short-time magnitude spectrogram with a rectangular window."""

import numpy as np
import librosa

from pulsetrack.errors import (
    InsufficientSamplesError,
    InvalidHopError,
    InvalidSignalError,
    InvalidWindowError,
)


def validate_frame_params(win: int, hop: int) -> None:
    """Raise if ``win``/``hop`` cannot frame a signal."""
    if win <= 0 or win % 2 != 0:
        raise InvalidWindowError(f"Window length must be even and positive, got {win}")
    if hop <= 0:
        raise InvalidHopError(f"Hop length must be positive, got {hop}")


def frame_count(n_samples: int, win: int, hop: int) -> int:
    """Number of full windows, ``floor(1 + (n - win) / hop)``."""
    if n_samples < win:
        return 0
    return 1 + (n_samples - win) // hop


def compute_spectrogram(
    samples: np.ndarray,
    win: int,
    hop: int,
    use_db: bool = False,
) -> np.ndarray:
    """Compute a spectrogram of shape ``(W, win // 2 + 1)``.

    No window function is applied beyond the implicit rectangular one.
    With ``use_db`` the frames hold ``10 * log10(|X|^2)``, otherwise the
    linear magnitude ``|X|``. Silent frames give ``-inf`` in dB mode; that
    value is passed through for callers to handle.
    """
    validate_frame_params(win, hop)
    samples = np.ascontiguousarray(samples, dtype=np.float64)
    if samples.ndim != 1:
        raise InvalidSignalError(f"Expected mono samples of shape (n,), got {samples.shape}")
    if len(samples) < win:
        raise InsufficientSamplesError(
            f"Need at least {win} samples for one frame, got {len(samples)}"
        )

    frames = librosa.util.frame(samples, frame_length=win, hop_length=hop, axis=0)
    spectrum = np.fft.rfft(frames, n=win, axis=1)
    power = spectrum.real ** 2 + spectrum.imag ** 2

    if use_db:
        with np.errstate(divide="ignore"):
            return 10 * np.log10(power)
    return np.sqrt(power)


def frames_to_time(frames, sr: int, hop: int) -> np.ndarray:
    """Convert frame indices to seconds."""
    return np.asarray(frames, dtype=float) * hop / sr
