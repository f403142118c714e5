"""Audio file loading utilities."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Union

import librosa

from pulsetrack.analysis.models import Signal


def load_audio(
    file_path_or_buffer: Union[str, Path, BytesIO],
    sr: int | None = 22050,
) -> Signal:
    """Load an audio file or buffer and convert to mono.

    Parameters
    ----------
    file_path_or_buffer:
        Path to an audio file or a BytesIO buffer containing audio data.
    sr:
        Target sample rate. Defaults to 22050 Hz; ``None`` keeps the
        file's native rate.
    """
    audio, sample_rate = librosa.load(file_path_or_buffer, sr=sr, mono=True)
    return Signal(samples=audio, sr=int(sample_rate))
