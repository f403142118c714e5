"""Shared test fixtures for beat tracking tests."""

import numpy as np
import pytest
from fastapi.testclient import TestClient

from pulsetrack.main import app


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


def generate_click_track(
    bpm: float,
    duration_seconds: float = 10.0,
    sr: int = 22050,
    offset_seconds: float = 0.25,
) -> np.ndarray:
    """Generate a synthetic click track (decaying 1 kHz clicks).

    Returns mono float32 audio at the given sample rate.
    """
    n_samples = int(duration_seconds * sr)
    audio = np.zeros(n_samples, dtype=np.float32)

    beat_interval = 60.0 / bpm
    click_samples = int(0.02 * sr)  # 20ms click
    t_click = np.arange(click_samples) / sr
    click = np.sin(2 * np.pi * 1000 * t_click) * np.exp(-t_click * 100)

    time = offset_seconds
    while time < duration_seconds:
        sample_pos = int(time * sr)
        end = min(sample_pos + click_samples, n_samples)
        length = end - sample_pos
        if length > 0:
            audio[sample_pos:end] += click[:length]
        time += beat_interval

    return audio


def generate_burst_train(
    bpm: float,
    duration_seconds: float = 4.0,
    sr: int = 44100,
    freq: float = 440.0,
    burst_seconds: float = 0.1,
    offset_seconds: float = 0.25,
) -> np.ndarray:
    """Generate sine-wave bursts starting exactly on every beat."""
    n_samples = int(duration_seconds * sr)
    audio = np.zeros(n_samples, dtype=np.float32)
    t = np.arange(n_samples) / sr
    tone = 0.8 * np.sin(2 * np.pi * freq * t)

    beat_interval = 60.0 / bpm
    burst_samples = int(burst_seconds * sr)
    time = offset_seconds
    while time < duration_seconds:
        start = int(round(time * sr))
        end = min(start + burst_samples, n_samples)
        audio[start:end] = tone[start:end]
        time += beat_interval
    return audio


def burst_onset_frames(bpm, duration_seconds, sr, hop, offset_seconds=0.25) -> np.ndarray:
    """Frame index at which each burst of ``generate_burst_train`` starts."""
    times = np.arange(offset_seconds, duration_seconds, 60.0 / bpm)
    return times * sr / hop


@pytest.fixture
def click_120():
    """Click track at 120 BPM, 22050 Hz."""
    return generate_click_track(bpm=120, duration_seconds=8)


@pytest.fixture
def bursts_120():
    """Four seconds of 440 Hz bursts at 120 BPM, 44100 Hz."""
    return generate_burst_train(bpm=120, duration_seconds=4.0, sr=44100)
