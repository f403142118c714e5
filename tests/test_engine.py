"""Integration tests for the analysis engine and HTTP harness."""

import numpy as np
import soundfile as sf
import pytest

from pulsetrack.analysis.engine import AnalysisEngine
from pulsetrack.analysis.models import AnalysisResult, Signal
from pulsetrack.config import Settings
from pulsetrack.audio.preprocessing import normalize
from pulsetrack.errors import InsufficientSamplesError, InvalidSignalError
from tests.conftest import generate_click_track


def test_analyze_audio_returns_result(click_120):
    engine = AnalysisEngine()
    result = engine.analyze_audio(click_120, sr=22050)

    assert isinstance(result, AnalysisResult)
    assert result.method == "superflux"
    assert len(result.beats) > 0
    assert result.duration == pytest.approx(8.0)
    assert result.frame_rate == pytest.approx(22050 / 512)
    assert np.all(result.novelty >= 0)


def test_tempo_estimation_accuracy(click_120):
    engine = AnalysisEngine()
    result = engine.analyze_audio(click_120, sr=22050, tempo=120)
    assert result.tempo is not None
    assert abs(result.tempo.bpm - 120) / 120 < 0.05


@pytest.mark.parametrize("method", ["naive", "superflux"])
def test_beats_are_sorted(method):
    audio = generate_click_track(bpm=100, duration_seconds=8)
    audio = audio + np.random.default_rng(0).normal(0, 1e-3, len(audio)).astype(np.float32)
    result = AnalysisEngine().analyze_audio(audio, sr=22050, method=method, tempo=100)

    frames = [b.frame for b in result.beats]
    times = [b.time for b in result.beats]
    assert frames == sorted(set(frames))
    assert times == sorted(times)
    assert frames == result.beat_frames.tolist()
    assert all(0 <= f < len(result.novelty) for f in frames)


def test_naive_tracking_through_digital_silence():
    """Onsets out of exact silence must not end the beat sequence early."""
    audio = generate_click_track(bpm=120, duration_seconds=10)
    result = AnalysisEngine().analyze_audio(audio, sr=22050, method="naive", tempo=120)

    assert np.all(np.isfinite(result.novelty))
    frames = result.beat_frames
    period = 60 * 22050 / 512 / 120
    assert len(frames) >= 15
    assert frames[-1] >= len(result.novelty) - 2 * period
    assert 20 <= np.median(np.diff(frames)) <= 23
    assert all(0 <= b.strength <= 1 for b in result.beats)
    assert result.tempo is not None
    assert abs(result.tempo.bpm - 120) / 120 < 0.05


def test_engine_uses_configured_parameters():
    config = Settings(win=2048, hop=1024, novelty_method="naive")
    audio = generate_click_track(bpm=90, duration_seconds=12)
    audio = audio + np.random.default_rng(1).normal(0, 1e-3, len(audio)).astype(np.float32)
    result = AnalysisEngine(config).analyze_signal(Signal(audio, 22050), tempo=90, alpha=50)
    assert result.method == "naive"
    assert len(result.novelty) == (1 + (len(audio) - 2048) // 1024) - 1
    assert result.frame_rate == pytest.approx(22050 / 1024)


def test_too_short_audio_raises():
    with pytest.raises(InsufficientSamplesError):
        AnalysisEngine().analyze_audio(np.zeros(100, dtype=np.float32), sr=22050)


def test_normalize_peak_and_silence():
    out = normalize(np.array([0.0, -0.25, 0.5], dtype=np.float32))
    assert out.dtype == np.float64
    np.testing.assert_allclose(out, [0.0, -0.5, 1.0])
    np.testing.assert_array_equal(normalize(np.zeros(4)), np.zeros(4))
    with pytest.raises(InvalidSignalError):
        normalize(np.zeros((2, 4)))


def test_analyze_file(tmp_path):
    audio = generate_click_track(bpm=100, duration_seconds=8)
    wav_path = tmp_path / "test.wav"
    sf.write(str(wav_path), audio, 22050)

    result = AnalysisEngine().analyze_file(str(wav_path), tempo=100)

    assert isinstance(result, AnalysisResult)
    assert len(result.beats) > 0
    assert result.tempo is not None


def test_api_analyze_endpoint(client, tmp_path):
    """POST /api/analyze should return valid JSON."""
    audio = generate_click_track(bpm=120, duration_seconds=5)
    wav_path = tmp_path / "test.wav"
    sf.write(str(wav_path), audio, 22050)

    with open(wav_path, "rb") as f:
        response = client.post(
            "/api/analyze",
            params={"method": "superflux", "tempo": 120},
            files={"file": ("test.wav", f, "audio/wav")},
        )

    assert response.status_code == 200
    data = response.json()
    assert data["method"] == "superflux"
    assert len(data["beats"]) > 0
    assert len(data["novelty"]) > 0
    assert data["frame_rate"] > 0
    assert {"frame", "time", "strength"} <= set(data["beats"][0])


def test_api_analyze_rejects_unknown_method(client):
    response = client.post(
        "/api/analyze",
        params={"method": "mfcc"},
        files={"file": ("test.wav", b"audio", "audio/wav")},
    )
    assert response.status_code == 400


def test_api_analyze_rejects_unsupported_format(client):
    response = client.post(
        "/api/analyze",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert response.status_code == 400
    assert "Unsupported format" in response.json()["detail"]


def test_api_analyze_short_audio_is_client_error(client, tmp_path):
    wav_path = tmp_path / "short.wav"
    sf.write(str(wav_path), np.zeros(200, dtype=np.float32), 22050)

    with open(wav_path, "rb") as f:
        response = client.post("/api/analyze", files={"file": ("short.wav", f, "audio/wav")})

    assert response.status_code == 400
    assert "samples" in response.json()["detail"]


def test_api_analyze_rejects_oversized_file(client, monkeypatch):
    """Upload endpoint should reject files larger than configured limit."""
    from pulsetrack.config import settings

    monkeypatch.setattr(settings, "max_upload_mb", 1)
    payload = b"x" * (1024 * 1024 + 1)

    response = client.post(
        "/api/analyze",
        files={"file": ("big.wav", payload, "audio/wav")},
    )

    assert response.status_code == 400
    assert "File too large" in response.json()["detail"]


def test_api_analyze_tempfile_failure_returns_generic_error(client, monkeypatch):
    """Upload endpoint should not leak internal exception details."""
    import pulsetrack.api.upload as upload_module

    def _raise_tempfile_error(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(upload_module.tempfile, "NamedTemporaryFile", _raise_tempfile_error)

    response = client.post(
        "/api/analyze",
        files={"file": ("test.wav", b"audio", "audio/wav")},
    )

    assert response.status_code == 500
    assert response.json()["detail"] == "Analysis failed"


def test_health_endpoint(client):
    """GET /api/health should return ok."""
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_live_websocket_streams_phase(client):
    from pulsetrack.config import settings

    sr = settings.sample_rate
    audio = generate_click_track(bpm=120, duration_seconds=1.0, sr=sr)
    n_frames = 1 + (len(audio) - settings.win) // settings.hop
    expected = (n_frames - settings.superflux_mu) // settings.online_fac

    with client.websocket_connect("/api/ws/live") as ws:
        ws.send_bytes(audio.astype(np.float32).tobytes())
        messages = [ws.receive_json() for _ in range(expected)]

    assert all(m["type"] == "phase" for m in messages)
    assert [m["time"] for m in messages] == sorted(m["time"] for m in messages)
    assert all(0 <= m["phase"] <= 1 for m in messages)
