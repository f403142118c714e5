"""Analysis orchestrator - samples to novelty to beats to tempo."""

import logging

import numpy as np

from pulsetrack.analysis.beat_tracking import beats_to_objects, track_beats
from pulsetrack.analysis.models import AnalysisResult, Signal
from pulsetrack.analysis.novelty import cap_infinite, novelty_function
from pulsetrack.analysis.tempo import estimate_from_ibi
from pulsetrack.audio.loader import load_audio
from pulsetrack.audio.preprocessing import normalize
from pulsetrack.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class AnalysisEngine:
    """Runs the offline pipeline with parameters taken from settings."""

    def __init__(self, config: Settings | None = None):
        self.config = config or default_settings

    def analyze_file(self, file_path: str, **kwargs) -> AnalysisResult:
        """Analyze an audio file."""
        signal = load_audio(file_path, sr=self.config.sample_rate)
        return self.analyze_audio(normalize(signal.samples), signal.sr, **kwargs)

    def analyze_signal(self, signal: Signal, **kwargs) -> AnalysisResult:
        return self.analyze_audio(signal.samples, signal.sr, **kwargs)

    def analyze_audio(
        self,
        audio: np.ndarray,
        sr: int = 22050,
        method: str | None = None,
        tempo: float | None = None,
        alpha: float | None = None,
    ) -> AnalysisResult:
        """Analyze pre-loaded mono audio.

        ``method``, ``tempo`` and ``alpha`` default to the configured values.
        """
        cfg = self.config
        method = method or cfg.novelty_method
        tempo = tempo if tempo is not None else cfg.tempo
        alpha = alpha if alpha is not None else cfg.alpha
        duration = len(audio) / sr
        logger.info(f"Analyzing {duration:.1f}s of audio at {sr}Hz ({method} novelty)")

        # Step 1: Novelty function
        logger.info("Step 1: Novelty function")
        superflux_kwargs = {}
        if method == "superflux":
            superflux_kwargs = dict(
                mu=cfg.superflux_mu,
                gamma=cfg.superflux_gamma,
                max_win=cfg.superflux_max_win,
                min_freq=cfg.mel_min_freq,
                max_freq=cfg.mel_max_freq,
                n_bins=cfg.mel_bins,
            )
        novfn, offset = novelty_function(method, audio, sr, cfg.win, cfg.hop, **superflux_kwargs)
        logger.info(f"  {len(novfn)} novelty frames (offset {offset})")
        n_infinite = int(np.isposinf(novfn).sum())
        if n_infinite:
            logger.debug(f"  capping {n_infinite} onsets out of digital silence")
            novfn = cap_infinite(novfn)

        # Step 2: Beat tracking
        logger.info(f"Step 2: Beat tracking at {tempo} BPM (alpha={alpha})")
        beat_frames = track_beats(novfn, sr, cfg.hop, tempo, alpha)
        beats = beats_to_objects(beat_frames, novfn, sr, cfg.hop)
        logger.info(f"  {len(beats)} beats")

        # Step 3: Tempo from the tracked beats
        tempo_result = estimate_from_ibi(np.array([b.time for b in beats]), target_bpm=tempo)
        if tempo_result is not None:
            logger.info(f"Step 3: Tempo {tempo_result.bpm} BPM (confidence {tempo_result.confidence:.2f})")

        return AnalysisResult(
            novelty=novfn,
            beats=beats,
            tempo=tempo_result,
            frame_rate=sr / cfg.hop,
            duration=duration,
            method=method,
            beat_frames=beat_frames,
        )
