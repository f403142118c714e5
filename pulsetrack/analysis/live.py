"""Incremental novelty + online beat tracking for live audio.

Chunks of any length go in; every completed analysis frame produces one
novelty value, and every ``fac`` novelty values advance the online
tracker by one step. The novelty values are identical to what
``compute_novelty`` / ``compute_superflux`` give for the concatenated
stream.
"""

import logging
from collections import deque

import numpy as np
from scipy.ndimage import maximum_filter1d

from pulsetrack.analysis.melbank import build_mel_filterbank
from pulsetrack.analysis.models import PhaseEstimate
from pulsetrack.analysis.novelty import NOVELTY_METHODS, rectified_flux, validate_gamma
from pulsetrack.analysis.online import OnlineBeatTracker
from pulsetrack.analysis.spectrogram import compute_spectrogram, frame_count, validate_frame_params
from pulsetrack.config import Settings, settings as default_settings
from pulsetrack.errors import DegenerateNormalizationError, InvalidSignalError

logger = logging.getLogger(__name__)


class LiveBeatSession:
    """Owns one stream's sample carry-over, novelty state and tracker."""

    def __init__(
        self,
        sr: int,
        method: str | None = None,
        config: Settings | None = None,
        tracker: OnlineBeatTracker | None = None,
    ) -> None:
        cfg = config or default_settings
        self.method = method or cfg.novelty_method
        if self.method not in NOVELTY_METHODS:
            raise ValueError(f"Unknown novelty method {self.method!r}, use one of {NOVELTY_METHODS}")
        validate_frame_params(cfg.win, cfg.hop)

        self.sr = sr
        self.win = cfg.win
        self.hop = cfg.hop
        self.tracker = tracker or OnlineBeatTracker(
            sr,
            cfg.hop,
            fac=cfg.online_fac,
            lam=cfg.online_lam,
            min_bpm=cfg.online_min_bpm,
            max_bpm=cfg.online_max_bpm,
            gamma=cfg.online_gamma,
            initial_max=cfg.online_initial_max,
        )

        if self.method == "superflux":
            self._mu = cfg.superflux_mu
            self._gamma = cfg.superflux_gamma
            self._max_win = cfg.superflux_max_win
            validate_gamma(self._gamma)
            self._filterbank = build_mel_filterbank(
                cfg.win, sr, cfg.mel_min_freq, min(cfg.mel_max_freq, sr / 2), cfg.mel_bins,
            )
        else:
            self._mu = 1
        # Reference frames still waiting for their partner ``mu`` frames later
        self._references: deque = deque(maxlen=self._mu)

        self._pending = np.zeros(0, dtype=np.float64)
        self._block: list[float] = []
        self.frames = 0
        self.novelty_count = 0
        self.skipped_steps = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def push(self, chunk: np.ndarray) -> list[PhaseEstimate]:
        """Consume a chunk of samples and return the tracker steps it completed."""
        chunk = np.asarray(chunk, dtype=np.float64)
        if chunk.ndim != 1:
            raise InvalidSignalError(f"Expected mono samples of shape (n,), got {chunk.shape}")
        if len(chunk) == 0:
            return []
        self._pending = np.concatenate([self._pending, chunk])

        n_frames = frame_count(len(self._pending), self.win, self.hop)
        if n_frames == 0:
            return []
        used = (n_frames - 1) * self.hop + self.win
        current, reference = self._frame_features(self._pending[:used])
        self._pending = self._pending[n_frames * self.hop:]

        estimates = []
        for cur, ref in zip(current, reference):
            self.frames += 1
            if len(self._references) == self._mu:
                with np.errstate(invalid="ignore"):
                    nov = float(rectified_flux(cur, self._references[0]))
                self.novelty_count += 1
                estimate = self._feed(nov)
                if estimate is not None:
                    estimates.append(estimate)
            self._references.append(ref)
        return estimates

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _frame_features(self, samples: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Per-frame features compared by the flux: (current, reference)."""
        if self.method == "naive":
            s_db = compute_spectrogram(samples, self.win, self.hop, use_db=True)
            return s_db, s_db

        mel = compute_spectrogram(samples, self.win, self.hop, use_db=False) @ self._filterbank
        current = np.log10(mel + self._gamma)
        if self._max_win > 1:
            reference = np.log10(maximum_filter1d(mel, size=self._max_win, axis=1) + self._gamma)
        else:
            reference = current
        return current, reference

    def _feed(self, nov: float) -> PhaseEstimate | None:
        self._block.append(nov)
        if len(self._block) < self.tracker.fac:
            return None
        sample = max(self._block)
        self._block.clear()

        try:
            phase = self.tracker.filter(sample)
        except DegenerateNormalizationError as e:
            if self.skipped_steps == 0:
                logger.warning(f"Online tracker step skipped: {e}")
            self.skipped_steps += 1
            phase = self.tracker.phase

        # Time of the newest frame taking part in this novelty value
        time_s = (self.frames - 1) * self.hop / self.sr
        return PhaseEstimate(
            time=round(time_s, 4),
            phase=phase,
            bpm=round(self.tracker.bpm, 1),
            confidence=self.tracker.confidence,
        )
