"""Online beat tracking via Bayes filtering on a bar/pointer model.

The hidden state is a (tempo level, position) pair. A tempo level with
``M`` slots advances one slot per novelty sample and completes a beat
every ``M`` samples. Slot 0 is the beat itself. When a beat completes at
any level, its mass seeds slot 0 of every level, weighted by how similar
the two tempos are.

All levels live in one flat array; level ``i`` owns the slice
``[starts[i], starts[i] + sizes[i])``.
"""

import logging
import math

import numpy as np

from pulsetrack.errors import DegenerateNormalizationError

logger = logging.getLogger(__name__)


class OnlineBeatTracker:
    """Streaming tempo/phase filter.

    Parameters
    ----------
    sr:
        Sample rate of the audio the novelty was computed from.
    hop:
        Hop length of the novelty function.
    fac:
        Downsampling factor applied to the novelty before filtering.
    lam:
        Sharpness of tempo transitions at beat boundaries. Defaults to 80.
    min_bpm, max_bpm:
        Tempo range covered by the state space. Defaults to 40-200.
    gamma:
        Attenuation applied to every off-beat slot per step. Defaults to 0.03.
    initial_max:
        Starting value of the running novelty maximum. With the default of
        0, steps are rejected until a positive novelty value arrives.

    One instance belongs to a single stream; ``filter`` mutates it in place.
    """

    def __init__(
        self,
        sr: int,
        hop: int,
        fac: int = 1,
        lam: float = 80.0,
        min_bpm: float = 40.0,
        max_bpm: float = 200.0,
        gamma: float = 0.03,
        initial_max: float = 0.0,
    ) -> None:
        if sr <= 0 or hop <= 0 or fac <= 0:
            raise ValueError(f"sr, hop and fac must be positive, got {sr}, {hop}, {fac}")
        if not 0 < min_bpm < max_bpm:
            raise ValueError(f"Need 0 < min_bpm < max_bpm, got {min_bpm} and {max_bpm}")
        if gamma < 0:
            raise ValueError(f"gamma must be non-negative, got {gamma}")

        self.sr = sr
        self.hop = hop
        self.fac = fac
        self.lam = lam
        self.gamma = gamma
        self.delta = hop * fac / sr  # seconds per filter step

        m_min = math.floor(60 / (self.delta * max_bpm))
        m_max = math.floor(60 / (self.delta * min_bpm))
        if m_min < 1:
            raise ValueError(
                f"{max_bpm} BPM is faster than one filter step ({self.delta:.4f}s) per beat"
            )
        self._sizes = np.arange(m_min, m_max + 1)
        self._starts = np.concatenate([[0], np.cumsum(self._sizes)[:-1]])
        self._lasts = self._starts + self._sizes - 1
        n_states = int(self._sizes.sum())

        # Step 1: uniform prior over every (tempo, position) state
        self._f = np.full(n_states, 1.0 / n_states)

        # Step 2: symmetric tempo transition table
        ratio = self._sizes[:, None] / self._sizes[None, :]
        upper = np.exp(-lam * np.abs(ratio - 1))
        self._btrans = np.triu(upper) + np.triu(upper, 1).T

        # Phase weight per slot: 1 on the beat, 2*|0.5 - k/M| elsewhere
        level_of = np.repeat(np.arange(len(self._sizes)), self._sizes)
        k = np.arange(n_states) - self._starts[level_of]
        self._phase_weights = 2 * np.abs(0.5 - k / self._sizes[level_of])
        self._phase_weights[self._starts] = 1.0

        self._max = float(initial_max)
        self._phase = 0.0
        self.steps = 0

        logger.debug(
            f"Online tracker: {len(self._sizes)} tempo levels (M={m_min}..{m_max}), "
            f"{n_states} states, delta={self.delta:.4f}s"
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def filter(self, novelty_sample: float) -> float:
        """Advance the filter by one novelty sample and return the new phase.

        Raises ``DegenerateNormalizationError`` and leaves the state
        untouched if the step carries no usable probability mass.
        """
        nov = float(novelty_sample)
        if nov < 0 or math.isnan(nov):
            raise ValueError(f"Novelty samples must be non-negative, got {novelty_sample}")

        new_max = max(self._max, nov)
        if new_max <= 0 or math.isinf(new_max):
            raise DegenerateNormalizationError(
                f"Cannot normalize novelty {nov} against running max {new_max}"
            )
        p_beat = nov / new_max

        # Transition: every slot moves one position along its bar, and
        # completed bars at any tempo seed the beat slot of every tempo
        completed = self._f[self._lasts]
        onset_mass = self._btrans @ completed
        g = np.roll(self._f, 1) * self.gamma
        g[self._starts] = onset_mass * p_beat

        # Measurement and normalization
        norm = float(g.sum())
        if not norm > 0 or not math.isfinite(norm):
            raise DegenerateNormalizationError(
                f"Normalization constant is {norm} for novelty {nov}"
            )
        mean_phase = float(g @ self._phase_weights)

        self._f = g / norm
        self._phase = mean_phase / norm
        self._max = new_max
        self.steps += 1
        return self._phase

    @property
    def phase(self) -> float:
        """Weighted closeness to a beat: 1.0 on the beat, 0.0 midway between beats."""
        return self._phase

    @property
    def max(self) -> float:
        """Largest novelty sample seen so far."""
        return self._max

    @property
    def tempo_levels(self) -> np.ndarray:
        """Slots per beat for each tempo level, fastest tempo first."""
        return self._sizes.copy()

    @property
    def state_count(self) -> int:
        return len(self._f)

    @property
    def transition_matrix(self) -> np.ndarray:
        return self._btrans.copy()

    def level_mass(self) -> np.ndarray:
        """Total probability of each tempo level."""
        return np.add.reduceat(self._f, self._starts)

    @property
    def bpm(self) -> float:
        """Tempo of the most probable level."""
        m = self._sizes[int(np.argmax(self.level_mass()))]
        return 60.0 / (m * self.delta)

    @property
    def confidence(self) -> float:
        return float(self.level_mass().max())

    def probability_grid(self) -> list[np.ndarray]:
        """Copy of the state distribution, one array of positions per tempo level."""
        return [part.copy() for part in np.split(self._f, self._starts[1:])]


def downsample_novelty(novfn: np.ndarray, fac: int) -> np.ndarray:
    """Block-max downsample a novelty function by ``fac``.

    A trailing partial block is dropped, since it would be completed by
    samples that have not arrived yet.
    """
    if fac < 1:
        raise ValueError(f"fac must be at least 1, got {fac}")
    novfn = np.asarray(novfn, dtype=float).ravel()
    if fac == 1:
        return novfn.copy()
    n_blocks = len(novfn) // fac
    return novfn[:n_blocks * fac].reshape(n_blocks, fac).max(axis=1)


def track_phase(novfn: np.ndarray, tracker: OnlineBeatTracker) -> np.ndarray:
    """Run ``tracker`` over a whole novelty function at its ``fac`` rate.

    Returns the phase after each step. Degenerate steps repeat the
    previous phase.
    """
    samples = downsample_novelty(novfn, tracker.fac)
    phases = np.empty(len(samples))
    skipped = 0
    for i, nov in enumerate(samples):
        try:
            phases[i] = tracker.filter(nov)
        except DegenerateNormalizationError:
            phases[i] = tracker.phase
            skipped += 1
    if skipped:
        logger.debug(f"Online tracking skipped {skipped}/{len(samples)} degenerate steps")
    return phases
