"""Error taxonomy for the analysis core.

Every error is a local, synchronous input/parameter mismatch. None of them
is retryable, so each concrete error is also a ``ValueError``.
"""


class PulsetrackError(Exception):
    """Base class for all analysis errors."""


class InvalidWindowError(PulsetrackError, ValueError):
    """Window length is odd or not positive."""


class InvalidHopError(PulsetrackError, ValueError):
    """Hop length is not positive."""


class InsufficientSamplesError(PulsetrackError, ValueError):
    """Too few samples to produce the requested frames."""


class InsufficientNoveltyLengthError(PulsetrackError, ValueError):
    """Novelty function is shorter than the beat search window."""


class InvalidTempoError(PulsetrackError, ValueError):
    """Tempo is not positive or implies a beat period under one frame."""


class InvalidFilterbankError(PulsetrackError, ValueError):
    """Mel filterbank frequency range or bin count is unusable."""


class DegenerateNormalizationError(PulsetrackError, ValueError):
    """Online filter step produced a zero normalization constant."""


class InvalidSignalError(PulsetrackError, ValueError):
    """Samples are not a one-dimensional mono signal."""
