"""Tests for the mel filterbank builder."""

import numpy as np
import pytest

from pulsetrack.analysis.melbank import _bin_edges, build_mel_filterbank, note_num_to_freq
from pulsetrack.errors import InvalidFilterbankError, InvalidWindowError


def test_reference_layout_shape_and_peaks():
    fb = build_mel_filterbank(1024, 44100, 27.5, 16000, 138)
    assert fb.shape == (513, 138)
    peaks = fb.max(axis=0)
    assert np.all(peaks <= 1.0)
    assert np.all(peaks >= 0.99)


@pytest.mark.parametrize("win,sr,min_freq,max_freq,n_bins", [
    (1024, 44100, 27.5, 16000, 138),
    (2048, 22050, 27.5, 11025, 138),
    (512, 16000, 100.0, 4000.0, 20),
    (4096, 44100, 60.0, 8000.0, 40),
])
def test_columns_are_triangles_inside_their_support(win, sr, min_freq, max_freq, n_bins):
    fb = build_mel_filterbank(win, sr, min_freq, max_freq, n_bins)
    edges = _bin_edges(win, sr, min_freq, max_freq, n_bins)
    assert np.all(fb >= 0)
    assert np.all(fb <= 1)
    for i in range(n_bins):
        i1, i2, i3 = edges[i], edges[i + 1], edges[i + 2]
        if i1 == i2:
            i2 += 1
        if i3 <= i2:
            i3 = i2 + 1
        nonzero = np.nonzero(fb[:, i])[0]
        assert nonzero.min() >= i1
        assert nonzero.max() < i3
        assert fb[i2, i] == 1.0
        assert int(np.argmax(fb[:, i])) == i2


def test_edges_are_geometric_and_rounded():
    edges = _bin_edges(1024, 44100, 27.5, 16000, 138)
    assert len(edges) == 140
    assert edges[0] == 1  # 27.5 * 1024 / 44100 = 0.64 rounds up
    assert edges[-1] == round(16000 * 1024 / 44100)
    assert np.all(np.diff(edges) >= 0)


def test_filterbank_is_cached_and_read_only():
    a = build_mel_filterbank(1024, 22050, 27.5, 11025.0, 138)
    b = build_mel_filterbank(1024, 22050, 27.5, 11025.0, 138)
    assert a is b
    with pytest.raises(ValueError):
        a[0, 0] = 5.0


def test_filterbank_is_deterministic_across_cache():
    a = build_mel_filterbank(1024, 44100, 27.5, 16000, 138).copy()
    build_mel_filterbank.cache_clear()
    b = build_mel_filterbank(1024, 44100, 27.5, 16000, 138)
    np.testing.assert_array_equal(a, b)


def test_nyquist_max_freq_stays_in_bounds():
    fb = build_mel_filterbank(1024, 22050, 27.5, 11025.0, 138)
    assert fb.shape == (513, 138)
    assert fb[:, -1].max() == 1.0


@pytest.mark.parametrize("min_freq,max_freq,n_bins", [
    (0.0, 16000.0, 138),
    (1000.0, 500.0, 10),
    (27.5, 16000.0, 0),
])
def test_invalid_filterbank(min_freq, max_freq, n_bins):
    with pytest.raises(InvalidFilterbankError):
        build_mel_filterbank(1024, 44100, min_freq, max_freq, n_bins)


def test_invalid_window_for_filterbank():
    with pytest.raises(InvalidWindowError):
        build_mel_filterbank(1023, 44100, 27.5, 16000.0, 138)


def test_note_num_to_freq():
    assert note_num_to_freq(0) == 440.0
    assert note_num_to_freq(12) == pytest.approx(880.0)
    assert note_num_to_freq(-48) == pytest.approx(27.5)
