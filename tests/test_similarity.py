"""Unit tests for the similarity scorer."""

import itertools

import pytest

from speakerid.speakers import FeatureVector, InvalidFeatureVector, similarity
from tests.conftest import VOICE_A, VOICE_A_ISH, VOICE_B

SCALAR_ONLY = FeatureVector(pitch=100.0, tone=0.5, pace=1.0)


def test_self_similarity_is_maximal():
    """A fully populated vector is identical to itself."""
    assert similarity(VOICE_A, VOICE_A) == 1.0
    assert similarity(VOICE_B, VOICE_B) == 1.0


@pytest.mark.parametrize(
    "a,b",
    list(itertools.combinations([VOICE_A, VOICE_A_ISH, VOICE_B, SCALAR_ONLY], 2)),
)
def test_symmetric_and_bounded(a, b):
    """Order of arguments does not matter and the score stays within [0, 1]."""
    forward = similarity(a, b)
    backward = similarity(b, a)
    assert forward == pytest.approx(backward, abs=1e-12)
    assert 0.0 <= forward <= 1.0


def test_scalar_only_weights_are_renormalised():
    """Without mfcc/formants the score is averaged over pitch, tone and pace only."""
    other = FeatureVector(pitch=150.0, tone=0.7, pace=1.1)
    expected = (0.5 * 0.30 + 0.8 * 0.20 + 0.9 * 0.15) / 0.65
    assert similarity(SCALAR_ONLY, other) == pytest.approx(expected)


def test_optional_feature_ignored_when_one_side_lacks_it():
    """mfcc on only one side contributes nothing."""
    with_mfcc = FeatureVector(pitch=100.0, tone=0.5, pace=1.0, mfcc=(0.0, 1.0))
    assert similarity(with_mfcc, SCALAR_ONLY) == 1.0


def test_arrays_compare_over_overlapping_prefix():
    """Extra trailing coefficients on the longer array are ignored."""
    short = FeatureVector(pitch=100.0, tone=0.5, pace=1.0, mfcc=(0.2, 0.4))
    long = FeatureVector(pitch=100.0, tone=0.5, pace=1.0, mfcc=(0.2, 0.4, 0.9, 0.9))
    assert similarity(short, long) == 1.0


def test_sub_scores_clamp_at_zero():
    """A pitch gap beyond 100 Hz scores 0 for pitch, never negative."""
    low = FeatureVector(pitch=80.0, tone=0.0, pace=0.0)
    high = FeatureVector(pitch=400.0, tone=1.0, pace=2.5)
    assert similarity(low, high) == 0.0


def test_formant_difference_scaled_by_1000_hz():
    a = FeatureVector(pitch=100.0, tone=0.5, pace=1.0, formants=(500.0,))
    b = FeatureVector(pitch=100.0, tone=0.5, pace=1.0, formants=(1000.0,))
    expected = (0.30 + 0.20 + 0.15 + 0.5 * 0.10) / 0.75
    assert similarity(a, b) == pytest.approx(expected)


def test_same_speaker_scores_above_different_speaker():
    assert similarity(VOICE_A, VOICE_A_ISH) > 0.9
    assert similarity(VOICE_A, VOICE_B) < 0.5


class TestFeatureVectorValidation:
    """FeatureVector rejects descriptors that cannot be compared."""

    def test_non_finite_pitch_rejected(self):
        with pytest.raises(InvalidFeatureVector):
            FeatureVector(pitch=float("nan"), tone=0.5, pace=1.0)

    def test_empty_array_rejected(self):
        with pytest.raises(InvalidFeatureVector):
            FeatureVector(pitch=100.0, tone=0.5, pace=1.0, mfcc=[])

    def test_non_numeric_rejected(self):
        with pytest.raises(InvalidFeatureVector):
            FeatureVector(pitch="loud", tone=0.5, pace=1.0)

    def test_lists_normalised_to_tuples(self):
        v = FeatureVector(pitch=100, tone=0.5, pace=1, formants=[300, 1000, 2500])
        assert v.formants == (300.0, 1000.0, 2500.0)
        assert isinstance(v.pitch, float)
