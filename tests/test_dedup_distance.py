"""Tests for fingerprint distance."""

import pytest
from hypothesis import given, strategies as st

from crategallery.dedup.distance import FingerprintLengthError, hamming_distance
from crategallery.dedup.hash import fingerprint_from_bits

bits_64 = st.lists(st.integers(min_value=0, max_value=1), min_size=64, max_size=64)


class TestHammingDistance:
    def test_counts_differing_bits(self):
        a = fingerprint_from_bits([0] * 64)
        b = fingerprint_from_bits([1, 1, 1] + [0] * 61)

        assert hamming_distance(a, b) == 3

    def test_returns_int(self):
        a = fingerprint_from_bits([0] * 64)
        assert type(hamming_distance(a, a)) is int

    def test_complement_is_maximal(self):
        a = fingerprint_from_bits([0, 1] * 32)
        b = fingerprint_from_bits([1, 0] * 32)

        assert hamming_distance(a, b) == 64

    def test_length_mismatch_rejected(self):
        """Test that fingerprints from different hash sizes cannot be compared."""
        a = fingerprint_from_bits([0] * 64)
        b = fingerprint_from_bits([0] * 256)

        with pytest.raises(FingerprintLengthError):
            hamming_distance(a, b)

    @given(a=bits_64, b=bits_64)
    def test_symmetric(self, a, b):
        """For any two fingerprints, distance does not depend on argument order."""
        fa, fb = fingerprint_from_bits(a), fingerprint_from_bits(b)
        assert hamming_distance(fa, fb) == hamming_distance(fb, fa)

    @given(a=bits_64)
    def test_identity(self, a):
        fa = fingerprint_from_bits(a)
        assert hamming_distance(fa, fa) == 0

    @given(a=bits_64, b=bits_64)
    def test_matches_bitwise_count(self, a, b):
        expected = sum(1 for x, y in zip(a, b) if x != y)
        assert hamming_distance(fingerprint_from_bits(a), fingerprint_from_bits(b)) == expected
