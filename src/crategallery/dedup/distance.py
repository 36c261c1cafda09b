"""Distance metric for dHash fingerprint comparison."""

from .hash import Fingerprint


class FingerprintLengthError(ValueError):
    """Raised when comparing fingerprints with different bit lengths."""


def hamming_distance(a: Fingerprint, b: Fingerprint) -> int:
    """
    Calculate Hamming distance between two fingerprints.

    Args:
        a: First fingerprint
        b: Second fingerprint

    Returns:
        Hamming distance (number of differing bits)

    Raises:
        FingerprintLengthError: If the fingerprints differ in bit length
    """
    if a.hash.size != b.hash.size:
        raise FingerprintLengthError(
            f"Cannot compare fingerprints of {a.hash.size} and {b.hash.size} bits"
        )
    return int(a - b)
