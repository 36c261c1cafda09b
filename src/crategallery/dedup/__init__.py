"""Perceptual near-duplicate detection for gallery images."""

from .hash import (
    Fingerprint,
    HashedImage,
    HashComputationError,
    DecodeError,
    EmptyInputError,
    compute_fingerprint,
    hash_image,
    fingerprint_bits,
    fingerprint_from_bits,
    fingerprint_to_hex,
    fingerprint_from_hex,
)
from .distance import hamming_distance, FingerprintLengthError
from .cluster import (
    DuplicateGroup,
    DuplicatePair,
    GroupingResult,
    InvalidThresholdError,
    find_duplicate_groups,
    validate_threshold,
)
from .model import GalleryScan, HashOutcome, hash_gallery, scan_gallery, suggest_keep
from .urls import find_url_duplicates, normalize_url_for_comparison

__all__ = [
    "Fingerprint",
    "HashedImage",
    "HashComputationError",
    "DecodeError",
    "EmptyInputError",
    "compute_fingerprint",
    "hash_image",
    "fingerprint_bits",
    "fingerprint_from_bits",
    "fingerprint_to_hex",
    "fingerprint_from_hex",
    "hamming_distance",
    "FingerprintLengthError",
    "DuplicateGroup",
    "DuplicatePair",
    "GroupingResult",
    "InvalidThresholdError",
    "find_duplicate_groups",
    "validate_threshold",
    "GalleryScan",
    "HashOutcome",
    "hash_gallery",
    "scan_gallery",
    "suggest_keep",
    "find_url_duplicates",
    "normalize_url_for_comparison",
]
