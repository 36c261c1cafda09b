"""Difference-hash (dHash) fingerprints for gallery images."""

import io
import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import imagehash
import numpy as np
from PIL import Image

from ..logging import get_logger

logger = get_logger(__name__)

Fingerprint = imagehash.ImageHash

# Fixed resampling filter; changing it makes fingerprints from different runs incomparable.
RESAMPLE_FILTER = Image.Resampling.BOX


@dataclass(frozen=True)
class HashedImage:
    """Fingerprint of a decoded image together with its pixel dimensions."""
    fingerprint: Fingerprint
    width: int
    height: int


class HashComputationError(Exception):
    """Raised when a fingerprint cannot be computed for an image buffer."""


class EmptyInputError(HashComputationError):
    """Raised when the image buffer is zero bytes long."""


class DecodeError(HashComputationError):
    """Raised when the image buffer cannot be decoded as a raster image."""


def hash_image(image_bytes: bytes, hash_size: int = 8) -> HashedImage:
    """
    Decode an image buffer and compute its difference hash.

    The image is converted to grayscale, box-resized to a (hash_size + 1) x hash_size
    grid, and each row contributes hash_size bits where a bit is set when a pixel is
    darker than its right-hand neighbour.

    Args:
        image_bytes: Complete encoded image (JPEG, PNG, WebP, ...)
        hash_size: Grid size N; the fingerprint has N * N bits

    Returns:
        HashedImage with the fingerprint and the decoded dimensions

    Raises:
        EmptyInputError: If the buffer is empty
        DecodeError: If the buffer is not a decodable image
    """
    if hash_size < 2:
        raise ValueError(f"hash_size must be at least 2, got {hash_size}")
    if not image_bytes:
        raise EmptyInputError("Image buffer is empty")

    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.load()
            width, height = img.size
            gray = img.convert("L")
    except Exception as exc:
        raise DecodeError(f"Failed to decode image ({len(image_bytes)} bytes): {exc}") from exc

    grid = gray.resize((hash_size + 1, hash_size), RESAMPLE_FILTER)
    # grid is already at the target size, so imagehash only performs the comparisons
    fingerprint = imagehash.dhash(grid, hash_size=hash_size)

    logger.debug(f"Computed dHash {fingerprint} for {width}x{height} image")
    return HashedImage(fingerprint=fingerprint, width=width, height=height)


def compute_fingerprint(image_bytes: bytes, hash_size: int = 8) -> Fingerprint:
    """Compute the dHash fingerprint of an encoded image buffer."""
    return hash_image(image_bytes, hash_size=hash_size).fingerprint


def fingerprint_bits(fingerprint: Fingerprint) -> Tuple[int, ...]:
    """Return the fingerprint as a row-major sequence of 0/1 values."""
    return tuple(int(bit) for bit in fingerprint.hash.flatten())


def fingerprint_from_bits(bits: Sequence[int]) -> Fingerprint:
    """Build a square fingerprint from a row-major sequence of 0/1 values."""
    size = math.isqrt(len(bits))
    if size < 2 or size * size != len(bits):
        raise ValueError(f"Bit count must be a perfect square of at least 4, got {len(bits)}")
    return imagehash.ImageHash(np.array([bool(b) for b in bits]).reshape(size, size))


def fingerprint_to_hex(fingerprint: Fingerprint) -> str:
    """
    Hex encoding, four bits per digit, most significant bit first.

    When the bit count is not a multiple of 4 (hash_size 3, 5, 7, ...) the padding
    bits go at the front, so the text only lines up with end-padded hex layouts
    for hash sizes where N * N is divisible by 4.
    """
    return str(fingerprint)


def fingerprint_from_hex(text: str) -> Fingerprint:
    """Decode a hex string produced by fingerprint_to_hex."""
    return imagehash.hex_to_hash(text.strip().lower())
