"""Public API for gallery deduplication."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .hash import Fingerprint, HashComputationError, hash_image
from .cluster import (
    DuplicateGroup,
    DuplicatePair,
    find_duplicate_groups,
    validate_threshold,
)
from ..logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class HashOutcome:
    """Result of hashing one gallery image; fingerprint is None on failure."""
    index: int
    fingerprint: Optional[Fingerprint] = None
    width: Optional[int] = None
    height: Optional[int] = None
    error: Optional[str] = None

    @property
    def scoreable(self) -> bool:
        return self.fingerprint is not None

    @property
    def area(self) -> int:
        if self.width is None or self.height is None:
            return 0
        return self.width * self.height


@dataclass(frozen=True)
class GalleryScan:
    """Everything one detection run produced for a gallery."""
    outcomes: List[HashOutcome]
    groups: List[DuplicateGroup] = field(default_factory=list)
    pairs: List[DuplicatePair] = field(default_factory=list)
    unscoreable: List[int] = field(default_factory=list)


def _hash_one(index: int, image_bytes: bytes, hash_size: int) -> HashOutcome:
    try:
        hashed = hash_image(image_bytes, hash_size=hash_size)
    except HashComputationError as exc:
        logger.warning(f"Failed to hash image {index}: {exc}")
        return HashOutcome(index=index, error=str(exc))

    return HashOutcome(
        index=index,
        fingerprint=hashed.fingerprint,
        width=hashed.width,
        height=hashed.height,
    )


def hash_gallery(
    images: Sequence[bytes],
    hash_size: int = 8,
    max_workers: int = 4,
) -> List[HashOutcome]:
    """
    Hash every image buffer, isolating per-image failures.

    Args:
        images: Encoded image buffers in gallery order
        hash_size: dHash grid size
        max_workers: Upper bound on concurrent hashing threads

    Returns:
        One HashOutcome per input image, in input order
    """
    if max_workers < 1:
        raise ValueError(f"max_workers must be at least 1, got {max_workers}")
    if hash_size < 2:
        raise ValueError(f"hash_size must be at least 2, got {hash_size}")
    if not images:
        return []

    workers = min(max_workers, len(images))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        outcomes = list(executor.map(
            lambda item: _hash_one(item[0], item[1], hash_size),
            enumerate(images),
        ))

    failed = sum(1 for outcome in outcomes if not outcome.scoreable)
    logger.info(f"Hashed {len(outcomes) - failed}/{len(outcomes)} images")
    return outcomes


def scan_gallery(
    images: Sequence[bytes],
    threshold: int = 8,
    hash_size: int = 8,
    max_workers: int = 4,
) -> GalleryScan:
    """
    Detect near-duplicate images in a gallery.

    Nothing is removed; the returned groups are recommendations for review.

    Raises:
        InvalidThresholdError: If threshold is outside 0..hash_size**2
    """
    validate_threshold(threshold, hash_size * hash_size)

    outcomes = hash_gallery(images, hash_size=hash_size, max_workers=max_workers)
    result = find_duplicate_groups(
        [(outcome.index, outcome.fingerprint) for outcome in outcomes],
        threshold=threshold,
    )

    return GalleryScan(
        outcomes=outcomes,
        groups=result.groups,
        pairs=result.pairs,
        unscoreable=result.unscoreable,
    )


def suggest_keep(group: DuplicateGroup, outcomes: Sequence[HashOutcome]) -> int:
    """
    Pick the image to keep from a duplicate group.

    Selection criteria (in order):
    1. Largest pixel area
    2. Smallest index
    """
    by_index = {outcome.index: outcome for outcome in outcomes}
    return min(
        group.indices,
        key=lambda index: (-by_index[index].area if index in by_index else 0, index),
    )
