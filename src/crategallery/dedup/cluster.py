"""Clustering logic for grouping near-duplicate gallery images."""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .hash import Fingerprint
from .distance import hamming_distance
from ..logging import get_logger

logger = get_logger(__name__)


class InvalidThresholdError(ValueError):
    """Raised when a distance threshold is outside 0..bit_length."""


@dataclass(frozen=True)
class DuplicatePair:
    """Two images whose fingerprints are within the threshold."""
    i: int
    j: int
    distance: int


@dataclass(frozen=True)
class DuplicateGroup:
    """Images believed to show the same subject, with the worst linking distance."""
    indices: Tuple[int, ...]
    distance: int


@dataclass(frozen=True)
class GroupingResult:
    """Duplicate groups plus images that could not be scored."""
    groups: List[DuplicateGroup] = field(default_factory=list)
    unscoreable: List[int] = field(default_factory=list)
    pairs: List[DuplicatePair] = field(default_factory=list)


def validate_threshold(threshold: int, bit_length: Optional[int] = None) -> None:
    """
    Check that a Hamming distance threshold is usable.

    Raises:
        InvalidThresholdError: If threshold is not an integer, is negative,
            or exceeds bit_length when one is given
    """
    if isinstance(threshold, bool) or not isinstance(threshold, int):
        raise InvalidThresholdError(f"Threshold must be an integer, got {threshold!r}")
    if threshold < 0:
        raise InvalidThresholdError(f"Threshold must be non-negative, got {threshold}")
    if bit_length is not None and threshold > bit_length:
        raise InvalidThresholdError(
            f"Threshold {threshold} exceeds fingerprint length of {bit_length} bits"
        )


def find_duplicate_pairs(
    scored: List[Tuple[int, Fingerprint]],
    threshold: int,
) -> List[DuplicatePair]:
    """Return every pair within threshold, closest first, ties by index."""
    pairs = []
    for a in range(len(scored)):
        index_a, fp_a = scored[a]
        for b in range(a + 1, len(scored)):
            index_b, fp_b = scored[b]
            distance = hamming_distance(fp_a, fp_b)
            if distance <= threshold:
                pairs.append(DuplicatePair(i=index_a, j=index_b, distance=distance))

    pairs.sort(key=lambda pair: (pair.distance, pair.i, pair.j))
    return pairs


def find_duplicate_groups(
    fingerprints: Iterable[Tuple[int, Optional[Fingerprint]]],
    threshold: int = 8,
) -> GroupingResult:
    """
    Group images into near-duplicate clusters using single-link clustering.

    Pairs are merged closest first. A pair joining two existing groups merges
    them; a pair inside an existing group leaves it unchanged. Each group keeps
    the largest distance among the pairs that joined it.

    Args:
        fingerprints: (index, fingerprint) entries; None marks a hashing failure
        threshold: Maximum Hamming distance for considering images duplicates

    Returns:
        GroupingResult with groups ordered by their smallest index

    Raises:
        InvalidThresholdError: If threshold is negative or exceeds the bit length
        FingerprintLengthError: If fingerprints of different lengths are mixed
    """
    entries = sorted(fingerprints, key=lambda entry: entry[0])
    validate_threshold(threshold)

    seen = set()
    for index, _ in entries:
        if index in seen:
            raise ValueError(f"Duplicate image index {index}")
        seen.add(index)

    unscoreable = [index for index, fp in entries if fp is None]
    scored = [(index, fp) for index, fp in entries if fp is not None]

    if scored:
        validate_threshold(threshold, scored[0][1].hash.size)

    pairs = find_duplicate_pairs(scored, threshold)

    # Union-Find keyed by image index
    parent: Dict[int, int] = {}
    group_distance: Dict[int, int] = {}

    def find(x: int) -> int:
        parent.setdefault(x, x)
        if parent[x] != x:
            parent[x] = find(parent[x])
        return parent[x]

    for pair in pairs:
        root_i, root_j = find(pair.i), find(pair.j)
        if root_i == root_j:
            continue
        # Keep the smaller index as root so group identity is stable
        root, child = min(root_i, root_j), max(root_i, root_j)
        parent[child] = root
        group_distance[root] = max(
            group_distance.get(root, 0),
            group_distance.pop(child, 0),
            pair.distance,
        )
        logger.debug(f"Linked {pair.i} and {pair.j} (distance: {pair.distance})")

    members: Dict[int, List[int]] = {}
    for index in parent:
        members.setdefault(find(index), []).append(index)

    groups = [
        DuplicateGroup(indices=tuple(sorted(indices)), distance=group_distance[root])
        for root, indices in members.items()
        if len(indices) > 1
    ]
    groups.sort(key=lambda group: group.indices[0])

    if unscoreable:
        logger.info(f"{len(unscoreable)} images could not be scored: {unscoreable}")
    logger.info(f"Found {len(groups)} duplicate groups from {len(pairs)} matching pairs")

    return GroupingResult(groups=groups, unscoreable=unscoreable, pairs=pairs)
