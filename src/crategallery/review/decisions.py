"""
Human review decisions for duplicate groups.

Reviewers see 1-based serial numbers (#001, #002, ...) in reports, so the
parsing helpers here accept 1-based text and return 0-based indices.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple, TypeVar

from ..dedup.model import GalleryScan, suggest_keep
from ..logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_DECISION_PATTERN = re.compile(r"^\s*([\d\s,]+?)\s*:\s*keep\s*=\s*(\d+)\s*$")


class DecisionError(ValueError):
    """Raised when a review decision is malformed or inconsistent."""


@dataclass(frozen=True)
class KeepDecision:
    """A reviewed duplicate group and the one image to keep (0-based)."""
    indices: Tuple[int, ...]
    keep: int

    def __post_init__(self) -> None:
        if self.keep not in self.indices:
            raise DecisionError(f"Keep index {self.keep} is not in group {list(self.indices)}")

    @property
    def removed(self) -> Tuple[int, ...]:
        return tuple(index for index in self.indices if index != self.keep)


@dataclass(frozen=True)
class RemovalPlan:
    """Indices to drop from a gallery, each with a human-readable reason."""
    gallery_size: int
    removed: Dict[int, str] = field(default_factory=dict)
    out_of_range: List[int] = field(default_factory=list)

    @property
    def kept(self) -> List[int]:
        return [index for index in range(self.gallery_size) if index not in self.removed]

    def apply(self, items: Sequence[T]) -> List[T]:
        """Return items without the removed indices, preserving order."""
        if len(items) != self.gallery_size:
            raise ValueError(
                f"Plan was built for {self.gallery_size} items, got {len(items)}"
            )
        return [item for index, item in enumerate(items) if index not in self.removed]


def parse_index_list(text: str) -> List[int]:
    """Parse "12,15" (1-based serials) into 0-based indices."""
    indices = []
    for token in text.split(","):
        token = token.strip()
        if not token:
            continue
        if not token.isdigit() or int(token) < 1:
            raise DecisionError(f"Invalid image number {token!r} in {text!r}")
        indices.append(int(token) - 1)
    return indices


def parse_keep_decision(text: str) -> KeepDecision:
    """Parse "3,7:keep=7" (1-based serials) into a KeepDecision."""
    match = _DECISION_PATTERN.match(text)
    if not match:
        raise DecisionError(f"Invalid decision {text!r}, expected 'idx1,idx2:keep=N'")

    indices = parse_index_list(match.group(1))
    if len(indices) < 2:
        raise DecisionError(f"Decision {text!r} must name at least two images")

    keep = int(match.group(2)) - 1
    if keep not in indices:
        raise DecisionError(f"Invalid decision {text!r}: keep index must be in group")
    return KeepDecision(indices=tuple(indices), keep=keep)


def plan_removals(
    gallery_size: int,
    decisions: Iterable[KeepDecision],
    remove: Iterable[int] = (),
) -> RemovalPlan:
    """
    Combine duplicate decisions and explicit removals into one plan.

    Out-of-range indices are reported in the plan and otherwise ignored.

    Raises:
        DecisionError: If one decision removes an image another decision keeps
    """
    decisions = list(decisions)
    kept_by = {decision.keep: decision for decision in decisions}
    removed: Dict[int, str] = {}
    out_of_range: List[int] = []

    def in_range(index: int) -> bool:
        if 0 <= index < gallery_size:
            return True
        logger.warning(f"Index {index + 1} out of range (1-{gallery_size})")
        out_of_range.append(index)
        return False

    for decision in decisions:
        for index in decision.removed:
            if index in kept_by:
                raise DecisionError(
                    f"Conflicting decisions: #{index + 1:03d} is kept by group "
                    f"{[i + 1 for i in kept_by[index].indices]} but removed by group "
                    f"{[i + 1 for i in decision.indices]}"
                )
            if in_range(index):
                removed[index] = f"Duplicate of #{decision.keep + 1:03d}"

    for index in remove:
        if in_range(index):
            removed[index] = "Removed (unwanted)"

    logger.info(f"Planned removal of {len(removed)}/{gallery_size} images")
    return RemovalPlan(
        gallery_size=gallery_size,
        removed=dict(sorted(removed.items())),
        out_of_range=out_of_range,
    )


def decisions_from_scan(scan: GalleryScan) -> List[KeepDecision]:
    """One decision per duplicate group, keeping the suggested image."""
    return [
        KeepDecision(indices=group.indices, keep=suggest_keep(group, scan.outcomes))
        for group in scan.groups
    ]
