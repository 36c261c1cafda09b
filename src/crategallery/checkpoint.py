"""Resumable batch progress as an explicit, caller-owned value."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Iterable, List

from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Checkpoint:
    """Set of batch keys (e.g. gallery names) that are already done."""
    completed: FrozenSet[str] = field(default_factory=frozenset)

    def is_completed(self, key: str) -> bool:
        return key in self.completed

    def mark_completed(self, key: str) -> "Checkpoint":
        return Checkpoint(completed=self.completed | {key})

    def pending(self, keys: Iterable[str]) -> List[str]:
        """Keys not yet completed, in the given order."""
        return [key for key in keys if key not in self.completed]


def load_checkpoint(path: Path) -> Checkpoint:
    """Load a checkpoint file; a missing file means nothing is completed yet."""
    if not path.exists():
        return Checkpoint()

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    completed = data.get("completed", []) if isinstance(data, dict) else []
    logger.info(f"Loaded checkpoint with {len(completed)} completed keys from {path}")
    return Checkpoint(completed=frozenset(str(key) for key in completed))


def save_checkpoint(checkpoint: Checkpoint, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"completed": sorted(checkpoint.completed)}, f, indent=2)
    return path
