import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

from .dedup.cluster import validate_threshold

DEFAULT_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp")


@dataclass
class Settings:
    output_dir: Path = Path("output")
    dedup_threshold: int = 8
    hash_size: int = 8
    max_workers: int = 4
    image_extensions: Tuple[str, ...] = field(default=DEFAULT_IMAGE_EXTENSIONS)

    def __post_init__(self) -> None:
        if self.hash_size < 2:
            raise ValueError(f"hash_size must be at least 2, got {self.hash_size}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        validate_threshold(self.dedup_threshold, self.hash_size * self.hash_size)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from CRATEGALLERY_* environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            output_dir=Path(os.getenv("CRATEGALLERY_OUTPUT_DIR", str(defaults.output_dir))),
            dedup_threshold=int(os.getenv("CRATEGALLERY_THRESHOLD", defaults.dedup_threshold)),
            hash_size=int(os.getenv("CRATEGALLERY_HASH_SIZE", defaults.hash_size)),
            max_workers=int(os.getenv("CRATEGALLERY_MAX_WORKERS", defaults.max_workers)),
        )
