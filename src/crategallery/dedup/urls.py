"""URL-based duplicate detection for gallery image links."""

import re
from typing import Dict, List, Sequence
from urllib.parse import urlsplit

from ..logging import get_logger

logger = get_logger(__name__)

_SIZE_SUFFIX = re.compile(r"[-_]\d+x\d+")
_SIZE_SEGMENT = re.compile(r"/s\d+[-x]\d+/")
_GOOGLE_SIZING = re.compile(r"=w\d+-h\d+")
_IMAGE_EXTENSION = re.compile(r"\.(jpg|jpeg|png|webp|avif)", re.IGNORECASE)
_REPEATED_SLASH = re.compile(r"/+")


def normalize_url_for_comparison(url: str) -> str:
    """
    Reduce an image URL to a form shared by its resized or re-encoded variants.

    Scheme, leading www., query string and fragment are dropped, and common
    size markers and image extensions are stripped from the path.
    """
    parts = urlsplit(url.strip())
    host = parts.netloc.lower()
    if host.startswith("www."):
        host = host[len("www."):]

    path = _SIZE_SUFFIX.sub("", parts.path)
    path = _SIZE_SEGMENT.sub("/", path)
    path = _GOOGLE_SIZING.sub("", path)
    path = _IMAGE_EXTENSION.sub("", path)
    path = _REPEATED_SLASH.sub("/", path)
    return host + path


def find_url_duplicates(urls: Sequence[str]) -> List[List[int]]:
    """
    Group indices of URLs that normalize to the same value.

    Returns:
        Groups of two or more indices, in order of first appearance
    """
    groups: Dict[str, List[int]] = {}
    for index, url in enumerate(urls):
        groups.setdefault(normalize_url_for_comparison(url), []).append(index)

    duplicates = [indices for indices in groups.values() if len(indices) > 1]
    if duplicates:
        logger.info(f"Found {len(duplicates)} URL duplicate groups")
    return duplicates
