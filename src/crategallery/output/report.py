"""
Scan reports for human review.

A report is the hand-off between detection and the apply step: it records
every image with its fingerprint, the duplicate groups with a suggested keep,
URL-based duplicates and the images that could not be scored.
"""

import html
import json
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from ..dedup.hash import fingerprint_to_hex
from ..dedup.model import GalleryScan, suggest_keep
from ..logging import get_logger

logger = get_logger(__name__)

REPORT_VERSION = "1.0"


@dataclass(frozen=True)
class ReportImage:
    """Single image entry in a scan report."""
    index: int                              # 0-based position in the gallery
    source: str                             # File path or URL the bytes came from
    fingerprint: Optional[str]              # Hex dHash, None if unscoreable
    width: Optional[int]
    height: Optional[int]
    error: Optional[str]                    # Hashing failure reason


@dataclass(frozen=True)
class ReportGroup:
    """Duplicate group entry in a scan report."""
    group_id: str
    indices: List[int]
    distance: int
    suggested_keep: int


@dataclass(frozen=True)
class ScanReport:
    """Complete result of scanning one gallery."""
    version: str
    gallery: str
    generated_at: str
    threshold: int
    hash_size: int
    images: List[ReportImage]
    groups: List[ReportGroup]
    url_groups: List[List[int]]
    unscoreable: List[int]

    @property
    def sources(self) -> List[str]:
        return [image.source for image in self.images]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScanReport":
        return cls(
            version=data["version"],
            gallery=data["gallery"],
            generated_at=data["generated_at"],
            threshold=data["threshold"],
            hash_size=data["hash_size"],
            images=[ReportImage(**image) for image in data["images"]],
            groups=[ReportGroup(**group) for group in data["groups"]],
            url_groups=[list(group) for group in data.get("url_groups", [])],
            unscoreable=list(data.get("unscoreable", [])),
        )


def build_report(
    gallery: str,
    sources: Sequence[str],
    scan: GalleryScan,
    threshold: int,
    hash_size: int,
    url_groups: Optional[List[List[int]]] = None,
) -> ScanReport:
    """
    Build a report from a gallery scan.

    Args:
        gallery: Gallery name (directory name, shop slug, ...)
        sources: Where each image came from, in scan order
        scan: Result of scan_gallery over the same images
        threshold: Threshold the scan used
        hash_size: Hash size the scan used
        url_groups: Optional URL-based duplicate groups

    Returns:
        ScanReport ready to be written
    """
    if len(sources) != len(scan.outcomes):
        raise ValueError(
            f"Got {len(sources)} sources for {len(scan.outcomes)} scanned images"
        )

    images = [
        ReportImage(
            index=outcome.index,
            source=sources[outcome.index],
            fingerprint=fingerprint_to_hex(outcome.fingerprint) if outcome.fingerprint is not None else None,
            width=outcome.width,
            height=outcome.height,
            error=outcome.error,
        )
        for outcome in scan.outcomes
    ]

    groups = [
        ReportGroup(
            group_id=f"dup_{number:03d}",
            indices=list(group.indices),
            distance=group.distance,
            suggested_keep=suggest_keep(group, scan.outcomes),
        )
        for number, group in enumerate(scan.groups, start=1)
    ]

    return ScanReport(
        version=REPORT_VERSION,
        gallery=gallery,
        generated_at=datetime.now().isoformat(),
        threshold=threshold,
        hash_size=hash_size,
        images=images,
        groups=groups,
        url_groups=url_groups or [],
        unscoreable=list(scan.unscoreable),
    )


def write_report_json(report: ScanReport, output_dir: Path) -> Path:
    """Write the report to <output_dir>/<gallery>_dedup.json."""
    output_dir.mkdir(parents=True, exist_ok=True)
    report_path = output_dir / f"{report.gallery}_dedup.json"

    with open(report_path, 'w', encoding='utf-8') as f:
        json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)

    logger.info(f"Wrote report to {report_path}")
    return report_path


def load_report_json(report_path: Path) -> ScanReport:
    """Load a report written by write_report_json."""
    with open(report_path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return ScanReport.from_dict(data)


def _image_url(source: str) -> str:
    """Browser URL for an image source; local paths become file URIs."""
    if source.startswith(("http://", "https://")):
        return source
    path = Path(source)
    if path.is_absolute():
        return path.as_uri()
    return quote(path.as_posix())


def _image_cell(report: ScanReport, index: int, keep: Optional[int]) -> str:
    source = html.escape(_image_url(report.images[index].source), quote=True)
    marker = " (suggested keep)" if index == keep else ""
    return (
        f'<div style="text-align:center;margin:4px">'
        f'<img src="{source}" style="width:180px" loading="lazy"><br>'
        f'<b>#{index + 1:03d}</b>{marker}</div>'
    )


def render_review_html(report: ScanReport) -> str:
    """Render a static review page listing every duplicate group."""
    title = html.escape(report.gallery)
    sections: List[str] = []

    for group in report.groups:
        cells = "".join(_image_cell(report, i, group.suggested_keep) for i in group.indices)
        serials = ", ".join(str(i + 1) for i in group.indices)
        sections.append(
            f'<div style="border:1px solid #555;padding:8px;margin:8px 0">'
            f'<div><b>{group.group_id}</b> (hash): distance={group.distance} '
            f'- images {serials}</div>'
            f'<div style="display:flex;flex-wrap:wrap">{cells}</div></div>'
        )

    for number, indices in enumerate(report.url_groups, start=1):
        cells = "".join(_image_cell(report, i, None) for i in indices)
        serials = ", ".join(str(i + 1) for i in indices)
        sections.append(
            f'<div style="border:1px solid #555;padding:8px;margin:8px 0">'
            f'<div><b>url_{number:03d}</b> (URL match) - images {serials}</div>'
            f'<div style="display:flex;flex-wrap:wrap">{cells}</div></div>'
        )

    if report.unscoreable:
        serials = ", ".join(str(i + 1) for i in report.unscoreable)
        sections.append(f"<p>Could not be scored: {serials}</p>")

    if not report.groups and not report.url_groups:
        sections.insert(0, "<p>No duplicates detected.</p>")

    body = "\n".join(sections)
    return (
        '<!DOCTYPE html><html><head><meta charset="utf-8">'
        f"<title>Dedup Review: {title}</title></head><body>\n"
        f"<h1>Dedup Review: {title}</h1>\n"
        f"<p>{len(report.images)} images, threshold {report.threshold}, "
        f"{len(report.groups)} potential duplicate groups</p>\n"
        f"{body}\n</body></html>\n"
    )


def write_review_html(report: ScanReport, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    review_path = output_dir / f"{report.gallery}_review.html"
    review_path.write_text(render_review_html(report), encoding="utf-8")
    logger.info(f"Wrote review page to {review_path}")
    return review_path
