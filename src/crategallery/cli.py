import json
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

import typer

from .config import Settings
from .logging import get_logger
from .checkpoint import load_checkpoint, save_checkpoint
from .dedup.model import scan_gallery
from .dedup.urls import find_url_duplicates
from .output.report import (
    ScanReport,
    build_report,
    load_report_json,
    write_report_json,
    write_review_html,
)
from .review.decisions import (
    DecisionError,
    KeepDecision,
    decisions_from_scan,
    parse_index_list,
    parse_keep_decision,
    plan_removals,
)

app = typer.Typer(help="crategallery – near-duplicate detection for shop photo galleries", no_args_is_help=True)


def _load_settings(
    out: Optional[Path],
    threshold: Optional[int],
    hash_size: Optional[int],
    workers: Optional[int],
) -> Settings:
    """Environment settings with any explicitly passed options layered on top."""
    logger = get_logger(__name__)
    try:
        env = Settings.from_env()
        return Settings(
            output_dir=out if out is not None else env.output_dir,
            dedup_threshold=threshold if threshold is not None else env.dedup_threshold,
            hash_size=hash_size if hash_size is not None else env.hash_size,
            max_workers=workers if workers is not None else env.max_workers,
        )
    except ValueError as exc:
        logger.error(f"Invalid configuration: {exc}")
        raise typer.Exit(code=1) from exc


def list_gallery_images(gallery_dir: Path, settings: Settings) -> List[Path]:
    """Image files directly inside gallery_dir, sorted by name."""
    return sorted(
        path for path in gallery_dir.iterdir()
        if path.is_file() and path.suffix.lower() in settings.image_extensions
    )


def scan_directory(gallery_dir: Path, settings: Settings, review_html: bool = True) -> Optional[ScanReport]:
    """Scan one gallery directory and write its report; None when it has no images."""
    logger = get_logger(__name__)

    paths = list_gallery_images(gallery_dir, settings)
    if not paths:
        logger.warning(f"No images found in {gallery_dir}")
        return None

    logger.info(f"Scanning {len(paths)} images in {gallery_dir}")
    images = [path.read_bytes() for path in paths]
    sources = [str(path.resolve()) for path in paths]

    scan = scan_gallery(
        images,
        threshold=settings.dedup_threshold,
        hash_size=settings.hash_size,
        max_workers=settings.max_workers,
    )
    url_groups = find_url_duplicates([path.name for path in paths])

    report = build_report(
        gallery=gallery_dir.name,
        sources=sources,
        scan=scan,
        threshold=settings.dedup_threshold,
        hash_size=settings.hash_size,
        url_groups=url_groups,
    )
    write_report_json(report, settings.output_dir)
    if review_html:
        write_review_html(report, settings.output_dir)

    suggested = plan_removals(len(paths), decisions_from_scan(scan))
    logger.info(
        f"{gallery_dir.name}: {len(scan.groups)} duplicate groups, "
        f"{len(scan.unscoreable)} unscoreable, "
        f"suggested removal of {len(suggested.removed)}/{len(paths)} images"
    )
    return report


@app.command()
def scan(
    gallery_dir: Path = typer.Argument(..., exists=True, file_okay=False, help="Directory holding one gallery's images"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Output directory for reports (env CRATEGALLERY_OUTPUT_DIR, default output)"),
    threshold: Optional[int] = typer.Option(None, help="Maximum dHash distance for duplicates (env CRATEGALLERY_THRESHOLD, default 8)"),
    hash_size: Optional[int] = typer.Option(None, help="dHash grid size, bits = size * size (env CRATEGALLERY_HASH_SIZE, default 8)"),
    workers: Optional[int] = typer.Option(None, help="Concurrent hashing threads (env CRATEGALLERY_MAX_WORKERS, default 4)"),
    review_html: bool = typer.Option(True, "--review-html/--no-review-html", help="Write an HTML review page"),
) -> None:
    """
    Find near-duplicate images in a gallery directory.

    Writes a JSON report (and optionally an HTML review page); no image is removed.
    """
    settings = _load_settings(out, threshold, hash_size, workers)

    report = scan_directory(gallery_dir, settings, review_html=review_html)
    if report is None:
        typer.echo(f"No images found in {gallery_dir}")
        return

    typer.echo(f"Scanned {len(report.images)} images in {report.gallery}")
    typer.echo(f"Duplicate groups: {len(report.groups)}")
    for group in report.groups:
        serials = ", ".join(f"#{i + 1:03d}" for i in group.indices)
        typer.echo(f"  {group.group_id}: {serials} (distance {group.distance}, keep #{group.suggested_keep + 1:03d})")
    if report.url_groups:
        typer.echo(f"URL duplicate groups: {len(report.url_groups)}")
    if report.unscoreable:
        typer.echo(f"Unscoreable: {', '.join(f'#{i + 1:03d}' for i in report.unscoreable)}")
    typer.echo(f"Report: {settings.output_dir / (report.gallery + '_dedup.json')}")


@app.command()
def batch(
    root_dir: Path = typer.Argument(..., exists=True, file_okay=False, help="Directory with one subdirectory per gallery"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Output directory for reports (env CRATEGALLERY_OUTPUT_DIR, default output)"),
    checkpoint_file: Optional[Path] = typer.Option(None, "--checkpoint", help="Progress file (default: <out>/checkpoint.json)"),
    threshold: Optional[int] = typer.Option(None, help="Maximum dHash distance for duplicates (env CRATEGALLERY_THRESHOLD, default 8)"),
    hash_size: Optional[int] = typer.Option(None, help="dHash grid size, bits = size * size (env CRATEGALLERY_HASH_SIZE, default 8)"),
    workers: Optional[int] = typer.Option(None, help="Concurrent hashing threads (env CRATEGALLERY_MAX_WORKERS, default 4)"),
    review_html: bool = typer.Option(True, "--review-html/--no-review-html", help="Write HTML review pages"),
) -> None:
    """Scan every gallery under ROOT_DIR, skipping galleries already completed."""
    logger = get_logger(__name__)
    settings = _load_settings(out, threshold, hash_size, workers)
    checkpoint_path = checkpoint_file or settings.output_dir / "checkpoint.json"

    checkpoint = load_checkpoint(checkpoint_path)
    galleries = sorted(path for path in root_dir.iterdir() if path.is_dir())
    pending = checkpoint.pending(path.name for path in galleries)
    logger.info(f"{len(pending)}/{len(galleries)} galleries pending")

    scanned = 0
    for gallery_dir in galleries:
        if gallery_dir.name not in pending:
            continue
        scan_directory(gallery_dir, settings, review_html=review_html)
        checkpoint = checkpoint.mark_completed(gallery_dir.name)
        save_checkpoint(checkpoint, checkpoint_path)
        scanned += 1

    typer.echo(f"Scanned {scanned} galleries, skipped {len(galleries) - scanned} already completed")


def _move_to_removed(source: Path) -> Optional[Path]:
    if not source.is_file():
        return None
    removed_dir = source.parent / "removed"
    removed_dir.mkdir(exist_ok=True)
    target = removed_dir / source.name
    suffix = 1
    while target.exists():
        target = removed_dir / f"{source.stem}_{suffix}{source.suffix}"
        suffix += 1
    shutil.move(str(source), str(target))
    return target


@app.command()
def apply(
    report_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Report written by 'scan'"),
    dupes: Optional[List[str]] = typer.Option(None, "--dupes", help="Reviewed group 'idx1,idx2:keep=N' (1-based, repeatable)"),
    remove: Optional[List[str]] = typer.Option(None, "--remove", help="Image numbers to drop, e.g. '12,15' (1-based, repeatable)"),
    suggested: bool = typer.Option(False, "--suggested", help="Accept the suggested keep for every hash group"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview without moving files"),
) -> None:
    """
    Apply reviewed decisions to a scanned gallery.

    Removed images are moved into a 'removed' folder next to them.
    """
    logger = get_logger(__name__)

    try:
        report = load_report_json(report_path)
    except (OSError, ValueError, KeyError, TypeError) as exc:
        logger.error(f"Cannot read report {report_path}: {exc}")
        raise typer.Exit(code=1) from exc

    try:
        decisions: List[KeepDecision] = [parse_keep_decision(text) for text in dupes or []]
        removals = [index for text in remove or [] for index in parse_index_list(text)]
    except DecisionError as exc:
        logger.error(str(exc))
        raise typer.Exit(code=1) from exc

    if suggested:
        reviewed = {index for decision in decisions for index in decision.indices}
        for group in report.groups:
            if reviewed & set(group.indices):
                logger.info(f"Skipping suggestion for {group.group_id}: overridden by --dupes")
                continue
            decisions.append(KeepDecision(indices=tuple(group.indices), keep=group.suggested_keep))

    if not decisions and not removals:
        typer.echo("Nothing to apply: pass --dupes, --remove or --suggested")
        raise typer.Exit(code=1)

    try:
        plan = plan_removals(len(report.images), decisions, removals)
    except DecisionError as exc:
        logger.error(str(exc))
        raise typer.Exit(code=1) from exc

    typer.echo(f"Will remove {len(plan.removed)} images:")
    for index, reason in plan.removed.items():
        typer.echo(f"  #{index + 1:03d} {report.images[index].source}")
        typer.echo(f"        Reason: {reason}")
    kept_sources = plan.apply(report.sources)
    typer.echo(f"New gallery: {len(kept_sources)} images (was {len(report.images)})")

    moved: List[Tuple[int, str]] = []
    if not dry_run:
        for index in plan.removed:
            target = _move_to_removed(Path(report.images[index].source))
            if target is None:
                logger.warning(f"Image #{index + 1:03d} not found on disk, skipping")
                continue
            moved.append((index, str(target)))

    feedback = {
        "gallery": report.gallery,
        "timestamp": datetime.now().isoformat(),
        "dry_run": dry_run,
        "original_count": len(report.images),
        "new_count": len(kept_sources),
        "decisions": [
            {"indices_1based": [i + 1 for i in d.indices], "keep_1based": d.keep + 1}
            for d in decisions
        ],
        "removed_images": [
            {"index_1based": index + 1, "source": report.images[index].source, "reason": reason}
            for index, reason in plan.removed.items()
        ],
        "moved": [{"index_1based": index + 1, "target": target} for index, target in moved],
        "out_of_range_1based": [index + 1 for index in plan.out_of_range],
        "kept": kept_sources,
    }
    feedback_path = report_path.parent / f"{report.gallery}_feedback.json"
    with open(feedback_path, "w", encoding="utf-8") as f:
        json.dump(feedback, f, indent=2, ensure_ascii=False)
    logger.info(f"Wrote feedback to {feedback_path}")

    if dry_run:
        typer.echo("Dry run - no files moved.")
    else:
        typer.echo(f"Moved {len(moved)} images into 'removed' folders")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
