import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from crategallery.cli import app
from tests.helpers.image_factory import write_gallery


runner = CliRunner()


@pytest.fixture
def gallery_dir(tmp_path, pattern_png, pattern_half_size_jpeg, inverted_png) -> Path:
    gallery = tmp_path / "galleries" / "amoeba-sf"
    write_gallery(gallery, {
        "001_front.png": pattern_png,
        "002_inside.png": inverted_png,
        "003_front_small.jpg": pattern_half_size_jpeg,
        "004_broken.jpg": b"not an image",
        "notes.txt": b"ignored",
    })
    return gallery


class TestCLIBasicFunctionality:
    def test_help_command_works(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "scan" in result.stdout
        assert "batch" in result.stdout
        assert "apply" in result.stdout

    def test_scan_help_works(self):
        result = runner.invoke(app, ["scan", "--help"])

        assert result.exit_code == 0
        assert "--threshold" in result.stdout
        assert "--out" in result.stdout


class TestScanCommand:
    def test_scan_writes_report(self, tmp_path, gallery_dir):
        out = tmp_path / "out"
        result = runner.invoke(app, ["scan", str(gallery_dir), "--out", str(out)])

        assert result.exit_code == 0, result.stdout
        assert "Duplicate groups: 1" in result.stdout
        assert "#001, #003" in result.stdout
        assert "Unscoreable: #004" in result.stdout

        report = json.loads((out / "amoeba-sf_dedup.json").read_text(encoding="utf-8"))
        assert len(report["images"]) == 4
        assert report["groups"][0]["indices"] == [0, 2]
        assert report["groups"][0]["suggested_keep"] == 0
        assert report["unscoreable"] == [3]
        assert (out / "amoeba-sf_review.html").exists()

    def test_scan_without_review_page(self, tmp_path, gallery_dir):
        out = tmp_path / "out"
        result = runner.invoke(app, ["scan", str(gallery_dir), "--out", str(out), "--no-review-html"])

        assert result.exit_code == 0
        assert not (out / "amoeba-sf_review.html").exists()

    def test_scan_empty_directory(self, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()

        result = runner.invoke(app, ["scan", str(empty), "--out", str(tmp_path / "out")])

        assert result.exit_code == 0
        assert "No images found" in result.stdout

    @pytest.mark.parametrize("args", [
        ["--threshold=-1"],
        ["--threshold=65"],
        ["--workers=0"],
        ["--hash-size=1"],
    ])
    def test_scan_rejects_bad_configuration(self, tmp_path, gallery_dir, args):
        result = runner.invoke(app, ["scan", str(gallery_dir), "--out", str(tmp_path / "out"), *args])

        assert result.exit_code == 1
        assert not (tmp_path / "out").exists()


    def test_scan_reads_settings_from_environment(self, tmp_path, gallery_dir, monkeypatch):
        out = tmp_path / "env-out"
        monkeypatch.setenv("CRATEGALLERY_THRESHOLD", "3")
        monkeypatch.setenv("CRATEGALLERY_OUTPUT_DIR", str(out))

        result = runner.invoke(app, ["scan", str(gallery_dir)])

        assert result.exit_code == 0, result.stdout
        report = json.loads((out / "amoeba-sf_dedup.json").read_text(encoding="utf-8"))
        assert report["threshold"] == 3

    def test_option_overrides_environment(self, tmp_path, gallery_dir, monkeypatch):
        monkeypatch.setenv("CRATEGALLERY_THRESHOLD", "3")
        out = tmp_path / "out"

        result = runner.invoke(app, ["scan", str(gallery_dir), "--out", str(out), "--threshold", "5"])

        assert result.exit_code == 0, result.stdout
        report = json.loads((out / "amoeba-sf_dedup.json").read_text(encoding="utf-8"))
        assert report["threshold"] == 5

    @pytest.mark.parametrize("name, value", [
        ("CRATEGALLERY_THRESHOLD", "abc"),
        ("CRATEGALLERY_HASH_SIZE", "1"),
        ("CRATEGALLERY_MAX_WORKERS", "0"),
    ])
    def test_scan_rejects_bad_environment(self, tmp_path, gallery_dir, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        result = runner.invoke(app, ["scan", str(gallery_dir), "--out", str(tmp_path / "out")])

        assert result.exit_code == 1
        assert not (tmp_path / "out").exists()


class TestBatchCommand:
    def test_batch_skips_completed_galleries(self, tmp_path, gallery_dir, pattern_png):
        root = gallery_dir.parent
        write_gallery(root / "shady-dog", {"a.png": pattern_png, "b.png": pattern_png})
        out = tmp_path / "out"

        first = runner.invoke(app, ["batch", str(root), "--out", str(out)])
        assert first.exit_code == 0, first.stdout
        assert "Scanned 2 galleries" in first.stdout

        checkpoint = json.loads((out / "checkpoint.json").read_text(encoding="utf-8"))
        assert checkpoint == {"completed": ["amoeba-sf", "shady-dog"]}

        second = runner.invoke(app, ["batch", str(root), "--out", str(out)])
        assert second.exit_code == 0
        assert "Scanned 0 galleries, skipped 2" in second.stdout


class TestApplyCommand:
    def _scan(self, tmp_path, gallery_dir) -> Path:
        out = tmp_path / "out"
        result = runner.invoke(app, ["scan", str(gallery_dir), "--out", str(out)])
        assert result.exit_code == 0
        return out / "amoeba-sf_dedup.json"

    def test_apply_dry_run_moves_nothing(self, tmp_path, gallery_dir):
        report_path = self._scan(tmp_path, gallery_dir)

        result = runner.invoke(app, ["apply", str(report_path), "--dupes", "1,3:keep=1", "--dry-run"])

        assert result.exit_code == 0, result.stdout
        assert "Will remove 1 images" in result.stdout
        assert (gallery_dir / "003_front_small.jpg").exists()

        feedback = json.loads((report_path.parent / "amoeba-sf_feedback.json").read_text(encoding="utf-8"))
        assert feedback["dry_run"] is True
        assert feedback["removed_images"][0]["index_1based"] == 3
        assert feedback["new_count"] == 3

    def test_apply_suggested_moves_duplicates(self, tmp_path, gallery_dir):
        report_path = self._scan(tmp_path, gallery_dir)

        result = runner.invoke(app, ["apply", str(report_path), "--suggested", "--remove", "4"])

        assert result.exit_code == 0, result.stdout
        assert not (gallery_dir / "003_front_small.jpg").exists()
        assert (gallery_dir / "removed" / "003_front_small.jpg").exists()
        assert (gallery_dir / "removed" / "004_broken.jpg").exists()
        assert (gallery_dir / "001_front.png").exists()

    def test_apply_dupes_override_suggestion(self, tmp_path, gallery_dir):
        """Test that a reviewed group replaces the suggested keep for the same images."""
        report_path = self._scan(tmp_path, gallery_dir)

        result = runner.invoke(app, ["apply", str(report_path), "--dupes", "1,3:keep=3", "--suggested"])

        assert result.exit_code == 0, result.stdout
        assert "Will remove 1 images" in result.stdout
        assert (gallery_dir / "003_front_small.jpg").exists()
        assert (gallery_dir / "removed" / "001_front.png").exists()
        assert (gallery_dir / "002_inside.png").exists()

    def test_apply_rejects_conflicting_dupes(self, tmp_path, gallery_dir):
        report_path = self._scan(tmp_path, gallery_dir)

        result = runner.invoke(app, ["apply", str(report_path), "--dupes", "1,3:keep=1", "--dupes", "1,3:keep=3"])

        assert result.exit_code == 1
        assert (gallery_dir / "001_front.png").exists()
        assert (gallery_dir / "003_front_small.jpg").exists()

    def test_apply_keeps_earlier_removed_file(self, tmp_path, gallery_dir):
        """Test that a name clash in the removed folder gets a numbered suffix."""
        report_path = self._scan(tmp_path, gallery_dir)
        earlier = gallery_dir / "removed" / "003_front_small.jpg"
        earlier.parent.mkdir()
        earlier.write_bytes(b"earlier")

        result = runner.invoke(app, ["apply", str(report_path), "--dupes", "1,3:keep=1"])

        assert result.exit_code == 0, result.stdout
        assert earlier.read_bytes() == b"earlier"
        assert (gallery_dir / "removed" / "003_front_small_1.jpg").exists()
        assert not (gallery_dir / "003_front_small.jpg").exists()

    def test_apply_rejects_bad_decision(self, tmp_path, gallery_dir):
        report_path = self._scan(tmp_path, gallery_dir)

        result = runner.invoke(app, ["apply", str(report_path), "--dupes", "1,3:keep=2"])

        assert result.exit_code == 1

    def test_apply_requires_a_decision(self, tmp_path, gallery_dir):
        report_path = self._scan(tmp_path, gallery_dir)

        result = runner.invoke(app, ["apply", str(report_path)])

        assert result.exit_code == 1

    def test_apply_rejects_invalid_report(self, tmp_path):
        bogus = tmp_path / "bogus.json"
        bogus.write_text("{}", encoding="utf-8")

        result = runner.invoke(app, ["apply", str(bogus), "--remove", "1"])

        assert result.exit_code == 1
