"""Tests for TemplateProcessor and the filesystem helpers."""

import os

import pytest

from vboard.exceptions import StorageError
from vboard.fsutil import slugify, write_file_atomic
from vboard.model import parse
from vboard.template import TemplateProcessor


class TestTemplateProcessor:
    """Tests for applying the canonical template."""

    def test_section_order_from_template(self, manager):
        processor = TemplateProcessor(manager)
        assert processor.section_order == ["Summary", "Details"]
        assert processor.section_defaults["Summary"] == "Provide a concise summary."

    def test_fills_empty_header_fields(self, manager):
        feature = parse("x.md", "---\nid: FTR-0001\ntitle: Alpha\nstatus: ''\n---\n## Summary\n\nMine.\n")
        TemplateProcessor(manager).apply(feature)
        fm = feature.front_matter
        assert fm.priority == "medium"
        assert fm.complexity == "M"
        assert fm.status == "backlog"
        assert fm.owner == "template"
        assert feature.section("Summary") == "Mine."
        assert feature.section("Details") == "Additional details."

    def test_keeps_existing_header_fields(self, manager, write_feature):
        path = write_feature("FTR-0001", "Alpha")
        feature = parse(path, path.read_bytes())
        TemplateProcessor(manager).apply(feature)
        assert feature.front_matter.priority == "high"
        assert feature.front_matter.owner == "sam"

    def test_missing_template(self, manager, workspace):
        (workspace / "templates" / "spec.md").unlink()
        with pytest.raises(StorageError):
            TemplateProcessor(manager)


class TestSlugify:
    """Tests for filename slugs."""

    @pytest.mark.parametrize("title, slug", [
        ("Alpha", "alpha"),
        ("Payments: Retry Logic!", "payments-retry-logic"),
        ("  spaced  out  ", "spaced-out"),
        ("Ünïcode Title", "n-code-title"),
        ("!!!", "feature"),
        ("", "feature"),
    ])
    def test_slugify(self, title, slug):
        assert slugify(title) == slug


class TestWriteFileAtomic:
    """Tests for atomic writes."""

    def test_creates_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "file.md"
        write_file_atomic(target, "hello\n")
        assert target.read_text() == "hello\n"
        assert os.stat(target).st_mode & 0o777 == 0o644

    def test_replaces_existing(self, tmp_path):
        out = tmp_path / "out"
        out.mkdir()
        target = out / "file.md"
        target.write_text("old")
        write_file_atomic(target, b"new")
        assert target.read_bytes() == b"new"
        assert os.listdir(out) == ["file.md"]

    def test_failure_cleans_up(self, tmp_path, monkeypatch):
        out = tmp_path / "out"
        out.mkdir()
        target = out / "file.md"
        target.write_text("old")

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)
        with pytest.raises(OSError):
            write_file_atomic(target, "new")
        assert target.read_text() == "old"
        assert os.listdir(out) == ["file.md"]
