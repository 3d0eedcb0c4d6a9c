"""
Unit tests for the feature file codec and body sections.

Tests cover:
- parse/encode round-trip of header fields and sections
- malformed front matter
- omission of empty optional attributes
- section parsing (intro, duplicates, ordering)
- field and section setters
"""

from pathlib import Path

import pytest

from vboard.exceptions import InvalidArgumentError, MalformedRecordError, NotFoundError
from vboard.model import DocumentSections, Feature, FrontMatter, extract_sections, parse, split_list

SAMPLE = """---
id: FTR-0007
title: Payments Retry
status: in-progress
owner: alex
priority: high
complexity: L
created: 2024-03-01
updated: 2024-03-05
labels:
  - payments
  - backend
dependencies:
  - FTR-0002
  - FTR-0001
epic: Checkout
risk_notes: Depends on provider sandbox
team: growth
---
Context paragraph.

## Summary

Retry failed card payments.

## Acceptance

- retries three times
"""


class TestParse:
    """Tests for parsing feature files."""

    def test_parses_header_fields(self):
        """All modelled header fields are read."""
        feature = parse("features/in-progress/FTR-0007-payments-retry.md", SAMPLE.encode())
        fm = feature.front_matter
        assert fm.id == "FTR-0007"
        assert fm.title == "Payments Retry"
        assert fm.status == "in-progress"
        assert fm.labels == ["payments", "backend"]
        assert fm.dependencies == ["FTR-0002", "FTR-0001"]
        assert fm.epic == "Checkout"
        assert fm.extra == {"team": "growth"}

    def test_dates_stay_strings(self):
        """ISO dates are not converted to date objects."""
        fm = parse("x.md", SAMPLE).front_matter
        assert fm.created == "2024-03-01"
        assert isinstance(fm.updated, str)

    def test_invalid_date_is_not_a_parse_error(self):
        """A bad calendar date surfaces later as a validation error."""
        text = SAMPLE.replace("created: 2024-03-01", "created: 2024-13-45")
        assert parse("x.md", text).front_matter.created == "2024-13-45"

    def test_raw_header_kept_as_decoded(self):
        """The decoded mapping is kept untouched alongside the typed fields."""
        text = SAMPLE.replace("labels:\n  - payments\n  - backend\n", "labels: payments\n")
        feature = parse("x.md", text)
        assert feature.raw_header["labels"] == "payments"
        assert feature.raw_header["team"] == "growth"
        assert "owner" in feature.raw_header

    def test_missing_frontmatter(self):
        """Files without a header block are malformed."""
        with pytest.raises(MalformedRecordError) as exc_info:
            parse("broken.md", b"# just markdown\n")
        assert "missing frontmatter" in str(exc_info.value)
        assert exc_info.value.path == Path("broken.md")

    def test_undecodable_header(self):
        """Invalid YAML in the header is malformed."""
        with pytest.raises(MalformedRecordError):
            parse("broken.md", "---\nid: [unclosed\n---\nbody\n")

    def test_non_mapping_header(self):
        """A YAML list header is malformed."""
        with pytest.raises(MalformedRecordError):
            parse("broken.md", "---\n- a\n- b\n---\nbody\n")

    def test_crlf_line_endings(self):
        """Windows line endings are accepted."""
        feature = parse("x.md", SAMPLE.replace("\n", "\r\n").encode())
        assert feature.id == "FTR-0007"
        assert feature.section("Summary") == "Retry failed card payments."


class TestEncode:
    """Tests for serializing features."""

    def test_round_trip_preserves_logical_record(self):
        """Re-parsing encoded bytes yields the same record."""
        original = parse("x.md", SAMPLE)
        again = parse("x.md", original.encode())
        assert again.front_matter == original.front_matter
        assert again.sections() == original.sections()

    def test_round_trip_of_minimal_record(self):
        """Records without optional fields survive a round-trip."""
        text = "---\nid: FTR-0001\ntitle: Alpha\nstatus: backlog\ncreated: 2024-01-01\nupdated: 2024-01-01\n---\n"
        original = parse("x.md", text)
        again = parse("x.md", original.encode())
        assert again.front_matter == original.front_matter
        assert again.front_matter.labels == []

    def test_empty_optionals_omitted(self):
        """Empty optional attributes are not written."""
        feature = Feature(
            path=Path("x.md"),
            front_matter=FrontMatter(
                id="FTR-0001", title="Alpha", status="backlog",
                created="2024-01-01", updated="2024-01-01",
            ),
            body="## Summary\n",
        )
        text = feature.encode().decode()
        for key in ("owner:", "priority:", "complexity:", "epic:", "risk_notes:", "labels:", "dependencies:"):
            assert key not in text
        assert "id: FTR-0001" in text

    def test_dates_written_unquoted(self):
        """Dates are emitted as bare YYYY-MM-DD."""
        text = parse("x.md", SAMPLE).encode().decode()
        assert "created: 2024-03-01\n" in text

    def test_header_order(self):
        """Header keys keep a stable order starting with id/title/status."""
        text = parse("x.md", SAMPLE).encode().decode()
        assert text.startswith("---\nid: FTR-0007\ntitle: Payments Retry\nstatus: in-progress\n")


class TestSections:
    """Tests for body section parsing."""

    def test_intro_and_order(self):
        """Intro text and heading order are captured."""
        sections = DocumentSections.parse("Intro\n\n## One\n\nfirst\n\n## Two\nsecond\n")
        assert sections.intro == "Intro"
        assert sections.order == ["One", "Two"]
        assert sections.data == {"One": "first", "Two": "second"}

    def test_duplicate_heading_last_write_wins(self):
        """Repeated headings keep the first position and the last content."""
        sections = DocumentSections.parse("## A\nold\n## B\nb\n## A\nnew\n")
        assert sections.order == ["A", "B"]
        assert sections.data["A"] == "new"

    def test_deeper_headings_stay_in_section(self):
        """### headings are content, not sections."""
        sections = DocumentSections.parse("## A\n### detail\ntext\n")
        assert sections.order == ["A"]
        assert "### detail" in sections.data["A"]

    def test_render(self):
        """Rendering emits headings with blank-line separation."""
        sections = DocumentSections(intro="Intro", order=["A", "B"], data={"A": "a", "B": ""})
        assert sections.render() == "Intro\n\n## A\na\n\n## B\n"

    def test_extract_sections(self):
        """Order and defaults are exposed for template processing."""
        order, defaults = extract_sections("## Summary\n\nx\n\n## Details\n\ny\n")
        assert order == ["Summary", "Details"]
        assert defaults["Details"] == "y"


class TestSetters:
    """Tests for Feature mutation helpers."""

    def test_set_section(self):
        """Existing sections can be replaced."""
        feature = parse("x.md", SAMPLE)
        feature.set_section("Summary", "  New summary  ")
        assert feature.section("Summary") == "New summary"
        assert feature.sections().order == ["Summary", "Acceptance"]

    def test_set_missing_section(self):
        """Unknown sections raise NotFoundError."""
        feature = parse("x.md", SAMPLE)
        with pytest.raises(NotFoundError):
            feature.set_section("Nope", "x")

    def test_add_missing_sections(self):
        """Absent sections are appended with defaults."""
        feature = parse("x.md", SAMPLE)
        changed = feature.add_missing_sections(["Summary", "Risks"], {"Risks": "None yet"})
        assert changed is True
        assert feature.sections().order == ["Summary", "Acceptance", "Risks"]
        assert feature.section("Risks") == "None yet"
        assert feature.add_missing_sections(["Summary"]) is False

    def test_set_field_lists(self):
        """List fields accept comma/newline separated values."""
        feature = parse("x.md", SAMPLE)
        feature.set_field("labels", "a, b\nc,,")
        feature.set_field("Dependencies", "FTR-0003")
        assert feature.front_matter.labels == ["a", "b", "c"]
        assert feature.front_matter.dependencies == ["FTR-0003"]

    def test_set_field_status_lowercased(self):
        """Status values are normalized."""
        feature = parse("x.md", SAMPLE)
        feature.set_field("status", " Review ")
        assert feature.front_matter.status == "review"

    def test_set_unknown_field(self):
        """Unknown fields are rejected."""
        feature = parse("x.md", SAMPLE)
        with pytest.raises(InvalidArgumentError):
            feature.set_field("colour", "blue")

    def test_labels_as_yaml(self):
        """Labels render in flow notation for logs."""
        feature = parse("x.md", SAMPLE)
        assert feature.labels_as_yaml() == '["payments", "backend"]'


def test_split_list_blank():
    """Blank input yields an empty list."""
    assert split_list("  ") == []
