"""Tests for grouping slices into document summaries."""
from datetime import datetime, timezone

from docindex.models.chapter import ChapterSlice
from docindex.services.aggregator import (
    calculate_total_pages,
    determine_chapter_level,
    extract_chapter_number,
    group_by_file,
    group_metadata_by_file,
    summarize_chapter,
)


def _slice(**kwargs) -> ChapterSlice:
    defaults = {"tenant_id": "T1", "file_name": "doc.pdf"}
    defaults.update(kwargs)
    return ChapterSlice(**defaults)


class TestGroupByFile:
    """Tests for group_by_file."""

    def test_chapters_counted_once(self):
        """Test a chapter with a subchapter and a chapter-only slice count as two chapters."""
        slices = [
            _slice(id="a1", chapter_id="A", chapter_title="1. A", sub_title="1.1 A1", sub_token_count=5),
            _slice(id="b", chapter_id="B", chapter_title="2. B"),
        ]
        assert group_by_file(slices)[0].total_chapters == 2

    def test_subchapters_of_one_chapter_count_once(self):
        slices = [
            _slice(id=f"a{i}", chapter_id="A", sub_title=f"1.{i}", sub_token_count=3) for i in range(3)
        ]
        assert group_by_file(slices)[0].total_chapters == 1

    def test_empty_chapter_ids_not_counted(self):
        assert group_by_file([_slice(id="x", chapter_id="")])[0].total_chapters == 0

    def test_page_span(self):
        """Test chapter pages 1-5 with subchapter pages 3-4 span five pages."""
        slices = [
            _slice(id="a1", chapter_id="A", chapter_from_page=1, chapter_to_page=5, sub_from_page=3, sub_to_page=4),
        ]
        assert group_by_file(slices)[0].total_pages == 5

    def test_token_total(self):
        slices = [
            _slice(id="a1", chapter_id="A", chapter_token_count=100, sub_token_count=30),
            _slice(id="a2", chapter_id="A", chapter_token_count=100, sub_token_count=20),
        ]
        assert group_by_file(slices)[0].total_tokens == 250

    def test_sorted_by_file_name(self):
        slices = [_slice(id="z", file_name="z.pdf"), _slice(id="a", file_name="a.pdf"), _slice(id="m", file_name="m.pdf")]
        assert [d.document_id for d in group_by_file(slices)] == ["a.pdf", "m.pdf", "z.pdf"]

    def test_document_fields(self):
        created = datetime(2024, 3, 1, tzinfo=timezone.utc)
        slices = [
            _slice(id="a", chapter_id="A", category="contracts", file_path="T1/doc.pdf", created_at=created),
            _slice(id="b", chapter_id="B", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc)),
        ]
        document = group_by_file(slices)[0]

        assert document.document_id == "doc.pdf"
        assert document.tenant_id == "T1"
        assert document.category == "contracts"
        assert document.file_path == "T1/doc.pdf"
        assert document.structure == "no-estructurado"
        assert document.processed_at == created
        assert [c.id for c in document.chapters] == ["a", "b"]

    def test_scores_are_carried(self):
        document = group_by_file([_slice(id="a", chapter_id="A")], scores={"a": 0.42})[0]
        assert document.chapters[0].search_score == 0.42

    def test_metadata_variant_has_no_chapters(self):
        documents = group_metadata_by_file([_slice(id="a", chapter_id="A")])
        assert documents[0].total_chapters == 1
        assert not hasattr(documents[0], "chapters")

    def test_empty_input(self):
        assert group_by_file([]) == []


class TestChapterSummary:
    """Tests for per-slice summaries."""

    def test_subchapter_entry(self):
        summary = summarize_chapter(
            _slice(
                id="a1",
                chapter_id="A",
                chapter_title="3. Payments",
                chapter_from_page=10,
                chapter_to_page=20,
                chapter_token_count=400,
                sub_title="3.2 Late fees",
                sub_from_page=12,
                sub_to_page=14,
                sub_token_count=80,
            )
        )
        assert summary.title == "3.2 Late fees"
        assert summary.chapter_number == "3"
        assert (summary.from_page, summary.to_page) == (12, 14)
        assert summary.level == 2
        assert summary.total_tokens == 80
        assert summary.document_id == "doc.pdf"

    def test_chapter_only_entry(self):
        summary = summarize_chapter(
            _slice(id="b", chapter_id="B", chapter_title="Intro", chapter_from_page=1, chapter_to_page=2,
                   chapter_token_count=50)
        )
        assert summary.title == "Intro"
        assert summary.chapter_number == "1"
        assert (summary.from_page, summary.to_page) == (1, 2)
        assert summary.level == 1
        assert summary.total_tokens == 50


class TestHelpers:
    """Tests for derived fields."""

    def test_extract_chapter_number(self):
        assert extract_chapter_number("2.1 Scope") == "2.1"
        assert extract_chapter_number("Chapter 7: End") == "7"
        assert extract_chapter_number("Introduction") == "1"
        assert extract_chapter_number("") == "1"

    def test_level_needs_title_and_tokens(self):
        assert determine_chapter_level(_slice(sub_title="1.1", sub_token_count=1)) == 2
        assert determine_chapter_level(_slice(sub_title="1.1", sub_token_count=0)) == 1
        assert determine_chapter_level(_slice(sub_title="", sub_token_count=5)) == 1

    def test_total_pages_floor(self):
        assert calculate_total_pages([_slice()]) == 1
        assert calculate_total_pages([]) == 0

    def test_total_pages_sibling_fallback(self):
        """Test a zero start page falls back to the other field."""
        slices = [
            _slice(chapter_from_page=0, chapter_to_page=0, sub_from_page=4, sub_to_page=6),
            _slice(chapter_from_page=2, chapter_to_page=3),
        ]
        assert calculate_total_pages(slices) == 5
