"""Groups flat chapter slices into document-level summaries."""
import re
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from docindex.models.chapter import ChapterSlice, ChapterSummary, DocumentMetadata, DocumentSummary

_CHAPTER_NUMBER_RE = re.compile(r"(\d+(?:\.\d+)*)")

DEFAULT_STRUCTURE = "no-estructurado"


def extract_chapter_number(chapter_title: str) -> str:
    """Return the first number like "3" or "2.1" in a title, defaulting to "1"."""
    if not chapter_title:
        return "1"
    match = _CHAPTER_NUMBER_RE.search(chapter_title)
    return match.group(1) if match else "1"


def determine_chapter_level(chapter: ChapterSlice) -> int:
    """2 for subchapter entries, 1 for chapter-only entries."""
    return 2 if chapter.is_subchapter else 1


def calculate_total_pages(chapters: List[ChapterSlice]) -> int:
    """
    Page span of a group of slices.

    Zero page numbers are ignored; a group without usable pages spans one page.
    """
    if not chapters:
        return 0
    from_pages = [c.effective_from_page for c in chapters if c.effective_from_page > 0]
    to_pages = [c.effective_to_page for c in chapters if c.effective_to_page > 0]
    min_page = min(from_pages) if from_pages else 1
    max_page = max(to_pages) if to_pages else 1
    return max(1, max_page - min_page + 1)


def count_chapters(chapters: List[ChapterSlice]) -> int:
    """Count distinct non-empty chapter ids."""
    return len({c.chapter_id for c in chapters if c.chapter_id})


def summarize_chapter(chapter: ChapterSlice, search_score: float = 1.0) -> ChapterSummary:
    """Reduce a slice to its listing entry, preferring subchapter values."""
    return ChapterSummary(
        id=chapter.id,
        document_id=chapter.file_name,
        chapter_id=chapter.chapter_id,
        tenant_id=chapter.tenant_id,
        title=chapter.sub_title or chapter.chapter_title,
        chapter_number=extract_chapter_number(chapter.chapter_title),
        from_page=chapter.sub_from_page if chapter.sub_from_page > 0 else chapter.chapter_from_page,
        to_page=chapter.sub_to_page if chapter.sub_to_page > 0 else chapter.chapter_to_page,
        level=determine_chapter_level(chapter),
        total_tokens=chapter.sub_token_count if chapter.sub_token_count > 0 else chapter.chapter_token_count,
        search_score=search_score,
    )


def _group(chapters: List[ChapterSlice]) -> Dict[str, List[ChapterSlice]]:
    groups: Dict[str, List[ChapterSlice]] = OrderedDict()
    for chapter in chapters:
        groups.setdefault(chapter.file_name, []).append(chapter)
    return dict(sorted(groups.items()))


def _processed_at(chapters: List[ChapterSlice]) -> datetime:
    stamps = [c.created_at for c in chapters if c.created_at is not None]
    return max(stamps) if stamps else datetime.now(timezone.utc)


def _metadata_fields(file_name: str, group: List[ChapterSlice], structure: str) -> dict:
    first = group[0]
    return {
        "document_id": file_name,
        "tenant_id": first.tenant_id,
        "structure": structure,
        "category": first.category,
        "file_path": first.file_path,
        "total_chapters": count_chapters(group),
        "total_tokens": sum(c.chapter_token_count + c.sub_token_count for c in group),
        "total_pages": calculate_total_pages(group),
        "processed_at": _processed_at(group),
    }


def group_by_file(
    chapters: List[ChapterSlice],
    structure: str = DEFAULT_STRUCTURE,
    scores: Optional[Dict[str, float]] = None,
) -> List[DocumentSummary]:
    """
    Group slices by file name into summaries with per-slice entries.

    Args:
        chapters: Slices in relevance order
        structure: Structure label copied onto each summary
        scores: Optional search score per slice id

    Returns:
        Summaries sorted by file name; entries keep input order
    """
    scores = scores or {}
    return [
        DocumentSummary(
            **_metadata_fields(file_name, group, structure),
            chapters=[summarize_chapter(c, scores.get(c.id, 1.0)) for c in group],
        )
        for file_name, group in _group(chapters).items()
    ]


def group_metadata_by_file(chapters: List[ChapterSlice], structure: str = DEFAULT_STRUCTURE) -> List[DocumentMetadata]:
    """Group slices by file name into summaries without chapter lists."""
    return [
        DocumentMetadata(**_metadata_fields(file_name, group, structure))
        for file_name, group in _group(chapters).items()
    ]
