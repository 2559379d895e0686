"""Builds the combined natural-language content of a chapter slice."""
from typing import List

from docindex.models.chapter import ChapterSlice

SEPARATOR = ". "


def _page_range(from_page: int, to_page: int) -> str:
    return f"{from_page} - {to_page}"


def build_complete_content(chapter: ChapterSlice) -> str:
    """
    Concatenate the non-empty fields of a slice into one labelled string.

    The result is the embedding input and the stored full-text field, so it
    depends on nothing but the slice.

    Args:
        chapter: Slice to describe

    Returns:
        Labelled fields joined with ". " in a fixed order
    """
    content: List[str] = []

    # Document information
    if chapter.file_name:
        content.append(f"File: {chapter.file_name}")
    if chapter.file_path:
        content.append(f"Path: {chapter.file_path}")

    # Chapter information
    if chapter.chapter_title:
        content.append(f"Chapter: {chapter.chapter_title}")
    if chapter.chapter_text:
        content.append(f"Chapter content: {chapter.chapter_text}")
    if chapter.chapter_from_page or chapter.chapter_to_page:
        content.append(f"Chapter pages: {_page_range(chapter.chapter_from_page, chapter.chapter_to_page)}")

    # Subchapter information
    if chapter.sub_title:
        content.append(f"Subchapter: {chapter.sub_title}")
    if chapter.sub_text:
        content.append(f"Subchapter content: {chapter.sub_text}")
    if chapter.sub_from_page or chapter.sub_to_page:
        content.append(f"Subchapter pages: {_page_range(chapter.sub_from_page, chapter.sub_to_page)}")

    # Token counts
    if chapter.document_total_tokens:
        content.append(f"Document tokens: {chapter.document_total_tokens}")
    if chapter.chapter_token_count:
        content.append(f"Chapter tokens: {chapter.chapter_token_count}")
    if chapter.sub_token_count:
        content.append(f"Subchapter tokens: {chapter.sub_token_count}")

    return SEPARATOR.join(content)
