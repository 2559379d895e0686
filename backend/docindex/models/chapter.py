"""Chapter and document data models."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ChapterSlice(BaseModel):
    """
    One chapter, or one subchapter within a chapter, of a processed document.

    A slice with an empty subchapter title is a chapter-only slice. All slices
    of the same chapter share `chapter_id`, `file_name` and `tenant_id`.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default="", description="Unique key of the slice in the index")
    tenant_id: str = Field(default="", description="Owning twin/tenant")
    chapter_id: str = Field(default="", description="Group key shared by the slices of a chapter")

    file_name: str = Field(default="", description="Source document file name")
    file_path: str = Field(default="", description="Location of the source document")

    chapter_title: str = ""
    chapter_text: str = ""
    chapter_from_page: int = 0
    chapter_to_page: int = 0
    chapter_token_count: int = 0

    sub_title: str = ""
    sub_text: str = ""
    sub_from_page: int = 0
    sub_to_page: int = 0
    sub_token_count: int = 0

    document_total_tokens: int = 0
    category: str = Field(default="", description="Document subcategory")

    created_at: Optional[datetime] = Field(default=None, description="Set by the index on write")

    @property
    def is_subchapter(self) -> bool:
        return bool(self.sub_title) and self.sub_token_count > 0

    @property
    def effective_from_page(self) -> int:
        """Lowest start page, falling back to the sibling field when one is zero."""
        chapter_from = self.chapter_from_page or self.sub_from_page
        sub_from = self.sub_from_page or self.chapter_from_page
        return min(chapter_from, sub_from)

    @property
    def effective_to_page(self) -> int:
        return max(self.chapter_to_page, self.sub_to_page)


class ChapterSummary(BaseModel):
    """Per-slice summary shown inside a document listing."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    document_id: str = Field(..., description="File name of the owning document")
    chapter_id: str
    tenant_id: str
    title: str
    chapter_number: str = "1"
    from_page: int = 0
    to_page: int = 0
    level: int = Field(1, ge=1, le=2, description="2 for subchapter entries, 1 for chapter-only entries")
    total_tokens: int = 0
    search_score: float = 1.0


class DocumentMetadata(BaseModel):
    """Lightweight document-level summary without a chapter list."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    document_id: str = Field(..., description="File name, used as the document key")
    tenant_id: str = ""
    structure: str = "no-estructurado"
    category: str = ""
    file_path: str = ""
    total_chapters: int = 0
    total_tokens: int = 0
    total_pages: int = 0
    processed_at: Optional[datetime] = None
    search_score: float = 1.0


class DocumentSummary(DocumentMetadata):
    """Document-level summary carrying the ordered per-slice summaries."""

    chapters: List[ChapterSummary] = Field(default_factory=list)
