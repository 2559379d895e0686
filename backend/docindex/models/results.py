"""Result wrappers returned by index, search and delete operations."""
from typing import List, Optional

from pydantic import BaseModel, Field

from docindex.models.chapter import ChapterSlice


class IndexResult(BaseModel):
    """Outcome of index creation or of writing one chapter slice."""

    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    index_name: Optional[str] = None
    document_id: Optional[str] = None
    fields_count: int = 0
    has_vector_search: bool = False
    has_semantic_search: bool = False
    has_embedding: bool = False


class DeleteResult(BaseModel):
    """Outcome of deleting every slice of a file."""

    success: bool
    document_id: str = Field("", description="File name whose slices were deleted")
    deleted_count: int = 0
    found_count: int = 0
    message: Optional[str] = None
    error: Optional[str] = None
    errors: List[str] = Field(default_factory=list)


class SearchHit(BaseModel):
    """One search result mapped back to a chapter slice."""

    chapter: ChapterSlice
    score: float = 0.0
    reranker_score: Optional[float] = None
    captions: List[str] = Field(default_factory=list)


class SearchOutcome(BaseModel):
    """
    Internal search result that keeps "no matches" distinct from "search failed".

    The public query methods flatten this to a list and return an empty list
    when `success` is False.
    """

    success: bool
    hits: List[SearchHit] = Field(default_factory=list)
    total_count: int = 0
    answers: List[str] = Field(default_factory=list)
    search_query: str = "*"
    search_type: str = ""
    error: Optional[str] = None

    @property
    def slices(self) -> List[ChapterSlice]:
        return [hit.chapter for hit in self.hits]

    @classmethod
    def failure(cls, error: str, search_query: str = "*", search_type: str = "") -> "SearchOutcome":
        return cls(success=False, error=error, search_query=search_query, search_type=search_type)
