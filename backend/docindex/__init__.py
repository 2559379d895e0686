"""Chapter search index for unstructured documents."""
from docindex.config import Settings
from docindex.models.chapter import ChapterSlice, ChapterSummary, DocumentMetadata, DocumentSummary
from docindex.models.results import DeleteResult, IndexResult, SearchOutcome
from docindex.services.index_service import NoStructuredIndexService

__all__ = [
    "Settings",
    "ChapterSlice",
    "ChapterSummary",
    "DocumentMetadata",
    "DocumentSummary",
    "DeleteResult",
    "IndexResult",
    "SearchOutcome",
    "NoStructuredIndexService",
]
