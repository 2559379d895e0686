"""Writes chapter slices into the search index."""
from datetime import datetime, timezone
from typing import List, Optional

from docindex.exceptions import ValidationError
from docindex.models.chapter import ChapterSlice
from docindex.models.results import IndexResult
from docindex.services.content_builder import build_complete_content
from docindex.services.embedding_service import EmbeddingService
from docindex.services.index_schema import build_index_document
from docindex.services.search_store import SearchStore
from docindex.utils.logger import logger
from docindex.utils.tracer import index_span


def generate_document_id(chapter: ChapterSlice, now: Optional[datetime] = None) -> str:
    """Return the slice id, or a new id from tenant, chapter and UTC time."""
    if chapter.id:
        return chapter.id
    now = now or datetime.now(timezone.utc)
    return f"chap_{chapter.tenant_id}_{chapter.chapter_id}_{now.strftime('%Y%m%d%H%M%S')}"


class ChapterIndexer:
    """Upserts one chapter slice at a time with its content and embedding."""

    def __init__(self, store: Optional[SearchStore], embedding_service: EmbeddingService):
        """
        Initialize chapter indexer.

        Args:
            store: Search store, None when unavailable
            embedding_service: Best-effort embedding provider
        """
        self.store = store
        self.embedding_service = embedding_service

    async def index_slice(self, chapter: ChapterSlice) -> IndexResult:
        """
        Index a chapter or subchapter slice.

        Args:
            chapter: Slice to write, tenant_id and chapter_id are required

        Returns:
            IndexResult with the document id used
        """
        try:
            if not chapter.tenant_id:
                raise ValidationError("tenant_id")
            if not chapter.chapter_id:
                raise ValidationError("chapter_id")
        except ValidationError as e:
            logger.warning(
                f"Rejected chapter slice: {str(e)}",
                extra={"tenant_id": chapter.tenant_id, "chapter_id": chapter.chapter_id, "file_name": chapter.file_name},
            )
            return IndexResult(success=False, error=str(e))

        if self.store is None:
            return IndexResult(success=False, error="Search store not available")

        with index_span(
            "index_slice",
            index_name=self.store.index_name,
            tenant_id=chapter.tenant_id,
            file_name=chapter.file_name,
        ) as span:
            result = await self._write(chapter)
            span.set_attribute("docindex.success", result.success)
            span.set_attribute("docindex.has_embedding", result.has_embedding)
            return result

    async def _write(self, chapter: ChapterSlice) -> IndexResult:
        document_id = generate_document_id(chapter)
        log_extra = {
            "tenant_id": chapter.tenant_id,
            "chapter_id": chapter.chapter_id,
            "document_id": document_id,
            "file_name": chapter.file_name,
        }

        try:
            combined_content = build_complete_content(chapter)
            embedding = await self.embedding_service.generate_embedding(combined_content)

            document = build_index_document(
                chapter,
                document_id=document_id,
                combined_content=combined_content,
                embedding=embedding,
                created_at=datetime.now(timezone.utc),
            )

            results = await self.store.merge_or_upload([document])
            errors = [r.error_message or f"Status {r.status_code}" for r in results if not r.succeeded]

            if errors:
                error = "; ".join(errors)
                logger.error(
                    f"Error indexing chapter '{chapter.chapter_title}' ({chapter.chapter_id}): {error}",
                    extra=log_extra,
                )
                return IndexResult(
                    success=False,
                    error=error,
                    document_id=document_id,
                    index_name=self.store.index_name,
                    has_embedding=embedding is not None,
                )

            logger.info(
                f"Chapter '{chapter.chapter_title}' indexed as {document_id}"
                f"{'' if embedding is not None else ' without vector'}",
                extra=log_extra,
            )
            return IndexResult(
                success=True,
                message="Chapter indexed successfully",
                document_id=document_id,
                index_name=self.store.index_name,
                has_embedding=embedding is not None,
            )

        except Exception as e:
            logger.error(
                f"Error indexing chapter '{chapter.chapter_title}' ({chapter.chapter_id}): {str(e)}",
                extra=log_extra,
                exc_info=True,
            )
            return IndexResult(success=False, error=str(e), document_id=document_id)

    async def index_slices(self, chapters: List[ChapterSlice]) -> List[IndexResult]:
        """Index slices one after another, returning one result per slice."""
        results = []
        for chapter in chapters:
            results.append(await self.index_slice(chapter))
        return results
