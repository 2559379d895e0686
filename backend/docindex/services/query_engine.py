"""Hybrid query engine over the chapter index."""
from typing import Any, Dict, List, Optional

from docindex.exceptions import ServiceUnavailableError, ValidationError
from docindex.models.chapter import ChapterSlice, DocumentMetadata, DocumentSummary
from docindex.models.results import SearchHit, SearchOutcome
from docindex.services.aggregator import group_by_file, group_metadata_by_file
from docindex.services.embedding_service import EmbeddingService
from docindex.services.filters import FilterExpression
from docindex.services.index_schema import SEMANTIC_CONFIG, IndexFields
from docindex.services.search_store import (
    QUERY_TYPE_SEMANTIC,
    QUERY_TYPE_SIMPLE,
    WILDCARD,
    SearchOptions,
    SearchStore,
    VectorizedQuery,
)
from docindex.utils.logger import logger
from docindex.utils.text_cleaner import preview
from docindex.utils.tracer import index_span

F = IndexFields

# Everything a caller needs to read a chapter, without the derived fields
FULL_CONTENT_FIELDS = [
    F.ID, F.TENANT_ID, F.CHAPTER_ID, F.FILE_NAME, F.FILE_PATH,
    F.CHAPTER_TITLE, F.CHAPTER_TEXT, F.CHAPTER_FROM_PAGE, F.CHAPTER_TO_PAGE, F.CHAPTER_TOKEN_COUNT,
    F.SUB_TITLE, F.SUB_TEXT, F.SUB_FROM_PAGE, F.SUB_TO_PAGE, F.SUB_TOKEN_COUNT,
    F.DOCUMENT_TOTAL_TOKENS, F.CATEGORY, F.CREATED_AT,
]

# Listing fields: no chapter or subchapter text
METADATA_FIELDS = [
    F.ID, F.TENANT_ID, F.CHAPTER_ID, F.FILE_NAME, F.FILE_PATH,
    F.CHAPTER_TITLE, F.CHAPTER_FROM_PAGE, F.CHAPTER_TO_PAGE, F.CHAPTER_TOKEN_COUNT,
    F.SUB_TITLE, F.SUB_FROM_PAGE, F.SUB_TO_PAGE, F.SUB_TOKEN_COUNT,
    F.DOCUMENT_TOTAL_TOKENS, F.CATEGORY, F.CREATED_AT,
]

SEARCH_TYPE_HYBRID = "HybridSearch"
SEARCH_TYPE_SEMANTIC = "SemanticSearch"
SEARCH_TYPE_FILTER = "FilterByTenant"

LOGGED_HITS = 3


def is_wildcard_file_name(file_name: Optional[str]) -> bool:
    """True when the file name means "all of the tenant's documents"."""
    return file_name is None or file_name.strip() in ("", WILDCARD) or file_name.strip().lower() == "global"


def document_to_slice(document: Dict[str, Any]) -> ChapterSlice:
    """Map selected index fields to a slice; missing or null fields take their defaults."""
    return ChapterSlice.model_validate({k: v for k, v in document.items() if v is not None})


class HybridQueryEngine:
    """
    Composes filtered lexical, semantic and vector queries.

    Results come back in the store's relevance order. Failures are logged and
    reported through SearchOutcome; the list-returning methods turn them into
    empty lists.
    """

    def __init__(
        self,
        store: Optional[SearchStore],
        embedding_service: EmbeddingService,
        question_top: int = 5,
        listing_top: int = 1000,
    ):
        """
        Initialize query engine.

        Args:
            store: Search store, None when unavailable
            embedding_service: Best-effort embedding provider
            question_top: Results and nearest neighbors for questions
            listing_top: Default number of slices for listings
        """
        self.store = store
        self.embedding_service = embedding_service
        self.question_top = question_top
        self.listing_top = listing_top

    def build_filter(self, tenant_id: str, file_name: Optional[str] = None) -> FilterExpression:
        """Tenant equality filter, narrowed to one file unless the name is a wildcard."""
        expression = FilterExpression().eq(F.TENANT_ID, tenant_id)
        if not is_wildcard_file_name(file_name):
            expression.eq(F.FILE_NAME, file_name)
        return expression

    async def execute(
        self,
        tenant_id: str,
        file_name: Optional[str] = None,
        query: Optional[str] = None,
        select: Optional[List[str]] = None,
        top: int = 50,
        k: Optional[int] = None,
    ) -> SearchOutcome:
        """
        Run one filtered search and map the results to slices.

        Args:
            tenant_id: Owning tenant, required
            file_name: File to search, or a wildcard for all files
            query: Free-text query; None or "*" matches everything
            select: Fields to return
            top: Maximum number of results
            k: Nearest neighbors for the vector leg, defaults to top

        Returns:
            SearchOutcome with hits in relevance order, or the failure
        """
        with index_span(
            "search",
            index_name=self.store.index_name if self.store is not None else None,
            tenant_id=tenant_id,
            file_name=file_name,
        ) as span:
            outcome = await self._execute(tenant_id, file_name, query, select, top, k)
            span.set_attribute("docindex.search_type", outcome.search_type)
            span.set_attribute("docindex.success", outcome.success)
            span.set_attribute("docindex.result_count", len(outcome.hits))
            return outcome

    async def _execute(
        self,
        tenant_id: str,
        file_name: Optional[str],
        query: Optional[str],
        select: Optional[List[str]],
        top: int,
        k: Optional[int],
    ) -> SearchOutcome:
        search_text = (query or "").strip() or WILDCARD
        has_query = search_text != WILDCARD
        search_type = SEARCH_TYPE_SEMANTIC if has_query else SEARCH_TYPE_FILTER
        filter_expression = FilterExpression()

        try:
            if self.store is None:
                raise ServiceUnavailableError("Search store not available")
            if not tenant_id:
                raise ValidationError("tenant_id")

            filter_expression = self.build_filter(tenant_id, file_name)
            options = SearchOptions(
                filter=filter_expression,
                select=select,
                top=top,
                include_total_count=True,
            )

            if has_query:
                options.query_type = QUERY_TYPE_SEMANTIC
                options.semantic_configuration_name = SEMANTIC_CONFIG
                options.query_caption = True
                options.query_answer = True

                embedding = await self.embedding_service.generate_embedding(search_text)
                if embedding is not None:
                    options.vector_queries.append(
                        VectorizedQuery(
                            vector=embedding,
                            k_nearest_neighbors=k or top,
                            fields=F.COMBINED_CONTENT_VECTOR,
                        )
                    )
                    search_type = SEARCH_TYPE_HYBRID
            else:
                options.query_type = QUERY_TYPE_SIMPLE

            logger.info(
                f"Searching {self.store.index_name} ({search_type}): '{search_text}'",
                extra={"tenant_id": tenant_id, "file_name": file_name, "filter": str(filter_expression)},
            )

            results = await self.store.search(search_text, options)

            hits = [
                SearchHit(
                    chapter=document_to_slice(item.document),
                    score=item.score,
                    reranker_score=item.reranker_score,
                    captions=item.captions,
                )
                for item in results
            ]

            logger.info(
                f"Search returned {len(hits)} results",
                extra={"tenant_id": tenant_id, "result_count": len(hits)},
            )

            return SearchOutcome(
                success=True,
                hits=hits,
                total_count=results.total_count if results.total_count is not None else len(hits),
                answers=results.answers,
                search_query=search_text,
                search_type=search_type,
            )

        except Exception as e:
            logger.error(
                f"Error searching index for tenant '{tenant_id}', file '{file_name}', query '{search_text}': {str(e)}",
                extra={"tenant_id": tenant_id, "file_name": file_name, "filter": str(filter_expression)},
                exc_info=True,
            )
            return SearchOutcome.failure(str(e), search_query=search_text, search_type=search_type)

    async def answer_question(
        self, question: str, tenant_id: str, file_name: Optional[str] = None
    ) -> List[ChapterSlice]:
        """
        Find the chapters that best answer a question.

        Args:
            question: Natural-language question
            tenant_id: Owning tenant
            file_name: File to search, or a wildcard for all files

        Returns:
            Up to question_top full-content slices, empty on failure
        """
        if not question or not tenant_id:
            logger.warning("Question and tenant_id are required", extra={"tenant_id": tenant_id})
            return []

        outcome = await self.execute(
            tenant_id,
            file_name=file_name,
            query=question,
            select=FULL_CONTENT_FIELDS,
            top=self.question_top,
            k=self.question_top,
        )

        for hit in outcome.hits[:LOGGED_HITS]:
            chapter = hit.chapter
            logger.info(
                f"Hit {chapter.file_name} / {chapter.chapter_title} (score {hit.score:.4f}): "
                f"{preview(chapter.sub_text or chapter.chapter_text)}",
                extra={"tenant_id": tenant_id, "chapter_id": chapter.chapter_id},
            )

        return outcome.slices if outcome.success else []

    async def search_chapters(
        self,
        tenant_id: str,
        file_name: Optional[str] = None,
        query: Optional[str] = None,
        top: Optional[int] = None,
    ) -> List[ChapterSlice]:
        """Full-content slices for a tenant, optionally one file, in relevance order."""
        outcome = await self.execute(
            tenant_id, file_name=file_name, query=query, select=FULL_CONTENT_FIELDS, top=top or self.listing_top
        )
        return outcome.slices if outcome.success else []

    async def list_documents(
        self,
        tenant_id: str,
        file_name: Optional[str] = None,
        query: Optional[str] = None,
        top: Optional[int] = None,
    ) -> List[DocumentMetadata]:
        """
        List documents without chapter text.

        Args:
            tenant_id: Owning tenant
            file_name: File to list, or a wildcard for all files
            query: Optional free-text query
            top: Maximum number of slices to group

        Returns:
            Metadata-only summaries sorted by file name, empty on failure
        """
        outcome = await self.execute(
            tenant_id, file_name=file_name, query=query, select=METADATA_FIELDS, top=top or self.listing_top
        )
        if not outcome.success:
            return []
        documents = group_metadata_by_file(outcome.slices)
        logger.info(
            f"Found {outcome.total_count} chapters grouped into {len(documents)} documents",
            extra={"tenant_id": tenant_id, "result_count": len(documents)},
        )
        return documents

    async def search_documents(
        self,
        tenant_id: str,
        file_name: Optional[str] = None,
        query: Optional[str] = None,
        top: Optional[int] = None,
    ) -> List[DocumentSummary]:
        """Grouped document summaries with per-slice entries and scores."""
        outcome = await self.execute(
            tenant_id, file_name=file_name, query=query, select=FULL_CONTENT_FIELDS, top=top or self.listing_top
        )
        if not outcome.success:
            return []
        scores = {hit.chapter.id: hit.score for hit in outcome.hits}
        return group_by_file(outcome.slices, scores=scores)

    async def get_document_chapters(self, tenant_id: str, file_name: str) -> List[ChapterSlice]:
        """
        Every slice of one file in reading order.

        Returns:
            Slices sorted by start page, chapter title and subchapter title
        """
        if not tenant_id or is_wildcard_file_name(file_name):
            logger.warning(
                "tenant_id and a specific file_name are required",
                extra={"tenant_id": tenant_id, "file_name": file_name},
            )
            return []

        outcome = await self.execute(
            tenant_id, file_name=file_name, select=FULL_CONTENT_FIELDS, top=self.listing_top
        )
        if not outcome.success:
            return []
        return sorted(
            outcome.slices,
            key=lambda c: (c.effective_from_page, c.chapter_title, c.sub_title),
        )
