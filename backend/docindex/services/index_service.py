"""Chapter index service composing schema, indexing, querying and deletion."""
from typing import List, Optional

from opentelemetry.sdk.trace import TracerProvider

from docindex.config import Settings
from docindex.models.chapter import ChapterSlice, DocumentMetadata, DocumentSummary
from docindex.models.results import DeleteResult, IndexResult, SearchOutcome
from docindex.services.batch_deleter import BatchDeleter
from docindex.services.chapter_indexer import ChapterIndexer
from docindex.services.embedding_service import EmbeddingService
from docindex.services.index_manager import IndexSchemaManager
from docindex.services.index_schema import build_index_definition
from docindex.services.lexical_encoder import LexicalEncoder
from docindex.services.query_engine import HybridQueryEngine
from docindex.services.search_store import SearchStore, create_client
from docindex.services.semantic_ranker import CrossEncoderScorer
from docindex.utils.logger import logger
from docindex.utils.tracer import initialize_tracing, shutdown_tracing


class NoStructuredIndexService:
    """
    Search index for chapters of unstructured documents.

    The store and the embedding service are passed in and owned by this
    service; `close()` releases both.
    """

    def __init__(
        self,
        store: Optional[SearchStore],
        embedding_service: EmbeddingService,
        settings: Optional[Settings] = None,
        tracer_provider: Optional[TracerProvider] = None,
    ):
        settings = settings or Settings()
        self.settings = settings
        self.store = store
        self.embedding_service = embedding_service
        self.tracer_provider = tracer_provider

        self.schema_manager = IndexSchemaManager(store)
        self.indexer = ChapterIndexer(store, embedding_service)
        self.query_engine = HybridQueryEngine(
            store,
            embedding_service,
            question_top=settings.question_top,
            listing_top=settings.listing_top,
        )
        self.deleter = BatchDeleter(
            store,
            page_size=settings.delete_page_size,
            batch_size=settings.delete_batch_size,
        )

        if store is None:
            logger.warning("Search store not configured, chapter index unavailable")
        else:
            logger.info(
                f"NoStructuredIndexService initialized for index {store.index_name}",
                extra={"index_name": store.index_name},
            )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "NoStructuredIndexService":
        """
        Build the service from settings.

        Missing credentials leave the corresponding component unavailable
        instead of raising.
        """
        settings = settings or Settings()

        tracer_provider = initialize_tracing(
            service_name="docindex",
            otlp_endpoint=settings.otlp_endpoint or None,
            tracing_enabled=settings.tracing_enabled,
        )

        store = None
        if settings.search_configured:
            try:
                store = SearchStore(
                    create_client(settings),
                    build_index_definition(
                        settings.search_index_name,
                        dimensions=settings.embedding_dimensions,
                        analyzer=settings.lexical_language,
                    ),
                    lexical_encoder=LexicalEncoder(language=settings.lexical_language),
                    cross_encoder=CrossEncoderScorer(model_name=settings.reranker_model),
                    semantic_candidates=settings.semantic_candidates,
                )
            except Exception as e:
                logger.error(f"Error initializing search store: {str(e)}", exc_info=True)
                store = None
        else:
            logger.warning("Search store credentials not found")

        return cls(
            store,
            EmbeddingService.from_settings(settings),
            settings=settings,
            tracer_provider=tracer_provider,
        )

    @property
    def is_available(self) -> bool:
        return self.store is not None

    async def create_or_update_index(self) -> IndexResult:
        return await self.schema_manager.create_or_update_index()

    async def index_slice(self, chapter: ChapterSlice) -> IndexResult:
        return await self.indexer.index_slice(chapter)

    async def index_slices(self, chapters: List[ChapterSlice]) -> List[IndexResult]:
        return await self.indexer.index_slices(chapters)

    async def answer_question(
        self, question: str, tenant_id: str, file_name: Optional[str] = None
    ) -> List[ChapterSlice]:
        return await self.query_engine.answer_question(question, tenant_id, file_name)

    async def list_documents(
        self,
        tenant_id: str,
        file_name: Optional[str] = None,
        query: Optional[str] = None,
        top: Optional[int] = None,
    ) -> List[DocumentMetadata]:
        return await self.query_engine.list_documents(tenant_id, file_name, query, top)

    async def search_documents(
        self,
        tenant_id: str,
        file_name: Optional[str] = None,
        query: Optional[str] = None,
        top: Optional[int] = None,
    ) -> List[DocumentSummary]:
        return await self.query_engine.search_documents(tenant_id, file_name, query, top)

    async def search_chapters(
        self,
        tenant_id: str,
        file_name: Optional[str] = None,
        query: Optional[str] = None,
        top: Optional[int] = None,
    ) -> List[ChapterSlice]:
        return await self.query_engine.search_chapters(tenant_id, file_name, query, top)

    async def get_document_chapters(self, tenant_id: str, file_name: str) -> List[ChapterSlice]:
        return await self.query_engine.get_document_chapters(tenant_id, file_name)

    async def search(
        self,
        tenant_id: str,
        file_name: Optional[str] = None,
        query: Optional[str] = None,
        top: Optional[int] = None,
    ) -> SearchOutcome:
        """Full-content search that reports failures instead of returning an empty list."""
        return await self.query_engine.execute(
            tenant_id, file_name=file_name, query=query, top=top or self.settings.listing_top
        )

    async def delete_by_file(self, file_name: str, tenant_id: Optional[str] = None) -> DeleteResult:
        return await self.deleter.delete_by_file(file_name, tenant_id)

    async def close(self) -> None:
        """Close client connections and flush traces."""
        if self.store is not None:
            await self.store.close()
        await self.embedding_service.close()
        shutdown_tracing(self.tracer_provider)
