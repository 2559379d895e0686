"""Search store adapter over a Qdrant collection."""
import asyncio
import hashlib
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from qdrant_client import AsyncQdrantClient
from qdrant_client.http import models
from qdrant_client.http.models import Fusion, FusionQuery, Prefetch

from docindex.config import Settings
from docindex.exceptions import ConfigurationError, DeletionError, IndexingError, SearchError
from docindex.services.filters import FilterExpression
from docindex.services.index_schema import (
    FieldType,
    IndexDefinition,
    validate_document,
)
from docindex.services.lexical_encoder import LexicalEncoder
from docindex.services.semantic_ranker import CrossEncoderScorer, RankCandidate, SemanticRanker
from docindex.utils.logger import logger

LEXICAL_VECTOR = "lexical"
WILDCARD = "*"
SCROLL_PAGE_SIZE = 256

QUERY_TYPE_SIMPLE = "simple"
QUERY_TYPE_SEMANTIC = "semantic"


@dataclass
class VectorizedQuery:
    """k-nearest-neighbor query against a vector field."""

    vector: List[float]
    k_nearest_neighbors: int
    fields: str


@dataclass
class SearchOptions:
    filter: Optional[FilterExpression] = None
    select: Optional[List[str]] = None
    top: int = 50
    include_total_count: bool = False
    query_type: str = QUERY_TYPE_SIMPLE
    semantic_configuration_name: Optional[str] = None
    query_caption: bool = False
    query_answer: bool = False
    vector_queries: List[VectorizedQuery] = field(default_factory=list)


@dataclass
class SearchResultItem:
    document: Dict[str, Any]
    score: float
    reranker_score: Optional[float] = None
    captions: List[str] = field(default_factory=list)


@dataclass
class SearchResults:
    """Results in relevance order, with optional total count and answers."""

    results: List[SearchResultItem]
    total_count: Optional[int] = None
    answers: List[str] = field(default_factory=list)

    def __iter__(self):
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)


@dataclass
class IndexingResult:
    """Per-document outcome of a write or delete."""

    key: str
    succeeded: bool
    status_code: int = 200
    error_message: Optional[str] = None


def generate_point_id(key: str) -> int:
    """
    Map a document key to a stable positive 64-bit point id.

    Args:
        key: Document key

    Returns:
        First 8 bytes of the md5 digest as a positive integer
    """
    hash_bytes = hashlib.md5(key.encode("utf-8")).digest()[:8]
    return int.from_bytes(hash_bytes, byteorder="big") & 0x7FFFFFFFFFFFFFFF


def create_client(settings: Settings) -> AsyncQdrantClient:
    """Create a Qdrant client from settings, preferring a remote URL."""
    if settings.qdrant_url:
        return AsyncQdrantClient(url=settings.qdrant_url, api_key=settings.qdrant_api_key or None)
    if settings.qdrant_db_path:
        os.makedirs(settings.qdrant_db_path, exist_ok=True)
        return AsyncQdrantClient(path=settings.qdrant_db_path)
    raise ConfigurationError("Search store not configured (set QDRANT_URL or QDRANT_DB_PATH)")


class SearchStore:
    """
    Index operations over one Qdrant collection.

    Documents keep their key in the payload and live at a point id derived
    from it, so writing the same key twice replaces the document. Text search
    runs on a sparse BM25 vector, vector search on the named dense vector, and
    semantic ranking is applied to the fused candidates. Model inference for
    both the BM25 encoder and the cross-encoder runs in a worker thread.
    """

    def __init__(
        self,
        client: AsyncQdrantClient,
        definition: IndexDefinition,
        lexical_encoder: Optional[LexicalEncoder] = None,
        cross_encoder: Optional[CrossEncoderScorer] = None,
        semantic_candidates: int = 50,
    ):
        """
        Initialize search store.

        Args:
            client: Async Qdrant client, owned by the caller
            definition: Index definition the collection follows
            lexical_encoder: Sparse encoder for the text leg, None disables it
            cross_encoder: Scorer for semantic ranking, None keeps fused order
            semantic_candidates: Candidates fetched for semantic re-ranking
        """
        self.client = client
        self.definition = definition
        self.lexical_encoder = lexical_encoder
        self.semantic_candidates = semantic_candidates
        self._rankers: Dict[str, SemanticRanker] = {
            config.name: SemanticRanker(config, cross_encoder) for config in definition.semantic_configurations
        }

    @property
    def index_name(self) -> str:
        return self.definition.name

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _vectors_config(self) -> Dict[str, models.VectorParams]:
        config = {}
        for vector_field in self.definition.vector_fields:
            algorithm = self.definition.get_algorithm(vector_field.vector_profile)
            config[vector_field.name] = models.VectorParams(
                size=vector_field.vector_dimensions,
                distance=models.Distance.COSINE,
                hnsw_config=models.HnswConfigDiff(m=algorithm.m, ef_construct=algorithm.ef_construct),
            )
        return config

    def _payload_schema(self, field_type: FieldType, filterable: bool) -> Any:
        if field_type == FieldType.INT32:
            return models.PayloadSchemaType.INTEGER
        if field_type == FieldType.DATETIME:
            return models.PayloadSchemaType.DATETIME
        if filterable:
            return models.PayloadSchemaType.KEYWORD
        return models.TextIndexParams(
            type=models.TextIndexType.TEXT,
            tokenizer=models.TokenizerType.WORD,
            lowercase=True,
        )

    async def _check_vector_sizes(self) -> None:
        info = await self.client.get_collection(self.index_name)
        existing = info.config.params.vectors
        for name, params in self._vectors_config().items():
            current = existing.get(name) if isinstance(existing, dict) else None
            if current is None:
                raise IndexingError(f"Index '{self.index_name}' has no vector field '{name}'")
            if current.size != params.size:
                raise IndexingError(
                    f"Index '{self.index_name}' vector field '{name}' has {current.size} dimensions, "
                    f"configured {params.size}"
                )

    async def create_or_update_index(self) -> bool:
        """
        Create the collection if absent, otherwise update its configuration.

        Returns:
            True if the collection was created, False if it already existed

        Raises:
            IndexingError: If the existing vector field has another size
        """
        created = False
        if not await self.client.collection_exists(self.index_name):
            logger.info(f"Creating index: {self.index_name}", extra={"index_name": self.index_name})
            await self.client.create_collection(
                collection_name=self.index_name,
                vectors_config=self._vectors_config(),
                sparse_vectors_config={
                    LEXICAL_VECTOR: models.SparseVectorParams(modifier=models.Modifier.IDF),
                },
            )
            created = True
        else:
            await self._check_vector_sizes()
            await self.client.update_collection(
                collection_name=self.index_name,
                vectors_config={
                    name: models.VectorParamsDiff(hnsw_config=params.hnsw_config)
                    for name, params in self._vectors_config().items()
                },
            )

        for index_field in self.definition.fields:
            if index_field.type == FieldType.VECTOR or not (index_field.filterable or index_field.searchable):
                continue
            await self.client.create_payload_index(
                collection_name=self.index_name,
                field_name=index_field.name,
                field_schema=self._payload_schema(index_field.type, index_field.filterable),
            )

        return created

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _lexical_text(self, document: Dict[str, Any]) -> str:
        return " ".join(
            str(document[f.name]) for f in self.definition.searchable_fields if document.get(f.name)
        )

    async def _encode_document(self, document: Dict[str, Any]) -> Optional[models.SparseVector]:
        if self.lexical_encoder is None:
            return None
        return await asyncio.to_thread(self.lexical_encoder.encode_document, self._lexical_text(document))

    def _to_point(self, document: Dict[str, Any], sparse: Optional[models.SparseVector]) -> models.PointStruct:
        payload = dict(document)
        vectors: Dict[str, Any] = {}
        for vector_field in self.definition.vector_fields:
            value = payload.pop(vector_field.name, None)
            if value is not None:
                vectors[vector_field.name] = value

        if sparse is not None:
            vectors[LEXICAL_VECTOR] = sparse

        key = payload[self.definition.key_field.name]
        return models.PointStruct(id=generate_point_id(key), vector=vectors, payload=payload)

    async def merge_or_upload(self, documents: List[Dict[str, Any]]) -> List[IndexingResult]:
        """
        Write documents, replacing any document with the same key.

        Args:
            documents: Field maps keyed by index field names

        Returns:
            One IndexingResult per input document
        """
        results: Dict[int, IndexingResult] = {}
        points = []
        for position, document in enumerate(documents):
            key = str(document.get(self.definition.key_field.name, ""))
            try:
                validate_document(self.definition, document)
            except IndexingError as e:
                results[position] = IndexingResult(key=key, succeeded=False, status_code=400, error_message=str(e))
                continue
            sparse = await self._encode_document(document)
            points.append((position, key, self._to_point(document, sparse)))

        if points:
            try:
                await self.client.upsert(
                    collection_name=self.index_name,
                    points=[point for _, _, point in points],
                    wait=True,
                )
                for position, key, _ in points:
                    results[position] = IndexingResult(key=key, succeeded=True)
            except Exception as e:
                logger.error(f"Error writing to index {self.index_name}: {str(e)}", exc_info=True)
                for position, key, _ in points:
                    results[position] = IndexingResult(
                        key=key, succeeded=False, status_code=500, error_message=str(e)
                    )

        return [results[position] for position in range(len(documents))]

    async def delete_documents(self, keys: List[str]) -> List[IndexingResult]:
        """
        Delete documents by key in one request.

        Raises:
            DeletionError: If the store rejects the request, so the caller can account for the batch
        """
        try:
            await self.client.delete(
                collection_name=self.index_name,
                points_selector=models.PointIdsList(points=[generate_point_id(key) for key in keys]),
                wait=True,
            )
        except Exception as e:
            raise DeletionError(f"Delete from {self.index_name} failed: {e}") from e
        return [IndexingResult(key=key, succeeded=True) for key in keys]

    async def count(self, filter_expression: Optional[FilterExpression] = None) -> int:
        result = await self.client.count(
            collection_name=self.index_name,
            count_filter=filter_expression.to_qdrant() if filter_expression else None,
            exact=True,
        )
        return result.count

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def _payload_selector(options: SearchOptions) -> Any:
        # Only selected fields are fetched, so a metadata-only query ranks on titles
        return list(options.select) if options.select else True

    async def _scroll(self, qfilter: Optional[models.Filter], with_payload: Any, limit: int) -> List[RankCandidate]:
        """Page through filtered documents in storage order."""
        candidates: List[RankCandidate] = []
        offset = None
        while len(candidates) < limit:
            points, offset = await self.client.scroll(
                collection_name=self.index_name,
                scroll_filter=qfilter,
                limit=min(SCROLL_PAGE_SIZE, limit - len(candidates)),
                offset=offset,
                with_payload=with_payload,
                with_vectors=False,
            )
            candidates.extend(RankCandidate(payload=p.payload or {}, score=1.0) for p in points)
            if offset is None:
                break
        return candidates

    async def search(self, search_text: Optional[str], options: SearchOptions) -> SearchResults:
        """
        Run a filtered text, vector or hybrid query.

        Args:
            search_text: Query text, "*" or None for match-all
            options: Filter, projection, size, semantic and vector settings

        Returns:
            SearchResults in relevance order, at most `options.top` items
        """
        text = (search_text or "").strip()
        is_wildcard = not text or text == WILDCARD
        qfilter = options.filter.to_qdrant() if options.filter else None

        ranker = None
        if options.query_type == QUERY_TYPE_SEMANTIC and not is_wildcard:
            ranker = self._rankers.get(options.semantic_configuration_name or "")
            if ranker is None:
                raise ConfigurationError(
                    f"Semantic configuration '{options.semantic_configuration_name}' not defined"
                )

        fetch = max(options.top, self.semantic_candidates) if ranker else options.top
        with_payload = self._payload_selector(options)

        legs: List[Prefetch] = []
        if not is_wildcard and self.lexical_encoder is not None:
            sparse = await asyncio.to_thread(self.lexical_encoder.encode_query, text)
            if sparse is not None:
                legs.append(Prefetch(query=sparse, using=LEXICAL_VECTOR, filter=qfilter, limit=fetch))
        for vector_query in options.vector_queries:
            legs.append(
                Prefetch(
                    query=vector_query.vector,
                    using=vector_query.fields,
                    filter=qfilter,
                    limit=vector_query.k_nearest_neighbors,
                )
            )

        total_count = None
        try:
            if len(legs) > 1:
                response = await self.client.query_points(
                    collection_name=self.index_name,
                    prefetch=legs,
                    query=FusionQuery(fusion=Fusion.RRF),
                    limit=fetch,
                    with_payload=with_payload,
                )
                candidates = [RankCandidate(payload=p.payload or {}, score=p.score) for p in response.points]
            elif legs:
                leg = legs[0]
                response = await self.client.query_points(
                    collection_name=self.index_name,
                    query=leg.query,
                    using=leg.using,
                    query_filter=qfilter,
                    limit=min(leg.limit, fetch),
                    with_payload=with_payload,
                )
                candidates = [RankCandidate(payload=p.payload or {}, score=p.score) for p in response.points]
            else:
                candidates = await self._scroll(qfilter, with_payload, fetch)
                if options.include_total_count:
                    total_count = await self.count(options.filter)
        except Exception as e:
            raise SearchError(f"Search on {self.index_name} failed: {e}") from e

        answers: List[str] = []
        if ranker is not None:
            ranking = await asyncio.to_thread(
                ranker.rerank,
                text,
                candidates,
                captions=options.query_caption,
                answers=options.query_answer,
            )
            candidates = ranking.candidates
            answers = ranking.answers

        candidates = candidates[: options.top]
        if options.include_total_count and total_count is None:
            total_count = len(candidates)

        results = [
            SearchResultItem(
                document=self._project(c.payload, options.select),
                score=c.score,
                reranker_score=c.reranker_score,
                captions=c.captions,
            )
            for c in candidates
        ]
        return SearchResults(results=results, total_count=total_count, answers=answers)

    @staticmethod
    def _project(payload: Dict[str, Any], select: Optional[List[str]]) -> Dict[str, Any]:
        if not select:
            return dict(payload)
        return {name: payload[name] for name in select if name in payload}

    async def close(self) -> None:
        await self.client.close()
