"""Pytest configuration and fixtures."""
import re
import zlib
from collections import Counter
from typing import List, Optional, Sequence
from unittest.mock import AsyncMock, Mock, patch

import pytest
import pytest_asyncio
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from qdrant_client import AsyncQdrantClient
from qdrant_client.http import models

from docindex.config import Settings
from docindex.models.chapter import ChapterSlice
from docindex.services.embedding_service import EmbeddingService
from docindex.services.index_schema import build_index_definition
from docindex.services.index_service import NoStructuredIndexService
from docindex.services.lexical_encoder import LexicalEncoder
from docindex.services.search_store import SearchStore
from docindex.services.semantic_ranker import CrossEncoderScorer

TEST_DIMENSIONS = 8
SPARSE_SPACE = 2 ** 20

STOPWORDS = {"the", "is", "of", "to", "and", "a", "for", "on", "when", "what", "do", "i", "that"}


def tokenize(text: str) -> List[str]:
    return [t for t in re.findall(r"\w+", text.lower()) if t not in STOPWORDS]


def _term_index(term: str) -> int:
    return zlib.crc32(term.encode("utf-8")) % SPARSE_SPACE


def _sparse(terms: List[str]) -> Optional[models.SparseVector]:
    counts = Counter(_term_index(t) for t in terms)
    if not counts:
        return None
    indices = sorted(counts)
    return models.SparseVector(indices=indices, values=[float(counts[i]) for i in indices])


class HashingLexicalEncoder(LexicalEncoder):
    """Deterministic term-frequency encoder that needs no model download."""

    def encode_document(self, text: str) -> Optional[models.SparseVector]:
        return _sparse(tokenize(text))

    def encode_query(self, text: str) -> Optional[models.SparseVector]:
        return _sparse(sorted(set(tokenize(text))))


class OverlapCrossEncoder(CrossEncoderScorer):
    """Cross-encoder stand-in whose logit grows with query term coverage."""

    def score(self, query: str, passages: Sequence[str]) -> Optional[List[float]]:
        terms = set(tokenize(query))
        if not terms:
            return [0.0] * len(passages)
        return [4.0 * len(terms & set(tokenize(p))) / len(terms) - 2.0 for p in passages]


def hashed_embedding(text: str, dimensions: int = TEST_DIMENSIONS) -> List[float]:
    """Bag-of-words vector so texts sharing terms are close."""
    vector = [0.01] * dimensions
    for term in tokenize(text):
        vector[_term_index(term) % dimensions] += 1.0
    return vector


def make_embedding_client(dimensions: int = TEST_DIMENSIONS) -> Mock:
    """Mock OpenAI client whose embeddings.create returns hashed embeddings."""

    async def create(model, input, **kwargs):
        return Mock(data=[Mock(embedding=hashed_embedding(input, kwargs.get("dimensions", dimensions)))])

    client = Mock()
    client.embeddings.create = AsyncMock(side_effect=create)
    client.close = AsyncMock()
    return client


@pytest.fixture
def settings():
    """Settings for an in-memory index with small vectors."""
    return Settings(
        qdrant_db_path=":memory:",
        embedding_dimensions=TEST_DIMENSIONS,
        tracing_enabled=False,
        semantic_candidates=20,
    )


@pytest.fixture
def embedding_client():
    return make_embedding_client()


@pytest.fixture
def embedding_service(embedding_client):
    """Embedding service backed by the mock client."""
    return EmbeddingService(embedding_client, dimensions=TEST_DIMENSIONS)


@pytest.fixture
def unconfigured_embedding_service():
    """Embedding service without a client."""
    return EmbeddingService(None, dimensions=TEST_DIMENSIONS)


@pytest_asyncio.fixture
async def store():
    """Search store over an in-memory Qdrant collection."""
    client = AsyncQdrantClient(location=":memory:")
    search_store = SearchStore(
        client,
        build_index_definition("test-index", dimensions=TEST_DIMENSIONS),
        lexical_encoder=HashingLexicalEncoder(),
        cross_encoder=OverlapCrossEncoder(),
        semantic_candidates=20,
    )
    await search_store.create_or_update_index()
    yield search_store
    await client.close()


@pytest_asyncio.fixture
async def service(store, embedding_service, settings):
    """Index service over the in-memory store."""
    return NoStructuredIndexService(store, embedding_service, settings=settings)


@pytest.fixture
def lease_slice():
    """Chapter-only slice of a lease."""
    return ChapterSlice(
        id="lease-1",
        tenant_id="twin-42",
        chapter_id="lease-ch1",
        file_name="Lease.pdf",
        file_path="twin-42/documents/Lease.pdf",
        chapter_title="1. Terms",
        chapter_text="The tenant agrees to the following terms. The rent is due monthly on the first day.",
        chapter_from_page=1,
        chapter_to_page=3,
        chapter_token_count=40,
        document_total_tokens=120,
        category="contracts",
    )


@pytest.fixture
def sample_slices():
    """Slices of two documents for two tenants."""
    return [
        ChapterSlice(
            id="manual-1a",
            tenant_id="T1",
            chapter_id="manual-ch1",
            file_name="F.pdf",
            chapter_title="1. Installation",
            chapter_text="Installation steps for the heating system.",
            chapter_from_page=1,
            chapter_to_page=5,
            chapter_token_count=50,
            sub_title="1.1 Boiler setup",
            sub_text="Connect the boiler to the water supply.",
            sub_from_page=3,
            sub_to_page=4,
            sub_token_count=20,
            document_total_tokens=200,
            category="manuals",
        ),
        ChapterSlice(
            id="manual-2",
            tenant_id="T1",
            chapter_id="manual-ch2",
            file_name="F.pdf",
            chapter_title="2. Maintenance",
            chapter_text="Yearly maintenance of the boiler and radiators.",
            chapter_from_page=6,
            chapter_to_page=8,
            chapter_token_count=30,
            document_total_tokens=200,
            category="manuals",
        ),
        ChapterSlice(
            id="invoice-1",
            tenant_id="T1",
            chapter_id="invoice-ch1",
            file_name="G.pdf",
            chapter_title="Invoice",
            chapter_text="Invoice for boiler repair services.",
            chapter_from_page=1,
            chapter_to_page=1,
            chapter_token_count=10,
            document_total_tokens=10,
            category="invoices",
        ),
        ChapterSlice(
            id="other-1",
            tenant_id="T2",
            chapter_id="other-ch1",
            file_name="F.pdf",
            chapter_title="1. Other tenant",
            chapter_text="Boiler notes that belong to another tenant.",
            chapter_from_page=1,
            chapter_to_page=2,
            chapter_token_count=15,
            document_total_tokens=15,
            category="manuals",
        ),
    ]


@pytest.fixture
def span_exporter():
    """Collect index spans in memory."""
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    with patch("docindex.utils.tracer.get_tracer", return_value=provider.get_tracer("tests")):
        yield exporter
    provider.shutdown()
