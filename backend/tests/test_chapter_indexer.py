"""Tests for ChapterIndexer."""
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from docindex.models.chapter import ChapterSlice
from docindex.services.chapter_indexer import ChapterIndexer, generate_document_id
from docindex.services.filters import FilterExpression
from docindex.services.index_schema import IndexFields
from docindex.services.search_store import IndexingResult, SearchOptions


class TestChapterIndexer:
    """Tests for indexing chapter slices."""

    @pytest.mark.asyncio
    async def test_index_slice(self, store, embedding_service, lease_slice):
        indexer = ChapterIndexer(store, embedding_service)

        result = await indexer.index_slice(lease_slice)

        assert result.success
        assert result.document_id == "lease-1"
        assert result.has_embedding
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_same_id_overwrites(self, store, embedding_service, lease_slice):
        """Test indexing the same id twice keeps one document with the second values."""
        indexer = ChapterIndexer(store, embedding_service)
        await indexer.index_slice(lease_slice)

        changed = lease_slice.model_copy(update={"chapter_title": "1. Revised terms"})
        await indexer.index_slice(changed)

        assert await store.count() == 1
        chapters = await store.search("*", _options_for("twin-42"))
        assert [item.document[IndexFields.CHAPTER_TITLE] for item in chapters] == ["1. Revised terms"]

    @pytest.mark.asyncio
    async def test_without_embedding(self, store, unconfigured_embedding_service, lease_slice):
        """Test indexing still succeeds and writes no vector."""
        indexer = ChapterIndexer(store, unconfigured_embedding_service)

        result = await indexer.index_slice(lease_slice)

        assert result.success
        assert not result.has_embedding
        points, _ = await store.client.scroll(store.index_name, with_vectors=True)
        assert IndexFields.COMBINED_CONTENT_VECTOR not in (points[0].vector or {})

    @pytest.mark.asyncio
    async def test_combined_content_not_truncated(self, store, embedding_service, lease_slice):
        long_slice = lease_slice.model_copy(update={"chapter_text": "word " * 3000})
        await ChapterIndexer(store, embedding_service).index_slice(long_slice)

        points, _ = await store.client.scroll(store.index_name, with_payload=True)
        assert len(points[0].payload[IndexFields.COMBINED_CONTENT]) > 8000

    @pytest.mark.asyncio
    async def test_generated_id(self, store, embedding_service, lease_slice):
        without_id = lease_slice.model_copy(update={"id": ""})
        result = await ChapterIndexer(store, embedding_service).index_slice(without_id)

        assert result.success
        assert result.document_id.startswith("chap_twin-42_lease-ch1_")

    @pytest.mark.asyncio
    async def test_store_failure_is_reported(self, store, embedding_service, lease_slice):
        """Test per-document failures become a failed result."""
        store.merge_or_upload = AsyncMock(
            return_value=[IndexingResult(key="lease-1", succeeded=False, status_code=500, error_message="boom")]
        )
        result = await ChapterIndexer(store, embedding_service).index_slice(lease_slice)

        assert not result.success
        assert result.error == "boom"

    @pytest.mark.asyncio
    async def test_unavailable_store(self, embedding_service, lease_slice):
        result = await ChapterIndexer(None, embedding_service).index_slice(lease_slice)
        assert not result.success
        embedding_service.client.embeddings.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_index_slices(self, store, embedding_service, sample_slices):
        results = await ChapterIndexer(store, embedding_service).index_slices(sample_slices)
        assert [r.success for r in results] == [True] * len(sample_slices)
        assert await store.count() == len(sample_slices)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["tenant_id", "chapter_id"])
    async def test_required_fields(self, store, embedding_service, lease_slice, missing):
        """Test a slice without tenant or chapter is rejected before any write."""
        store.merge_or_upload = AsyncMock()
        incomplete = lease_slice.model_copy(update={missing: ""})

        result = await ChapterIndexer(store, embedding_service).index_slice(incomplete)

        assert not result.success
        assert missing in result.error
        embedding_service.client.embeddings.create.assert_not_called()
        store.merge_or_upload.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_slice_is_not_stored(self, store, embedding_service):
        orphan = ChapterSlice(id="x1", chapter_id="c1", file_name="A.pdf", chapter_text="Orphaned text.")

        result = await ChapterIndexer(store, embedding_service).index_slice(orphan)

        assert not result.success
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_index_span(self, store, embedding_service, lease_slice, span_exporter):
        await ChapterIndexer(store, embedding_service).index_slice(lease_slice)

        (span,) = span_exporter.get_finished_spans()
        assert span.name == "index_slice"
        assert span.attributes["docindex.tenant_id"] == "twin-42"
        assert span.attributes["docindex.file_name"] == "Lease.pdf"
        assert span.attributes["docindex.index_name"] == "test-index"
        assert span.attributes["docindex.success"] is True
        assert span.attributes["docindex.has_embedding"] is True


def test_generate_document_id():
    chapter = ChapterSlice(tenant_id="T1", chapter_id="c1")
    now = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)
    assert generate_document_id(chapter, now) == "chap_T1_c1_20240506070809"
    assert generate_document_id(chapter.model_copy(update={"id": "given"}), now) == "given"


def _options_for(tenant_id):
    return SearchOptions(filter=FilterExpression().eq(IndexFields.TENANT_ID, tenant_id), top=10)
