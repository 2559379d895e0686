"""Tests for the index schema and schema manager."""
from datetime import datetime, timezone

import pytest
from qdrant_client import AsyncQdrantClient

from docindex.exceptions import IndexingError
from docindex.services.index_manager import IndexSchemaManager
from docindex.services.index_schema import (
    HNSW_ALGORITHM_CONFIG,
    SEMANTIC_CONFIG,
    VECTOR_SEARCH_PROFILE,
    FieldType,
    IndexFields,
    build_index_definition,
    build_index_document,
    validate_document,
)
from docindex.services.search_store import SearchStore


class TestIndexDefinition:
    """Tests for build_index_definition."""

    def test_key_and_vector_fields(self):
        definition = build_index_definition(dimensions=1536)

        assert definition.name == "no-structured-index"
        assert definition.key_field.name == IndexFields.ID
        assert len(definition.vector_fields) == 1
        vector = definition.vector_fields[0]
        assert vector.name == IndexFields.COMBINED_CONTENT_VECTOR
        assert vector.vector_dimensions == 1536
        assert vector.vector_profile == VECTOR_SEARCH_PROFILE

    def test_profile_binds_hnsw_algorithm(self):
        definition = build_index_definition()
        algorithm = definition.get_algorithm(VECTOR_SEARCH_PROFILE)
        assert algorithm.name == HNSW_ALGORITHM_CONFIG
        assert algorithm.metric == "cosine"

    def test_semantic_configuration(self):
        """Test title, content priority and keyword fields."""
        config = build_index_definition().get_semantic_configuration(SEMANTIC_CONFIG)

        assert config.title_field == IndexFields.SUB_TITLE
        assert config.content_fields == [
            IndexFields.SUB_TEXT,
            IndexFields.CHAPTER_TEXT,
            IndexFields.COMBINED_CONTENT,
            IndexFields.CHAPTER_TITLE,
        ]
        assert config.keyword_fields == [IndexFields.CHAPTER_ID, IndexFields.TENANT_ID, IndexFields.FILE_NAME]

    def test_long_text_fields_use_analyzer(self):
        definition = build_index_definition(analyzer="spanish")
        for name in (IndexFields.CHAPTER_TEXT, IndexFields.SUB_TEXT, IndexFields.COMBINED_CONTENT):
            field = definition.get_field(name)
            assert field.searchable
            assert field.analyzer == "spanish"

    def test_scalar_fields_are_filterable(self):
        definition = build_index_definition()
        for name in (IndexFields.TENANT_ID, IndexFields.FILE_NAME, IndexFields.CHAPTER_ID, IndexFields.CATEGORY):
            assert definition.get_field(name).filterable
        assert definition.get_field(IndexFields.CREATED_AT).type == FieldType.DATETIME
        assert definition.get_field(IndexFields.SUB_TOKEN_COUNT).type == FieldType.INT32


class TestIndexDocument:
    """Tests for build_index_document and validate_document."""

    def test_document_matches_schema(self, lease_slice):
        """Test every built field is defined by the schema."""
        definition = build_index_definition()
        document = build_index_document(
            lease_slice, "lease-1", "content", [0.1] * 8, datetime(2024, 1, 1, tzinfo=timezone.utc)
        )

        validate_document(definition, document)
        assert set(document) <= set(definition.field_names)
        assert document[IndexFields.COMBINED_CONTENT] == "content"
        assert document[IndexFields.CREATED_AT] == "2024-01-01T00:00:00+00:00"

    def test_vector_omitted_without_embedding(self, lease_slice):
        document = build_index_document(lease_slice, "lease-1", "content", None, datetime.now(timezone.utc))
        assert IndexFields.COMBINED_CONTENT_VECTOR not in document

    def test_unknown_field_rejected(self):
        with pytest.raises(IndexingError):
            validate_document(build_index_definition(), {"id": "1", "unknown": "x"})

    def test_missing_key_rejected(self):
        with pytest.raises(IndexingError):
            validate_document(build_index_definition(), {"tenant_id": "T1"})


class TestIndexSchemaManager:
    """Tests for IndexSchemaManager."""

    @pytest.mark.asyncio
    async def test_create_then_update(self):
        """Test repeated calls succeed."""
        client = AsyncQdrantClient(location=":memory:")
        manager = IndexSchemaManager(SearchStore(client, build_index_definition("schema-test", dimensions=8)))

        created = await manager.create_or_update_index()
        updated = await manager.create_or_update_index()

        assert created.success
        assert "created" in created.message
        assert created.has_vector_search
        assert created.has_semantic_search
        assert created.fields_count == 20
        assert updated.success
        assert "updated" in updated.message
        await client.close()

    @pytest.mark.asyncio
    async def test_dimension_change_is_a_failure(self):
        """Test an existing index with another vector size is not reused."""
        client = AsyncQdrantClient(location=":memory:")
        await IndexSchemaManager(
            SearchStore(client, build_index_definition("schema-test", dimensions=8))
        ).create_or_update_index()

        result = await IndexSchemaManager(
            SearchStore(client, build_index_definition("schema-test", dimensions=16))
        ).create_or_update_index()

        assert not result.success
        assert "dimensions" in result.error
        await client.close()

    @pytest.mark.asyncio
    async def test_unavailable_store(self):
        result = await IndexSchemaManager(None).create_or_update_index()
        assert not result.success
