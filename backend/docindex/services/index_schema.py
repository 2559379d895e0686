"""Index schema: fields, vector search and semantic ranking configuration."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from docindex.exceptions import IndexingError
from docindex.models.chapter import ChapterSlice

INDEX_NAME = "no-structured-index"
VECTOR_SEARCH_PROFILE = "no-structured-vector-profile"
HNSW_ALGORITHM_CONFIG = "no-structured-hnsw-config"
SEMANTIC_CONFIG = "no-structured-semantic-config"


class IndexFields:
    """Field names shared by the schema, the indexer and the query engine."""

    ID = "id"
    TENANT_ID = "tenant_id"
    CHAPTER_ID = "chapter_id"
    FILE_NAME = "file_name"
    FILE_PATH = "file_path"
    CHAPTER_TITLE = "chapter_title"
    CHAPTER_TEXT = "chapter_text"
    CHAPTER_FROM_PAGE = "chapter_from_page"
    CHAPTER_TO_PAGE = "chapter_to_page"
    CHAPTER_TOKEN_COUNT = "chapter_token_count"
    SUB_TITLE = "sub_title"
    SUB_TEXT = "sub_text"
    SUB_FROM_PAGE = "sub_from_page"
    SUB_TO_PAGE = "sub_to_page"
    SUB_TOKEN_COUNT = "sub_token_count"
    DOCUMENT_TOTAL_TOKENS = "document_total_tokens"
    CATEGORY = "category"
    CREATED_AT = "created_at"
    COMBINED_CONTENT = "combined_content"
    COMBINED_CONTENT_VECTOR = "combined_content_vector"


class FieldType(str, Enum):
    STRING = "string"
    INT32 = "int32"
    DATETIME = "datetime"
    VECTOR = "vector"


@dataclass(frozen=True)
class SearchFieldDefinition:
    """One index field and its capabilities."""

    name: str
    type: FieldType = FieldType.STRING
    key: bool = False
    searchable: bool = False
    filterable: bool = False
    sortable: bool = False
    facetable: bool = False
    analyzer: Optional[str] = None
    vector_dimensions: Optional[int] = None
    vector_profile: Optional[str] = None


@dataclass(frozen=True)
class HnswAlgorithmConfiguration:
    """Graph-based approximate nearest neighbor settings."""

    name: str
    m: int = 16
    ef_construct: int = 100
    ef_search: int = 128
    metric: str = "cosine"


@dataclass(frozen=True)
class VectorSearchProfile:
    name: str
    algorithm_configuration_name: str


@dataclass(frozen=True)
class SemanticConfiguration:
    """Fields the semantic ranker reads, in priority order."""

    name: str
    title_field: str
    content_fields: List[str]
    keyword_fields: List[str]


@dataclass
class IndexDefinition:
    """Complete definition of the chapter index."""

    name: str
    fields: List[SearchFieldDefinition]
    algorithms: List[HnswAlgorithmConfiguration] = field(default_factory=list)
    profiles: List[VectorSearchProfile] = field(default_factory=list)
    semantic_configurations: List[SemanticConfiguration] = field(default_factory=list)

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    @property
    def key_field(self) -> SearchFieldDefinition:
        return next(f for f in self.fields if f.key)

    @property
    def vector_fields(self) -> List[SearchFieldDefinition]:
        return [f for f in self.fields if f.type == FieldType.VECTOR]

    @property
    def searchable_fields(self) -> List[SearchFieldDefinition]:
        return [f for f in self.fields if f.searchable and f.type != FieldType.VECTOR]

    @property
    def filterable_fields(self) -> List[SearchFieldDefinition]:
        return [f for f in self.fields if f.filterable]

    def get_field(self, name: str) -> Optional[SearchFieldDefinition]:
        return next((f for f in self.fields if f.name == name), None)

    def get_algorithm(self, profile_name: str) -> HnswAlgorithmConfiguration:
        profile = next(p for p in self.profiles if p.name == profile_name)
        return next(a for a in self.algorithms if a.name == profile.algorithm_configuration_name)

    def get_semantic_configuration(self, name: str) -> Optional[SemanticConfiguration]:
        return next((c for c in self.semantic_configurations if c.name == name), None)


def build_index_definition(
    index_name: str = INDEX_NAME,
    dimensions: int = 1536,
    analyzer: str = "spanish",
) -> IndexDefinition:
    """
    Build the chapter index definition.

    Args:
        index_name: Name of the index
        dimensions: Fixed size of the content vector
        analyzer: Language analyzer for long-form text fields

    Returns:
        IndexDefinition with fields, one HNSW profile and one semantic configuration
    """
    f = IndexFields
    fields = [
        SearchFieldDefinition(f.ID, key=True, filterable=True, sortable=True),
        SearchFieldDefinition(f.CATEGORY, filterable=True, sortable=True, facetable=True),
        SearchFieldDefinition(
            f.CHAPTER_TITLE, searchable=True, filterable=True, sortable=True, facetable=True, analyzer=analyzer
        ),
        SearchFieldDefinition(f.TENANT_ID, searchable=True, filterable=True, sortable=True, facetable=True),
        SearchFieldDefinition(f.CHAPTER_ID, searchable=True, filterable=True, sortable=True, facetable=True),
        SearchFieldDefinition(f.DOCUMENT_TOTAL_TOKENS, FieldType.INT32, filterable=True, sortable=True),
        SearchFieldDefinition(f.FILE_NAME, searchable=True, filterable=True, sortable=True, facetable=True),
        SearchFieldDefinition(f.FILE_PATH, searchable=True, filterable=True, facetable=True),
        SearchFieldDefinition(f.CHAPTER_TEXT, searchable=True, analyzer=analyzer),
        SearchFieldDefinition(f.CHAPTER_FROM_PAGE, FieldType.INT32, filterable=True, sortable=True),
        SearchFieldDefinition(f.CHAPTER_TO_PAGE, FieldType.INT32, filterable=True, sortable=True),
        SearchFieldDefinition(f.CHAPTER_TOKEN_COUNT, FieldType.INT32, filterable=True, sortable=True),
        SearchFieldDefinition(f.SUB_TITLE, searchable=True, filterable=True, analyzer=analyzer),
        SearchFieldDefinition(f.SUB_TEXT, searchable=True, analyzer=analyzer),
        SearchFieldDefinition(f.SUB_TOKEN_COUNT, FieldType.INT32, filterable=True, sortable=True),
        SearchFieldDefinition(f.SUB_FROM_PAGE, FieldType.INT32, filterable=True, sortable=True),
        SearchFieldDefinition(f.SUB_TO_PAGE, FieldType.INT32, filterable=True, sortable=True),
        SearchFieldDefinition(f.CREATED_AT, FieldType.DATETIME, filterable=True, sortable=True, facetable=True),
        SearchFieldDefinition(f.COMBINED_CONTENT, searchable=True, analyzer=analyzer),
        SearchFieldDefinition(
            f.COMBINED_CONTENT_VECTOR,
            FieldType.VECTOR,
            searchable=True,
            vector_dimensions=dimensions,
            vector_profile=VECTOR_SEARCH_PROFILE,
        ),
    ]

    semantic = SemanticConfiguration(
        name=SEMANTIC_CONFIG,
        title_field=f.SUB_TITLE,
        content_fields=[f.SUB_TEXT, f.CHAPTER_TEXT, f.COMBINED_CONTENT, f.CHAPTER_TITLE],
        keyword_fields=[f.CHAPTER_ID, f.TENANT_ID, f.FILE_NAME],
    )

    return IndexDefinition(
        name=index_name,
        fields=fields,
        algorithms=[HnswAlgorithmConfiguration(HNSW_ALGORITHM_CONFIG)],
        profiles=[VectorSearchProfile(VECTOR_SEARCH_PROFILE, HNSW_ALGORITHM_CONFIG)],
        semantic_configurations=[semantic],
    )


def build_index_document(
    chapter: ChapterSlice,
    document_id: str,
    combined_content: str,
    embedding: Optional[List[float]],
    created_at: datetime,
) -> Dict[str, Any]:
    """
    Assemble the full field map written for one slice.

    Args:
        chapter: Source slice
        document_id: Key of the index document
        combined_content: Output of build_complete_content
        embedding: Content vector, omitted from the map when None
        created_at: Write timestamp

    Returns:
        Dictionary keyed by IndexFields names
    """
    f = IndexFields
    document: Dict[str, Any] = {
        f.ID: document_id,
        f.TENANT_ID: chapter.tenant_id,
        f.CHAPTER_ID: chapter.chapter_id,
        f.FILE_NAME: chapter.file_name,
        f.FILE_PATH: chapter.file_path,
        f.CHAPTER_TITLE: chapter.chapter_title,
        f.CHAPTER_TEXT: chapter.chapter_text,
        f.CHAPTER_FROM_PAGE: chapter.chapter_from_page,
        f.CHAPTER_TO_PAGE: chapter.chapter_to_page,
        f.CHAPTER_TOKEN_COUNT: chapter.chapter_token_count,
        f.SUB_TITLE: chapter.sub_title,
        f.SUB_TEXT: chapter.sub_text,
        f.SUB_FROM_PAGE: chapter.sub_from_page,
        f.SUB_TO_PAGE: chapter.sub_to_page,
        f.SUB_TOKEN_COUNT: chapter.sub_token_count,
        f.DOCUMENT_TOTAL_TOKENS: chapter.document_total_tokens,
        f.CATEGORY: chapter.category,
        f.CREATED_AT: created_at.isoformat(),
        f.COMBINED_CONTENT: combined_content,
    }

    if embedding is not None:
        document[f.COMBINED_CONTENT_VECTOR] = embedding

    return document


def validate_document(definition: IndexDefinition, document: Dict[str, Any]) -> None:
    """Raise IndexingError if the document carries a field the index does not define."""
    unknown = set(document) - set(definition.field_names)
    if unknown:
        raise IndexingError(f"Unknown index fields: {', '.join(sorted(unknown))}")
    if not document.get(definition.key_field.name):
        raise IndexingError(f"Missing key field '{definition.key_field.name}'")
