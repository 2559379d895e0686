"""Application settings."""
import os

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Native output size per embedding model family. Models that accept a
# `dimensions` argument may be asked for fewer, never more.
MODEL_NATIVE_DIMENSIONS = {
    "text-embedding-ada-002": 1536,
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
}


def supports_custom_dimensions(model_name: str) -> bool:
    """Return True if the model accepts an explicit output dimensionality."""
    return bool(model_name) and (
        "text-embedding-3" in model_name or "text-embedding-ada-003" in model_name
    )


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        # Look for .env in both backend/ and the repository root
        env_file=(
            os.path.join(os.path.dirname(__file__), "..", "..", ".env"),
            ".env",
        ),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Search store (Qdrant). A URL takes precedence over the embedded path.
    qdrant_url: str = ""
    qdrant_api_key: str = ""
    qdrant_db_path: str = ""
    search_index_name: str = "no-structured-index"

    # Embedding provider (Azure OpenAI)
    azure_openai_endpoint: str = ""
    azure_openai_api_key: str = ""
    azure_openai_api_version: str = "2024-06-01"
    azure_openai_embedding_deployment: str = "text-embedding-3-large"
    embedding_dimensions: int = 1536  # Must match the vector field of an existing index
    embedding_max_chars: int = 8000

    # Lexical analyzer language for the BM25 encoder
    lexical_language: str = "spanish"

    # Cross-encoder used for semantic ranking
    reranker_model: str = "Xenova/ms-marco-MiniLM-L-6-v2"

    # Query sizes
    question_top: int = 5
    listing_top: int = 1000
    semantic_candidates: int = 50

    # Batch deletion
    delete_page_size: int = 1000
    delete_batch_size: int = 100  # Store batch-write limit

    log_level: str = "INFO"

    # OpenTelemetry tracing configuration
    tracing_enabled: bool = True
    otlp_endpoint: str = ""

    @model_validator(mode="after")
    def check_embedding_dimensions(self) -> "Settings":
        """Reject a dimensionality the configured model cannot produce."""
        if self.embedding_dimensions <= 0:
            raise ValueError("embedding_dimensions must be positive")

        model = self.azure_openai_embedding_deployment.lower()
        for family, native in MODEL_NATIVE_DIMENSIONS.items():
            if family in model:
                if supports_custom_dimensions(model):
                    if self.embedding_dimensions > native:
                        raise ValueError(
                            f"embedding_dimensions={self.embedding_dimensions} exceeds the "
                            f"{native} dimensions produced by {family}"
                        )
                elif self.embedding_dimensions != native:
                    raise ValueError(
                        f"{family} always returns {native} dimensions, "
                        f"got embedding_dimensions={self.embedding_dimensions}"
                    )
                break
        return self

    @property
    def search_configured(self) -> bool:
        return bool(self.qdrant_url or self.qdrant_db_path)

    @property
    def embeddings_configured(self) -> bool:
        return bool(self.azure_openai_endpoint and self.azure_openai_api_key)
