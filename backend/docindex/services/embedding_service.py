"""Embedding service using Azure OpenAI."""
from typing import List, Optional

import httpx
from openai import AsyncAzureOpenAI, AsyncOpenAI

from docindex.config import Settings, supports_custom_dimensions
from docindex.exceptions import EmbeddingError
from docindex.utils.logger import logger

DEFAULT_MAX_CHARS = 8000


class EmbeddingService:
    """
    Best-effort embedding generation with a fixed output dimensionality.

    Every failure, including a missing client, yields None so callers can fall
    back to lexical-only indexing and search.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI],
        deployment: str = "text-embedding-3-large",
        dimensions: int = 1536,
        max_chars: int = DEFAULT_MAX_CHARS,
    ):
        """
        Initialize embedding service.

        Args:
            client: OpenAI-compatible async client, or None when unconfigured
            deployment: Embedding deployment/model name
            dimensions: Vector size the index was created with
            max_chars: Input is truncated to this many characters
        """
        self.client = client
        self.deployment = deployment
        self.dimensions = dimensions
        self.max_chars = max_chars
        self.custom_dimensions = supports_custom_dimensions(deployment)

        if client is None:
            logger.warning("Embedding client not configured, vector search disabled")
        else:
            logger.info(
                f"EmbeddingService initialized for {deployment} ({dimensions} dimensions)",
                extra={"dimensions": dimensions},
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmbeddingService":
        """Build the service, leaving it unconfigured when credentials are missing."""
        client = None
        if settings.embeddings_configured:
            try:
                client = AsyncAzureOpenAI(
                    azure_endpoint=settings.azure_openai_endpoint,
                    api_key=settings.azure_openai_api_key,
                    api_version=settings.azure_openai_api_version,
                    http_client=httpx.AsyncClient(timeout=60.0),
                )
            except Exception as e:
                logger.error(f"Error initializing Azure OpenAI client: {str(e)}", exc_info=True)
                client = None
        else:
            logger.warning("Azure OpenAI credentials not found for embeddings")

        return cls(
            client=client,
            deployment=settings.azure_openai_embedding_deployment,
            dimensions=settings.embedding_dimensions,
            max_chars=settings.embedding_max_chars,
        )

    @property
    def is_available(self) -> bool:
        return self.client is not None

    def truncate(self, text: str) -> str:
        """Cut text to the provider input limit."""
        if len(text) > self.max_chars:
            logger.debug(f"Text truncated to {self.max_chars} characters for embedding generation")
            return text[: self.max_chars]
        return text

    async def generate_embedding(self, text: str) -> Optional[List[float]]:
        """
        Generate an embedding for a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector, or None if unconfigured, empty input or provider error
        """
        if self.client is None or not text:
            return None

        text = self.truncate(text)

        try:
            if self.custom_dimensions:
                response = await self.client.embeddings.create(
                    model=self.deployment,
                    input=text,
                    dimensions=self.dimensions,
                )
            else:
                response = await self.client.embeddings.create(
                    model=self.deployment,
                    input=text,
                )

            if not response.data:
                raise EmbeddingError("Empty embedding response")

            embedding = [float(x) for x in response.data[0].embedding]

            if len(embedding) != self.dimensions:
                logger.warning(
                    f"Dimension mismatch: generated {len(embedding)} but expected {self.dimensions}. "
                    f"This may cause indexing errors.",
                    extra={"dimensions": len(embedding)},
                )

            return embedding

        except Exception as e:
            logger.warning(f"Error generating embeddings, continuing without vector search: {str(e)}")
            return None

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self.client is not None:
            await self.client.close()
