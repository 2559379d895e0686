"""BM25 sparse encoder for the lexical search leg."""
import threading
from typing import Optional

from fastembed import SparseTextEmbedding
from qdrant_client.http import models

from docindex.utils.logger import logger

BM25_MODEL = "Qdrant/bm25"


class LexicalEncoder:
    """
    Turns text into BM25 term-frequency sparse vectors.

    IDF is applied by the store at query time, so document vectors only carry
    the per-document term weights. The stemmer and stopword list follow
    `language`.
    """

    def __init__(self, language: str = "spanish", model_name: str = BM25_MODEL):
        """
        Initialize encoder (model loaded lazily on first use).

        Args:
            language: Analyzer language for stemming and stopwords
            model_name: fastembed sparse model name
        """
        self.language = language
        self.model_name = model_name
        self._model: Optional[SparseTextEmbedding] = None
        self._lock = threading.Lock()
        self._failed = False

    def _load_model(self) -> Optional[SparseTextEmbedding]:
        """Load the model (thread-safe lazy loading)."""
        if self._model is None and not self._failed:
            with self._lock:
                if self._model is None and not self._failed:
                    try:
                        logger.info(f"Loading lexical model {self.model_name} ({self.language})")
                        self._model = SparseTextEmbedding(
                            model_name=self.model_name,
                            language=self.language,
                        )
                    except Exception as e:
                        # Keep search running on the remaining legs
                        logger.error(f"Failed to load lexical model: {str(e)}", exc_info=True)
                        self._failed = True
        return self._model

    def encode_document(self, text: str) -> Optional[models.SparseVector]:
        """Encode document text, or return None when unavailable or empty."""
        if not text:
            return None
        model = self._load_model()
        if model is None:
            return None
        embedding = next(iter(model.embed([text])))
        if len(embedding.indices) == 0:
            return None
        return models.SparseVector(
            indices=embedding.indices.tolist(),
            values=embedding.values.tolist(),
        )

    def encode_query(self, text: str) -> Optional[models.SparseVector]:
        """Encode a search query, or return None when unavailable or empty."""
        if not text:
            return None
        model = self._load_model()
        if model is None:
            return None
        embedding = next(iter(model.query_embed(text)))
        if len(embedding.indices) == 0:
            return None
        return models.SparseVector(
            indices=embedding.indices.tolist(),
            values=embedding.values.tolist(),
        )
