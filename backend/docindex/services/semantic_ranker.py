"""Semantic re-ranking with a cross-encoder, plus extractive captions and answers."""
import math
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fastembed.rerank.cross_encoder import TextCrossEncoder

from docindex.services.index_schema import SemanticConfiguration
from docindex.utils.logger import logger
from docindex.utils.text_cleaner import clean_text, split_sentences

CROSS_ENCODER_MODEL = "Xenova/ms-marco-MiniLM-L-6-v2"

# Reranker scores are reported on a 0-4 scale
MAX_RERANKER_SCORE = 4.0


def _sigmoid(logit: float) -> float:
    return 1.0 / (1.0 + math.exp(-logit))


class CrossEncoderScorer:
    """
    Scores (query, passage) pairs with a fastembed cross-encoder.

    Scores are raw relevance logits, higher is more relevant.
    """

    def __init__(self, model_name: str = CROSS_ENCODER_MODEL, batch_size: int = 32):
        """
        Initialize scorer (model loaded lazily on first use).

        Args:
            model_name: fastembed cross-encoder model name
            batch_size: Pairs scored per inference batch
        """
        self.model_name = model_name
        self.batch_size = batch_size
        self._model: Optional[TextCrossEncoder] = None
        self._lock = threading.Lock()
        self._failed = False

    def _load_model(self) -> Optional[TextCrossEncoder]:
        """Load the model (thread-safe lazy loading)."""
        if self._model is None and not self._failed:
            with self._lock:
                if self._model is None and not self._failed:
                    try:
                        logger.info(f"Loading cross-encoder model: {self.model_name}")
                        self._model = TextCrossEncoder(model_name=self.model_name)
                    except Exception as e:
                        logger.error(f"Failed to load cross-encoder model: {str(e)}", exc_info=True)
                        self._failed = True
        return self._model

    def score(self, query: str, passages: Sequence[str]) -> Optional[List[float]]:
        """Return one logit per passage, or None when the model is unavailable."""
        if not passages:
            return []
        model = self._load_model()
        if model is None:
            return None
        return [float(s) for s in model.rerank(query, list(passages), batch_size=self.batch_size)]


@dataclass
class RankCandidate:
    """A fused search candidate awaiting re-ranking."""

    payload: Dict[str, Any]
    score: float
    reranker_score: Optional[float] = None
    captions: List[str] = field(default_factory=list)


@dataclass
class RankingResult:
    candidates: List[RankCandidate]
    answers: List[str] = field(default_factory=list)


class SemanticRanker:
    """
    Re-ranks candidates by cross-encoder relevance of their prioritized fields.

    Each candidate is scored as one passage built from its title, its content
    fields in configured order and its keyword fields. Captions are the
    best-scoring sentence of the content fields; sentences scoring above the
    answer threshold become extractive answers.
    """

    def __init__(
        self,
        configuration: SemanticConfiguration,
        scorer: Optional[CrossEncoderScorer] = None,
        answer_threshold: float = 0.5,
        max_answers: int = 1,
        max_sentences: int = 20,
    ):
        self.configuration = configuration
        self.scorer = scorer
        self.answer_threshold = answer_threshold
        self.max_answers = max_answers
        self.max_sentences = max_sentences

    def passage(self, payload: Dict[str, Any]) -> str:
        """Join title, content and keyword fields in priority order."""
        config = self.configuration
        parts = [str(payload.get(config.title_field) or "")]
        parts.extend(str(payload.get(name) or "") for name in config.content_fields)
        parts.extend(str(payload.get(name) or "") for name in config.keyword_fields)
        return clean_text("\n".join(part for part in parts if part))

    def _sentences(self, payload: Dict[str, Any]) -> List[str]:
        sentences: List[str] = []
        for name in self.configuration.content_fields:
            for sentence in split_sentences(str(payload.get(name) or "")):
                sentence = clean_text(sentence)
                if sentence and sentence not in sentences:
                    sentences.append(sentence)
        return sentences[: self.max_sentences]

    def rerank(
        self,
        query: str,
        candidates: List[RankCandidate],
        captions: bool = True,
        answers: bool = True,
    ) -> RankingResult:
        """
        Score and reorder candidates for a free-text query.

        Runs model inference, so async callers should run it off the event loop.

        Args:
            query: Query text
            candidates: Candidates in fused order
            captions: Attach the best matching sentence to each candidate
            answers: Collect extractive answers from the best captions

        Returns:
            RankingResult with candidates sorted by reranker score, or in
            fused order when no scorer is available
        """
        query = query.strip()
        if not query or not candidates or self.scorer is None:
            return RankingResult(candidates=list(candidates))

        scores = self.scorer.score(query, [self.passage(c.payload) for c in candidates])
        if scores is None:
            return RankingResult(candidates=list(candidates))
        for candidate, logit in zip(candidates, scores):
            candidate.reranker_score = round(MAX_RERANKER_SCORE * _sigmoid(logit), 4)

        answer_pool: List[Tuple[float, str]] = []
        if captions or answers:
            owners: List[int] = []
            sentences: List[str] = []
            for position, candidate in enumerate(candidates):
                for sentence in self._sentences(candidate.payload):
                    owners.append(position)
                    sentences.append(sentence)

            sentence_scores = self.scorer.score(query, sentences) or []
            best: Dict[int, Tuple[float, str]] = {}
            for position, sentence, logit in zip(owners, sentences, sentence_scores):
                probability = _sigmoid(logit)
                if position not in best or probability > best[position][0]:
                    best[position] = (probability, sentence)

            for position, (probability, sentence) in best.items():
                if captions:
                    candidates[position].captions = [sentence]
                if probability >= self.answer_threshold:
                    answer_pool.append((probability, sentence))

        # Stable sort keeps fused order among equal scores
        ranked = sorted(candidates, key=lambda c: c.reranker_score or 0.0, reverse=True)

        found: List[str] = []
        if answers:
            for _, sentence in sorted(answer_pool, key=lambda a: a[0], reverse=True):
                if sentence not in found:
                    found.append(sentence)
                if len(found) >= self.max_answers:
                    break

        return RankingResult(candidates=ranked, answers=found)
