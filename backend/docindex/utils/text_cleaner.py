"""Text cleaning and normalization utilities."""
import re
from typing import List

_SENTENCE_RE = re.compile(r"(?<=[.!?;])\s+|\n+")


def clean_text(text: str) -> str:
    """
    Clean and normalize text.

    Args:
        text: Raw text to clean

    Returns:
        Cleaned text with normalized whitespace
    """
    # Remove special control characters
    text = re.sub(r"[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f]", "", text)

    # Remove excessive whitespace
    text = re.sub(r"\s+", " ", text)

    return text.strip()


def split_sentences(text: str) -> List[str]:
    """Split text into sentences on terminal punctuation and line breaks."""
    if not text:
        return []
    return [s.strip() for s in _SENTENCE_RE.split(text) if s and s.strip()]


def preview(text: str, length: int = 100) -> str:
    """Return the first `length` characters of text, with an ellipsis if cut."""
    if not text:
        return ""
    return text[:length] + "..." if len(text) > length else text
