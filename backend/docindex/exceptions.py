"""Custom exception classes for chapter indexing and search."""


class ChapterIndexError(Exception):
    """Base exception for chapter index errors."""
    pass


class ConfigurationError(ChapterIndexError):
    """Raised when the index or embedding configuration is invalid."""
    pass


class ServiceUnavailableError(ChapterIndexError):
    """Raised when required services are not available."""
    pass


class ValidationError(ChapterIndexError):
    """Raised when a required input field is missing or empty."""

    def __init__(self, field_name: str, message: str = ""):
        self.field_name = field_name
        super().__init__(message or f"{field_name} cannot be null or empty")


class EmbeddingError(ChapterIndexError):
    """Raised when embedding generation fails."""
    pass


class IndexingError(ChapterIndexError):
    """Raised when writing documents to the index fails."""
    pass


class SearchError(ChapterIndexError):
    """Raised when querying the index fails."""
    pass


class DeletionError(ChapterIndexError):
    """Raised when deleting documents from the index fails."""
    pass
