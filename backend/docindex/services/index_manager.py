"""Index schema manager."""
from typing import Optional

from docindex.models.results import IndexResult
from docindex.services.search_store import SearchStore
from docindex.utils.logger import logger


class IndexSchemaManager:
    """Creates or updates the chapter index from its definition."""

    def __init__(self, store: Optional[SearchStore]):
        self.store = store

    async def create_or_update_index(self) -> IndexResult:
        """
        Create the index if absent, or update its configuration if present.

        Safe to call repeatedly. Errors are returned as a failed result.

        Returns:
            IndexResult describing the index
        """
        if self.store is None:
            return IndexResult(success=False, error="Search store not available")

        definition = self.store.definition
        try:
            created = await self.store.create_or_update_index()
            message = f"Index '{definition.name}' {'created' if created else 'updated'} successfully"
            logger.info(message, extra={"index_name": definition.name})
            return IndexResult(
                success=True,
                message=message,
                index_name=definition.name,
                fields_count=len(definition.fields),
                has_vector_search=bool(definition.vector_fields),
                has_semantic_search=bool(definition.semantic_configurations),
            )
        except Exception as e:
            logger.error(
                f"Error creating index {definition.name}: {str(e)}",
                extra={"index_name": definition.name},
                exc_info=True,
            )
            return IndexResult(success=False, error=str(e), index_name=definition.name)
