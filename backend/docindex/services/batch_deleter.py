"""Deletes every slice of a file in bounded batches."""
from typing import List, Optional, Tuple

from docindex.models.results import DeleteResult
from docindex.services.filters import FilterExpression
from docindex.services.index_schema import IndexFields
from docindex.services.search_store import WILDCARD, SearchOptions, SearchStore
from docindex.utils.logger import logger
from docindex.utils.tracer import index_span


class BatchDeleter:
    """
    Finds index entries by file (and optionally tenant) and deletes them.

    Batches run sequentially. A failing batch is recorded and the remaining
    batches still run, so the result always reports found versus deleted.
    """

    def __init__(self, store: Optional[SearchStore], page_size: int = 1000, batch_size: int = 100):
        """
        Initialize batch deleter.

        Args:
            store: Search store, None when unavailable
            page_size: Maximum ids looked up in one query
            batch_size: Ids per delete request
        """
        self.store = store
        self.page_size = page_size
        self.batch_size = batch_size

    async def _find_ids(self, filter_expression: FilterExpression) -> Tuple[List[str], int]:
        # One page only; files with more slices than page_size keep the rest
        key = IndexFields.ID
        results = await self.store.search(
            WILDCARD,
            SearchOptions(filter=filter_expression, select=[key], top=self.page_size, include_total_count=True),
        )
        ids = [item.document[key] for item in results if item.document.get(key)]
        found = results.total_count if results.total_count is not None else len(ids)
        return ids, found

    async def delete_by_file(self, file_name: str, tenant_id: Optional[str] = None) -> DeleteResult:
        """
        Delete all slices of a file.

        Args:
            file_name: File whose slices are deleted, required
            tenant_id: Restrict deletion to one tenant

        Returns:
            DeleteResult with found and deleted counts and per-batch errors
        """
        if not file_name:
            return DeleteResult(success=False, error="file_name cannot be null or empty")
        if self.store is None:
            return DeleteResult(success=False, document_id=file_name, error="Search store not available")

        with index_span(
            "delete_by_file", index_name=self.store.index_name, tenant_id=tenant_id, file_name=file_name
        ) as span:
            result = await self._delete(file_name, tenant_id)
            span.set_attribute("docindex.found_count", result.found_count)
            span.set_attribute("docindex.deleted_count", result.deleted_count)
            span.set_attribute("docindex.success", result.success)
            return result

    async def _delete(self, file_name: str, tenant_id: Optional[str]) -> DeleteResult:
        filter_expression = FilterExpression().eq(IndexFields.FILE_NAME, file_name).eq(IndexFields.TENANT_ID, tenant_id)
        log_extra = {"file_name": file_name, "tenant_id": tenant_id, "filter": str(filter_expression)}
        logger.info(f"Deleting slices of {file_name}", extra=log_extra)

        try:
            ids, found_count = await self._find_ids(filter_expression)
        except Exception as e:
            logger.error(f"Error looking up slices of {file_name}: {str(e)}", extra=log_extra, exc_info=True)
            return DeleteResult(success=False, document_id=file_name, error=str(e))

        if not ids:
            logger.info(f"No slices found for {file_name}", extra=log_extra)
            return DeleteResult(success=True, document_id=file_name, message="No documents found to delete")

        deleted_count = 0
        errors: List[str] = []
        for start in range(0, len(ids), self.batch_size):
            batch_number = start // self.batch_size + 1
            batch = ids[start : start + self.batch_size]
            try:
                results = await self.store.delete_documents(batch)
                succeeded = sum(1 for r in results if r.succeeded)
                deleted_count += succeeded
                errors.extend(
                    f"Failed to delete {r.key}: {r.error_message}" for r in results if not r.succeeded
                )
                logger.info(
                    f"Batch {batch_number}: deleted {succeeded}/{len(batch)}",
                    extra={**log_extra, "batch_number": batch_number},
                )
            except Exception as e:
                errors.append(f"Batch {batch_number} failed: {str(e)}")
                logger.warning(
                    f"Batch {batch_number} failed: {str(e)}",
                    extra={**log_extra, "batch_number": batch_number},
                )

        success = not errors
        message = f"Deleted {deleted_count} of {found_count} documents for {file_name}"
        if success:
            logger.info(message, extra={**log_extra, "result_count": deleted_count})
        else:
            logger.warning(f"{message} with {len(errors)} errors", extra={**log_extra, "result_count": deleted_count})

        return DeleteResult(
            success=success,
            document_id=file_name,
            deleted_count=deleted_count,
            found_count=found_count,
            message=message,
            error=None if success else "; ".join(errors),
            errors=errors,
        )
