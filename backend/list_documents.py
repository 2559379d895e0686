"""Utility script to list the indexed documents of a tenant."""
import asyncio
import sys
from typing import Optional

from docindex.config import Settings
from docindex.services.index_service import NoStructuredIndexService


async def list_documents(
    tenant_id: str,
    file_name: Optional[str] = None,
    query: Optional[str] = None,
    db_path: Optional[str] = None,
):
    """
    Print the metadata-only document listing of a tenant.

    Args:
        tenant_id: Tenant whose documents are listed
        file_name: Optional single file
        query: Optional free-text query
        db_path: Qdrant directory, overrides QDRANT_DB_PATH
    """
    overrides = {"tracing_enabled": False}
    if db_path:
        overrides["qdrant_db_path"] = db_path
    settings = Settings(**overrides)

    service = NoStructuredIndexService.from_settings(settings)
    if not service.is_available:
        print("❌ Search store not configured. Set QDRANT_URL or QDRANT_DB_PATH.")
        sys.exit(1)

    try:
        documents = await service.list_documents(tenant_id, file_name=file_name, query=query)

        if not documents:
            print(f"📭 No documents found for tenant {tenant_id}.")
            return

        print(f"\n📚 Found {len(documents)} document(s) in {settings.search_index_name}:\n")
        print("=" * 80)

        for idx, doc in enumerate(documents, 1):
            print(f"\n{idx}. {doc.document_id}")
            print(f"   Category: {doc.category or 'N/A'}")
            print(f"   Path: {doc.file_path or 'N/A'}")
            print(f"   Chapters: {doc.total_chapters}")
            print(f"   Tokens: {doc.total_tokens}")
            print(f"   Pages: {doc.total_pages}")
            print(f"   Processed: {doc.processed_at}")
            print("-" * 80)

        print(f"\n✅ Total: {len(documents)} document(s)")

    finally:
        await service.close()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(
        description="List the indexed documents of a tenant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python list_documents.py twin-42
  python list_documents.py twin-42 --file Lease.pdf
  python list_documents.py twin-42 --query "rent" --db-path ./qdrant_db
        """
    )
    parser.add_argument("tenant_id", help="Tenant (twin) id")
    parser.add_argument("--file", default=None, help="Only list this file")
    parser.add_argument("--query", default=None, help="Free-text query")
    parser.add_argument("--db-path", default=None, help="Path to Qdrant directory (default: QDRANT_DB_PATH)")

    args = parser.parse_args()

    print(f"🔍 Listing documents for {args.tenant_id}...")
    asyncio.run(list_documents(args.tenant_id, args.file, args.query, args.db_path))
