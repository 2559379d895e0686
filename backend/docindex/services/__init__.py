"""Index, search and deletion services."""
