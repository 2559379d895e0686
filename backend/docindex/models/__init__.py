"""Chapter and result models."""
