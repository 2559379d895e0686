"""Logging, tracing and text utilities."""
