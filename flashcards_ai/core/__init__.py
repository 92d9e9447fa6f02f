"""Shared helpers: logging and backoff."""
