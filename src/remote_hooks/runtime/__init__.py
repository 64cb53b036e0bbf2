"""Execution engine and the caching hook loader."""
