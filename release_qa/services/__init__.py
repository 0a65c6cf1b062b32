"""Shared services: HTTP, retry, concurrency, scoring and rule catalog."""
