"""Check providers, one per test type."""
