"""API endpoint tests."""
