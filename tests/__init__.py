"""Test suite for tradeauth.

- unit/: Domain logic, services and middleware with mocked dependencies
- integration/: Repositories and caches against SQLite and fakeredis
- api/: HTTP endpoints through the application factory
"""
