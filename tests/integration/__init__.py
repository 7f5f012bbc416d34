"""Integration tests (SQLite via aiosqlite, fakeredis)."""
