"""Infrastructure adapters: cache, persistence, security, logging, jobs."""
