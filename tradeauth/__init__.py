"""Token lifecycle and multi-tier caching for the trading platform backend."""

__version__ = "0.1.0"
