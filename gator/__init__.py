"""Command-line RSS feed aggregator with SQLite storage."""

__version__ = "0.1.0"

__all__ = ["__version__"]