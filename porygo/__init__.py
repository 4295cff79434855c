"""Concurrent web scraper with retries, an SQLite response cache and CSS/regex extraction."""

__version__ = "0.1.0"
__all__ = ["__version__"]