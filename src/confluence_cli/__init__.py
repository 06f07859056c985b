"""Command-line client for copying Confluence page trees."""

__version__ = "1.4.1"
