"""Confluence REST client, content models and error types."""
