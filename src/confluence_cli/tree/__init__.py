"""Exclusion patterns, descendant discovery and tree building."""
