"""Live page-tree copy and dry-run previews."""
