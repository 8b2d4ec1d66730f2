"""Command-line surface for move-publish."""
