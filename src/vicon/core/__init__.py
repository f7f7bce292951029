"""Command generation core."""
