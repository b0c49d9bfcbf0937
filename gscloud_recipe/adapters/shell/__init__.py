"""Adapters that run the built binary or touch the filesystem."""
