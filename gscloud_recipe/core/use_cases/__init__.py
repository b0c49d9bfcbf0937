"""Use cases — one module per CLI operation."""
