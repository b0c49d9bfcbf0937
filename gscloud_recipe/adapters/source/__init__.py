"""Source acquisition adapters."""
