"""Recipe loading and runtime settings."""
