"""Build toolchain adapters."""
