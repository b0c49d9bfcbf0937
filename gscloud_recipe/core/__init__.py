"""Core — domain models, services and use cases."""
