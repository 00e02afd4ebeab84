"""Core types for image blob store conversion."""
