"""Utility functions for image blob store conversion."""

from .digest import calculate_file_digest, is_sha256_hex, validate_digest

__all__ = [
    "calculate_file_digest",
    "is_sha256_hex",
    "validate_digest",
]
