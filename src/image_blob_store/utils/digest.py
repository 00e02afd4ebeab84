"""Digest calculation and validation utilities."""

import hashlib
import re
from pathlib import Path
from typing import Union

import aiofiles

# Content-addressed blob name: sha256:<64 lowercase hex>
DIGEST_PATTERN = re.compile(r"^sha256:[a-f0-9]{64}$")

# Raw lowercase sha256 hex, as found in docker save file names
SHA256_HEX_PATTERN = re.compile(r"^[a-f0-9]{64}$")


async def calculate_file_digest(path: Union[str, Path], chunk_size: int = 65536) -> str:
    """Calculate the sha256 digest of a file without loading it into memory.

    Args:
        path: File to hash
        chunk_size: Bytes read per iteration

    Returns:
        Digest string in format "sha256:<hex>"

    Raises:
        OSError: If the file cannot be read
    """
    hasher = hashlib.sha256()
    async with aiofiles.open(path, "rb") as f:
        while True:
            chunk = await f.read(chunk_size)
            if not chunk:
                break
            hasher.update(chunk)
    return f"sha256:{hasher.hexdigest()}"


def is_sha256_hex(value: str) -> bool:
    """Check if value is a bare lowercase sha256 hex string."""
    return isinstance(value, str) and bool(SHA256_HEX_PATTERN.match(value))


def validate_digest(digest: str) -> bool:
    """Check if digest is a ``sha256:<hex>`` blob name."""
    return isinstance(digest, str) and bool(DIGEST_PATTERN.match(digest))
