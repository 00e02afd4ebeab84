"""Unpack docker save tar archives into a staging directory."""

import asyncio
import logging
import os
import tarfile
from pathlib import Path
from typing import BinaryIO, Union

from ..exceptions import ExtractionError

logger = logging.getLogger(__name__)

BundleSource = Union[str, Path, BinaryIO]


def _check_member(member: tarfile.TarInfo, dest_dir: Path) -> None:
    """Reject members that would land outside dest_dir.

    Only needed on interpreters whose tarfile has no extraction filters.
    """
    root = dest_dir.resolve()
    target = (root / member.name).resolve()
    if not target.is_relative_to(root):
        raise ExtractionError(f"Unsafe member path in bundle: {member.name}", dest_dir)

    if member.issym() or member.islnk():
        base = (root / member.name).parent if member.issym() else root
        link = (base / member.linkname).resolve()
        if os.path.isabs(member.linkname) or not link.is_relative_to(root):
            raise ExtractionError(
                f"Unsafe link in bundle: {member.name} -> {member.linkname}", dest_dir
            )
    elif member.isdev():
        raise ExtractionError(f"Device file in bundle: {member.name}", dest_dir)


def _extract_all(tar: tarfile.TarFile, dest_dir: Path) -> None:
    if hasattr(tarfile, "data_filter"):
        tar.extractall(dest_dir, filter="data")
        return

    for member in tar:
        _check_member(member, dest_dir)
        tar.extract(member, dest_dir)


def extract_bundle_sync(source: BundleSource, dest_dir: Union[str, Path]) -> Path:
    """Extract a tar archive into dest_dir (sync helper).

    Args:
        source: Path to the tar file, or a binary stream such as stdin
        dest_dir: Existing directory to extract into

    Returns:
        The destination directory

    Raises:
        ExtractionError: If the archive is missing or cannot be read
    """
    dest = Path(dest_dir)
    try:
        if isinstance(source, (str, Path)):
            if not Path(source).is_file():
                raise ExtractionError(f"Tar file not found: {source}", source)
            with tarfile.open(source, "r:*") as tar:
                _extract_all(tar, dest)
        else:
            # Streaming mode: stdin is not seekable
            with tarfile.open(fileobj=source, mode="r|*") as tar:
                _extract_all(tar, dest)
    except (tarfile.TarError, OSError) as e:
        raise ExtractionError(f"Cannot extract bundle: {e}", dest) from e

    return dest


async def extract_bundle(source: BundleSource, dest_dir: Union[str, Path]) -> Path:
    """Extract a tar archive into dest_dir without blocking the event loop."""
    logger.info(f"Extracting bundle into {dest_dir}")
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, extract_bundle_sync, source, dest_dir)
