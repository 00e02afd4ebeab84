"""Packaging of the finished work tree into a tar archive."""

import asyncio
import logging
import tarfile
from pathlib import Path
from typing import Union

from ..exceptions import PackagingError

logger = logging.getLogger(__name__)


def _reset_metadata(info: tarfile.TarInfo) -> tarfile.TarInfo:
    # Owner and timestamps vary between runs; blobs are identified by digest
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    info.mtime = 0
    return info


def package_tree_sync(work_root: Union[str, Path], archive_path: Union[str, Path]) -> Path:
    """Write work_root into an uncompressed tar archive (sync helper).

    Members are added in sorted order under the work directory's name.

    Raises:
        PackagingError: If the tree is missing or the archive cannot be written
    """
    root = Path(work_root)
    archive = Path(archive_path)
    if not root.is_dir():
        raise PackagingError(f"Work tree not found: {root}", root)

    try:
        with tarfile.open(archive, "w") as tar:
            tar.add(root, arcname=root.name, recursive=False, filter=_reset_metadata)
            for path in sorted(root.rglob("*")):
                arcname = Path(root.name) / path.relative_to(root)
                tar.add(
                    path,
                    arcname=arcname.as_posix(),
                    recursive=False,
                    filter=_reset_metadata,
                )
    except (tarfile.TarError, OSError) as e:
        raise PackagingError(f"Cannot write archive {archive}: {e}", archive) from e

    return archive


async def package_tree(work_root: Union[str, Path], archive_path: Union[str, Path]) -> Path:
    """Archive the work tree without blocking the event loop."""
    logger.info(f"Packaging {work_root} into {archive_path}")
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, package_tree_sync, work_root, archive_path)
