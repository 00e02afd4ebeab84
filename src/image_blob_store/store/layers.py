"""Streaming layer hashing and relocation."""

import asyncio
import hashlib
import logging
import os
import uuid
from pathlib import Path, PurePosixPath
from typing import Union

import aiofiles
import aiofiles.os

from ..core.types import BlobDescriptor, ConversionConfig
from ..exceptions import LayerReadError, LayerWriteError
from .layout import BlobStoreLayout

logger = logging.getLogger(__name__)


def layer_segment(relative_layer_path: str) -> str:
    """Return the source-side hash segment of a layer path.

    ``<hash>/layer.tar`` gives ``<hash>``; a bare file name gives the name.
    The segment only locates the file, it is not the layer digest.
    """
    parts = PurePosixPath(relative_layer_path).parts
    segment = parts[0] if len(parts) > 1 else PurePosixPath(relative_layer_path).name
    return segment.replace(os.sep, "_") or "layer"


async def _discard(path: Path) -> None:
    """Remove a temporary file, logging if that fails."""
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Cannot remove temporary file {path}: {e}")


async def _stream_to_staging(
    source: Path, temp_path: Path, relative_layer_path: str, config: ConversionConfig
) -> str:
    """Copy source to temp_path while hashing it.

    The temporary file is removed on any failure.

    Returns:
        Lowercase sha256 hex digest of the copied bytes
    """
    hasher = hashlib.sha256()

    try:
        src = await aiofiles.open(source, "rb")
    except OSError as e:
        raise LayerReadError(f"Cannot open layer {relative_layer_path}: {e}", source) from e

    try:
        try:
            dst = await aiofiles.open(temp_path, "wb")
        except OSError as e:
            raise LayerWriteError(f"Cannot create {temp_path}: {e}", temp_path) from e

        try:
            while True:
                try:
                    chunk = await src.read(config.chunk_size)
                except OSError as e:
                    raise LayerReadError(
                        f"Cannot read layer {relative_layer_path}: {e}", source
                    ) from e
                if not chunk:
                    break

                hasher.update(chunk)
                await dst.write(chunk)

            await dst.flush()
            if config.fsync:
                loop = asyncio.get_event_loop()
                await loop.run_in_executor(None, os.fsync, dst.fileno())
        finally:
            await dst.close()
    except OSError as e:
        await _discard(temp_path)
        raise LayerWriteError(f"Cannot write {temp_path}: {e}", temp_path) from e
    except BaseException:
        await _discard(temp_path)
        raise
    finally:
        await src.close()

    return hasher.hexdigest()


async def process_layer(
    source_dir: Union[str, Path],
    layout: BlobStoreLayout,
    relative_layer_path: str,
    config: ConversionConfig = ConversionConfig(),
) -> BlobDescriptor:
    """Hash a layer while copying it, then publish it under its digest.

    The layer is streamed into a private temporary file, the digest is
    finalised, the file is renamed to ``blobs/sha256:<digest>`` and only
    then is the descriptor built from the final file. Concurrent calls
    share no state.

    Args:
        source_dir: Directory holding the extracted bundle
        layout: Destination layout of the image
        relative_layer_path: Entry of the manifest ``Layers`` list
        config: Conversion settings

    Returns:
        Descriptor of the published layer blob

    Raises:
        LayerReadError: If the source layer cannot be opened or read
        LayerWriteError: If the temporary file cannot be written or renamed
    """
    source = Path(source_dir) / relative_layer_path
    temp_name = f"{layer_segment(relative_layer_path)}.{uuid.uuid4().hex[:12]}.tmp"
    temp_path = layout.staging_path(temp_name)

    logger.info(f"Processing layer {relative_layer_path}")
    hex_digest = await _stream_to_staging(source, temp_path, relative_layer_path, config)

    digest = f"sha256:{hex_digest}"
    dest = layout.blob_path(digest)
    try:
        await aiofiles.os.replace(temp_path, dest)
    except OSError as e:
        await _discard(temp_path)
        raise LayerWriteError(f"Cannot move layer to {dest}: {e}", dest) from e

    try:
        stat = await aiofiles.os.stat(dest)
    except OSError as e:
        raise LayerWriteError(f"Cannot stat layer blob: {e}", dest) from e

    logger.debug(f"Layer {relative_layer_path} -> {digest} ({stat.st_size} bytes)")
    return BlobDescriptor(
        media_type=config.layer_media_type, digest=digest, size=stat.st_size
    )
