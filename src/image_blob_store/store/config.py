"""Relocation of the image config blob into the blob store."""

import logging
from pathlib import Path, PurePosixPath
from typing import Union

import aiofiles.os

from ..core.types import BlobDescriptor, ConversionConfig
from ..exceptions import ConfigMissing, DigestMismatch, MetadataMalformed, RelocationFailed
from ..utils.digest import calculate_file_digest, is_sha256_hex
from .layout import BlobStoreLayout

logger = logging.getLogger(__name__)


def config_digest_from_path(config_path: str, suffix: str = ".json") -> str:
    """Derive the config digest from its file name.

    docker save names the config ``<hex>.json`` (or ``blobs/sha256/<hex>``
    in newer exports); the stem is the raw sha256 of its content.

    Returns:
        Digest string in format "sha256:hex"

    Raises:
        MetadataMalformed: If the stem is not a sha256 hex string
    """
    name = PurePosixPath(config_path).name
    if suffix and name.endswith(suffix):
        name = name[: -len(suffix)]

    if not is_sha256_hex(name):
        raise MetadataMalformed(
            f"Config file name does not encode a sha256 digest: {config_path}",
            config_path,
        )
    return f"sha256:{name}"


async def relocate_config(
    source_dir: Union[str, Path],
    layout: BlobStoreLayout,
    config_path: str,
    config: ConversionConfig = ConversionConfig(),
) -> BlobDescriptor:
    """Move the config blob to its content-addressed path.

    The move is a single rename: the file is either at the source or at
    the destination, never both.

    Args:
        source_dir: Directory holding the extracted bundle
        layout: Destination layout of the image
        config_path: ``Config`` path from manifest.json, relative to source_dir
        config: Conversion settings

    Returns:
        Descriptor of the relocated config blob

    Raises:
        MetadataMalformed: If the file name does not encode a digest
        ConfigMissing: If the config file does not exist
        DigestMismatch: If verification is enabled and the content differs
        RelocationFailed: If the rename or the final stat fails
    """
    digest = config_digest_from_path(config_path, config.config_suffix)
    source = Path(source_dir) / config_path

    if not await aiofiles.os.path.isfile(source):
        raise ConfigMissing(f"Config blob not found: {config_path}", source)

    if config.verify_config:
        try:
            actual = await calculate_file_digest(source, config.chunk_size)
        except OSError as e:
            raise ConfigMissing(f"Cannot read config {config_path}: {e}", source) from e
        if actual != digest:
            raise DigestMismatch(
                f"Config digest mismatch: expected {digest}, got {actual}", source
            )

    dest = layout.blob_path(digest)
    try:
        await aiofiles.os.rename(source, dest)
    except FileNotFoundError as e:
        raise ConfigMissing(f"Config blob disappeared: {config_path}", source) from e
    except OSError as e:
        raise RelocationFailed(f"Cannot move config to {dest}: {e}", source) from e

    try:
        stat = await aiofiles.os.stat(dest)
    except OSError as e:
        raise RelocationFailed(f"Cannot stat relocated config: {e}", dest) from e

    logger.debug(f"Relocated config {config_path} -> {dest.name} ({stat.st_size} bytes)")
    return BlobDescriptor(
        media_type=config.config_media_type, digest=digest, size=stat.st_size
    )
