"""Target manifest assembly and persistence."""

import logging
import uuid
from typing import Sequence

import aiofiles
import aiofiles.os

from ..core.types import BlobDescriptor, ConversionConfig, TargetManifest
from ..exceptions import ManifestWriteError
from .layout import BlobStoreLayout

logger = logging.getLogger(__name__)


def assemble_manifest(
    config_descriptor: BlobDescriptor,
    layer_descriptors: Sequence[BlobDescriptor],
    config: ConversionConfig = ConversionConfig(),
) -> TargetManifest:
    """Build a v2 manifest; layers keep the order they are given in."""
    return TargetManifest(
        schema_version=config.manifest_version,
        media_type=config.manifest_media_type,
        config=config_descriptor,
        layers=tuple(layer_descriptors),
    )


async def persist_manifest(manifest: TargetManifest, layout: BlobStoreLayout) -> None:
    """Write the manifest as UTF-8 JSON to ``manifests/<manifest_name>``.

    The document is written to a sibling temporary file first and renamed
    into place.

    Raises:
        ManifestWriteError: If the file cannot be written
    """
    dest = layout.manifest_path
    temp_path = dest.with_name(f".{dest.name}.{uuid.uuid4().hex[:12]}.tmp")

    try:
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(manifest.to_json())
        await aiofiles.os.replace(temp_path, dest)
    except OSError as e:
        try:
            await aiofiles.os.remove(temp_path)
        except OSError:
            logger.debug(f"No temporary manifest to remove at {temp_path}")
        raise ManifestWriteError(f"Cannot write manifest: {e}", dest) from e

    logger.info(f"Wrote manifest with {len(manifest.layers)} layers to {dest}")
