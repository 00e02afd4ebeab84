"""Destination tree layout for the content-addressed blob store."""

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Union

import aiofiles.os

from ..core.types import ConversionConfig
from ..exceptions import LayoutError, MetadataMalformed
from ..utils.digest import validate_digest

logger = logging.getLogger(__name__)


def validate_image_name(image_name: str) -> None:
    """Reject image names that would escape the work directory.

    Raises:
        MetadataMalformed: If the name is empty, absolute or has dot segments
    """
    if not image_name or "\\" in image_name or "\x00" in image_name:
        raise MetadataMalformed(f"Invalid image name: {image_name!r}")

    path = PurePosixPath(image_name)
    if path.is_absolute() or any(part in ("", ".", "..") for part in image_name.split("/")):
        raise MetadataMalformed(f"Unsafe image name: {image_name!r}")


@dataclass(frozen=True)
class BlobStoreLayout:
    """Paths of one image inside ``<dest_root>/<work>/<image_name>``."""

    dest_root: Path
    image_name: str
    work_dir_name: str = "work"
    manifest_name: str = "latest-v2"

    @classmethod
    def for_image(
        cls,
        dest_root: Union[str, Path],
        image_name: str,
        config: ConversionConfig = ConversionConfig(),
    ) -> "BlobStoreLayout":
        validate_image_name(image_name)
        return cls(
            dest_root=Path(dest_root),
            image_name=image_name,
            work_dir_name=config.work_dir_name,
            manifest_name=config.manifest_name,
        )

    @property
    def work_root(self) -> Path:
        return self.dest_root / self.work_dir_name

    @property
    def image_root(self) -> Path:
        return self.work_root / self.image_name

    @property
    def manifests_dir(self) -> Path:
        return self.image_root / "manifests"

    @property
    def blobs_dir(self) -> Path:
        return self.image_root / "blobs"

    @property
    def manifest_path(self) -> Path:
        return self.manifests_dir / self.manifest_name

    def blob_path(self, digest: str) -> Path:
        """Final location of a blob, named by its own digest."""
        if not validate_digest(digest):
            raise ValueError(f"Invalid digest format: {digest}")
        return self.blobs_dir / digest

    def staging_path(self, name: str) -> Path:
        """Private temporary file location in the destination staging area."""
        return self.dest_root / name

    async def prepare(self) -> None:
        """Create ``manifests/`` and ``blobs/`` for the image.

        Safe to call repeatedly and when parent directories are missing.

        Raises:
            LayoutError: If the filesystem refuses to create a directory
        """
        for directory in (self.manifests_dir, self.blobs_dir):
            try:
                await aiofiles.os.makedirs(directory, exist_ok=True)
            except OSError as e:
                raise LayoutError(f"Cannot create {directory}: {e}", directory) from e

        logger.debug(f"Prepared blob store layout at {self.image_root}")


async def prepare_layout(
    dest_root: Union[str, Path],
    image_name: str,
    config: ConversionConfig = ConversionConfig(),
) -> BlobStoreLayout:
    """Create the destination skeleton and return its layout."""
    layout = BlobStoreLayout.for_image(dest_root, image_name, config)
    await layout.prepare()
    return layout
