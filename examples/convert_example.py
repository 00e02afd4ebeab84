"""Example conversion of a docker save archive into a blob store."""

import asyncio
import hashlib
import json
import logging
import sys
import tarfile
import tempfile
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, "src")

from image_blob_store import BlobStoreError, ConversionConfig, convert_bundle

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_simple_tar() -> str:
    """Create a small docker save style tar file."""
    config_content = json.dumps({"architecture": "amd64", "os": "linux"}).encode(
        "utf-8"
    )
    layer_content = b"dummy layer data"
    config_hash = hashlib.sha256(config_content).hexdigest()

    members = {
        "repositories": json.dumps(
            {"registry.example.com:5000/demo/app": {"latest": config_hash}}
        ).encode("utf-8"),
        "manifest.json": json.dumps(
            [
                {
                    "Config": f"{config_hash}.json",
                    "RepoTags": ["registry.example.com:5000/demo/app:latest"],
                    "Layers": ["0123abcd/layer.tar"],
                }
            ]
        ).encode("utf-8"),
        f"{config_hash}.json": config_content,
        "0123abcd/layer.tar": layer_content,
    }

    tar_path = tempfile.mktemp(suffix=".tar")
    with tarfile.open(tar_path, "w") as tar:
        for name, content in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, fileobj=tarfile.io.BytesIO(content))

    return tar_path


async def main():
    """Convert a demo archive and print the resulting manifest."""
    tar_path = create_simple_tar()

    try:
        work_root = await convert_bundle(tar_path, config=ConversionConfig(fsync=False))
        logger.info(f"✓ Blob store written to {work_root}")

        manifest_path = work_root / "demo" / "app" / "manifests" / "latest-v2"
        manifest = json.loads(manifest_path.read_text())
        logger.info(f"Config: {manifest['config']['digest']}")
        for layer in manifest["layers"]:
            logger.info(f"  Layer: {layer['digest']} ({layer['size']} bytes)")

    except BlobStoreError as e:
        logger.error(f"Conversion error: {e}")
    finally:
        Path(tar_path).unlink(missing_ok=True)


if __name__ == "__main__":
    asyncio.run(main())
