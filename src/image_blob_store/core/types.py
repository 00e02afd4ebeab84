"""Core data types for image blob store conversion."""

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

MANIFEST_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.v2+json"
CONFIG_MEDIA_TYPE = "application/vnd.docker.container.image.v1+json"
LAYER_MEDIA_TYPE = "application/vnd.docker.image.rootfs.diff.tar.gzip"

RepositoryIndex = dict[str, dict[str, str]]


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ConversionConfig:
    """Immutable settings for one conversion run.

    Attributes:
        manifest_version: schemaVersion written to the target manifest
        manifest_media_type: mediaType of the target manifest
        config_media_type: mediaType of the config descriptor
        layer_media_type: mediaType of every layer descriptor
        work_dir_name: Directory under the destination root holding images
        manifest_name: File name of the manifest under ``manifests/``
        config_suffix: Suffix stripped from the config file name to get its digest
        chunk_size: Bytes read per iteration while streaming a layer
        max_concurrency: Maximum number of layers streamed at once
        verify_config: Rehash the config blob instead of trusting its file name
        fsync: Flush blobs to disk before renaming them into place
        cleanup_source: Remove the source staging directory when the run ends
    """

    manifest_version: int = 2
    manifest_media_type: str = MANIFEST_MEDIA_TYPE
    config_media_type: str = CONFIG_MEDIA_TYPE
    layer_media_type: str = LAYER_MEDIA_TYPE
    work_dir_name: str = "work"
    manifest_name: str = "latest-v2"
    config_suffix: str = ".json"
    chunk_size: int = 65536
    max_concurrency: int = 8
    verify_config: bool = False
    fsync: bool = True
    cleanup_source: bool = True

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.max_concurrency <= 0:
            raise ValueError(
                f"max_concurrency must be positive, got {self.max_concurrency}"
            )

    @classmethod
    def from_env(cls, **overrides: Any) -> "ConversionConfig":
        """Build a config from ``IMAGE_BLOB_STORE_*`` environment variables.

        Environment Variables:
            IMAGE_BLOB_STORE_CHUNK_SIZE: Streaming chunk size. Default: 65536
            IMAGE_BLOB_STORE_MAX_CONCURRENCY: Concurrent layer streams. Default: 8
            IMAGE_BLOB_STORE_VERIFY_CONFIG: Rehash the config blob. Default: false
            IMAGE_BLOB_STORE_FSYNC: fsync blobs before rename. Default: true

        Keyword arguments override the environment (``None`` values are ignored).
        """
        values: dict[str, Any] = {
            "chunk_size": int(os.getenv("IMAGE_BLOB_STORE_CHUNK_SIZE", "65536")),
            "max_concurrency": int(
                os.getenv("IMAGE_BLOB_STORE_MAX_CONCURRENCY", "8")
            ),
            "verify_config": _env_bool("IMAGE_BLOB_STORE_VERIFY_CONFIG", False),
            "fsync": _env_bool("IMAGE_BLOB_STORE_FSYNC", True),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass(frozen=True)
class SourceManifestEntry:
    """One element of a ``docker save`` manifest.json list."""

    config: str
    layers: tuple[str, ...]
    repo_tags: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SourceManifestEntry":
        return cls(
            config=data["Config"],
            layers=tuple(data["Layers"]),
            repo_tags=tuple(data.get("RepoTags") or ()),
        )


@dataclass(frozen=True)
class BlobDescriptor:
    """Content-addressed reference to a blob in the store."""

    media_type: str
    digest: str
    size: int

    def to_dict(self) -> dict[str, Any]:
        return {"mediaType": self.media_type, "digest": self.digest, "size": self.size}


@dataclass(frozen=True)
class TargetManifest:
    """Docker image manifest v2 (schema 2) document."""

    schema_version: int
    media_type: str
    config: BlobDescriptor
    layers: tuple[BlobDescriptor, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "mediaType": self.media_type,
            "config": self.config.to_dict(),
            "layers": [layer.to_dict() for layer in self.layers],
        }

    def to_json(self) -> str:
        """Serialize to compact JSON with a stable key order."""
        return json.dumps(self.to_dict(), separators=(",", ":"))


class PipelineStage(str, Enum):
    """States of a conversion run."""

    INIT = "init"
    METADATA_LOADED = "metadata_loaded"
    LAYOUT_READY = "layout_ready"
    BLOBS_RELOCATED = "blobs_relocated"
    MANIFEST_WRITTEN = "manifest_written"
    DONE = "done"
    FAILED = "failed"
