"""Image Blob Store - convert docker save bundles into content-addressed blob stores."""

__version__ = "0.1.0"

from .bundle import normalize_image_name, read_index, read_manifest_list
from .core.types import (
    BlobDescriptor,
    ConversionConfig,
    PipelineStage,
    SourceManifestEntry,
    TargetManifest,
)
from .exceptions import (
    BlobStoreError,
    ConfigMissing,
    DigestMismatch,
    ExtractionError,
    FilesystemError,
    InputDefect,
    LayerReadError,
    LayerWriteError,
    LayoutError,
    ManifestWriteError,
    MetadataMalformed,
    MetadataNotFound,
    PackagingError,
    PipelineError,
    RelocationFailed,
)
from .pipeline import PipelineDriver, convert_bundle
from .store import (
    BlobStoreLayout,
    assemble_manifest,
    package_tree,
    persist_manifest,
    prepare_layout,
    process_layer,
    relocate_config,
)

__all__ = [
    "BlobDescriptor",
    "BlobStoreError",
    "BlobStoreLayout",
    "ConfigMissing",
    "ConversionConfig",
    "DigestMismatch",
    "ExtractionError",
    "FilesystemError",
    "InputDefect",
    "LayerReadError",
    "LayerWriteError",
    "LayoutError",
    "ManifestWriteError",
    "MetadataMalformed",
    "MetadataNotFound",
    "PackagingError",
    "PipelineDriver",
    "PipelineError",
    "PipelineStage",
    "RelocationFailed",
    "SourceManifestEntry",
    "TargetManifest",
    "assemble_manifest",
    "convert_bundle",
    "normalize_image_name",
    "package_tree",
    "persist_manifest",
    "prepare_layout",
    "process_layer",
    "read_index",
    "read_manifest_list",
    "relocate_config",
]
