"""Content-addressed blob store writers."""

from .config import config_digest_from_path, relocate_config
from .layers import layer_segment, process_layer
from .layout import BlobStoreLayout, prepare_layout, validate_image_name
from .manifest import assemble_manifest, persist_manifest
from .package import package_tree, package_tree_sync

__all__ = [
    "BlobStoreLayout",
    "assemble_manifest",
    "config_digest_from_path",
    "layer_segment",
    "package_tree",
    "package_tree_sync",
    "persist_manifest",
    "prepare_layout",
    "process_layer",
    "relocate_config",
    "validate_image_name",
]
