"""Reading docker save bundles."""

from .extract import extract_bundle, extract_bundle_sync
from .metadata import read_index, read_manifest_list
from .names import first_reference, normalize_image_name

__all__ = [
    "extract_bundle",
    "extract_bundle_sync",
    "first_reference",
    "normalize_image_name",
    "read_index",
    "read_manifest_list",
]
