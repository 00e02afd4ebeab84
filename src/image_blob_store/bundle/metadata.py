"""Metadata reader for extracted docker save bundles."""

import json
import logging
from pathlib import Path, PurePosixPath
from typing import Any, Union

import aiofiles

from ..core.types import RepositoryIndex, SourceManifestEntry
from ..exceptions import MetadataMalformed, MetadataNotFound

logger = logging.getLogger(__name__)

REPOSITORIES_FILE = "repositories"
MANIFEST_FILE = "manifest.json"


async def _read_json_file(source_dir: Union[str, Path], name: str) -> Any:
    """Read and parse a JSON file from the bundle root.

    Raises:
        MetadataNotFound: If the file does not exist
        MetadataMalformed: If the file is not valid UTF-8 JSON
    """
    path = Path(source_dir) / name
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()
    except FileNotFoundError as e:
        raise MetadataNotFound(f"{name} not found in bundle", path) from e
    except UnicodeDecodeError as e:
        raise MetadataMalformed(f"Cannot decode {name}: {e}", path) from e
    except OSError as e:
        raise MetadataNotFound(f"Cannot read {name}: {e}", path) from e

    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise MetadataMalformed(f"Invalid JSON in {name}: {e}", path) from e


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def is_bundle_relative(value: str) -> bool:
    """Check that a Config or Layers path stays inside the bundle directory."""
    if not value or "\x00" in value or "\\" in value:
        return False
    relative = PurePosixPath(value)
    return not relative.is_absolute() and ".." not in relative.parts


def parse_manifest_entry(entry: Any, path: Path) -> SourceManifestEntry:
    """Validate a raw manifest.json element and convert it.

    Config and Layers paths must be relative to the bundle root, so a
    hostile manifest cannot point the pipeline at files outside it.
    """
    if not isinstance(entry, dict):
        raise MetadataMalformed("Invalid manifest entry structure", path)

    if not isinstance(entry.get("Config"), str) or not entry["Config"]:
        raise MetadataMalformed("Manifest entry has no Config path", path)

    if not _is_string_list(entry.get("Layers")):
        raise MetadataMalformed("Manifest entry Layers must be a list of paths", path)

    for member in (entry["Config"], *entry["Layers"]):
        if not is_bundle_relative(member):
            raise MetadataMalformed(f"Path escapes the bundle: {member!r}", path)

    repo_tags = entry.get("RepoTags")
    if repo_tags is not None and not _is_string_list(repo_tags):
        raise MetadataMalformed("RepoTags must be a list", path)

    return SourceManifestEntry.from_dict(entry)


async def read_index(source_dir: Union[str, Path]) -> RepositoryIndex:
    """Read the ``repositories`` index of a bundle.

    Args:
        source_dir: Directory holding the extracted bundle

    Returns:
        Mapping of image reference to tag mapping

    Raises:
        MetadataNotFound: If ``repositories`` is absent
        MetadataMalformed: If it is not a non-empty JSON object
    """
    index = await _read_json_file(source_dir, REPOSITORIES_FILE)
    path = Path(source_dir) / REPOSITORIES_FILE

    if not isinstance(index, dict) or not index:
        raise MetadataMalformed("repositories must be a non-empty object", path)

    logger.debug(f"Read repositories index with {len(index)} entries")
    return index


async def read_manifest_list(source_dir: Union[str, Path]) -> list[SourceManifestEntry]:
    """Read and validate ``manifest.json`` of a bundle.

    Args:
        source_dir: Directory holding the extracted bundle

    Returns:
        Manifest entries in file order

    Raises:
        MetadataNotFound: If ``manifest.json`` is absent
        MetadataMalformed: If it is not a non-empty array of valid entries
    """
    manifest_data = await _read_json_file(source_dir, MANIFEST_FILE)
    path = Path(source_dir) / MANIFEST_FILE

    if not isinstance(manifest_data, list) or not manifest_data:
        raise MetadataMalformed("manifest.json must be a non-empty array", path)

    entries = [parse_manifest_entry(entry, path) for entry in manifest_data]
    logger.debug(f"Read {len(entries)} manifest entries")
    return entries
