"""Test helpers for building synthetic docker save bundles."""

import hashlib
import io
import json
import tarfile
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_CONFIG = {
    "architecture": "amd64",
    "os": "linux",
    "created": "2024-01-01T00:00:00Z",
    "rootfs": {"type": "layers", "diff_ids": []},
}


@dataclass
class Bundle:
    """Paths and expected digests of a synthetic bundle."""

    root: Path
    reference: str
    config_path: str
    config_digest: str
    config_size: int
    layer_paths: list[str] = field(default_factory=list)
    layer_digests: list[str] = field(default_factory=list)
    layer_sizes: list[int] = field(default_factory=list)


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def layer_dir_name(index: int) -> str:
    """Source-side hash directory, deliberately unrelated to the content."""
    return f"{index + 1}" * 4 + f"{index + 2}" * 4 + "a" * 56


def make_bundle(
    root: Path,
    reference: str = "registry.example.com:5000/team/app",
    layers: list[bytes] | None = None,
    config: dict | None = None,
    tag: str = "latest",
) -> Bundle:
    """Write an extracted docker save bundle into root."""
    root.mkdir(parents=True, exist_ok=True)
    if layers is None:
        layers = [b"first layer data" * 64, b"second layer"]

    config_bytes = json.dumps(config or DEFAULT_CONFIG).encode("utf-8")
    config_hex = sha256_hex(config_bytes)
    config_path = f"{config_hex}.json"
    (root / config_path).write_bytes(config_bytes)

    bundle = Bundle(
        root=root,
        reference=reference,
        config_path=config_path,
        config_digest=f"sha256:{config_hex}",
        config_size=len(config_bytes),
    )

    for index, content in enumerate(layers):
        layer_path = f"{layer_dir_name(index)}/layer.tar"
        (root / layer_path).parent.mkdir(parents=True, exist_ok=True)
        (root / layer_path).write_bytes(content)
        bundle.layer_paths.append(layer_path)
        bundle.layer_digests.append(f"sha256:{sha256_hex(content)}")
        bundle.layer_sizes.append(len(content))

    write_metadata(root, {reference: {tag: config_hex}}, bundle.config_path, bundle.layer_paths)
    return bundle


def write_metadata(
    root: Path, repositories: dict, config_path: str, layer_paths: list[str]
) -> None:
    (root / "repositories").write_text(json.dumps(repositories))
    manifest = [{"Config": config_path, "RepoTags": [], "Layers": layer_paths}]
    (root / "manifest.json").write_text(json.dumps(manifest))


def make_bundle_tar(bundle_dir: Path, tar_path: Path) -> Path:
    """Pack an extracted bundle the way docker save lays it out."""
    with tarfile.open(tar_path, "w") as tar:
        for path in sorted(bundle_dir.rglob("*")):
            if path.is_file():
                tar.add(path, arcname=path.relative_to(bundle_dir).as_posix())
    return tar_path


def make_raw_tar(tar_path: Path, files: dict[str, bytes]) -> Path:
    """Create a tar file from in-memory members."""
    with tarfile.open(tar_path, "w") as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, fileobj=io.BytesIO(content))
    return tar_path


def blob_files(work_root: Path, image_name: str) -> list[Path]:
    return sorted((work_root / image_name / "blobs").iterdir())


class NonSeekableReader(io.RawIOBase):
    """Read-only byte stream that cannot seek, like a pipe on stdin."""

    def __init__(self, data: bytes) -> None:
        self._buffer = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        chunk = self._buffer.read(len(b))
        b[: len(chunk)] = chunk
        return len(chunk)
