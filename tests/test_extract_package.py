"""Tests for bundle extraction, end-to-end conversion and packaging."""

import json
import shutil
import tarfile
import tempfile

import pytest

from image_blob_store.bundle.extract import extract_bundle, extract_bundle_sync
from image_blob_store.core.types import ConversionConfig
from image_blob_store.exceptions import ExtractionError, PackagingError, PipelineError
from image_blob_store.pipeline import convert_bundle
from image_blob_store.store.package import package_tree, package_tree_sync
from tests.helpers import NonSeekableReader, make_bundle, make_bundle_tar, make_raw_tar


@pytest.fixture
def bundle_tar(tmp_path):
    bundle = make_bundle(tmp_path / "bundle")
    return bundle, make_bundle_tar(bundle.root, tmp_path / "image.tar")


@pytest.mark.asyncio
async def test_extract_from_path(bundle_tar, tmp_path):
    bundle, tar_path = bundle_tar
    dest = tmp_path / "extracted"
    dest.mkdir()

    await extract_bundle(tar_path, dest)

    assert (dest / "manifest.json").is_file()
    assert (dest / "repositories").is_file()
    assert (dest / bundle.layer_paths[0]).read_bytes() == (
        bundle.root / bundle.layer_paths[0]
    ).read_bytes()


@pytest.mark.asyncio
async def test_extract_from_stream(bundle_tar, tmp_path):
    """Test extraction from a non-seekable stream such as stdin."""
    bundle, tar_path = bundle_tar
    dest = tmp_path / "streamed"
    dest.mkdir()

    stream = NonSeekableReader(tar_path.read_bytes())
    assert not stream.seekable()

    await extract_bundle(stream, dest)

    assert (dest / bundle.config_path).is_file()


def test_extract_missing_file(tmp_path):
    with pytest.raises(ExtractionError, match="not found"):
        extract_bundle_sync(tmp_path / "nope.tar", tmp_path)


def test_extract_invalid_tar(tmp_path):
    invalid_tar = tmp_path / "invalid.tar"
    invalid_tar.write_bytes(b"definitely not a tar archive" * 40)

    with pytest.raises(ExtractionError):
        extract_bundle_sync(invalid_tar, tmp_path)


@pytest.mark.asyncio
async def test_convert_bundle(bundle_tar, tmp_path, monkeypatch):
    """Test the full path from a tar archive to a finished work tree."""
    bundle, tar_path = bundle_tar
    staging = tmp_path / "staging"
    staging.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(staging))
    config = ConversionConfig(fsync=False)

    work_root = await convert_bundle(tar_path, tmp_path / "out", config)

    assert work_root == tmp_path / "out" / "work"
    manifest = json.loads((work_root / "team" / "app" / "manifests" / "latest-v2").read_text())
    assert [layer["digest"] for layer in manifest["layers"]] == bundle.layer_digests
    assert list(staging.iterdir()) == []


@pytest.mark.asyncio
async def test_convert_bundle_keep_source(bundle_tar, tmp_path, monkeypatch):
    _, tar_path = bundle_tar
    staging = tmp_path / "staging"
    staging.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(staging))
    config = ConversionConfig(fsync=False, cleanup_source=False)

    await convert_bundle(tar_path, tmp_path / "out", config)

    kept = list(staging.glob("image_blob_store_src_*"))
    assert len(kept) == 1
    assert (kept[0] / "manifest.json").is_file()


@pytest.mark.asyncio
async def test_convert_bundle_creates_temporary_destination(bundle_tar):
    _, tar_path = bundle_tar

    work_root = await convert_bundle(tar_path, config=ConversionConfig(fsync=False))

    try:
        assert work_root.parent.name.startswith("image_blob_store_dest_")
        assert (work_root / "team" / "app" / "manifests" / "latest-v2").is_file()
    finally:
        shutil.rmtree(work_root.parent)


@pytest.mark.asyncio
async def test_convert_bundle_extraction_failure(tmp_path):
    with pytest.raises(PipelineError) as exc_info:
        await convert_bundle(tmp_path / "missing.tar", tmp_path / "out")

    assert exc_info.value.stage == "extract"
    assert isinstance(exc_info.value.cause, ExtractionError)


@pytest.mark.asyncio
async def test_convert_bundle_missing_metadata(tmp_path):
    tar_path = make_raw_tar(tmp_path / "bare.tar", {"dummy.txt": b"dummy"})

    with pytest.raises(PipelineError, match="repositories not found"):
        await convert_bundle(tar_path, tmp_path / "out", ConversionConfig(fsync=False))


@pytest.mark.asyncio
async def test_package_tree(bundle_tar, tmp_path):
    """Test the work tree is archived with its blobs and manifest."""
    _, tar_path = bundle_tar
    work_root = await convert_bundle(tar_path, tmp_path / "out", ConversionConfig(fsync=False))

    archive = await package_tree(work_root, tmp_path / "published.tar")

    with tarfile.open(archive) as tar:
        names = tar.getnames()
        members = tar.getmembers()
    assert "work/team/app/manifests/latest-v2" in names
    assert sum(1 for n in names if n.startswith("work/team/app/blobs/sha256:")) == 3
    assert all(member.mtime == 0 for member in members)


def test_package_missing_tree(tmp_path):
    with pytest.raises(PackagingError):
        package_tree_sync(tmp_path / "nope", tmp_path / "out.tar")


def test_extract_without_tar_filters(bundle_tar, tmp_path, monkeypatch):
    """Test the member check used when tarfile has no data filter."""
    monkeypatch.delattr(tarfile, "data_filter", raising=False)
    bundle, tar_path = bundle_tar
    dest = tmp_path / "fallback"
    dest.mkdir()

    extract_bundle_sync(tar_path, dest)

    assert (dest / bundle.config_path).is_file()


@pytest.mark.parametrize("member", ["../evil.txt", "/tmp/evil.txt", "a/../../evil.txt"])
def test_extract_rejects_escaping_members(tmp_path, monkeypatch, member):
    monkeypatch.delattr(tarfile, "data_filter", raising=False)
    tar_path = make_raw_tar(tmp_path / "hostile.tar", {member: b"evil"})
    dest = tmp_path / "staging" / "inner"
    dest.mkdir(parents=True)

    with pytest.raises(ExtractionError, match="Unsafe"):
        extract_bundle_sync(tar_path, dest)

    assert not (tmp_path / "staging" / "evil.txt").exists()
    assert not (tmp_path / "evil.txt").exists()


def test_extract_rejects_escaping_symlink(tmp_path, monkeypatch):
    monkeypatch.delattr(tarfile, "data_filter", raising=False)
    tar_path = tmp_path / "link.tar"
    with tarfile.open(tar_path, "w") as tar:
        info = tarfile.TarInfo("escape")
        info.type = tarfile.SYMTYPE
        info.linkname = "../../outside"
        tar.addfile(info)
    dest = tmp_path / "dest"
    dest.mkdir()

    with pytest.raises(ExtractionError, match="Unsafe link"):
        extract_bundle_sync(tar_path, dest)
