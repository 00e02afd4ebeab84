"""Test configuration and fixtures."""

import pytest
import pytest_asyncio

from image_blob_store import BlobStoreLayout, ConversionConfig
from tests.helpers import make_bundle


@pytest.fixture
def config():
    """Conversion config without fsync and without deleting test sources."""
    return ConversionConfig(fsync=False, cleanup_source=False)


@pytest.fixture
def bundle(tmp_path):
    """Extracted bundle with a registry-qualified reference and two layers."""
    return make_bundle(tmp_path / "source")


@pytest.fixture
def dest_root(tmp_path):
    path = tmp_path / "dest"
    path.mkdir()
    return path


@pytest_asyncio.fixture
async def layout(dest_root, config):
    """Prepared layout for image team/app."""
    layout = BlobStoreLayout.for_image(dest_root, "team/app", config)
    await layout.prepare()
    return layout


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")
