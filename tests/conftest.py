"""
Shared fixtures: fake collaborators and a pipeline wired to them.
"""

import pytest

from rawdesk.processing.edit_pipeline import EditPipeline

from fakes import FakeConverter, FakeMetadata


@pytest.fixture
def converter():
    return FakeConverter()


@pytest.fixture
def metadata():
    return FakeMetadata()


@pytest.fixture
def workspace_root(tmp_path):
    root = tmp_path / "workspaces"
    root.mkdir()
    return root


@pytest.fixture
def photo_dir(tmp_path):
    photos = tmp_path / "photos"
    photos.mkdir()
    return photos


@pytest.fixture
def photo(photo_dir):
    path = photo_dir / "IMG_0001.NEF"
    path.write_bytes(b"RAW IMG_0001")
    return path


@pytest.fixture
def pipeline(converter, metadata, workspace_root):
    return EditPipeline(converter, metadata, workspace_root)
