"""
Tests for the per-photo workspace.
"""

import os
import threading
import time

import pytest

from rawdesk.io import workspace
from rawdesk.io.workspace import Workspace, prune_workspaces, workspace_name


class TestWorkspaceLayout:
    """Test workspace location and staged files."""

    def test_directory_is_deterministic(self, photo, workspace_root):
        with Workspace.open(photo, workspace_root) as first:
            directory = first.directory
        with Workspace.open(photo, workspace_root) as second:
            assert second.directory == directory
        assert directory.name == workspace_name(photo.resolve())
        assert len(directory.name) == 20

    def test_different_photos_differ(self, photo_dir, workspace_root):
        a = photo_dir / "a.NEF"
        b = photo_dir / "b.NEF"
        a.write_bytes(b"a")
        b.write_bytes(b"b")
        with Workspace.open(a, workspace_root) as wa, Workspace.open(b, workspace_root) as wb:
            assert wa.directory != wb.directory

    def test_origin_is_staged_link(self, photo, workspace_root):
        with Workspace.open(photo, workspace_root) as wk:
            assert wk.origin().name == "orig.NEF"
            assert os.path.samefile(wk.origin(), photo)
            assert wk.orig_xmp().name == "orig.xmp"

    def test_fresh_workspace_has_no_caches(self, photo, workspace_root):
        with Workspace.open(photo, workspace_root) as wk:
            assert not wk.has_edit
            assert not wk.has_pixels

    def test_existing_caches_reported(self, photo, workspace_root):
        with Workspace.open(photo, workspace_root) as wk:
            wk.edit_cache().write_bytes(b"edit")
            wk.pixel_cache().write_bytes(b"pixels")
        with Workspace.open(photo, workspace_root) as wk:
            assert wk.has_edit
            assert wk.has_pixels


class TestScratch:
    """Test scratch files."""

    def test_scratch_unique_per_handle(self, photo, workspace_root):
        with Workspace.open(photo, workspace_root) as wk:
            first = wk.scratch()
            assert wk.scratch() == first
        with Workspace.open(photo, workspace_root) as wk:
            assert wk.scratch() != first

    def test_close_removes_scratch_keeps_cache(self, photo, workspace_root):
        wk = Workspace.open(photo, workspace_root)
        wk.scratch().write_bytes(b"temp")
        wk.jpeg().write_bytes(b"jpeg")
        wk.edit_cache().write_bytes(b"edit")
        scratch, jpeg = wk.scratch(), wk.jpeg()
        wk.close()

        assert not scratch.exists()
        assert not jpeg.exists()
        assert wk.edit_cache().exists()
        assert photo.read_bytes() == b"RAW IMG_0001"

    def test_close_is_idempotent(self, photo, workspace_root):
        wk = Workspace.open(photo, workspace_root)
        wk.close()
        wk.close()


class TestStaleness:
    """Test that caches built from another version of the photo are dropped."""

    def test_modified_source_invalidates_caches(self, photo, workspace_root):
        with Workspace.open(photo, workspace_root) as wk:
            wk.edit_cache().write_bytes(b"edit")
            wk.pixel_cache().write_bytes(b"pixels")

        photo.unlink()
        photo.write_bytes(b"RAW IMG_0001 re-exported by camera tool")

        with Workspace.open(photo, workspace_root) as wk:
            assert not wk.has_edit
            assert not wk.has_pixels
            assert not wk.edit_cache().exists()
            assert wk.origin().read_bytes() == photo.read_bytes()

    def test_same_source_keeps_caches(self, photo, workspace_root):
        with Workspace.open(photo, workspace_root) as wk:
            wk.edit_cache().write_bytes(b"edit")
        with Workspace.open(photo, workspace_root) as wk:
            assert wk.has_edit

    def test_missing_photo(self, photo_dir, workspace_root):
        with pytest.raises(FileNotFoundError):
            Workspace.open(photo_dir / "missing.NEF", workspace_root)

    def test_missing_photo_releases_lock(self, photo_dir, workspace_root):
        missing = photo_dir / "later.NEF"
        with pytest.raises(FileNotFoundError):
            Workspace.open(missing, workspace_root)
        missing.write_bytes(b"raw")
        Workspace.open(missing, workspace_root).close()


class TestLocking:
    """Test that one photo's workspace is used by one operation at a time."""

    def test_second_open_waits_for_close(self, photo, workspace_root):
        first = Workspace.open(photo, workspace_root)
        opened = threading.Event()

        def open_again():
            with Workspace.open(photo, workspace_root):
                opened.set()

        thread = threading.Thread(target=open_again)
        thread.start()
        assert not opened.wait(0.2)

        first.close()
        assert opened.wait(5)
        thread.join(5)

    def test_locks_dropped_when_released(self, photo_dir, workspace_root):
        directories = []
        for i in range(3):
            path = photo_dir / f"IMG_{i}.NEF"
            path.write_bytes(b"raw")
            with Workspace.open(path, workspace_root) as wk:
                directories.append(wk.directory)
        assert not set(directories) & set(workspace._dir_locks)

    def test_lock_kept_while_held(self, photo, workspace_root):
        with Workspace.open(photo, workspace_root) as wk:
            assert wk.directory in workspace._dir_locks
        assert wk.directory not in workspace._dir_locks


class TestPrune:
    """Test workspace pruning."""

    def test_prunes_old_workspaces(self, photo, workspace_root):
        with Workspace.open(photo, workspace_root) as wk:
            directory = wk.directory
        old = time.time() - 48 * 3600
        os.utime(directory, (old, old))

        assert prune_workspaces(workspace_root, 24) == 1
        assert not directory.exists()
        assert photo.exists()

    def test_keeps_recent_workspaces(self, photo, workspace_root):
        with Workspace.open(photo, workspace_root) as wk:
            directory = wk.directory
        assert prune_workspaces(workspace_root, 24) == 0
        assert directory.exists()

    def test_skips_open_workspaces(self, photo, workspace_root):
        with Workspace.open(photo, workspace_root) as wk:
            old = time.time() - 48 * 3600
            os.utime(wk.directory, (old, old))
            assert prune_workspaces(workspace_root, 24) == 0

    def test_missing_root(self, tmp_path):
        assert prune_workspaces(tmp_path / "nope", 24) == 0

    def test_relative_root_sees_open_workspaces(self, photo, workspace_root, monkeypatch):
        monkeypatch.chdir(workspace_root.parent)
        with Workspace.open(photo, workspace_root) as wk:
            old = time.time() - 48 * 3600
            os.utime(wk.directory, (old, old))
            assert prune_workspaces(workspace_root.name, 24) == 0
            assert wk.directory.exists()
