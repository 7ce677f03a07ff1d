"""
Per-photo workspace

Each photo gets a directory under the workspace root, named after a hash of
its resolved path so repeated operations find the same caches:

- ``orig.<ext>``: the photo, hard linked (or copied) so it is never touched
- ``orig.xmp``: the photo's current edit metadata, next to ``orig.<ext>``
- ``edit.dng``: downscaled DNG reused across previews
- ``pixels.npy``: linear pixel samples for white balance picking
- ``source.json``: identity of the photo the caches were built from
- per-handle scratch files, removed on close
"""

import base64
import hashlib
import json
import os
import shutil
import tempfile
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Union
import logging

from rawdesk.utils.file_ops import link_file, write_atomic

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

STAMP_NAME = "source.json"

# Locks of workspaces in use, with the number of handles holding or waiting
_dir_locks: Dict[Path, List] = {}
_dir_locks_guard = threading.Lock()


def _acquire_dir_lock(directory: Path, blocking: bool = True) -> bool:
    with _dir_locks_guard:
        entry = _dir_locks.setdefault(directory, [threading.Lock(), 0])
        entry[1] += 1
    if entry[0].acquire(blocking):
        return True
    _drop_dir_lock(directory)
    return False


def _release_dir_lock(directory: Path):
    with _dir_locks_guard:
        _dir_locks[directory][0].release()
    _drop_dir_lock(directory)


def _drop_dir_lock(directory: Path):
    with _dir_locks_guard:
        entry = _dir_locks[directory]
        entry[1] -= 1
        if entry[1] == 0:
            del _dir_locks[directory]


def workspace_name(photo: PathLike) -> str:
    """Directory name for a photo: url-safe base64 of its path's md5 digest."""
    digest = hashlib.md5(str(photo).encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest[:15]).decode("ascii")


def _source_stamp(photo: Path) -> Dict:
    st = os.stat(photo)
    return {"path": str(photo), "size": st.st_size, "mtime_ns": st.st_mtime_ns}


class Workspace:
    """
    Handle on one photo's workspace.

    Use Workspace.open(); the handle holds the workspace's lock until closed,
    so operations on the same photo run one at a time.
    """

    def __init__(self, photo: Path, directory: Path):
        self.photo = photo
        self.directory = directory
        self._scratch: Optional[Path] = None
        self._jpeg: Optional[Path] = None
        self._closed = False

        self.has_edit = False
        self.has_pixels = False

    @classmethod
    def open(cls, photo: PathLike, root: PathLike) -> 'Workspace':
        """
        Open the workspace for photo under root.

        Stages the photo as the workspace origin and discards caches built
        from a different version of it.

        Raises:
            FileNotFoundError: if photo doesn't exist
        """
        photo = Path(photo).resolve()
        directory = Path(root).resolve() / workspace_name(photo)

        _acquire_dir_lock(directory)
        wk = cls(photo, directory)
        try:
            wk._prepare()
        except BaseException:
            wk.close()
            raise
        return wk

    def _prepare(self):
        stamp = _source_stamp(self.photo)
        self.directory.mkdir(parents=True, exist_ok=True)

        stamp_path = self.directory / STAMP_NAME
        try:
            previous = json.loads(stamp_path.read_text())
        except FileNotFoundError:
            previous = None
        except ValueError:
            logger.warning(f"Corrupt workspace stamp in {self.directory}, rebuilding")
            previous = None

        if previous != stamp:
            if previous is not None:
                logger.info(f"Source changed, discarding caches for {self.photo}")
            self.invalidate_caches()
            _remove(self.origin())
            write_atomic(stamp_path, json.dumps(stamp).encode("utf-8"))

        link_file(self.photo, self.origin())

        self.has_edit = self.edit_cache().exists()
        self.has_pixels = self.pixel_cache().exists()

        # Marks the workspace as recently used for pruning
        now = time.time()
        os.utime(self.directory, (now, now))

    def origin(self) -> Path:
        """The photo, staged inside the workspace."""
        return self.directory / ("orig" + self.photo.suffix)

    def orig_xmp(self) -> Path:
        """Edit metadata read by the converter when converting origin()."""
        return self.directory / "orig.xmp"

    def edit_cache(self) -> Path:
        return self.directory / "edit.dng"

    def pixel_cache(self) -> Path:
        return self.directory / "pixels.npy"

    def scratch(self) -> Path:
        """Private DNG path for this handle. The file itself doesn't exist yet."""
        if self._scratch is None:
            self._scratch = self._private_path(".dng")
        return self._scratch

    def jpeg(self) -> Path:
        """Private JPEG path for this handle."""
        if self._jpeg is None:
            self._jpeg = self._private_path(".jpg")
        return self._jpeg

    def _private_path(self, suffix: str) -> Path:
        fd, name = tempfile.mkstemp(prefix="temp.", suffix=suffix, dir=self.directory)
        os.close(fd)
        os.remove(name)
        return Path(name)

    def invalidate_caches(self):
        """Discard the edit cache and pixel cache."""
        _remove(self.edit_cache())
        _remove(self.pixel_cache())
        self.has_edit = False
        self.has_pixels = False

    def close(self):
        """Remove this handle's scratch files and release the workspace."""
        if self._closed:
            return
        self._closed = True
        try:
            for path in (self._scratch, self._jpeg):
                if path is None:
                    continue
                try:
                    _remove(path)
                except OSError as e:
                    logger.warning(f"Could not remove scratch file {path}: {e}")
        finally:
            _release_dir_lock(self.directory)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def prune_workspaces(root: PathLike, max_age_hours: float) -> int:
    """
    Delete workspaces not used for max_age_hours.

    Workspaces currently open in this process are skipped.

    Returns:
        Number of workspaces removed
    """
    root = Path(root).resolve()
    if not root.is_dir():
        return 0

    cutoff = time.time() - max_age_hours * 3600
    removed = 0
    for entry in root.iterdir():
        if not entry.is_dir():
            continue
        try:
            if entry.stat().st_mtime >= cutoff:
                continue
        except FileNotFoundError:
            continue

        if not _acquire_dir_lock(entry, blocking=False):
            continue
        try:
            shutil.rmtree(entry)
            removed += 1
            logger.debug(f"Pruned workspace {entry}")
        except OSError as e:
            logger.warning(f"Could not prune workspace {entry}: {e}")
        finally:
            _release_dir_lock(entry)

    logger.info(f"Pruned {removed} workspace(s) from {root}")
    return removed


def _remove(path: Path):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
