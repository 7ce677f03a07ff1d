"""
File operations for rawdesk

Every file that becomes visible at a public path goes through a staging
file in the destination directory and an atomic rename, so readers see
either the old content or the complete new content.
"""

import errno
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Union
import logging

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Windows ERROR_NOT_SAME_DEVICE
_WIN_NOT_SAME_DEVICE = 17

MAX_NAME_ATTEMPTS = 10000

_NUMBERED_NAME_RE = re.compile(r'\A(.*?)(?: \((\d{1,4})\))?(\.\w*)?\Z', re.DOTALL)


def is_cross_device(error: OSError) -> bool:
    """Whether a rename/link failed because source and target are on different devices."""
    if getattr(error, 'winerror', None) == _WIN_NOT_SAME_DEVICE:
        return True
    return error.errno == errno.EXDEV


def copy_file(src: PathLike, dst: PathLike) -> None:
    """Copy file contents (not metadata) from src to dst."""
    shutil.copyfile(src, dst)


def move_file(src: PathLike, dst: PathLike) -> None:
    """
    Move src to dst, replacing dst.

    A rename across devices falls back to copy-then-delete-source.
    """
    try:
        os.replace(src, dst)
    except OSError as e:
        if not is_cross_device(e):
            raise
        logger.debug(f"Cross-device move, copying: {src} -> {dst}")
        copy_file(src, dst)
        try:
            os.remove(src)
        except FileNotFoundError:
            pass


def link_file(src: PathLike, dst: PathLike) -> None:
    """
    Hard link src at dst, or copy when the two are on different devices.

    Does nothing if dst already is src.
    """
    try:
        if os.path.samefile(src, dst):
            return
    except FileNotFoundError:
        pass

    try:
        os.link(src, dst)
    except OSError as e:
        if not is_cross_device(e):
            raise
        copy_file(src, dst)


def _staging_path(dest: Path) -> Path:
    fd, name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent)
    os.close(fd)
    return Path(name)


def publish_file(src: PathLike, dest: PathLike, move: bool = False) -> Path:
    """
    Atomically replace dest with the content of src.

    The content is first moved (or copied) into a staging file next to dest,
    then renamed over dest. If anything fails dest is left untouched.

    Args:
        src: Finished file, usually a workspace scratch file
        dest: Public destination
        move: Consume src instead of copying it

    Returns:
        The destination path
    """
    dest = Path(dest)
    staging = _staging_path(dest)
    try:
        if move:
            move_file(src, staging)
        else:
            copy_file(src, staging)
        os.replace(staging, dest)
    except BaseException:
        _discard(staging)
        raise
    return dest


def write_atomic(dest: PathLike, data: bytes) -> Path:
    """Atomically replace dest with data."""
    dest = Path(dest)
    staging = _staging_path(dest)
    try:
        with open(staging, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(staging, dest)
    except BaseException:
        _discard(staging)
        raise
    return dest


def unique_filename(desired: PathLike, exists: Callable[[Path], bool],
                    max_attempts: int = MAX_NAME_ATTEMPTS) -> Path:
    """
    Choose a name that does not exist yet.

    Tries ``name.ext``, then ``name (1).ext``, ``name (2).ext`` and so on.
    A name that already carries a counter continues from it.

    Args:
        desired: Preferred path
        exists: Predicate telling whether a candidate is taken
        max_attempts: Upper bound on candidates probed

    Returns:
        First free candidate

    Raises:
        FileExistsError: if every candidate is taken
    """
    candidate = Path(desired)
    for _ in range(max_attempts):
        if not exists(candidate):
            return candidate
        candidate = next_filename(candidate)
    raise FileExistsError(errno.EEXIST, "No free file name", str(desired))


def next_filename(path: Path) -> Path:
    """``a.jpg`` -> ``a (1).jpg``, ``a (1).jpg`` -> ``a (2).jpg``."""
    m = _NUMBERED_NAME_RE.match(path.name)
    stem, counter, ext = m.group(1), m.group(2), m.group(3) or ""
    n = int(counter) if counter else 0
    return path.with_name(f"{stem} ({n + 1}){ext}")


def write_new_file(desired: PathLike, data: bytes,
                   max_attempts: int = MAX_NAME_ATTEMPTS) -> Path:
    """
    Write data under a fresh name, never replacing an existing file.

    The data is staged next to the target and then hard-linked into place,
    which fails instead of overwriting if another writer won the name.

    Returns:
        The path actually written
    """
    desired = Path(desired)
    staging = _staging_path(desired)
    try:
        with open(staging, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        candidate = desired
        for _ in range(max_attempts):
            candidate = unique_filename(candidate, lambda p: p.exists(), max_attempts)
            try:
                os.link(staging, candidate)
                return candidate
            except FileExistsError:
                continue
        raise FileExistsError(errno.EEXIST, "No free file name", str(desired))
    finally:
        _discard(staging)


def _discard(path: PathLike) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
