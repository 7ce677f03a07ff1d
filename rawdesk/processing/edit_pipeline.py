"""
Edit pipeline

Request-scoped sequences of converter and ExifTool calls that load, save,
preview and export the edits of one photo. Every operation runs inside the
photo's workspace, and every step waits for the previous one; a failing
step aborts the operation with the collaborator's error.
"""

import threading
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Union
import logging

from rawdesk.errors import OperationCancelled
from rawdesk.io.workspace import Workspace
from rawdesk.processing.resample import resample_jpeg
from rawdesk.processing.settings import EditSettings, ExportSettings
from rawdesk.processing.white_balance import WhiteBalance, extract_pixels, compute_white_balance
from rawdesk.utils.file_ops import move_file, publish_file, write_atomic, write_new_file
from rawdesk.utils.xmp_sidecar import SidecarResolver

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Long side of the downscaled DNG reused across previews
EDIT_CACHE_SIZE = 2560


class PreviewPath(Enum):
    """How a preview of a given size is rendered"""
    FULL_RESOLUTION = "full_resolution"  # convert the original at native size
    CACHED = "cached"                    # render from the existing edit cache
    CREATE_CACHE = "create_cache"        # build the edit cache, preview from it


def select_preview_path(size: int, has_edit_cache: bool) -> PreviewPath:
    """Pick the preview rendering path for a requested long side (0 = full)."""
    if size == 0:
        return PreviewPath.FULL_RESOLUTION
    if has_edit_cache:
        return PreviewPath.CACHED
    return PreviewPath.CREATE_CACHE


def export_path(photo: PathLike, export: ExportSettings) -> Path:
    """photo with its extension replaced by the export container's."""
    return Path(photo).with_suffix(export.extension)


def _check_cancel(cancel: Optional[threading.Event]):
    if cancel is not None and cancel.is_set():
        raise OperationCancelled("Operation cancelled")


class EditPipeline:
    """
    Load, save, preview and export edits.

    Collaborators are injected so the pipeline can be driven with fakes:
    ``converter`` needs ``convert(src, dst, side, export, cancel)`` and
    ``metadata`` the MetadataBridge commands.
    """

    def __init__(self, converter, metadata, workspace_root: PathLike,
                 edit_cache_size: int = EDIT_CACHE_SIZE):
        self.converter = converter
        self.metadata = metadata
        self.workspace_root = Path(workspace_root)
        self.edit_cache_size = edit_cache_size
        self.sidecars = SidecarResolver(metadata)

    def open_workspace(self, photo: PathLike) -> Workspace:
        """Open photo's workspace with its current edit metadata staged."""
        wk = Workspace.open(photo, self.workspace_root)
        try:
            self.sidecars.load_sidecar(wk.photo, wk.orig_xmp())
        except BaseException:
            wk.close()
            raise
        return wk

    def _resolve_white_balance(self, wk: Workspace, settings: EditSettings) -> EditSettings:
        if settings.needs_camera_matching:
            mode = self.metadata.camera_matching_white_balance(wk.origin())
            logger.debug(f"Camera matching white balance for {wk.photo}: {mode}")
            return settings.with_white_balance(mode)
        return settings

    def load_edit(self, photo: PathLike) -> EditSettings:
        """Current edit settings of photo; defaults if it has none."""
        with self.open_workspace(photo) as wk:
            if not wk.orig_xmp().exists():
                return EditSettings(filename=str(wk.photo))
            return self.metadata.load_xmp(wk.orig_xmp(), filename=str(wk.photo))

    def save_edit(self, photo: PathLike, settings: EditSettings,
                  cancel: Optional[threading.Event] = None) -> Path:
        """
        Persist edit settings where the photo's edits live.

        When the photo is an edited DNG it is re-rendered with the new
        settings and its original embedded, then replaced atomically.
        Otherwise the sidecar is replaced atomically.

        Returns:
            The path written
        """
        with self.open_workspace(photo) as wk:
            settings = self._resolve_white_balance(wk, settings)
            self.metadata.edit_xmp(wk.orig_xmp(), settings, extension=wk.photo.suffix)

            dest = self.sidecars.destination(wk.photo)
            _check_cancel(cancel)

            if dest == wk.photo:
                export = ExportSettings(
                    dng=True,
                    embed=True,
                    preview=self.metadata.dng_preview_option(wk.origin()),
                )
                self.converter.convert(wk.origin(), wk.scratch(), 0, export, cancel)
                publish_file(wk.scratch(), dest, move=True)
            else:
                publish_file(wk.orig_xmp(), dest)

            logger.info(f"Saved edits for {wk.photo} to {dest}")
            return dest

    def preview_edit(self, photo: PathLike, size: int, settings: EditSettings,
                     cancel: Optional[threading.Event] = None) -> bytes:
        """
        JPEG preview of photo with settings applied.

        Args:
            photo: Source photo
            size: Long side in pixels; 0 for full resolution
            settings: Edit settings to preview (not saved)
            cancel: Cancellation signal

        Returns:
            JPEG bytes
        """
        with self.open_workspace(photo) as wk:
            settings = self._resolve_white_balance(wk, settings)
            path = select_preview_path(size, wk.has_edit)
            logger.debug(f"Preview of {wk.photo} at size {size}: {path.value}")

            if path == PreviewPath.FULL_RESOLUTION:
                self.metadata.edit_xmp(wk.orig_xmp(), settings)
                self.converter.convert(wk.origin(), wk.scratch(), 0, ExportSettings(), cancel)
                return self.metadata.preview_jpeg(wk.scratch())

            if path == PreviewPath.CACHED:
                self.metadata.edit_xmp(wk.edit_cache(), settings)
                side = min(size, self.edit_cache_size)
                self.converter.convert(wk.edit_cache(), wk.scratch(), side, None, cancel)
                return self.metadata.preview_jpeg(wk.scratch())

            self.metadata.edit_xmp(wk.orig_xmp(), settings)
            self._create_edit_cache(wk, cancel)
            return self.metadata.preview_jpeg(wk.edit_cache())

    def _create_edit_cache(self, wk: Workspace, cancel: Optional[threading.Event]):
        self.converter.convert(wk.origin(), wk.scratch(), self.edit_cache_size, None, cancel)
        move_file(wk.scratch(), wk.edit_cache())
        wk.has_edit = True

    def export_edit(self, photo: PathLike, settings: EditSettings, export: ExportSettings,
                    cancel: Optional[threading.Event] = None) -> bytes:
        """
        Render photo at full resolution with settings applied.

        Returns:
            DNG or JPEG bytes, according to export
        """
        with self.open_workspace(photo) as wk:
            settings = self._resolve_white_balance(wk, settings)
            self.metadata.edit_xmp(wk.orig_xmp(), settings)
            self.converter.convert(wk.origin(), wk.scratch(), 0, export, cancel)
            _check_cancel(cancel)

            if export.dng:
                self.metadata.fix_meta_dng(wk.origin(), wk.scratch(), wk.photo)
                return wk.scratch().read_bytes()

            data = self.metadata.export_jpeg(wk.scratch())
            if export.resample is not None:
                data = resample_jpeg(data, export.resample)
            _check_cancel(cancel)

            write_atomic(wk.jpeg(), data)
            self.metadata.inject_xmp(wk.scratch(), wk.jpeg())
            self.metadata.fix_meta_jpeg(wk.origin(), wk.jpeg())
            return wk.jpeg().read_bytes()

    def export_file(self, photo: PathLike, settings: EditSettings, export: ExportSettings,
                    output_dir: PathLike, cancel: Optional[threading.Event] = None) -> Path:
        """
        Export photo into output_dir without replacing existing files.

        Returns:
            The file written, ``name.dng``/``name.jpg`` or ``name (n).ext``
        """
        data = self.export_edit(photo, settings, export, cancel)
        _check_cancel(cancel)
        desired = Path(output_dir) / export_path(Path(photo).name, export)
        written = write_new_file(desired, data)
        logger.info(f"Exported {photo} to {written}")
        return written

    def load_white_balance(self, photo: PathLike, coords: Sequence[float],
                           cancel: Optional[threading.Event] = None) -> WhiteBalance:
        """Custom white balance neutralizing the point at normalised coords."""
        if len(coords) != 2:
            raise ValueError(f"expected (x, y) coordinates, got {list(coords)}")

        with self.open_workspace(photo) as wk:
            if not wk.has_edit:
                self._create_edit_cache(wk, cancel)

            if not wk.has_pixels:
                _check_cancel(cancel)
                staging = wk.directory / "pixels.tmp.npy"
                extract_pixels(wk.edit_cache(), staging)
                move_file(staging, wk.pixel_cache())
                wk.has_pixels = True

            return compute_white_balance(wk.pixel_cache(), coords)

    def get_meta(self, photo: PathLike) -> str:
        """Readable dump of photo's metadata."""
        return self.metadata.get_meta(Path(photo))
