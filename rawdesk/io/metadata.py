"""
Metadata commands for rawdesk

Every metadata read or write the edit pipeline needs, expressed as an
ExifTool command against the shared server.
"""

import io
import json
import os
from pathlib import Path
from typing import Union
import logging

from PIL import Image

from rawdesk.errors import MetadataError
from rawdesk.processing.settings import EditSettings

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Camera white balance names Camera Raw understands as-is
_CRS_WHITE_BALANCE = {"Auto", "Daylight", "Cloudy", "Shade", "Tungsten", "Fluorescent", "Flash"}

_CAMERA_WHITE_BALANCE_ALIASES = {
    "Sunny": "Daylight",
    "Overcast": "Cloudy",
    "Incandescent": "Tungsten",
}

# Largest embedded preview the converter produces with -p1
MEDIUM_PREVIEW_SIZE = 1024


def crs_white_balance(camera_values) -> str:
    """
    Map camera white balance names to the Camera Raw equivalent.

    The first recognised name wins; nothing recognised means "As Shot".
    """
    for value in camera_values:
        value = value.strip()
        if value in _CRS_WHITE_BALANCE:
            return value
        if value in _CAMERA_WHITE_BALANCE_ALIASES:
            return _CAMERA_WHITE_BALANCE_ALIASES[value]
    return "As Shot"


class MetadataBridge:
    """ExifTool command contracts used by the edit pipeline"""

    def __init__(self, server):
        """
        Args:
            server: Started ExifToolServer (or anything with the same command())
        """
        self.server = server

    def get_meta(self, path: PathLike) -> str:
        """Human readable dump of every tag, grouped."""
        logger.info("exiftool (get meta)...")
        return self.server.command("-groupHeadings", "-long", "-fixBase", str(path))

    def extract_xmp(self, src: PathLike, dst: PathLike):
        """Write the XMP embedded in src as a standalone sidecar at dst."""
        try:
            os.remove(dst)
        except FileNotFoundError:
            pass

        logger.info("exiftool (extract xmp)...")
        self.server.command("-o", str(dst), str(src))

    def load_xmp(self, path: PathLike, filename: str = "") -> EditSettings:
        """Read edit settings from a sidecar (or any file carrying XMP)."""
        logger.info("exiftool (load xmp)...")
        out = self.server.command("-j", "-n", "-XMP-crs:all", "-XMP-tiff:Orientation", str(path))
        if not out.strip():
            return EditSettings(filename=filename)

        try:
            records = json.loads(out)
        except ValueError as e:
            raise MetadataError(f"Unreadable exiftool output for {path}: {e}") from e
        tags = records[0] if records else {}
        return EditSettings.from_xmp_tags(tags, filename=filename)

    def edit_xmp(self, path: PathLike, settings: EditSettings, extension: str = ""):
        """
        Write edit settings into the XMP file at path, in place.

        Args:
            path: XMP file to edit
            settings: Settings to write
            extension: Photo extension the sidecar is declared for, if any
        """
        args = settings.to_xmp_args()
        if extension:
            args.append(f"-XMP-photoshop:SidecarForExtension={extension.lstrip('.').upper()}")

        logger.info("exiftool (edit xmp)...")
        self.server.command(*args, "-overwrite_original", str(path))

    def fix_meta_dng(self, orig: PathLike, dest: PathLike, name: PathLike = None):
        """
        Restore provenance on a converted DNG.

        Copies maker notes from the original and records the original RAW
        file name (the user-facing name rather than the workspace copy).
        """
        args = ["-tagsFromFile", str(orig), "-fixBase", "-MakerNotes",
                f"-OriginalRawFileName-={os.path.basename(orig)}"]
        if name:
            args.append(f"-OriginalRawFileName={os.path.basename(name)}")
        args += ["-overwrite_original", str(dest)]

        logger.info("exiftool (fix dng)...")
        self.server.command(*args)

    def inject_xmp(self, orig: PathLike, dest: PathLike):
        """Copy metadata, including the develop settings, from orig into dest."""
        logger.info("exiftool (inject xmp)...")
        self.server.command("-tagsFromFile", str(orig), "-overwrite_original", str(dest))

    def fix_meta_jpeg(self, orig: PathLike, dest: PathLike):
        """Copy descriptive EXIF, GPS, IPTC and Dublin Core tags into a JPEG."""
        logger.info("exiftool (fix jpeg)...")
        self.server.command(
            "-tagsFromFile", str(orig),
            "-fixBase",
            "-CommonIFD0",
            "-ExifIFD:all",
            "-GPS:all",
            "-IPTC:all",
            "-XMP-dc:all",
            "-XMP-dc:Format=",
            "-fast",
            "-overwrite_original",
            str(dest),
        )

    def dng_has_edits(self, path: PathLike) -> bool:
        """Whether a DNG carries edit history."""
        logger.info("exiftool (has edits?)...")
        out = self.server.command("-XMP-photoshop:all", str(path))
        return bool(out.strip())

    def camera_matching_white_balance(self, path: PathLike) -> str:
        """White balance mode matching the one recorded by the camera."""
        logger.info("exiftool (get camera matching white balance)...")
        out = self.server.command("-duplicates", "-short3", "-fast",
                                  "-ExifIFD:WhiteBalance", "-MakerNotes:WhiteBalance", str(path))
        return crs_white_balance(out.splitlines())

    def _preview_image(self, path: PathLike) -> bytes:
        return self.server.command("-b", "-PreviewImage", str(path), raw_bytes=True)

    def preview_jpeg(self, path: PathLike) -> bytes:
        """JPEG preview embedded in a converted DNG."""
        logger.info("exiftool (extract preview)...")
        data = self._preview_image(path)
        if not data:
            raise MetadataError(f"No preview image in {path}")
        return data

    def export_jpeg(self, path: PathLike) -> bytes:
        """Full size JPEG rendition embedded in a converted DNG."""
        logger.info("exiftool (extract jpeg)...")
        data = self._preview_image(path)
        if not data:
            raise MetadataError(f"No JPEG rendition in {path}")
        return data

    def dng_preview_option(self, path: PathLike) -> str:
        """
        Converter preview flag reproducing the preview path already has.

        Returns:
            "p0" without a preview, "p1" for a medium one, "p2" otherwise
        """
        logger.info("exiftool (dng preview size)...")
        data = self._preview_image(path)
        if not data:
            return "p0"
        try:
            with Image.open(io.BytesIO(data)) as img:
                long_side = max(img.size)
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable preview in {path}: {e}")
            return "p2"
        return "p1" if long_side <= MEDIUM_PREVIEW_SIZE else "p2"
