"""
XMP sidecar resolution.

Decides which metadata file is authoritative for a photo. Two sidecar
conventions are recognised next to ``NAME.EXT``:

- ``NAME.xmp``, shared by every file named NAME, so it declares which
  extension it belongs to with ``photoshop:SidecarForExtension``
- ``NAME.EXT.xmp``

An edited DNG carries its own history and acts as its own sidecar.
"""

import os
from pathlib import Path
from typing import Optional, Union
import xml.etree.ElementTree as ET
import logging

from rawdesk.utils.file_ops import write_atomic

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

PHOTOSHOP_NS = 'http://ns.adobe.com/photoshop/1.0/'
_SIDECAR_FOR_EXT = f'{{{PHOTOSHOP_NS}}}SidecarForExtension'


def sidecar_for_extension(data: bytes) -> Optional[str]:
    """
    Extension a sidecar declares it belongs to.

    The value may be stored as an attribute of ``rdf:Description`` or as a
    child element.

    Returns:
        The declared extension, or None if the sidecar doesn't declare one

    Raises:
        ET.ParseError: if data is not well-formed XML
    """
    root = ET.fromstring(data)
    for elem in root.iter():
        value = elem.get(_SIDECAR_FOR_EXT)
        if value is not None:
            return value.strip()
        if elem.tag == _SIDECAR_FOR_EXT and elem.text:
            return elem.text.strip()
    return None


def is_sidecar_for_ext(data: bytes, ext: str) -> bool:
    """
    Whether sidecar content applies to a photo with extension ext.

    A sidecar that doesn't declare an extension applies to any photo.
    Unreadable XML applies to none.
    """
    try:
        declared = sidecar_for_extension(data)
    except ET.ParseError as e:
        logger.debug(f"Ignoring malformed sidecar: {e}")
        return False
    if declared is None:
        return True
    return declared.lstrip('.').lower() == ext.lstrip('.').lower()


def _read_if_exists(path: Path) -> Optional[bytes]:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


def _name_xmp(photo: Path) -> Path:
    return photo.with_suffix('.xmp')


def _name_ext_xmp(photo: Path) -> Path:
    return photo.with_name(photo.name + '.xmp')


class SidecarResolver:
    """
    Resolves read and write locations for a photo's edit metadata.

    Args:
        metadata: Object providing ``extract_xmp(src, dst)`` and
            ``dng_has_edits(path)``, normally a MetadataBridge
    """

    def __init__(self, metadata):
        self.metadata = metadata

    def read_sidecar(self, photo: PathLike) -> Optional[bytes]:
        """
        Content of the external sidecar that governs photo, if any.

        ``NAME.xmp`` is considered first, then ``NAME.EXT.xmp``; each only if
        it belongs to the photo's extension.
        """
        photo = Path(photo)
        ext = photo.suffix

        if ext:
            data = _read_if_exists(_name_xmp(photo))
            if data is not None and is_sidecar_for_ext(data, ext):
                return data

        data = _read_if_exists(_name_ext_xmp(photo))
        if data is not None and is_sidecar_for_ext(data, ext):
            return data

        return None

    def load_sidecar(self, photo: PathLike, dst: PathLike) -> Path:
        """
        Materialize photo's current edit metadata at dst.

        Copies the governing sidecar, or extracts the XMP embedded in the
        photo itself when there is none.
        """
        dst = Path(dst)
        data = self.read_sidecar(photo)
        if data is not None:
            logger.debug(f"Using sidecar for {photo}")
            write_atomic(dst, data)
            return dst

        logger.debug(f"No sidecar for {photo}, extracting embedded XMP")
        self.metadata.extract_xmp(photo, dst)
        return dst

    def destination(self, photo: PathLike) -> Path:
        """
        Where saved edits for photo must be written.

        Returns ``NAME.xmp`` if it exists for this extension, else
        ``NAME.EXT.xmp`` if it exists, else the photo itself if it is an
        edited DNG, else a new ``NAME.xmp``. When ``NAME.xmp`` already
        belongs to another extension, ``NAME.EXT.xmp`` is created instead.
        """
        photo = Path(photo)
        ext = photo.suffix
        name_xmp = _name_xmp(photo)
        foreign = False

        if ext:
            data = _read_if_exists(name_xmp)
            if data is not None:
                if is_sidecar_for_ext(data, ext):
                    return name_xmp
                foreign = True

        name_ext_xmp = _name_ext_xmp(photo)
        try:
            os.stat(name_ext_xmp)
            return name_ext_xmp
        except FileNotFoundError:
            pass

        if ext.lower() == '.dng' and self.metadata.dng_has_edits(photo):
            return photo

        if foreign:
            return name_ext_xmp
        return name_xmp
