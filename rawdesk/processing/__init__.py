"""
Processing modules for rawdesk

Edit and export settings, export geometry, the edit pipeline and the
batch engine. The pipeline and batch modules are imported explicitly.
"""

from .settings import EditSettings, ExportSettings, ResampleSettings, CAMERA_MATCHING
from .geometry import fit_image, UNBOUNDED

__all__ = [
    "EditSettings",
    "ExportSettings",
    "ResampleSettings",
    "CAMERA_MATCHING",
    "fit_image",
    "UNBOUNDED",
]
