"""
Edit and export settings for rawdesk.

EditSettings is the non-destructive edit state of one photo, stored as
Camera Raw (``XMP-crs``) tags in the photo's sidecar. ExportSettings only
shapes the exported artifact and never changes image content.
"""

from dataclasses import dataclass, field, fields, asdict, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

CAMERA_MATCHING = "Camera Matching…"

WHITE_BALANCE_MODES = (
    "As Shot", "Auto", "Daylight", "Cloudy", "Shade", "Tungsten",
    "Fluorescent", "Flash", "Custom",
)


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _coerce(value: Any, kind: type) -> Any:
    """Convert a form/CLI/exiftool value to the dataclass field type."""
    if value is None:
        return None
    if kind is bool:
        return _to_bool(value)
    if kind is int:
        return int(float(value))
    if kind is float:
        return float(value)
    if kind is str:
        return str(value)
    return value


# (attribute, crs tag, type)
_CRS_FIELDS: Tuple[Tuple[str, str, type], ...] = (
    ("profile", "CameraProfile", str),
    ("white_balance", "WhiteBalance", str),
    ("temperature", "Temperature", int),
    ("tint", "Tint", int),
    ("exposure", "Exposure2012", float),
    ("contrast", "Contrast2012", int),
    ("highlights", "Highlights2012", int),
    ("shadows", "Shadows2012", int),
    ("whites", "Whites2012", int),
    ("blacks", "Blacks2012", int),
    ("texture", "Texture", int),
    ("clarity", "Clarity2012", int),
    ("dehaze", "Dehaze", int),
    ("vibrance", "Vibrance", int),
    ("saturation", "Saturation", int),
    ("sharpness", "Sharpness", int),
    ("luminance_nr", "LuminanceSmoothing", int),
    ("color_nr", "ColorNoiseReduction", int),
    ("auto_lateral_ca", "AutoLateralCA", bool),
    ("lens_profile", "LensProfileEnable", bool),
    ("has_crop", "HasCrop", bool),
    ("crop_top", "CropTop", float),
    ("crop_left", "CropLeft", float),
    ("crop_bottom", "CropBottom", float),
    ("crop_right", "CropRight", float),
    ("crop_angle", "CropAngle", float),
)

PROCESS_VERSION = "11.0"


@dataclass
class EditSettings:
    """
    Non-destructive edit state of one photo.

    ``white_balance`` may hold the CAMERA_MATCHING sentinel, which must be
    resolved against the source before the settings are written anywhere.
    Fields left at None are not written, so existing values survive.
    """
    filename: str = ""
    orientation: int = 0  # EXIF orientation 1-8, 0 keeps the source's

    profile: Optional[str] = None
    white_balance: Optional[str] = None
    temperature: Optional[int] = None
    tint: Optional[int] = None

    exposure: Optional[float] = None  # EV
    contrast: Optional[int] = None
    highlights: Optional[int] = None
    shadows: Optional[int] = None
    whites: Optional[int] = None
    blacks: Optional[int] = None
    texture: Optional[int] = None
    clarity: Optional[int] = None
    dehaze: Optional[int] = None
    vibrance: Optional[int] = None
    saturation: Optional[int] = None

    sharpness: Optional[int] = None
    luminance_nr: Optional[int] = None
    color_nr: Optional[int] = None

    auto_lateral_ca: Optional[bool] = None
    lens_profile: Optional[bool] = None

    has_crop: Optional[bool] = None
    crop_top: Optional[float] = None
    crop_left: Optional[float] = None
    crop_bottom: Optional[float] = None
    crop_right: Optional[float] = None
    crop_angle: Optional[float] = None

    @property
    def needs_camera_matching(self) -> bool:
        return self.white_balance == CAMERA_MATCHING

    def to_xmp_args(self) -> List[str]:
        """ExifTool assignments writing these settings as XMP-crs tags."""
        if self.needs_camera_matching:
            raise ValueError("camera matching white balance must be resolved before writing")

        args = [f"-XMP-crs:ProcessVersion={PROCESS_VERSION}", "-XMP-crs:HasSettings=True"]
        for attr, tag, kind in _CRS_FIELDS:
            value = getattr(self, attr)
            if value is None:
                continue
            if attr in ("temperature", "tint") and self.white_balance not in (None, "Custom"):
                # Only meaningful for a custom white balance
                args.append(f"-XMP-crs:{tag}=")
                continue
            if kind is bool:
                text = "True" if value else "False"
            elif kind is float and attr == "exposure":
                text = f"{value:+.2f}"
            else:
                text = str(value)
            args.append(f"-XMP-crs:{tag}={text}")

        if self.orientation:
            args.append(f"-XMP-tiff:Orientation#={self.orientation}")
        return args

    @classmethod
    def from_xmp_tags(cls, tags: Mapping[str, Any], filename: str = "") -> 'EditSettings':
        """Build settings from exiftool JSON output (``-j -n``, no group names)."""
        values: Dict[str, Any] = {"filename": filename}
        for attr, tag, kind in _CRS_FIELDS:
            if tag in tags and tags[tag] != "":
                try:
                    values[attr] = _coerce(tags[tag], kind)
                except (TypeError, ValueError):
                    logger.warning(f"Ignoring unreadable {tag}={tags[tag]!r} for {filename}")
        orientation = tags.get("Orientation")
        if orientation not in (None, ""):
            try:
                values["orientation"] = int(orientation)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring unreadable Orientation={orientation!r} for {filename}")
        return cls(**values)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'EditSettings':
        """Build settings from a flat mapping, ignoring unknown keys."""
        types = {attr: kind for attr, _, kind in _CRS_FIELDS}
        types.update(filename=str, orientation=int)
        values = {}
        for key, value in data.items():
            if key in types and value is not None:
                values[key] = _coerce(value, types[key])
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def with_white_balance(self, mode: str) -> 'EditSettings':
        return replace(self, white_balance=mode)


class FitMode(Enum):
    """How the resample target is expressed."""
    DIMS = "dims"        # long and short edge
    SIZE = "size"        # literal width and height
    MEGAPIXELS = "mpix"  # target pixel count


class DimUnit(Enum):
    PX = "px"
    IN = "in"
    CM = "cm"


class DensityUnit(Enum):
    PPI = "ppi"
    PPC = "ppc"


@dataclass
class ResampleSettings:
    """Resampling applied to a JPEG export."""
    fit: FitMode = FitMode.DIMS
    long: float = 0.0
    short: float = 0.0
    width: float = 0.0
    height: float = 0.0
    dim_unit: DimUnit = DimUnit.PX
    density: int = 300
    den_unit: DensityUnit = DensityUnit.PPI
    mpixels: float = 0.0
    quality: int = 90

    @property
    def dpi(self) -> float:
        """Output density in dots per inch."""
        if self.den_unit == DensityUnit.PPC:
            return self.density * 2.54
        return float(self.density)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ResampleSettings':
        values: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in data or data[f.name] is None:
                continue
            value = data[f.name]
            if f.name == "fit":
                values[f.name] = FitMode(value) if not isinstance(value, FitMode) else value
            elif f.name == "dim_unit":
                values[f.name] = DimUnit(value) if not isinstance(value, DimUnit) else value
            elif f.name == "den_unit":
                values[f.name] = DensityUnit(value) if not isinstance(value, DensityUnit) else value
            elif f.name in ("density", "quality"):
                values[f.name] = int(value)
            else:
                values[f.name] = float(value)
        return cls(**values)


@dataclass
class ExportSettings:
    """
    Shape of an exported artifact.

    Attributes:
        dng: Export a DNG container; JPEG otherwise
        preview: DNG converter preview flag: "p0" (none), "p1" (medium), "p2" (full)
        lossy: Lossy DNG compression
        embed: Embed the original RAW in the DNG
        both: After a DNG export, also export a JPEG of the same photo
        resample: JPEG resampling; None keeps the rendered size
    """
    dng: bool = False
    preview: str = ""
    lossy: bool = False
    embed: bool = False
    both: bool = False
    resample: Optional[ResampleSettings] = field(default=None)

    @property
    def extension(self) -> str:
        return ".dng" if self.dng else ".jpg"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ExportSettings':
        """Build export settings from a flat mapping, ignoring unknown keys."""
        resample = None
        if _to_bool(data.get("resample", False)):
            resample = ResampleSettings.from_dict(data)
        preview = str(data.get("preview") or "")
        if preview and preview not in ("p0", "p1", "p2"):
            raise ValueError(f"invalid DNG preview option: {preview!r}")
        return cls(
            dng=_to_bool(data.get("dng", False)),
            preview=preview,
            lossy=_to_bool(data.get("lossy", False)),
            embed=_to_bool(data.get("embed", False)),
            both=_to_bool(data.get("both", False)),
            resample=resample,
        )
