"""
White balance picking

Finds the Custom white balance that makes a chosen point of the image
neutral. Pixels are decoded once, in linear CIE XYZ with unit white balance
multipliers, and cached as a numpy array; picking a point then averages a
small neighbourhood and converts its chromaticity to correlated colour
temperature and tint.
"""

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Tuple, Union
import logging

import numpy as np
import rawpy

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

SAMPLE_RADIUS = 2  # 5x5 neighbourhood

MIN_TEMPERATURE = 2000
MAX_TEMPERATURE = 50000
MAX_TINT = 150

# Camera Raw tint units per unit of Duv
TINT_SCALE = 3000.0


@dataclass
class WhiteBalance:
    """A Camera Raw white balance setting"""
    mode: str = "Custom"
    temperature: int = 5500
    tint: int = 0

    def to_dict(self):
        return {"white_balance": self.mode, "temperature": self.temperature, "tint": self.tint}


def extract_pixels(src: PathLike, dst: PathLike) -> Path:
    """
    Decode src to linear XYZ and save the array at dst (numpy .npy).

    Args:
        src: DNG to decode, normally the workspace edit cache
        dst: Pixel cache path
    """
    logger.info(f"Decoding pixels for white balance: {src}")
    with rawpy.imread(str(src)) as raw:
        xyz = raw.postprocess(
            user_wb=[1.0, 1.0, 1.0, 1.0],
            output_color=rawpy.ColorSpace.XYZ,
            gamma=(1, 1),
            half_size=True,
            no_auto_bright=True,
            output_bps=16,
        )

    dst = Path(dst)
    with open(dst, 'wb') as f:
        np.save(f, xyz)
    return dst


def sample_pixels(pixels: np.ndarray, coords: Sequence[float]) -> np.ndarray:
    """Mean XYZ around normalised (x, y) coordinates."""
    height, width = pixels.shape[:2]
    x = min(max(int(coords[0] * width), 0), width - 1)
    y = min(max(int(coords[1] * height), 0), height - 1)

    patch = pixels[max(y - SAMPLE_RADIUS, 0):y + SAMPLE_RADIUS + 1,
                   max(x - SAMPLE_RADIUS, 0):x + SAMPLE_RADIUS + 1]
    return patch.reshape(-1, patch.shape[-1]).astype(np.float64).mean(axis=0)


def xyz_to_xy(xyz: Sequence[float]) -> Tuple[float, float]:
    total = float(xyz[0] + xyz[1] + xyz[2])
    if total <= 0:
        raise ValueError("cannot white balance on a black sample")
    return xyz[0] / total, xyz[1] / total


def mccamy_cct(x: float, y: float) -> float:
    """Correlated colour temperature from CIE 1931 xy (McCamy's approximation)."""
    n = (x - 0.3320) / (0.1858 - y)
    return 449.0 * n ** 3 + 3525.0 * n ** 2 + 6823.3 * n + 5520.33


def xy_to_uv(x: float, y: float) -> Tuple[float, float]:
    """CIE 1931 xy to CIE 1960 uv."""
    d = -2.0 * x + 12.0 * y + 3.0
    return 4.0 * x / d, 6.0 * y / d


def planckian_uv(temperature: float) -> Tuple[float, float]:
    """CIE 1960 uv of a black body (Krystek's approximation)."""
    t = temperature
    u = (0.860117757 + 1.54118254e-4 * t + 1.28641212e-7 * t * t) / \
        (1.0 + 8.42420235e-4 * t + 7.08145163e-7 * t * t)
    v = (0.317398726 + 4.22806245e-5 * t + 4.20481691e-8 * t * t) / \
        (1.0 - 2.89741816e-5 * t + 1.61456053e-7 * t * t)
    return u, v


def white_balance_from_xyz(xyz: Sequence[float]) -> WhiteBalance:
    """
    Custom white balance that neutralizes a sampled colour.

    Temperature is clamped to 2000..50000 K and tint to -150..150.
    """
    x, y = xyz_to_xy(xyz)
    try:
        cct = mccamy_cct(x, y)
    except ZeroDivisionError:
        cct = MAX_TEMPERATURE
    cct = min(max(cct, MIN_TEMPERATURE), MAX_TEMPERATURE)

    u, v = xy_to_uv(x, y)
    # Krystek's fit only holds up to 15000 K
    pu, pv = planckian_uv(min(cct, 15000.0))
    duv = math.hypot(u - pu, v - pv)
    if v < pv:
        duv = -duv

    tint = min(max(duv * TINT_SCALE, -MAX_TINT), MAX_TINT)
    return WhiteBalance(mode="Custom", temperature=int(round(cct)), tint=int(round(tint)))


def compute_white_balance(pixel_cache: PathLike, coords: Sequence[float]) -> WhiteBalance:
    """
    White balance for the point at normalised coords of a cached image.

    Args:
        pixel_cache: Array saved by extract_pixels
        coords: (x, y), each in 0..1

    Raises:
        ValueError: if coords is not a point or the sample is black
    """
    if len(coords) != 2:
        raise ValueError(f"expected (x, y) coordinates, got {list(coords)}")

    pixels = np.load(str(pixel_cache))
    xyz = sample_pixels(pixels, coords)
    wb = white_balance_from_xyz(xyz)
    logger.debug(f"Sampled XYZ {xyz.tolist()} at {list(coords)} -> {wb}")
    return wb
