"""
Export geometry

Maps resample settings and the rendered image size to the bounding box the
exported JPEG must fit in.
"""

import math
import sys
from typing import Tuple

from rawdesk.processing.settings import ResampleSettings, FitMode, DimUnit, DensityUnit

# An axis with no constraint
UNBOUNDED = sys.maxsize

MIN_SIDE = 16

CM_PER_INCH = 2.54


def pixels_per_unit(resample: ResampleSettings) -> float:
    """Pixels in one dimension unit at the configured density."""
    if resample.dim_unit == DimUnit.PX:
        return 1.0

    density = float(resample.density)
    if resample.dim_unit == DimUnit.IN:
        if resample.den_unit == DensityUnit.PPI:
            return density
        return density * CM_PER_INCH

    if resample.den_unit == DensityUnit.PPI:
        return density / CM_PER_INCH
    return density


def round_side(x: float) -> int:
    """Nearest whole pixel, at least MIN_SIDE; zero means unconstrained."""
    if x == 0.0:
        return UNBOUNDED
    i = int(x + 0.5)
    return max(i, MIN_SIDE)


def fit_image(resample: ResampleSettings, size: Tuple[int, int]) -> Tuple[int, int]:
    """
    Bounding box for an image of the given size.

    Args:
        resample: Requested output geometry
        size: Rendered (width, height)

    Returns:
        (width, height) to fit in; either may be UNBOUNDED
    """
    width, height = size

    if resample.fit == FitMode.MEGAPIXELS:
        mul = math.sqrt(1e6 * resample.mpixels / float(width * height))
        if width > height:
            return UNBOUNDED, round_side(mul * height)
        return round_side(mul * width), UNBOUNDED

    mul = pixels_per_unit(resample)

    if resample.fit == FitMode.DIMS:
        long, short = resample.long, resample.short
        if 0 < long < short:
            long, short = short, long

        if width > height:
            return round_side(mul * long), round_side(mul * short)
        return round_side(mul * short), round_side(mul * long)

    return round_side(mul * resample.width), round_side(mul * resample.height)
