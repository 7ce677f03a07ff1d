"""
JPEG resampling for exports
"""

import io
from typing import Tuple
import logging

from PIL import Image

from rawdesk.processing.geometry import fit_image
from rawdesk.processing.settings import ResampleSettings

logger = logging.getLogger(__name__)


def target_size(size: Tuple[int, int], box: Tuple[int, int]) -> Tuple[int, int]:
    """Largest size with the aspect ratio of size that fits box, never enlarged."""
    width, height = size
    scale = min(box[0] / width, box[1] / height, 1.0)
    return max(1, round(width * scale)), max(1, round(height * scale))


def resample_jpeg(data: bytes, resample: ResampleSettings) -> bytes:
    """
    Resize a JPEG to the export geometry and re-encode it.

    The image is re-encoded at the requested quality and density even when
    it already fits. The ICC profile is kept; other metadata is restored by
    the caller.

    Args:
        data: JPEG bytes
        resample: Output geometry, density and quality

    Returns:
        Encoded JPEG bytes
    """
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        icc_profile = img.info.get('icc_profile')

        size = target_size(img.size, fit_image(resample, img.size))
        if size != img.size:
            logger.debug(f"Resampling {img.size} -> {size}")
            out_img = img.resize(size, Image.Resampling.LANCZOS)
        else:
            out_img = img

        if out_img.mode not in ('RGB', 'L', 'CMYK'):
            out_img = out_img.convert('RGB')

        save_kwargs = {
            'format': 'JPEG',
            'quality': resample.quality,
            'dpi': (resample.dpi, resample.dpi),
        }
        if icc_profile:
            save_kwargs['icc_profile'] = icc_profile

        output = io.BytesIO()
        out_img.save(output, **save_kwargs)
        return output.getvalue()
