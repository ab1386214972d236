"""Utility functions for sizing and Pillow interop.

AIDEV-NOTE: Every resample in the project goes through resize_buffer. LANCZOS
is the default for downscales; the line art working canvas is built with
BICUBIC (see edges.supersample).
"""

import math

import numpy as np
from PIL import Image

from models import PixelBuffer


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def fit_to_width(width: int, height: int, max_width: int) -> "tuple[int, int]":
    """Scale (width, height) down to at most max_width, preserving aspect ratio.

    Args:
        width: Source width in pixels
        height: Source height in pixels
        max_width: Largest allowed output width

    Returns:
        Tuple of (target_width, target_height), never smaller than 1x1

    AIDEV-NOTE: Never upscales - a source narrower than max_width keeps
    its size.
    """
    target_width = max(1, min(max_width, width))
    scale = target_width / width
    target_height = max(1, round_half_up(height * scale))
    return target_width, target_height


def buffer_to_image(buffer: PixelBuffer) -> Image.Image:
    """Wrap a PixelBuffer as an RGBA Pillow image (copies the samples)."""
    return Image.fromarray(buffer.pixels.copy())


def image_to_buffer(image: Image.Image) -> PixelBuffer:
    """Convert any Pillow image to an RGBA PixelBuffer."""
    if image.mode != "RGBA":
        image = image.convert("RGBA")
    return PixelBuffer.from_array(np.array(image))


def resize_buffer(
    buffer: PixelBuffer,
    width: int,
    height: int,
    resample: Image.Resampling = Image.Resampling.LANCZOS,
) -> PixelBuffer:
    """Resample a buffer to (width, height), LANCZOS unless told otherwise."""
    if (buffer.width, buffer.height) == (width, height):
        return PixelBuffer(width, height, buffer.samples.copy())
    image = buffer_to_image(buffer)
    return image_to_buffer(image.resize((width, height), resample))
