"""
Alpha compositing of a foreground buffer onto a background buffer.

All blending runs as bulk NumPy operations over the destination region;
there is no per-pixel Python loop. Three cases are handled:

- opaque foreground at opacity 100: the region is overwritten
- foreground with alpha: effective alpha is ``a0 * opacity / 100`` per pixel
- foreground without alpha below 100: uniform linear blend of the region
"""

import logging

import numpy as np

from core.exceptions import InvalidConfigurationException, RegionOutOfBoundsException
from core.image.buffer import ImageBuffer

logger = logging.getLogger(__name__)


def validate_region(background: ImageBuffer, foreground: ImageBuffer, x: int, y: int) -> None:
    """Reject any placement that does not fit entirely inside the background."""
    if (
        x < 0
        or y < 0
        or x + foreground.width > background.width
        or y + foreground.height > background.height
    ):
        raise RegionOutOfBoundsException(
            f"Region {foreground.width}x{foreground.height} at ({x},{y}) "
            f"exceeds background {background.width}x{background.height}"
        )


def composite(
    background: ImageBuffer,
    foreground: ImageBuffer,
    x: int,
    y: int,
    opacity: int = 100,
) -> ImageBuffer:
    """
    Blend foreground onto background at (x, y), in place.

    Args:
        background: Destination buffer (modified)
        foreground: Buffer to draw
        x: Left offset inside the background
        y: Top offset inside the background
        opacity: Blend strength 0-100 (100 = fully opaque)

    Returns:
        The background buffer

    Raises:
        InvalidConfigurationException: Opacity outside 0-100
        RegionOutOfBoundsException: Foreground does not fit at (x, y)
    """
    if not 0 <= opacity <= 100:
        raise InvalidConfigurationException(f"Opacity must be within 0-100, got {opacity}")
    validate_region(background, foreground, x, y)

    if opacity == 0:
        return background

    region = background.pixels[y : y + foreground.height, x : x + foreground.width]
    src = foreground.pixels

    if foreground.has_alpha:
        _blend_per_pixel(region, src, opacity, background.has_alpha)
    elif opacity == 100:
        region[...] = src
    else:
        _blend_uniform(region, src, opacity, background.has_alpha)

    logger.debug(
        f"Composited {foreground.width}x{foreground.height} at ({x},{y}) "
        f"opacity={opacity} alpha={foreground.has_alpha}"
    )
    return background


def _blend_per_pixel(region: np.ndarray, src: np.ndarray, opacity: int, keep_alpha: bool) -> None:
    # effective alpha in 0..255, shape (h, w, 1) so it broadcasts over RGB
    alpha = src[..., 3:4].astype(np.float32) * (opacity / 100.0)
    weight = alpha / 255.0

    blended = region[..., :3].astype(np.float32)
    blended *= 1.0 - weight
    blended += src[..., :3].astype(np.float32) * weight
    np.rint(blended, out=blended)
    region[..., :3] = blended.astype(np.uint8)

    if keep_alpha:
        np.maximum(region[..., 3], np.rint(alpha[..., 0]).astype(np.uint8), out=region[..., 3])


def _blend_uniform(region: np.ndarray, src: np.ndarray, opacity: int, keep_alpha: bool) -> None:
    weight = opacity / 100.0

    blended = region[..., :3].astype(np.float32)
    blended *= 1.0 - weight
    blended += src[..., :3].astype(np.float32) * weight
    np.rint(blended, out=blended)
    region[..., :3] = blended.astype(np.uint8)

    if keep_alpha:
        np.maximum(region[..., 3], np.uint8(round(255 * weight)), out=region[..., 3])
