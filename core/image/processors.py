"""
Image processing operations.

Handles pixel-level resize and crop on ImageBuffer instances:
- Scaling (contain / cover / stretch)
- Explicit and ratio-based center cropping

Every operation replaces the buffer's whole pixel array; dimensions come
from core.image.geometry.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from core.enums import ResizeMode
from core.exceptions import RegionOutOfBoundsException
from core.image.buffer import ImageBuffer
from core.image.geometry import ImageGeometry, round_half_up

logger = logging.getLogger(__name__)


def _interpolation(src_w: int, src_h: int, dst_w: int, dst_h: int) -> int:
    # INTER_AREA for shrinking, bilinear when enlarging
    if dst_w * dst_h < src_w * src_h:
        return cv2.INTER_AREA
    return cv2.INTER_LINEAR


def scale_pixels(pixels: np.ndarray, width: int, height: int) -> np.ndarray:
    """Resample an RGBA array to exactly (width, height)."""
    src_h, src_w = pixels.shape[:2]
    if (src_w, src_h) == (width, height):
        return pixels.copy()
    interpolation = _interpolation(src_w, src_h, width, height)

    if pixels[..., 3].min() == 255:
        return np.ascontiguousarray(cv2.resize(pixels, (width, height), interpolation=interpolation))

    # Resample premultiplied so transparent pixels add no color at the edges
    premultiplied = pixels.astype(np.float32)
    premultiplied[..., :3] *= premultiplied[..., 3:] / 255.0
    resized = cv2.resize(premultiplied, (width, height), interpolation=interpolation)

    alpha = resized[..., 3:]
    color = np.where(alpha > 0, resized[..., :3] * 255.0 / np.maximum(alpha, 1e-6), 0.0)
    out = np.concatenate([color, alpha], axis=2)
    return np.ascontiguousarray(np.clip(np.rint(out), 0, 255).astype(np.uint8))


class ImageProcessors:
    """Resize and crop operations on ImageBuffer."""

    @staticmethod
    def scale(buffer: ImageBuffer, width: int, height: int) -> ImageBuffer:
        """
        Resize ignoring aspect ratio.

        Args:
            buffer: Image to resize (replaced in place)
            width: Target width
            height: Target height

        Returns:
            The same buffer
        """
        ImageGeometry.resolve_size(width, buffer.width)
        ImageGeometry.resolve_size(height, buffer.height)
        return buffer.replace(scale_pixels(buffer.pixels, width, height))

    @staticmethod
    def resize(
        buffer: ImageBuffer,
        width: int,
        height: int,
        mode: ResizeMode = ResizeMode.CONTAIN,
    ) -> ImageBuffer:
        """
        Resize with an aspect-ratio policy.

        Args:
            buffer: Image to resize (replaced in place)
            width: Destination box width
            height: Destination box height
            mode: CONTAIN fits inside the box, COVER fills it and center-crops,
                STRETCH ignores aspect ratio

        Returns:
            The same buffer
        """
        mode = ResizeMode(mode)
        src_w, src_h = buffer.width, buffer.height

        if mode == ResizeMode.STRETCH:
            return ImageProcessors.scale(buffer, width, height)

        if mode == ResizeMode.CONTAIN:
            scaled_w, scaled_h = ImageGeometry.resize_contain(src_w, src_h, width, height)
            logger.debug(f"Contain resize {src_w}x{src_h} -> {scaled_w}x{scaled_h}")
            return buffer.replace(scale_pixels(buffer.pixels, scaled_w, scaled_h))

        scaled_w, scaled_h, crop_x, crop_y = ImageGeometry.resize_cover(src_w, src_h, width, height)
        scaled = scale_pixels(buffer.pixels, scaled_w, scaled_h)
        cropped = scaled[crop_y : crop_y + height, crop_x : crop_x + width]
        logger.debug(
            f"Cover resize {src_w}x{src_h} -> {scaled_w}x{scaled_h}, "
            f"crop {width}x{height} at ({crop_x},{crop_y})"
        )
        return buffer.replace(np.ascontiguousarray(cropped))

    @staticmethod
    def crop(buffer: ImageBuffer, x: int, y: int, width: int, height: int) -> ImageBuffer:
        """
        Crop a rectangle out of the buffer (strict bounds checking).

        Raises:
            RegionOutOfBoundsException: If the rectangle leaves the image
        """
        ImageGeometry.resolve_size(width, buffer.width)
        ImageGeometry.resolve_size(height, buffer.height)
        if x < 0 or y < 0 or x + width > buffer.width or y + height > buffer.height:
            raise RegionOutOfBoundsException(
                f"Crop {width}x{height} at ({x},{y}) exceeds image {buffer.width}x{buffer.height}"
            )
        return buffer.replace(np.ascontiguousarray(buffer.pixels[y : y + height, x : x + width]))

    @staticmethod
    def crop_by_ratio(buffer: ImageBuffer, ratio_width: float, ratio_height: float) -> ImageBuffer:
        """Center-crop to the given aspect ratio (e.g. 16:9)."""
        x, y, width, height = ImageGeometry.crop_by_ratio(
            buffer.width, buffer.height, ratio_width, ratio_height
        )
        return ImageProcessors.crop(buffer, x, y, width, height)

    @staticmethod
    def fit(
        buffer: ImageBuffer,
        width: Optional[int] = None,
        height: Optional[int] = None,
        mode: ResizeMode = ResizeMode.CONTAIN,
    ) -> ImageBuffer:
        """
        Resize when only one side is given, keeping aspect ratio.

        Missing sides are derived from the other one; with both missing the
        buffer is returned untouched.
        """
        if width and height:
            return ImageProcessors.resize(buffer, width, height, mode)
        if width:
            height = max(1, round_half_up(buffer.height * width / buffer.width))
        elif height:
            width = max(1, round_half_up(buffer.width * height / buffer.height))
        else:
            return buffer
        return ImageProcessors.scale(buffer, width, height)
