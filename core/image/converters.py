"""
Image format conversion utilities.

Handles conversions between different image representations:
- PIL Images (any mode) to/from RGBA NumPy arrays
- Base64 strings and data URIs to/from raw bytes
- Alpha flattening for formats without transparency
"""

import base64
import binascii
import logging
import re
from typing import Union

import cv2
import numpy as np
from PIL import Image

from core.constants import ImageConstants
from core.exceptions import InvalidImageDataException

logger = logging.getLogger(__name__)

_DATA_URI_RE = re.compile(ImageConstants.DATA_URI_PATTERN, re.IGNORECASE)


class ImageConverters:
    """Utilities for converting between image representations."""

    @staticmethod
    def has_alpha(image: Image.Image) -> bool:
        """
        Check whether a PIL image carries transparency.

        Args:
            image: PIL Image

        Returns:
            True for alpha modes and palette images with a transparency key
        """
        return image.mode in ("RGBA", "LA", "PA", "RGBa", "La") or "transparency" in image.info

    @staticmethod
    def pil_to_rgba(image: Image.Image) -> np.ndarray:
        """
        Convert PIL Image to a contiguous RGBA NumPy array.

        Args:
            image: PIL Image in any mode

        Returns:
            uint8 array of shape (height, width, 4)
        """
        if image.mode in ("RGBA", "RGB", "L") and "transparency" not in image.info:
            array = np.array(image)
        else:
            # Palette, CMYK, 16-bit and tRNS color keys go through Pillow first
            array = np.array(image.convert("RGBA"))

        return np.ascontiguousarray(ImageConverters.ensure_rgba(array))

    @staticmethod
    def ensure_rgba(array: np.ndarray) -> np.ndarray:
        """
        Ensure array is RGBA (convert from grayscale/RGB if needed).

        Args:
            array: Grayscale (h, w), RGB (h, w, 3) or RGBA (h, w, 4)

        Returns:
            Array in RGBA layout
        """
        if array.ndim == 2:
            return cv2.cvtColor(array, cv2.COLOR_GRAY2RGBA)
        if array.shape[2] == 3:
            return cv2.cvtColor(array, cv2.COLOR_RGB2RGBA)
        return array

    @staticmethod
    def rgba_to_pil(pixels: np.ndarray) -> Image.Image:
        """Convert an RGBA NumPy array back to a PIL Image."""
        return Image.fromarray(pixels)

    @staticmethod
    def flatten(image: Image.Image, background=ImageConstants.FLATTEN_BACKGROUND) -> Image.Image:
        """Composite an RGBA image onto an opaque background (for JPEG)."""
        rgba = image.convert("RGBA")
        flat = Image.new("RGB", rgba.size, background)
        flat.paste(rgba, mask=rgba.split()[-1])
        return flat

    @staticmethod
    def strip_data_uri(payload: str) -> str:
        """Remove a leading ``data:image/*;base64,`` header if present."""
        return _DATA_URI_RE.sub("", payload.strip(), count=1)

    @staticmethod
    def from_base64(payload: Union[str, bytes]) -> bytes:
        """
        Decode a data URI or raw base64 payload to bytes.

        Args:
            payload: ``data:image/png;base64,...`` or plain base64

        Returns:
            Decoded bytes

        Raises:
            InvalidImageDataException: If the payload is not valid base64
        """
        try:
            if isinstance(payload, bytes):
                payload = payload.decode("ascii")
            stripped = "".join(ImageConverters.strip_data_uri(payload).split())
            data = base64.b64decode(stripped, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.error(f"Failed to decode base64 image: {e}")
            raise InvalidImageDataException(f"Invalid base64 payload: {e}")

        if not data:
            raise InvalidImageDataException("Empty base64 payload")
        return data

    @staticmethod
    def to_base64(data: bytes) -> str:
        """Encode raw bytes as base64 text."""
        return base64.b64encode(data).decode("utf-8")

    @staticmethod
    def to_data_uri(buffer, image_format=None, quality: int = ImageConstants.DEFAULT_QUALITY) -> str:
        """
        Encode an ImageBuffer as a ``data:image/<fmt>;base64,`` string.

        Args:
            buffer: ImageBuffer to encode
            image_format: Target ImageFormat (defaults to the buffer's format)
            quality: Encoding quality 0-100

        Returns:
            Data URI string
        """
        from core.image.buffer import encode

        image_format = image_format or buffer.format
        data = encode(buffer, image_format, quality)
        return f"data:{image_format.mime_type};base64,{ImageConverters.to_base64(data)}"

