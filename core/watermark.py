"""
Watermark applier - resolves watermark size/position and composites it.

The single watermark implementation used by every driver. Sizing and
placement come from ImageGeometry, blending from the compositor.
"""

import logging
from pathlib import Path
from typing import Optional

from core.exceptions import (
    InvalidImageDataException,
    SourceNotFoundException,
    UnsupportedFormatException,
    WatermarkSourceException,
)
from core.image.buffer import ImageBuffer, decode, destroy
from core.image.compositor import composite
from core.image.geometry import ImageGeometry
from core.image.processors import ImageProcessors
from schemas.options import WatermarkOptions

logger = logging.getLogger(__name__)


class WatermarkApplier:
    """Applies a configured watermark image onto decoded buffers"""

    def __init__(self, options: WatermarkOptions):
        """
        Initialize watermark applier.

        Args:
            options: Validated watermark options
        """
        self.options = options

    @property
    def enabled(self) -> bool:
        return self.options.enabled

    def load(self) -> ImageBuffer:
        """
        Decode the watermark source.

        Raises:
            WatermarkSourceException: Missing file, undecodable data or a
                format outside JPEG/PNG/GIF/WEBP
        """
        path = Path(self.options.image or "")
        try:
            return decode(path)
        except SourceNotFoundException:
            raise WatermarkSourceException(path, "not found")
        except (InvalidImageDataException, UnsupportedFormatException) as e:
            raise WatermarkSourceException(path, e.message)

    def layout(self, image: ImageBuffer, native_width: int, native_height: int):
        """
        Resolve watermark (width, height, x, y) for an image.

        The resolved size is shrunk (keeping ratio) when it would not fit the
        image, and the offset is clamped so the region stays inside it.
        """
        width, height = ImageGeometry.resolve_watermark_dimensions(
            self.options, image.width, image.height, native_width, native_height
        )

        if width > image.width or height > image.height:
            fitted = ImageGeometry.resize_contain(width, height, image.width, image.height)
            logger.warning(
                f"Watermark {width}x{height} larger than image {image.width}x{image.height}, "
                f"shrinking to {fitted[0]}x{fitted[1]}"
            )
            width, height = fitted

        x, y = ImageGeometry.resolve_position(
            self.options.position, image.width, image.height, width, height, self.options.margin
        )
        x, y = ImageGeometry.clamp_offset(x, y, width, height, image.width, image.height)
        return width, height, x, y

    def apply(self, image: ImageBuffer, watermark: Optional[ImageBuffer] = None) -> ImageBuffer:
        """
        Composite the watermark onto ``image`` in place.

        Args:
            image: Target buffer
            watermark: Pre-decoded watermark (decoded from options.image if None;
                a supplied buffer is resized on a copy and left intact)

        Returns:
            The target buffer
        """
        if not self.enabled:
            return image

        mark = watermark.copy() if watermark is not None else self.load()
        try:
            width, height, x, y = self.layout(image, mark.width, mark.height)
            if (width, height) != (mark.width, mark.height):
                ImageProcessors.scale(mark, width, height)

            composite(image, mark, x, y, self.options.opacity)
            logger.debug(
                f"Applied watermark {width}x{height} at ({x},{y}) "
                f"position={self.options.position.value} opacity={self.options.opacity}"
            )
        finally:
            destroy(mark)

        return image
