"""
Rasterizer driver - the in-process software path.

Per request: decode -> [watermark] -> [ratio crop] -> [resize] -> encode ->
atomic save. Every intermediate buffer is released when the request ends,
whether it succeeded or not.
"""

import logging
from pathlib import Path
from typing import FrozenSet, Optional, Tuple

from PIL import Image, features

from core.cancellation import CancellationToken, check_cancelled
from core.constants import ResizeConstants
from core.drivers.base import ImageDriver, PathLike
from core.enums import DriverKind, ImageFormat, ResizeMode
from core.image.buffer import ImageBuffer, decode, destroy, encode
from core.image.processors import ImageProcessors
from core.artifacts import atomic_write_bytes
from core.watermark import WatermarkApplier
from schemas.options import TransformOptions

logger = logging.getLogger(__name__)


class RasterizerDriver(ImageDriver):
    """Software driver built on Pillow, NumPy and OpenCV"""

    kind = DriverKind.RASTERIZER

    def is_available(self) -> bool:
        return bool(self.supported_formats())

    def supported_formats(self) -> FrozenSet[ImageFormat]:
        Image.init()
        formats = {
            fmt for fmt in ImageFormat if fmt.pil_name in Image.OPEN and fmt.pil_name in Image.SAVE
        }
        if not features.check("webp"):
            formats.discard(ImageFormat.WEBP)
        return frozenset(formats)

    @staticmethod
    def output_format(
        destination: PathLike, source_format: ImageFormat, options: TransformOptions
    ) -> ImageFormat:
        """WebP if enabled, else explicit output_format, else destination extension, else source."""
        if options.webp.enabled:
            return ImageFormat.WEBP
        if options.output_format:
            return options.output_format
        return ImageFormat.from_extension(str(destination)) or source_format

    @staticmethod
    def output_quality(image_format: ImageFormat, options: TransformOptions) -> int:
        if image_format == ImageFormat.WEBP and options.webp.enabled:
            return options.webp_quality
        return options.quality

    def transform(
        self,
        buffer: ImageBuffer,
        options: TransformOptions,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ImageBuffer:
        """
        Apply the in-memory stages to a decoded buffer.

        Args:
            buffer: Decoded image (modified in place)
            options: Request options
            cancel_token: Optional cancellation token checked between stages

        Returns:
            The same buffer
        """
        if options.watermark.enabled:
            check_cancelled(cancel_token, "watermark")
            WatermarkApplier(options.watermark).apply(buffer)

        if options.crop_ratio:
            check_cancelled(cancel_token, "crop")
            ImageProcessors.crop_by_ratio(buffer, options.crop_ratio.width, options.crop_ratio.height)

        if options.resize:
            check_cancelled(cancel_token, "resize")
            ImageProcessors.fit(
                buffer, options.resize.width, options.resize.height, options.resize.mode
            )

        return buffer

    def process(
        self,
        source: PathLike,
        destination: PathLike,
        options: TransformOptions,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Path:
        """
        Decode, transform, encode and atomically save.

        Args:
            source: Source image path
            destination: Output path (replaced only on success)
            options: Request options
            cancel_token: Optional cancellation token

        Returns:
            The destination path
        """
        check_cancelled(cancel_token, "decode")
        buffer = decode(source)
        try:
            self.transform(buffer, options, cancel_token)

            check_cancelled(cancel_token, "encode")
            image_format = self.output_format(destination, buffer.format, options)
            data = encode(buffer, image_format, self.output_quality(image_format, options))

            check_cancelled(cancel_token, "save")
            atomic_write_bytes(destination, data)
            logger.info(
                f"Rasterized {source} -> {destination} "
                f"({image_format.value}, {buffer.width}x{buffer.height})"
            )
        finally:
            destroy(buffer)

        return Path(destination)

    def resize_file(
        self,
        source: PathLike,
        destination: PathLike,
        width: int,
        height: int,
        mode: ResizeMode = ResizeMode.COVER,
        quality: int = ResizeConstants.DERIVATIVE_QUALITY,
    ) -> Tuple[int, int]:
        """
        Write a resized copy of source in the source's own format.

        Returns:
            Final (width, height) of the written image
        """
        buffer = decode(source)
        try:
            ImageProcessors.resize(buffer, width, height, mode)
            atomic_write_bytes(destination, encode(buffer, buffer.format, quality))
            return buffer.width, buffer.height
        finally:
            destroy(buffer)

    def convert_file(
        self,
        source: PathLike,
        destination: PathLike,
        image_format: ImageFormat,
        quality: int,
    ) -> Path:
        """Re-encode a file to another format (no other stages)."""
        buffer = decode(source)
        try:
            atomic_write_bytes(destination, encode(buffer, image_format, quality))
        finally:
            destroy(buffer)
        return Path(destination)
