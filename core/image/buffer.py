"""
Decoded image buffer and codec helpers.

An ImageBuffer owns a row-major RGBA pixel array of shape (height, width, 4)
together with the format it was decoded from. Decoding inspects the real
image signature through Pillow; the file extension is never trusted.
"""

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from core.constants import ImageConstants
from core.enums import ImageFormat
from core.exceptions import (
    EncodeException,
    ImageProcessorException,
    InvalidConfigurationException,
    InvalidImageDataException,
    SourceNotFoundException,
    UnsupportedFormatException,
)
from core.image.converters import ImageConverters

logger = logging.getLogger(__name__)

Image.MAX_IMAGE_PIXELS = ImageConstants.MAX_IMAGE_PIXELS

Source = Union[str, Path, bytes, bytearray]


@dataclass
class ImageBuffer:
    """Decoded RGBA pixels plus source format tag"""

    pixels: Optional[np.ndarray]
    format: ImageFormat
    has_alpha: bool = False
    source: Optional[str] = field(default=None, repr=False)

    def __post_init__(self):
        self._validate(self.pixels)

    @property
    def width(self) -> int:
        return self._require_pixels().shape[1]

    @property
    def height(self) -> int:
        return self._require_pixels().shape[0]

    @property
    def size(self):
        return self.width, self.height

    @property
    def destroyed(self) -> bool:
        return self.pixels is None

    def replace(self, pixels: np.ndarray) -> "ImageBuffer":
        """Swap in a whole new pixel array (after resize/crop)."""
        self._require_pixels()
        self._validate(pixels)
        self.pixels = pixels
        return self

    def copy(self) -> "ImageBuffer":
        return ImageBuffer(
            pixels=self._require_pixels().copy(),
            format=self.format,
            has_alpha=self.has_alpha,
            source=self.source,
        )

    def _require_pixels(self) -> np.ndarray:
        if self.pixels is None:
            raise ImageProcessorException("Image buffer has been destroyed")
        return self.pixels

    @staticmethod
    def _validate(pixels: Optional[np.ndarray]) -> None:
        if pixels is None:
            raise InvalidImageDataException("Image buffer requires pixel data")
        if pixels.ndim != 3 or pixels.shape[2] != 4 or pixels.dtype != np.uint8:
            raise InvalidImageDataException(
                f"Pixels must be uint8 RGBA (h, w, 4), got {pixels.dtype} {pixels.shape}"
            )
        if pixels.shape[0] <= 0 or pixels.shape[1] <= 0:
            raise InvalidImageDataException(f"Empty image buffer {pixels.shape}")


def _read_source(source: Source) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)

    path = Path(source)
    if not path.is_file():
        raise SourceNotFoundException(path)
    return path.read_bytes()


def sniff_format(source: Source) -> ImageFormat:
    """
    Identify the image format from its signature.

    Args:
        source: File path or raw bytes

    Returns:
        Detected ImageFormat

    Raises:
        SourceNotFoundException: Path does not exist
        InvalidImageDataException: Payload is not an image
        UnsupportedFormatException: Image format outside JPEG/PNG/GIF/WEBP
    """
    data = _read_source(source)
    try:
        with Image.open(io.BytesIO(data)) as image:
            pil_format = image.format
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise InvalidImageDataException(f"Not a valid image: {e}")

    image_format = ImageFormat.from_pil(pil_format)
    if image_format is None:
        raise UnsupportedFormatException(pil_format or "unknown")
    return image_format


def probe_size(source: Source) -> Tuple[int, int]:
    """Read (width, height) from the image header without decoding pixels."""
    data = _read_source(source)
    try:
        with Image.open(io.BytesIO(data)) as image:
            return image.size
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise InvalidImageDataException(f"Not a valid image: {e}")


def decode(source: Source) -> ImageBuffer:
    """
    Decode a file or byte payload into an RGBA ImageBuffer.

    The payload is verified first, then decoded from scratch (Pillow images
    cannot be used after verify()).
    """
    data = _read_source(source)
    image_format = sniff_format(data)

    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            has_alpha = ImageConverters.has_alpha(image)
            pixels = ImageConverters.pil_to_rgba(image)
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise InvalidImageDataException(f"Failed to decode {image_format.value} image: {e}")

    label = str(source) if isinstance(source, (str, Path)) else None
    buffer = ImageBuffer(pixels=pixels, format=image_format, has_alpha=has_alpha, source=label)
    logger.debug(
        f"Decoded {image_format.value} {buffer.width}x{buffer.height} "
        f"(alpha={has_alpha}) from {label or 'memory'}"
    )
    return buffer


def png_compression_for_quality(quality: int) -> int:
    """Higher quality means less compression effort (0..9)."""
    level = round((100 - quality) / 10)
    return max(ImageConstants.PNG_MIN_COMPRESSION, min(ImageConstants.PNG_MAX_COMPRESSION, level))


def encode(
    buffer: ImageBuffer,
    image_format: Optional[ImageFormat] = None,
    quality: int = ImageConstants.DEFAULT_QUALITY,
) -> bytes:
    """
    Encode an ImageBuffer to bytes.

    Args:
        buffer: Image to encode
        image_format: Target format (defaults to the buffer's own format)
        quality: 0-100; JPEG/WebP pass it through, PNG maps it inversely to
            compression effort, GIF ignores it

    Returns:
        Encoded image bytes
    """
    if not ImageConstants.MIN_QUALITY <= quality <= ImageConstants.MAX_QUALITY:
        raise InvalidConfigurationException(f"Quality must be within 0-100, got {quality}")

    image_format = image_format or buffer.format
    image = ImageConverters.rgba_to_pil(buffer._require_pixels())
    save_kwargs = {"format": image_format.pil_name}

    if image_format == ImageFormat.JPEG:
        image = ImageConverters.flatten(image) if buffer.has_alpha else image.convert("RGB")
        save_kwargs["quality"] = quality
        save_kwargs["optimize"] = True
    elif image_format == ImageFormat.PNG:
        if not buffer.has_alpha:
            image = image.convert("RGB")
        save_kwargs["compress_level"] = png_compression_for_quality(quality)
    elif image_format == ImageFormat.GIF:
        if not buffer.has_alpha:
            image = image.convert("RGB")
    elif image_format == ImageFormat.WEBP:
        if not buffer.has_alpha:
            image = image.convert("RGB")
        save_kwargs["quality"] = quality

    output = io.BytesIO()
    try:
        image.save(output, **save_kwargs)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeException(f"Failed to encode {image_format.value}: {e}")

    return output.getvalue()


def destroy(buffer: ImageBuffer) -> None:
    """Release pixel memory; the buffer is unusable afterwards."""
    buffer.pixels = None
