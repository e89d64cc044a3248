"""
Centralized enums for the image transformation engine.

All enums shared between schemas, drivers and the orchestrator live here
so that every layer parses the same string values.
"""

from enum import Enum
from typing import Optional


class ImageFormat(str, Enum):
    """Raster formats accepted for decoding and encoding."""

    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"
    WEBP = "webp"

    @property
    def pil_name(self) -> str:
        """Format name as registered in Pillow."""
        return self.value.upper()

    @property
    def extension(self) -> str:
        """Canonical file extension (with dot)."""
        return ".jpg" if self is ImageFormat.JPEG else f".{self.value}"

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @property
    def supports_alpha(self) -> bool:
        return self is not ImageFormat.JPEG

    @classmethod
    def from_pil(cls, name: Optional[str]) -> Optional["ImageFormat"]:
        """Map a Pillow format name ("JPEG", "MPO", ...) to an ImageFormat."""
        if not name:
            return None
        name = name.upper()
        # Pillow reports some camera JPEGs as MPO
        if name in ("JPEG", "MPO"):
            return cls.JPEG
        try:
            return cls(name.lower())
        except ValueError:
            return None

    @classmethod
    def from_extension(cls, path_or_ext: str) -> Optional["ImageFormat"]:
        """Map a file extension or path to an ImageFormat (None if unknown)."""
        ext = path_or_ext.rsplit(".", 1)[-1].lower()
        if ext in ("jpg", "jpeg", "jpe"):
            return cls.JPEG
        try:
            return cls(ext)
        except ValueError:
            return None


class WatermarkPosition(str, Enum):
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"
    CENTER = "center"


class SizingMode(str, Enum):
    """How watermark dimensions are derived."""

    FIXED = "fixed"  # explicit width/height
    BOUNDED = "bounded"  # native size scaled into max_width/max_height


class ResizeMode(str, Enum):
    CONTAIN = "contain"
    COVER = "cover"
    STRETCH = "stretch"


class DriverKind(str, Enum):
    NATIVE = "native"
    RASTERIZER = "rasterizer"
