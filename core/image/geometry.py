"""
Geometric calculations for resize, crop and watermark placement.

Pure functions only: every method takes plain integers (or size values such
as ``"20%"``/``"120px"``) and returns integers. No image data is touched here.
Any dimension that resolves to zero or below raises
InvalidConfigurationException; no default is ever substituted silently.
"""

import logging
import math
import re
from typing import Optional, Tuple, Union

from core.constants import WatermarkConstants
from core.enums import SizingMode, WatermarkPosition
from core.exceptions import InvalidConfigurationException
from core.utils.enum_converter import parse_enum

logger = logging.getLogger(__name__)

SizeValue = Union[int, float, str]
Margin = Union[SizeValue, Tuple[int, int]]

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(px|%)?\s*$", re.IGNORECASE)

# position -> (x, y) given container (cw, ch), item (iw, ih) and margins (mx, my)
_POSITION_TABLE = {
    WatermarkPosition.TOP_LEFT: lambda cw, ch, iw, ih, mx, my: (mx, my),
    WatermarkPosition.TOP_RIGHT: lambda cw, ch, iw, ih, mx, my: (cw - iw - mx, my),
    WatermarkPosition.BOTTOM_LEFT: lambda cw, ch, iw, ih, mx, my: (mx, ch - ih - my),
    WatermarkPosition.BOTTOM_RIGHT: lambda cw, ch, iw, ih, mx, my: (cw - iw - mx, ch - ih - my),
    WatermarkPosition.CENTER: lambda cw, ch, iw, ih, mx, my: (
        round_half_up((cw - iw) / 2),
        round_half_up((ch - ih) / 2),
    ),
}


def round_half_up(value: float) -> int:
    """Round to nearest integer with .5 going up (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def _require_positive(name: str, *values: int) -> None:
    for value in values:
        if value is None or value <= 0:
            raise InvalidConfigurationException(f"{name} must be positive, got {value}")


class ImageGeometry:
    """Geometry engine for resize, crop and watermark layout."""

    @staticmethod
    def parse_size(value: SizeValue, base: int) -> int:
        """
        Convert a size value to pixels without validating the result.

        Args:
            value: Absolute pixels (int), ``"120px"``, ``"120"`` or ``"20%"``
            base: Reference length for percentages

        Returns:
            Pixel count (may be zero)
        """
        if isinstance(value, bool):
            raise InvalidConfigurationException(f"Invalid size value: {value!r}")
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value)

        match = _SIZE_PATTERN.match(str(value))
        if not match:
            raise InvalidConfigurationException(f"Invalid size value: {value!r}")

        number, unit = match.groups()
        if unit == "%":
            return int(math.floor(base * float(number) / 100))
        return int(float(number))

    @staticmethod
    def resolve_size(value: SizeValue, base: int) -> int:
        """
        Resolve a size value against a base length.

        Percentages resolve to ``floor(base * percent / 100)``; absolute
        integers pass through unchanged.

        Raises:
            InvalidConfigurationException: If the resolved size is not positive
        """
        pixels = ImageGeometry.parse_size(value, base)
        if pixels <= 0:
            raise InvalidConfigurationException(
                f"Size {value!r} resolves to {pixels}px against base {base}"
            )
        return pixels

    @staticmethod
    def resolve_margin(value: SizeValue, base: int) -> int:
        """Resolve a margin (px or %); zero is allowed, negatives are not."""
        pixels = ImageGeometry.parse_size(value, base)
        if pixels < 0:
            raise InvalidConfigurationException(f"Margin must be >= 0, got {value!r}")
        return pixels

    @staticmethod
    def resolve_watermark_dimensions(
        spec,
        image_width: int,
        image_height: int,
        native_width: int,
        native_height: int,
    ) -> Tuple[int, int]:
        """
        Resolve final watermark size for a given image.

        Fixed sizing uses the configured width/height directly. Bounded sizing
        scales the native watermark by a single ratio so it fits max_width and
        max_height (either may be unset). Both are clamped to the minimums and
        the native aspect ratio is restored afterwards by growing whichever
        axis clamping left too short.

        Args:
            spec: Watermark options (width, height, max_width, max_height,
                min_width, min_height and ``resolved_sizing``)
            image_width: Width of the image receiving the watermark
            image_height: Height of the image receiving the watermark
            native_width: Decoded watermark width
            native_height: Decoded watermark height

        Returns:
            Tuple of (width, height)
        """
        _require_positive("Image dimension", image_width, image_height)
        _require_positive("Watermark dimension", native_width, native_height)

        min_w = ImageGeometry.resolve_size(
            _attr(spec, "min_width", WatermarkConstants.DEFAULT_MIN_SIZE), image_width
        )
        min_h = ImageGeometry.resolve_size(
            _attr(spec, "min_height", WatermarkConstants.DEFAULT_MIN_SIZE), image_height
        )

        sizing = _attr(spec, "resolved_sizing", None) or SizingMode.BOUNDED
        if sizing == SizingMode.FIXED:
            width = ImageGeometry.resolve_size(spec.width, image_width)
            height = ImageGeometry.resolve_size(spec.height, image_height)
        else:
            max_w = _optional_size(_attr(spec, "max_width", None), image_width)
            max_h = _optional_size(_attr(spec, "max_height", None), image_height)

            if max_w and max_h:
                ratio = min(max_w / native_width, max_h / native_height)
            elif max_w:
                ratio = max_w / native_width
            elif max_h:
                ratio = max_h / native_height
            else:
                ratio = 1.0

            width = max(1, round_half_up(native_width * ratio))
            height = max(1, round_half_up(native_height * ratio))

        width = max(width, min_w)
        height = max(height, min_h)

        width, height = ImageGeometry.restore_aspect_ratio(
            width, height, native_width, native_height
        )
        logger.debug(
            f"Watermark {native_width}x{native_height} resolved to {width}x{height} "
            f"for image {image_width}x{image_height} ({sizing.value})"
        )
        return width, height

    @staticmethod
    def restore_aspect_ratio(
        width: int, height: int, native_width: int, native_height: int
    ) -> Tuple[int, int]:
        """
        Re-derive one axis so width/height matches native_width/native_height.

        The axis that is too short relative to the other is grown, so any
        minimum already applied still holds.
        """
        expected_height = max(1, round_half_up(width * native_height / native_width))
        if abs(expected_height - height) <= WatermarkConstants.RATIO_TOLERANCE_PX:
            return width, height

        if height < expected_height:
            return width, expected_height
        return max(1, round_half_up(height * native_width / native_height)), height

    @staticmethod
    def resolve_position(
        position: Union[WatermarkPosition, str, None],
        container_width: int,
        container_height: int,
        item_width: int,
        item_height: int,
        margin: Margin = 0,
    ) -> Tuple[int, int]:
        """
        Compute the top-left offset of an item placed inside a container.

        Args:
            position: One of WatermarkPosition; unknown values fall back to
                bottom-right
            container_width: Container width
            container_height: Container height
            item_width: Item width
            item_height: Item height
            margin: Edge distance, as px/% value or an explicit (mx, my) tuple

        Returns:
            Tuple of (x, y)
        """
        parsed = parse_enum(position, WatermarkPosition, None, normalize=True)
        if parsed is None:
            logger.warning(f"Unknown watermark position {position!r}, using bottom-right")
            parsed = WatermarkPosition.BOTTOM_RIGHT

        if isinstance(margin, tuple):
            margin_x, margin_y = margin
        else:
            margin_x = ImageGeometry.resolve_margin(margin, container_width)
            margin_y = ImageGeometry.resolve_margin(margin, container_height)

        return _POSITION_TABLE[parsed](
            container_width, container_height, item_width, item_height, margin_x, margin_y
        )

    @staticmethod
    def clamp_offset(
        x: int,
        y: int,
        item_width: int,
        item_height: int,
        container_width: int,
        container_height: int,
    ) -> Tuple[int, int]:
        """Pull an offset back inside the container (item must already fit)."""
        return (
            max(0, min(x, container_width - item_width)),
            max(0, min(y, container_height - item_height)),
        )

    @staticmethod
    def resize_contain(src_width: int, src_height: int, dst_width: int, dst_height: int) -> Tuple[int, int]:
        """Scale to fit entirely inside the destination box (no cropping)."""
        _require_positive("Source dimension", src_width, src_height)
        _require_positive("Target dimension", dst_width, dst_height)

        scale = min(dst_width / src_width, dst_height / src_height)
        scaled_w = min(dst_width, max(1, round_half_up(src_width * scale)))
        scaled_h = min(dst_height, max(1, round_half_up(src_height * scale)))
        return scaled_w, scaled_h

    @staticmethod
    def resize_cover(
        src_width: int, src_height: int, dst_width: int, dst_height: int
    ) -> Tuple[int, int, int, int]:
        """
        Scale to fill the destination box, then center-crop the overflow.

        Returns:
            Tuple of (scaled_width, scaled_height, crop_x, crop_y); cropping the
            scaled image at (crop_x, crop_y) with the destination size yields
            exactly (dst_width, dst_height)
        """
        _require_positive("Source dimension", src_width, src_height)
        _require_positive("Target dimension", dst_width, dst_height)

        scale = max(dst_width / src_width, dst_height / src_height)
        scaled_w = max(dst_width, round_half_up(src_width * scale))
        scaled_h = max(dst_height, round_half_up(src_height * scale))

        crop_x = (scaled_w - dst_width) // 2
        crop_y = (scaled_h - dst_height) // 2
        return scaled_w, scaled_h, crop_x, crop_y

    @staticmethod
    def crop_by_ratio(
        src_width: int, src_height: int, ratio_width: float, ratio_height: float
    ) -> Tuple[int, int, int, int]:
        """
        Largest centered region of the source with the requested aspect ratio.

        Returns:
            Tuple of (x, y, width, height)
        """
        _require_positive("Source dimension", src_width, src_height)
        if not ratio_width or not ratio_height or ratio_width <= 0 or ratio_height <= 0:
            raise InvalidConfigurationException(
                f"Crop ratio must be positive, got {ratio_width}:{ratio_height}"
            )

        target_ratio = ratio_width / ratio_height
        current_ratio = src_width / src_height

        if current_ratio > target_ratio:
            new_width = min(src_width, max(1, round_half_up(src_height * target_ratio)))
            x = round_half_up((src_width - new_width) / 2)
            return x, 0, new_width, src_height

        new_height = min(src_height, max(1, round_half_up(src_width / target_ratio)))
        y = round_half_up((src_height - new_height) / 2)
        return 0, y, src_width, new_height


def _attr(spec, name: str, default):
    value = getattr(spec, name, default)
    return default if value is None else value


def _optional_size(value: Optional[SizeValue], base: int) -> Optional[int]:
    """Resolve an optional max bound; unset or zero means no bound."""
    if value is None or value == 0 or value == "":
        return None
    return ImageGeometry.resolve_size(value, base)
