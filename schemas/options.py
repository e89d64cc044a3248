"""
Transformation option models.

This module contains the configuration surface consumed by the engine:
- Watermark placement and sizing
- WebP conversion
- Named derivative sizes
- Whole-request options and the request envelope

Range and required-field validation happens here; the engine treats a
validated TransformOptions as trusted input (apart from resolved sizes).
"""

import re
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from core.constants import ImageConstants, WatermarkConstants
from core.enums import ImageFormat, ResizeMode, SizingMode, WatermarkPosition

SizeValue = Union[int, str]

_SIZE_VALUE_RE = re.compile(r"^\s*\d+(\.\d+)?\s*(px|%)?\s*$", re.IGNORECASE)
_SIZE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _check_size_value(value: Optional[SizeValue], allow_zero: bool = False) -> Optional[SizeValue]:
    if value is None:
        return value
    if isinstance(value, bool):
        raise ValueError("size must be pixels or a 'px'/'%' string")
    if isinstance(value, int):
        if value < 0 or (value == 0 and not allow_zero):
            raise ValueError(f"size must be positive, got {value}")
        return value
    if not _SIZE_VALUE_RE.match(value):
        raise ValueError(f"invalid size value {value!r} (expected e.g. 120, '120px' or '20%')")
    return value.strip()


class WatermarkOptions(BaseModel):
    """Watermark overlay configuration"""

    class Config:
        extra = "forbid"

    enabled: bool = Field(default=False, description="Apply the watermark")
    image: Optional[str] = Field(None, description="Path to the watermark image")
    sizing: Optional[SizingMode] = Field(
        None,
        description="fixed uses width/height; bounded scales native size into max bounds. "
        "Inferred from width/height when omitted",
    )
    width: Optional[SizeValue] = Field(None, description="Fixed width (px or %)")
    height: Optional[SizeValue] = Field(None, description="Fixed height (px or %)")
    max_width: Optional[SizeValue] = Field(None, description="Maximum width (px or %)")
    max_height: Optional[SizeValue] = Field(None, description="Maximum height (px or %)")
    min_width: SizeValue = Field(default=WatermarkConstants.DEFAULT_MIN_SIZE, description="Minimum width")
    min_height: SizeValue = Field(default=WatermarkConstants.DEFAULT_MIN_SIZE, description="Minimum height")
    position: WatermarkPosition = Field(default=WatermarkPosition.BOTTOM_RIGHT)
    opacity: int = Field(default=WatermarkConstants.DEFAULT_OPACITY, ge=0, le=100)
    margin: SizeValue = Field(default=WatermarkConstants.DEFAULT_MARGIN, description="Edge distance (px or %)")

    @field_validator("width", "height", "max_width", "max_height", "min_width", "min_height")
    @classmethod
    def validate_size(cls, value):
        return _check_size_value(value)

    @field_validator("margin")
    @classmethod
    def validate_margin(cls, value):
        return _check_size_value(value, allow_zero=True)

    @field_validator("position", mode="before")
    @classmethod
    def normalize_position(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def check_consistency(self):
        if self.enabled and not self.image:
            raise ValueError("watermark.image is required when watermark is enabled")
        if self.sizing == SizingMode.FIXED and (self.width is None or self.height is None):
            raise ValueError("fixed watermark sizing requires width and height")
        return self

    @property
    def resolved_sizing(self) -> SizingMode:
        """Explicit sizing mode, else fixed when both width and height are set."""
        if self.sizing is not None:
            return self.sizing
        if self.width is not None and self.height is not None:
            return SizingMode.FIXED
        return SizingMode.BOUNDED


class WebpOptions(BaseModel):
    """WebP conversion settings"""

    class Config:
        extra = "forbid"

    enabled: bool = False
    quality: Optional[int] = Field(
        None, ge=0, le=100, description="WebP quality; falls back to the request quality"
    )


class SizeSpec(BaseModel):
    """Named derivative size"""

    class Config:
        extra = "forbid"

    name: str = Field(..., min_length=1, description="Size tag used in the derivative file name")
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    mode: ResizeMode = Field(default=ResizeMode.COVER)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not _SIZE_NAME_RE.match(value):
            raise ValueError(f"size name {value!r} may only contain letters, digits, '_' and '-'")
        return value


class ResizeOptions(BaseModel):
    """Resize applied to the primary output"""

    class Config:
        extra = "forbid"

    width: Optional[int] = Field(None, gt=0)
    height: Optional[int] = Field(None, gt=0)
    mode: ResizeMode = Field(default=ResizeMode.CONTAIN)

    @model_validator(mode="after")
    def check_dimensions(self):
        if self.width is None and self.height is None:
            raise ValueError("resize requires width, height or both")
        return self


class CropRatio(BaseModel):
    """Center crop to an aspect ratio such as 16:9"""

    class Config:
        extra = "forbid"

    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)


class TransformOptions(BaseModel):
    """Options for one transformation request"""

    class Config:
        extra = "forbid"

    quality: int = Field(
        default=ImageConstants.DEFAULT_QUALITY,
        ge=ImageConstants.MIN_QUALITY,
        le=ImageConstants.MAX_QUALITY,
    )
    optimize: bool = Field(default=True, description="Run the lossless optimizer stage")
    webp: WebpOptions = Field(default_factory=WebpOptions)
    watermark: WatermarkOptions = Field(default_factory=WatermarkOptions)
    sizes: List[SizeSpec] = Field(default_factory=list)
    output_format: Optional[ImageFormat] = Field(
        None, description="Convert to this format (WebP settings take precedence)"
    )
    resize: Optional[ResizeOptions] = None
    crop_ratio: Optional[CropRatio] = None

    @field_validator("output_format", mode="before")
    @classmethod
    def normalize_format(cls, value):
        if isinstance(value, str):
            return ImageFormat.from_extension(value) or value
        return value

    @field_validator("sizes")
    @classmethod
    def unique_size_names(cls, sizes: List[SizeSpec]) -> List[SizeSpec]:
        names = [size.name for size in sizes]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate size names: {', '.join(duplicates)}")
        return sizes

    @property
    def webp_quality(self) -> int:
        return self.webp.quality if self.webp.quality is not None else self.quality

    @property
    def needs_raster_stage(self) -> bool:
        """True when pixels must be decoded (not just optimized/copied)."""
        return bool(
            self.watermark.enabled or self.resize or self.crop_ratio or self.output_format
        )


class TransformRequest(BaseModel):
    """A source file, where to write it, and how to transform it"""

    source_path: str
    destination_path: str
    options: TransformOptions = Field(default_factory=TransformOptions)
