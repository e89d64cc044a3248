"""
Schemas Package

This package contains all Pydantic schemas for option validation and result
serialization, shared across all application layers:
- Services (pipeline orchestration)
- Core (drivers, watermark)
- Entry points (CLI)
"""

# Re-export enums from centralized location for convenience
from core.enums import DriverKind, ImageFormat, ResizeMode, SizingMode, WatermarkPosition

# Option models
from .options import (
    CropRatio,
    ResizeOptions,
    SizeSpec,
    TransformOptions,
    TransformRequest,
    WatermarkOptions,
    WebpOptions,
)

# Result models
from .results import DerivativeResult, TransformResult

# Explicitly declare public API for re-export
__all__ = [
    # Option models
    "CropRatio",
    "ResizeOptions",
    "SizeSpec",
    "TransformOptions",
    "TransformRequest",
    "WatermarkOptions",
    "WebpOptions",
    # Result models
    "DerivativeResult",
    "TransformResult",
    # Enums (re-exported from core.enums)
    "DriverKind",
    "ImageFormat",
    "ResizeMode",
    "SizingMode",
    "WatermarkPosition",
]
