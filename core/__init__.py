"""
Core modules for the Imagify transformation engine
"""

from .enums import DriverKind, ImageFormat, ResizeMode, SizingMode, WatermarkPosition
from .exceptions import ImageProcessorException

__all__ = [
    "DriverKind",
    "ImageFormat",
    "ResizeMode",
    "SizingMode",
    "WatermarkPosition",
    "ImageProcessorException",
]
