"""
Image processing utilities - modular architecture.

This package provides the in-process building blocks of the rasterizer:
- buffer: Decoded RGBA ImageBuffer plus decode/encode/destroy
- converters: Representation conversions (PIL, NumPy, base64, data URIs)
- geometry: Resize, crop and watermark layout math
- compositor: Alpha compositing of one buffer onto another
- processors: Resize and crop operations on buffers
"""

from core.image.buffer import ImageBuffer, decode, destroy, encode, probe_size, sniff_format
from core.image.compositor import composite
from core.image.converters import ImageConverters
from core.image.geometry import ImageGeometry
from core.image.processors import ImageProcessors

__all__ = [
    "ImageBuffer",
    "decode",
    "encode",
    "destroy",
    "sniff_format",
    "probe_size",
    "composite",
    "ImageConverters",
    "ImageGeometry",
    "ImageProcessors",
]
