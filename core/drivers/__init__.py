"""
Image drivers - interchangeable strategies behind one contract.

- base: ImageDriver contract and DriverCapability
- rasterizer: in-process Pillow/NumPy/OpenCV path
- native: external optimizer and WebP encoder binaries
"""

from core.drivers.base import DriverCapability, ImageDriver
from core.drivers.native import NativeToolDriver, ToolRunner
from core.drivers.rasterizer import RasterizerDriver

__all__ = [
    "DriverCapability",
    "ImageDriver",
    "NativeToolDriver",
    "RasterizerDriver",
    "ToolRunner",
]
