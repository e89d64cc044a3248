"""
Exception hierarchy for the image transformation engine.

Every error raised by the engine derives from ImageProcessorException and
carries a numeric ``code`` so callers can branch without string matching.
"""

from typing import Optional


class ImageProcessorException(Exception):
    """Base exception for all image processing errors"""

    code = 3

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class SourceNotFoundException(ImageProcessorException):
    """Source image file does not exist"""

    code = 1

    def __init__(self, path):
        self.path = str(path)
        super().__init__(f"Source file not found: {self.path}")


class UnsupportedFormatException(ImageProcessorException):
    """Image format outside of JPEG/PNG/GIF/WEBP or not handled by a driver"""

    code = 2

    def __init__(self, format_name):
        self.format_name = str(format_name)
        super().__init__(f"Unsupported image format: {self.format_name}")


class WatermarkSourceException(ImageProcessorException):
    """Watermark image missing or not decodable"""

    code = 4

    def __init__(self, path, reason: str = "not found"):
        self.path = str(path)
        super().__init__(f"Invalid watermark source {self.path}: {reason}")


class InvalidConfigurationException(ImageProcessorException):
    """Option value that cannot be resolved (non-positive size, bad range, ...)"""

    code = 9


class RegionOutOfBoundsException(InvalidConfigurationException):
    """Composite or crop region falls outside the target buffer"""


class DriverUnavailableException(ImageProcessorException):
    """No usable driver, or a required tool binary is missing"""

    code = 10

    def __init__(self, driver: str):
        self.driver = driver
        super().__init__(f"Driver not available: {driver}")


class InvalidImageDataException(ImageProcessorException):
    """Payload is not a decodable image"""

    code = 11


class EncodeException(ImageProcessorException):
    """Encoding or writing the output image failed"""

    code = 12


class ExternalToolException(ImageProcessorException):
    """External optimizer/encoder exited non-zero, timed out or produced no output"""

    code = 13

    def __init__(self, tool: str, reason: str):
        self.tool = tool
        self.reason = reason
        super().__init__(f"External tool {tool} failed: {reason}")


class OperationCancelledException(ImageProcessorException):
    """Request cancelled between stages"""

    code = 14

    def __init__(self, stage: str = ""):
        self.stage = stage
        suffix = f" before {stage}" if stage else ""
        super().__init__(f"Operation cancelled{suffix}")


class ProcessingException(ImageProcessorException):
    """A single size derivative failed"""

    code = 3

    def __init__(self, size_name: str, reason: str):
        self.size_name = size_name
        self.reason = reason
        super().__init__(f"Failed to process size '{size_name}': {reason}")
