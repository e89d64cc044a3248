"""
Constants and configuration values for the image transformation engine.
Centralizes all magic numbers and tool command profiles.
"""

from enum import Enum


# Image Constants
class ImageConstants:
    """Constants related to decoding and encoding."""

    DEFAULT_QUALITY = 80
    MIN_QUALITY = 0
    MAX_QUALITY = 100

    # PNG compress_level range used by zlib
    PNG_MIN_COMPRESSION = 0
    PNG_MAX_COMPRESSION = 9

    # Decompression bomb guard (pixels)
    MAX_IMAGE_PIXELS = 178_956_970

    # Fill used when flattening alpha for formats without transparency
    FLATTEN_BACKGROUND = (255, 255, 255)

    DATA_URI_PATTERN = r"^data:image/[\w.+-]+;base64,"


# Watermark Constants
class WatermarkConstants:
    """Defaults for watermark placement (original library values)."""

    DEFAULT_OPACITY = 60
    DEFAULT_MARGIN = 10
    DEFAULT_POSITION = "bottom-right"
    DEFAULT_MIN_SIZE = 1

    # Pixel tolerance when checking that resolved size keeps native ratio
    RATIO_TOLERANCE_PX = 1


# Resize Constants
class ResizeConstants:
    # Quality used when writing intermediate resized derivatives
    DERIVATIVE_QUALITY = 90


# Native tool Constants
class ToolConstants:
    """External binaries and their fixed argument profiles."""

    class Tool(str, Enum):
        JPEGTRAN = "jpegtran"
        OPTIPNG = "optipng"
        GIFSICLE = "gifsicle"
        CWEBP = "cwebp"

    DEFAULT_TIMEOUT_S = 60.0
    EXECUTABLE_MODE = 0o755

    # Lossless optimizers: {binary}, {input}, {output} are substituted
    JPEGTRAN_ARGS = ["-copy", "all", "-optimize", "-progressive", "-outfile", "{output}", "{input}"]
    OPTIPNG_ARGS = ["-o2", "-strip", "all", "-out", "{output}", "{input}"]
    GIFSICLE_ARGS = ["-O2", "--colors", "256", "{input}", "-o", "{output}"]

    # Fixed WebP profile: moderate effort, best alpha, exact colors
    CWEBP_ARGS = [
        "-q", "{quality}",
        "-m", "4",
        "-f", "2",
        "-sharpness", "2",
        "-mt",
        "-af",
        "-alpha_q", "100",
        "-alpha_filter", "best",
        "-exact",
        "-pass", "4",
        "-pre", "2",
        "-sns", "50",
        "-strong",
        "-quiet",
        "{input}",
        "-o", "{output}",
    ]

    # OS family -> binary file suffix
    PLATFORM_SUFFIXES = {
        "windows": ".exe",
        "darwin": "-mac",
        "linux": "-linux",
        "freebsd": "-fbsd",
    }


# Pipeline Constants
class PipelineConstants:
    DEFAULT_MAX_WORKERS = 1
    # Stage names double as temp artifact tags
    STAGE_WORK = "work"
    STAGE_WATERMARK = "watermark"
    STAGE_OPTIMIZE = "optimize"
    STAGE_WEBP = "webp"
    STAGE_ENCODE = "encode"
    STAGE_RESIZE = "resize"
    STAGE_INPUT = "input"
