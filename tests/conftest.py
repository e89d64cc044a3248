"""
Pytest configuration and fixtures for Imagify tests
"""

import os
import sys
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from core.enums import ImageFormat
from core.image.buffer import ImageBuffer
from core.platform import PlatformCapability

# Stand-in tool: copies its input to the path following -outfile/-out/-o and
# appends the invocation to calls.log beside itself.
FAKE_TOOL = """#!/bin/sh
out=""
input=""
prev=""
for arg in "$@"; do
  case "$prev" in
    -outfile|-out|-o) out="$arg" ;;
    *) if [ -f "$arg" ]; then input="$arg"; fi ;;
  esac
  prev="$arg"
done
echo "$(basename "$0") $*" >> "$(dirname "$0")/calls.log"
{body}
"""

COPY_BODY = 'cp "$input" "$out"'
FAIL_BODY = 'echo "boom" >&2\nexit 3'
SLOW_BODY = 'exec sleep 5'
EMPTY_BODY = ': > "$out"'

TOOLS = ("jpegtran", "optipng", "gifsicle", "cwebp")

posix_only = pytest.mark.skipif(os.name == "nt", reason="stand-in tools are POSIX shell scripts")


def rgba(width, height, color=(200, 30, 30, 255)):
    """Solid RGBA array of shape (height, width, 4)"""
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[...] = color
    return pixels


def make_buffer(width, height, color=(200, 30, 30, 255), has_alpha=False, image_format=ImageFormat.PNG):
    """Create an ImageBuffer filled with one color"""
    return ImageBuffer(pixels=rgba(width, height, color), format=image_format, has_alpha=has_alpha)


def write_image(path, width, height, color=(200, 30, 30), fmt="PNG"):
    """Write a solid image with Pillow; RGBA when color has 4 components"""
    mode = "RGBA" if len(color) == 4 else "RGB"
    image = Image.new(mode, (width, height), color)
    if fmt == "JPEG" and mode == "RGBA":
        image = image.convert("RGB")
    if fmt == "GIF":
        image = image.convert("P")
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path, format=fmt)
    return path


def write_gradient(path, width, height, fmt="PNG"):
    """Horizontal/vertical gradient, so crops and scales are distinguishable"""
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[..., 0] = xs[np.newaxis, :].astype(np.uint8)
    pixels[..., 1] = ys[:, np.newaxis].astype(np.uint8)
    pixels[..., 2] = 128
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(pixels).save(path, format=fmt)
    return path


def install_tools(directory, bodies=None, suffix=""):
    """
    Write stand-in tool scripts.

    Args:
        directory: Target directory
        bodies: Optional {tool: shell body} overrides (default copies input)
        suffix: Platform suffix appended to file names
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    bodies = bodies or {}
    for tool in TOOLS:
        body = bodies.get(tool, webp_body() if tool == "cwebp" else COPY_BODY)
        script = directory / f"{tool}{suffix}"
        script.write_text(FAKE_TOOL.format(body=body))
        script.chmod(0o755)
    return directory


def webp_body():
    """cwebp stand-in that really encodes WebP through this interpreter's Pillow"""
    code = "import sys; from PIL import Image; Image.open(sys.argv[1]).save(sys.argv[2], 'WEBP')"
    return f'"{sys.executable}" -c "{code}" "$input" "$out"'


def tool_calls(directory):
    """Tool names invoked so far, in order"""
    log = Path(directory) / "calls.log"
    if not log.exists():
        return []
    return [line.split(" ", 1)[0] for line in log.read_text().splitlines()]


@pytest.fixture
def jpeg_source(tmp_path):
    """800x600 JPEG source"""
    return write_gradient(tmp_path / "in" / "photo.jpg", 800, 600, fmt="JPEG")


@pytest.fixture
def png_source(tmp_path):
    """800x600 opaque PNG source (lossless, for pixel assertions)"""
    return write_image(tmp_path / "in" / "photo.png", 800, 600, color=(0, 0, 255))


@pytest.fixture
def watermark_png(tmp_path):
    """200x100 fully opaque red PNG carrying an alpha channel"""
    return write_image(tmp_path / "marks" / "logo.png", 200, 100, color=(255, 0, 0, 255))


@pytest.fixture
def out_dir(tmp_path):
    directory = tmp_path / "out"
    directory.mkdir()
    return directory


@pytest.fixture
def tool_dir(tmp_path):
    """Directory with working stand-in tools"""
    return install_tools(tmp_path / "bin")


@pytest.fixture
def linux_platform(tool_dir):
    return PlatformCapability.for_system("linux", tool_dir)
