"""
Tests for ImageConverters
"""

import base64

import numpy as np
import pytest
from conftest import make_buffer, write_image
from PIL import Image

from core.exceptions import InvalidImageDataException
from core.image.buffer import decode
from core.image.converters import ImageConverters


class TestImageConverters:
    """Test representation conversions"""

    def test_ensure_rgba_from_gray_and_rgb(self):
        """Test grayscale and RGB arrays gain an opaque alpha channel"""
        gray = np.full((3, 4), 7, dtype=np.uint8)
        rgb = np.zeros((3, 4, 3), dtype=np.uint8)

        assert ImageConverters.ensure_rgba(gray).shape == (3, 4, 4)
        assert ImageConverters.ensure_rgba(rgb)[0, 0, 3] == 255

    def test_pil_palette_to_rgba(self):
        """Test palette images convert through Pillow"""
        image = Image.new("RGB", (5, 5), (10, 20, 30)).convert("P")
        pixels = ImageConverters.pil_to_rgba(image)
        assert pixels.shape == (5, 5, 4)

    def test_has_alpha(self):
        """Test alpha detection for modes and transparency keys"""
        assert ImageConverters.has_alpha(Image.new("RGBA", (1, 1)))
        assert not ImageConverters.has_alpha(Image.new("RGB", (1, 1)))

        keyed = Image.new("L", (2, 1), 50)
        keyed.putpixel((0, 0), 0)
        keyed.info["transparency"] = 0
        assert ImageConverters.has_alpha(keyed)
        pixels = ImageConverters.pil_to_rgba(keyed)
        assert (pixels[0, 0, 3], pixels[0, 1, 3]) == (0, 255)

    def test_strip_data_uri(self):
        """Test data URI headers are removed"""
        assert ImageConverters.strip_data_uri("data:image/png;base64,AAAA") == "AAAA"
        assert ImageConverters.strip_data_uri("AAAA") == "AAAA"

    def test_from_base64_accepts_data_uri_and_raw(self, tmp_path):
        """Test both payload styles decode to the same bytes"""
        data = write_image(tmp_path / "a.png", 4, 4).read_bytes()
        raw = base64.b64encode(data).decode()

        assert ImageConverters.from_base64(raw) == data
        assert ImageConverters.from_base64(f"data:image/png;base64,{raw}") == data
        assert ImageConverters.from_base64(raw.encode()) == data

    @pytest.mark.parametrize("payload", ["not base64!!", "", "data:image/png;base64,"])
    def test_from_base64_invalid(self, payload):
        """Test invalid payloads raise InvalidImageData"""
        with pytest.raises(InvalidImageDataException):
            ImageConverters.from_base64(payload)

    def test_to_data_uri(self):
        """Test data URIs decode back to an image of the same size"""
        uri = ImageConverters.to_data_uri(make_buffer(6, 3))

        assert uri.startswith("data:image/png;base64,")
        assert decode(ImageConverters.from_base64(uri)).size == (6, 3)
