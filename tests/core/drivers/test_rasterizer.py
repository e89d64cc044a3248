"""
Tests for RasterizerDriver
"""

import numpy as np
import pytest
from conftest import write_gradient, write_image
from PIL import Image, features

from core.cancellation import CancellationToken
from core.drivers.rasterizer import RasterizerDriver
from core.enums import DriverKind, ImageFormat, ResizeMode
from core.exceptions import (
    InvalidImageDataException,
    OperationCancelledException,
    SourceNotFoundException,
    WatermarkSourceException,
)
from core.image.buffer import decode
from schemas.options import TransformOptions

needs_webp = pytest.mark.skipif(not features.check("webp"), reason="Pillow built without WebP")


class TestRasterizerDriver:
    """Test the in-process software path"""

    @pytest.fixture
    def driver(self):
        return RasterizerDriver()

    def test_capability(self, driver):
        """Test the rasterizer is available and handles the core formats"""
        capability = driver.capability()

        assert capability.kind == DriverKind.RASTERIZER
        assert capability.available
        for fmt in (ImageFormat.JPEG, ImageFormat.PNG, ImageFormat.GIF):
            assert capability.supports(fmt)

    def test_watermark_scenario(self, driver, png_source, watermark_png, out_dir):
        """Test 800x600 source with 200x100 mark, bottom-right, margin 10, opacity 50"""
        options = TransformOptions(
            watermark={"enabled": True, "image": str(watermark_png), "opacity": 50, "margin": 10}
        )
        destination = out_dir / "photo.png"

        driver.process(png_source, destination, options)

        result = decode(destination)
        assert result.size == (800, 600)
        red, green, blue = result.pixels[495, 595][:3]
        assert abs(int(red) - 128) <= 1 and green == 0 and abs(int(blue) - 128) <= 1
        assert tuple(result.pixels[100, 100][:3]) == (0, 0, 255)

    def test_idempotent_same_format(self, driver, tmp_path, out_dir):
        """Test re-encoding a PNG with no stages keeps dimensions and pixels"""
        source = write_gradient(tmp_path / "g.png", 64, 48)
        destination = out_dir / "g.png"

        driver.process(source, destination, TransformOptions())

        assert np.array_equal(decode(destination).pixels, decode(source).pixels)

    def test_resize_and_crop_ratio(self, driver, jpeg_source, out_dir):
        """Test ratio crop runs before resize"""
        options = TransformOptions(crop_ratio={"width": 1, "height": 1}, resize={"width": 100})
        destination = out_dir / "square.jpg"

        driver.process(jpeg_source, destination, options)

        assert Image.open(destination).size == (100, 100)

    def test_output_format_option(self, driver, jpeg_source, out_dir):
        """Test explicit output_format converts"""
        destination = out_dir / "photo.out"
        driver.process(jpeg_source, destination, TransformOptions(output_format="png"))
        assert Image.open(destination).format == "PNG"

    def test_destination_extension_picks_format(self, driver, jpeg_source, out_dir):
        """Test the destination extension converts when no format is set"""
        destination = out_dir / "photo.gif"
        driver.process(jpeg_source, destination, TransformOptions())
        assert Image.open(destination).format == "GIF"

    @needs_webp
    def test_webp_takes_precedence(self, driver, jpeg_source, out_dir):
        """Test webp.enabled wins over output_format and extension"""
        destination = out_dir / "photo.jpg"
        options = TransformOptions(webp={"enabled": True, "quality": 70}, output_format="png")

        driver.process(jpeg_source, destination, options)

        assert Image.open(destination).format == "WEBP"

    def test_watermark_failure_keeps_destination(self, driver, jpeg_source, out_dir, tmp_path):
        """Test a failing stage never touches an existing destination"""
        destination = out_dir / "photo.jpg"
        destination.write_bytes(b"previous")
        options = TransformOptions(watermark={"enabled": True, "image": str(tmp_path / "missing.png")})

        with pytest.raises(WatermarkSourceException):
            driver.process(jpeg_source, destination, options)

        assert destination.read_bytes() == b"previous"
        assert [p.name for p in out_dir.iterdir()] == ["photo.jpg"]

    def test_missing_source(self, driver, tmp_path, out_dir):
        """Test missing sources raise SourceNotFound"""
        with pytest.raises(SourceNotFoundException):
            driver.process(tmp_path / "nope.jpg", out_dir / "x.jpg", TransformOptions())

    def test_invalid_source(self, driver, tmp_path, out_dir):
        """Test non-image sources raise InvalidImageData"""
        source = tmp_path / "fake.jpg"
        source.write_text("hello")
        with pytest.raises(InvalidImageDataException):
            driver.process(source, out_dir / "x.jpg", TransformOptions())

    def test_cancelled(self, driver, jpeg_source, out_dir):
        """Test a cancelled token stops before any output"""
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledException):
            driver.process(jpeg_source, out_dir / "x.jpg", TransformOptions(), token)

        assert list(out_dir.iterdir()) == []

    def test_resize_file(self, driver, jpeg_source, out_dir):
        """Test derivative resize keeps the source format"""
        destination = out_dir / "thumb.jpg"

        size = driver.resize_file(jpeg_source, destination, 150, 150, ResizeMode.COVER)

        assert size == (150, 150)
        assert Image.open(destination).format == "JPEG"

    def test_convert_file(self, driver, tmp_path, out_dir):
        """Test format conversion without other stages"""
        source = write_image(tmp_path / "a.png", 20, 10)
        destination = driver.convert_file(source, out_dir / "a.gif", ImageFormat.GIF, 80)
        assert Image.open(destination).format == "GIF"
