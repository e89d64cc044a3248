"""
Tests for NativeToolDriver

The external binaries are replaced by small POSIX shell scripts (see
conftest.install_tools) that copy their input and log each call.
"""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import (
    EMPTY_BODY,
    FAIL_BODY,
    SLOW_BODY,
    install_tools,
    posix_only,
    tool_calls,
    write_image,
)
from PIL import Image, features

from core.cancellation import CancellationToken
from core.constants import ToolConstants
from core.drivers.native import NativeToolDriver, ToolRunner
from core.enums import DriverKind, ImageFormat
from core.exceptions import (
    DriverUnavailableException,
    ExternalToolException,
    OperationCancelledException,
    UnsupportedFormatException,
)
from core.platform import PlatformCapability
from schemas.options import TransformOptions

needs_webp = pytest.mark.skipif(not features.check("webp"), reason="Pillow built without WebP")

pytestmark = posix_only


def leftovers(directory: Path):
    """Hidden temp artifacts left in a directory"""
    return [p.name for p in directory.iterdir() if p.name.startswith(".")]


class TestToolRunner:
    """Test single tool invocations"""

    def test_success(self, tmp_path):
        """Test exit 0 with an output file succeeds"""
        output = tmp_path / "out.txt"
        ToolRunner().run("sh", ["sh", "-c", f"echo hi > {output}"], output)
        assert output.read_text() == "hi\n"

    def test_non_zero_exit(self, tmp_path):
        """Test non-zero exit raises with the status"""
        with pytest.raises(ExternalToolException) as exc_info:
            ToolRunner().run("sh", ["sh", "-c", "exit 4"], tmp_path / "out")
        assert "exit status 4" in exc_info.value.message

    def test_missing_output(self, tmp_path):
        """Test exit 0 without the declared output file fails"""
        with pytest.raises(ExternalToolException):
            ToolRunner().run("sh", ["sh", "-c", "true"], tmp_path / "out")

    def test_timeout(self, tmp_path):
        """Test timeouts become ExternalToolException"""
        with pytest.raises(ExternalToolException) as exc_info:
            ToolRunner(timeout=0.2).run("sh", ["sh", "-c", "sleep 5"], tmp_path / "out")
        assert "timed out" in exc_info.value.message

    def test_missing_binary(self, tmp_path):
        """Test unlaunchable binaries become ExternalToolException"""
        with pytest.raises(ExternalToolException):
            ToolRunner().run("ghost", [str(tmp_path / "ghost")], tmp_path / "out")

    def test_passes_timeout_to_subprocess(self, tmp_path):
        """Test the configured timeout reaches subprocess.run"""
        with patch("core.drivers.native.subprocess.run", side_effect=subprocess.TimeoutExpired("x", 3)) as run:
            with pytest.raises(ExternalToolException):
                ToolRunner(timeout=3).run("x", ["x"], tmp_path / "out")
        assert run.call_args.kwargs["timeout"] == 3


class TestNativeToolDriver:
    """Test the native stage sequence"""

    @pytest.fixture
    def driver(self, linux_platform):
        return NativeToolDriver(linux_platform)

    def test_available_with_all_tools(self, driver):
        """Test availability requires every binary"""
        capability = driver.capability()

        assert capability.kind == DriverKind.NATIVE
        assert capability.available
        assert capability.formats == frozenset({ImageFormat.JPEG, ImageFormat.PNG, ImageFormat.GIF})

    def test_unavailable_when_tool_missing(self, tool_dir):
        """Test one missing binary makes the driver unavailable"""
        (tool_dir / "gifsicle").unlink()
        driver = NativeToolDriver(PlatformCapability.for_system("linux", tool_dir))

        assert not driver.is_available()
        assert driver.missing_tools == ["gifsicle"]

    def test_suffixed_binaries(self, tmp_path):
        """Test platform-suffixed tool names are found"""
        directory = install_tools(tmp_path / "mac", suffix="-mac")
        driver = NativeToolDriver(PlatformCapability.for_system("darwin", directory))

        assert driver.is_available()
        assert driver.binaries[driver.OPTIMIZERS[ImageFormat.PNG]].name == "optipng-mac"

    def test_process_unavailable_raises(self, tmp_path, jpeg_source, out_dir):
        """Test processing without tools raises DriverUnavailable"""
        driver = NativeToolDriver(PlatformCapability.for_system("linux", tmp_path / "empty"))
        with pytest.raises(DriverUnavailableException):
            driver.process(jpeg_source, out_dir / "x.jpg", TransformOptions())

    @pytest.mark.parametrize(
        "fmt,name,tool",
        [("JPEG", "a.jpg", "jpegtran"), ("PNG", "a.png", "optipng"), ("GIF", "a.gif", "gifsicle")],
    )
    def test_optimizer_per_format(self, driver, tool_dir, tmp_path, out_dir, fmt, name, tool):
        """Test each format runs its own optimizer"""
        source = write_image(tmp_path / "src" / name, 40, 30, fmt=fmt)
        destination = out_dir / name

        driver.process(source, destination, TransformOptions())

        assert tool_calls(tool_dir) == [tool]
        assert destination.read_bytes() == source.read_bytes()
        assert leftovers(out_dir) == []

    def test_optimize_disabled(self, driver, tool_dir, jpeg_source, out_dir):
        """Test optimize=False copies without invoking tools"""
        driver.process(jpeg_source, out_dir / "photo.jpg", TransformOptions(optimize=False))
        assert tool_calls(tool_dir) == []

    def test_command_profiles(self, driver, tool_dir):
        """Test fixed argument profiles with substituted paths"""
        jpeg = driver.build_command(driver.OPTIMIZERS[ImageFormat.JPEG], Path("in.jpg"), Path("out.jpg"))
        webp = driver.build_command(ToolConstants.Tool.CWEBP, Path("in.png"), Path("out.webp"), quality=75)

        assert jpeg[0] == str(tool_dir / "jpegtran")
        assert jpeg[-3:] == ["-outfile", "out.jpg", "in.jpg"]
        assert webp[1:3] == ["-q", "75"]
        assert webp[-3:] == ["in.png", "-o", "out.webp"]

    def test_failed_optimizer_keeps_image(self, tmp_path, jpeg_source, out_dir):
        """Test a non-zero optimizer exit leaves the unoptimized output"""
        directory = install_tools(tmp_path / "broken", bodies={"jpegtran": FAIL_BODY})
        driver = NativeToolDriver(PlatformCapability.for_system("linux", directory))
        destination = out_dir / "photo.jpg"

        driver.process(jpeg_source, destination, TransformOptions())

        assert destination.read_bytes() == jpeg_source.read_bytes()
        assert leftovers(out_dir) == []

    def test_empty_optimizer_output_is_failure(self, tmp_path, jpeg_source, out_dir):
        """Test exit 0 with an empty output file does not replace the image"""
        directory = install_tools(tmp_path / "empty", bodies={"jpegtran": EMPTY_BODY})
        driver = NativeToolDriver(PlatformCapability.for_system("linux", directory))
        destination = out_dir / "photo.jpg"

        driver.process(jpeg_source, destination, TransformOptions())

        assert destination.stat().st_size == jpeg_source.stat().st_size

    def test_optimizer_timeout_is_skipped(self, tmp_path, jpeg_source, out_dir):
        """Test a hanging optimizer is killed and the stage skipped"""
        directory = install_tools(tmp_path / "slow", bodies={"jpegtran": SLOW_BODY})
        driver = NativeToolDriver(PlatformCapability.for_system("linux", directory), timeout=0.3)
        destination = out_dir / "photo.jpg"

        driver.process(jpeg_source, destination, TransformOptions())

        assert destination.read_bytes() == jpeg_source.read_bytes()

    @needs_webp
    def test_webp_conversion(self, driver, tool_dir, jpeg_source, out_dir):
        """Test cwebp runs after the optimizer and its output is committed"""
        destination = out_dir / "photo.webp"

        with patch.object(driver.rasterizer, "process") as raster:
            driver.process(jpeg_source, destination, TransformOptions(webp={"enabled": True}))

        # Optimized as JPEG, then encoded to WebP exactly once
        raster.assert_not_called()
        assert tool_calls(tool_dir) == ["jpegtran", "cwebp"]
        assert Image.open(destination).format == "WEBP"
        assert leftovers(out_dir) == []

    @needs_webp
    def test_webp_with_watermark_optimizes_first(self, driver, tool_dir, png_source, watermark_png, out_dir):
        """Test the raster stage keeps the source format when WebP is requested"""
        destination = out_dir / "photo.webp"
        options = TransformOptions(
            webp={"enabled": True}, watermark={"enabled": True, "image": str(watermark_png)}
        )

        driver.process(png_source, destination, options)

        assert tool_calls(tool_dir) == ["optipng", "cwebp"]
        assert Image.open(destination).format == "WEBP"

    @pytest.mark.parametrize(
        "options,destination,expected",
        [
            ({"webp": {"enabled": True}}, "a.webp", ImageFormat.JPEG),
            ({"webp": {"enabled": True}, "output_format": "png"}, "a.webp", ImageFormat.PNG),
            ({"webp": {"enabled": True}, "output_format": "webp"}, "a.webp", ImageFormat.JPEG),
            ({}, "a.png", ImageFormat.PNG),
            ({"output_format": "gif"}, "a.png", ImageFormat.GIF),
            ({}, "a.bin", ImageFormat.JPEG),
        ],
    )
    def test_work_format(self, driver, options, destination, expected):
        """Test which format the optimizer stage works in"""
        result = driver.work_format(ImageFormat.JPEG, Path(destination), TransformOptions(**options))
        assert result == expected

    @needs_webp
    def test_webp_tool_failure_falls_back(self, tmp_path, jpeg_source, out_dir):
        """Test a failing cwebp is replaced by the rasterizer encoder"""
        directory = install_tools(tmp_path / "nowebp", bodies={"cwebp": FAIL_BODY})
        driver = NativeToolDriver(PlatformCapability.for_system("linux", directory))
        destination = out_dir / "photo.webp"

        driver.process(jpeg_source, destination, TransformOptions(webp={"enabled": True}))

        assert Image.open(destination).format == "WEBP"
        assert leftovers(out_dir) == []

    def test_watermark_goes_through_rasterizer(self, driver, tool_dir, png_source, watermark_png, out_dir):
        """Test the watermark stage runs before optimization"""
        destination = out_dir / "photo.png"
        options = TransformOptions(
            watermark={"enabled": True, "image": str(watermark_png), "opacity": 100, "margin": 0}
        )

        driver.process(png_source, destination, options)

        image = Image.open(destination).convert("RGB")
        assert image.getpixel((799, 599)) == (255, 0, 0)
        assert image.getpixel((0, 0)) == (0, 0, 255)
        assert tool_calls(tool_dir) == ["optipng"]

    def test_unsupported_source(self, driver, tmp_path, out_dir):
        """Test WebP sources are not handled natively"""
        if not features.check("webp"):
            pytest.skip("Pillow built without WebP")
        source = tmp_path / "a.webp"
        Image.new("RGB", (4, 4)).save(source, format="WEBP")
        with pytest.raises(UnsupportedFormatException):
            driver.process(source, out_dir / "a.webp", TransformOptions())

    def test_cancellation_cleans_up(self, driver, jpeg_source, out_dir):
        """Test cancelling leaves no output and no temp files"""
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledException):
            driver.process(jpeg_source, out_dir / "photo.jpg", TransformOptions(), token)

        assert list(out_dir.iterdir()) == []
