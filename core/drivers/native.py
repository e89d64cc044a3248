"""
Native tool driver - shells out to bundled optimizer/encoder binaries.

Stages per request, each on a working copy beside the destination:

1. raster stage (watermark / crop / resize / format change) through the
   rasterizer, since the binaries cannot composite
2. lossless optimize with jpegtran / optipng / gifsicle, swapped in only on
   success
3. WebP conversion with cwebp; on failure the rasterizer encodes instead
4. atomic move of the last artifact onto the destination

Tool failures in stages 2-3 never abort the request.
"""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional

from core.artifacts import ArtifactScope, staged_replacement
from core.cancellation import CancellationToken, check_cancelled
from core.constants import PipelineConstants, ToolConstants
from core.drivers.base import ImageDriver, PathLike
from core.drivers.rasterizer import RasterizerDriver
from core.enums import DriverKind, ImageFormat
from core.exceptions import (
    DriverUnavailableException,
    ExternalToolException,
    SourceNotFoundException,
    UnsupportedFormatException,
)
from core.image.buffer import sniff_format
from core.platform import PlatformCapability
from schemas.options import TransformOptions, WebpOptions

logger = logging.getLogger(__name__)

Tool = ToolConstants.Tool

_TOOL_ARGS = {
    Tool.JPEGTRAN: ToolConstants.JPEGTRAN_ARGS,
    Tool.OPTIPNG: ToolConstants.OPTIPNG_ARGS,
    Tool.GIFSICLE: ToolConstants.GIFSICLE_ARGS,
    Tool.CWEBP: ToolConstants.CWEBP_ARGS,
}


class ToolRunner:
    """Runs one external tool invocation with a timeout"""

    def __init__(self, timeout: float = ToolConstants.DEFAULT_TIMEOUT_S):
        self.timeout = timeout

    def run(self, tool: str, command: List[str], output: Path) -> None:
        """
        Execute a tool and check its declared output.

        Success means exit status 0 and a non-empty ``output`` file.

        Raises:
            ExternalToolException: Non-zero exit, timeout, launch failure or
                missing/empty output
        """
        logger.debug(f"Running: {' '.join(command)}")
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            raise ExternalToolException(tool, f"timed out after {self.timeout}s")
        except OSError as e:
            raise ExternalToolException(tool, f"could not be started: {e}")

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise ExternalToolException(tool, f"exit status {result.returncode}: {stderr[:200]}")

        if not output.is_file() or output.stat().st_size == 0:
            raise ExternalToolException(tool, f"no output written to {output}")


class NativeToolDriver(ImageDriver):
    """Driver using external binaries selected for the host platform"""

    kind = DriverKind.NATIVE

    OPTIMIZERS = {
        ImageFormat.JPEG: Tool.JPEGTRAN,
        ImageFormat.PNG: Tool.OPTIPNG,
        ImageFormat.GIF: Tool.GIFSICLE,
    }

    def __init__(
        self,
        platform: PlatformCapability,
        rasterizer: Optional[RasterizerDriver] = None,
        runner: Optional[ToolRunner] = None,
        timeout: float = ToolConstants.DEFAULT_TIMEOUT_S,
    ):
        """
        Initialize native tool driver.

        Args:
            platform: Where the binaries live and how they are suffixed
            rasterizer: Software driver used for raster stages and WebP fallback
            runner: Tool runner (defaults to one using ``timeout``)
            timeout: Per-invocation timeout in seconds
        """
        self.platform = platform
        self.rasterizer = rasterizer or RasterizerDriver()
        self.runner = runner or ToolRunner(timeout)
        self.binaries: Dict[Tool, Path] = self._discover()

    def _discover(self) -> Dict[Tool, Path]:
        binaries = {}
        for tool in Tool:
            path = self.platform.find_tool(tool.value)
            if path is None:
                logger.info(f"Native tool {tool.value} not found in {self.platform.binary_dir}")
                continue
            binaries[tool] = path
        return binaries

    @property
    def missing_tools(self) -> List[str]:
        return [
            tool.value
            for tool in Tool
            if tool not in self.binaries or not os.access(self.binaries[tool], os.X_OK)
        ]

    def is_available(self) -> bool:
        return not self.missing_tools

    def supported_formats(self) -> FrozenSet[ImageFormat]:
        return frozenset(self.OPTIMIZERS)

    def build_command(
        self, tool: Tool, input_path: Path, output_path: Path, quality: Optional[int] = None
    ) -> List[str]:
        """Fixed argument profile for a tool with paths substituted."""
        binary = self.binaries.get(tool)
        if binary is None:
            raise DriverUnavailableException(f"native tools (missing {tool.value})")

        values = {
            "input": str(input_path),
            "output": str(output_path),
            "quality": str(max(0, min(100, quality if quality is not None else 0))),
        }
        return [str(binary)] + [arg.format(**values) for arg in _TOOL_ARGS[tool]]

    def work_format(
        self, source_format: ImageFormat, destination: Path, options: TransformOptions
    ) -> ImageFormat:
        """
        Format the file is optimized in before any WebP conversion.

        With WebP enabled the destination extension names the final WebP
        file, so the work file stays in an optimizable format (the
        requested output_format, else the source format) and cwebp encodes once.
        """
        if options.webp.enabled:
            if options.output_format in self.supported_formats():
                return options.output_format
            return source_format
        return options.output_format or ImageFormat.from_extension(str(destination)) or source_format

    def process(
        self,
        source: PathLike,
        destination: PathLike,
        options: TransformOptions,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Path:
        """
        Run raster -> optimize -> WebP -> finalize for one file.

        Args:
            source: Source image path
            destination: Output path (replaced atomically at the end)
            options: Request options
            cancel_token: Optional cancellation token checked between stages

        Returns:
            The destination path

        Raises:
            DriverUnavailableException: A required binary is missing
            SourceNotFoundException: Source does not exist
            UnsupportedFormatException: Source format has no optimizer
        """
        if not self.is_available():
            raise DriverUnavailableException(
                f"native tools (missing {', '.join(self.missing_tools)})"
            )

        source, destination = Path(source), Path(destination)
        if not source.is_file():
            raise SourceNotFoundException(source)

        source_format = sniff_format(source)
        if source_format not in self.supported_formats():
            raise UnsupportedFormatException(source_format.value)

        work_format = self.work_format(source_format, destination, options)

        with ArtifactScope(destination) as scope:
            work = scope.create(PipelineConstants.STAGE_WORK, work_format.extension)

            if options.needs_raster_stage or work_format != source_format:
                check_cancelled(cancel_token, PipelineConstants.STAGE_WATERMARK)
                raster_options = options.model_copy(
                    update={"webp": WebpOptions(enabled=False), "output_format": work_format}
                )
                self.rasterizer.process(source, work, raster_options, cancel_token)
            else:
                shutil.copyfile(source, work)

            if options.optimize:
                check_cancelled(cancel_token, PipelineConstants.STAGE_OPTIMIZE)
                self.optimize(work, work_format)

            final = work
            if options.webp.enabled:
                check_cancelled(cancel_token, PipelineConstants.STAGE_WEBP)
                final = self.convert_to_webp(work, scope, options.webp_quality)

            check_cancelled(cancel_token, "finalize")
            scope.commit(final, destination)

        logger.info(f"Native pipeline {source} -> {destination}")
        return destination

    def optimize(self, path: Path, image_format: ImageFormat) -> bool:
        """
        Losslessly optimize a file in place.

        The tool writes to a temp file that replaces ``path`` only on
        success; any failure leaves ``path`` untouched.

        Returns:
            True if the optimized file was swapped in
        """
        tool = self.OPTIMIZERS.get(image_format)
        if tool is None:
            return False

        try:
            with staged_replacement(path, PipelineConstants.STAGE_OPTIMIZE) as temp:
                self.runner.run(tool.value, self.build_command(tool, path, temp), temp)
        except ExternalToolException as e:
            logger.warning(f"Optimization skipped for {path.name}: {e.message}")
            return False

        logger.debug(f"Optimized {path.name} with {tool.value}")
        return True

    def convert_to_webp(self, path: Path, scope: ArtifactScope, quality: int) -> Path:
        """
        Convert to WebP with cwebp, falling back to the rasterizer.

        Returns:
            Path of the WebP artifact (registered with ``scope``)
        """
        target = scope.create(PipelineConstants.STAGE_WEBP, ImageFormat.WEBP.extension)
        try:
            self.runner.run(
                Tool.CWEBP.value,
                self.build_command(Tool.CWEBP, path, target, quality=quality),
                target,
            )
            return target
        except ExternalToolException as e:
            logger.warning(f"{e.message}; converting to WebP with the rasterizer")

        scope.discard(target)
        target = scope.create(PipelineConstants.STAGE_WEBP, ImageFormat.WEBP.extension)
        return self.rasterizer.convert_file(path, target, ImageFormat.WEBP, quality)
