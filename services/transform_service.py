"""
Transform Service - Orchestrates image transformation requests.

This service owns driver selection and the per-request flow:
- Driver selection (native tools preferred, rasterizer fallback), resolved once
- Named size derivatives, optionally on a worker pool
- The full-resolution primary output
- In-memory (bytes / base64) ingestion
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Optional, Union

from core.artifacts import ArtifactScope
from core.cancellation import CancellationToken, check_cancelled
from core.constants import PipelineConstants, ToolConstants
from core.drivers import ImageDriver, NativeToolDriver, RasterizerDriver
from core.drivers.base import PathLike
from core.enums import DriverKind, ImageFormat
from core.exceptions import (
    DriverUnavailableException,
    EncodeException,
    ExternalToolException,
    ProcessingException,
    SourceNotFoundException,
    UnsupportedFormatException,
    WatermarkSourceException,
)
from core.image.buffer import probe_size, sniff_format
from core.image.converters import ImageConverters
from core.platform import PlatformCapability
from core.utils.decorators import timer
from core.utils.params_processor import prepare_params
from schemas.options import SizeSpec, TransformOptions, TransformRequest
from schemas.results import DerivativeResult, TransformResult

logger = logging.getLogger(__name__)

OptionsInput = Optional[Union[TransformOptions, Dict]]

# Failures that abort a single derivative instead of the whole request
DERIVATIVE_ERRORS = (
    EncodeException,
    ExternalToolException,
    ProcessingException,
    WatermarkSourceException,
)


class TransformService:
    """
    Service for image transformation requests.

    The driver is chosen once at construction. Each request owns its own
    buffers and temporary artifacts, so one service may be shared between
    threads.
    """

    def __init__(
        self,
        options: OptionsInput = None,
        platform: Optional[PlatformCapability] = None,
        tool_timeout: float = ToolConstants.DEFAULT_TIMEOUT_S,
        max_workers: int = PipelineConstants.DEFAULT_MAX_WORKERS,
        fail_fast: bool = False,
    ):
        """
        Initialize transform service.

        Args:
            options: Default request options (dict or TransformOptions)
            platform: Native tool location; None means rasterizer only
            tool_timeout: Per-invocation timeout for native tools (seconds)
            max_workers: Worker threads for size derivatives (1 = sequential)
            fail_fast: Abort the request on the first derivative failure

        Raises:
            DriverUnavailableException: If neither driver can run
        """
        self.options = prepare_params(options, TransformOptions)
        self.max_workers = max(1, max_workers)
        self.fail_fast = fail_fast
        self.rasterizer = RasterizerDriver()
        self.driver = self._select_driver(platform, tool_timeout)

    def _select_driver(self, platform: Optional[PlatformCapability], tool_timeout: float) -> ImageDriver:
        if platform is not None:
            native = NativeToolDriver(platform, self.rasterizer, timeout=tool_timeout)
            if native.is_available():
                logger.info(f"Using native tool driver ({platform.system}, {platform.binary_dir})")
                return native
            logger.warning(
                f"Native tools unavailable (missing {', '.join(native.missing_tools)}), "
                f"falling back to rasterizer"
            )

        if self.rasterizer.is_available():
            logger.info("Using rasterizer driver")
            return self.rasterizer

        raise DriverUnavailableException("native tools and rasterizer")

    @property
    def driver_kind(self) -> DriverKind:
        return self.driver.kind

    @staticmethod
    def derivative_path(destination: PathLike, size_name: str) -> Path:
        """
        Path of a named size derivative: ``{dir}/{stem}_{name}{ext}``.

        Example:
            >>> TransformService.derivative_path("/out/photo.jpg", "thumb")
            >>> # PosixPath('/out/photo_thumb.jpg')
        """
        destination = Path(destination)
        return destination.with_name(f"{destination.stem}_{size_name}{destination.suffix}")

    def driver_for(self, image_format: ImageFormat) -> ImageDriver:
        """Selected driver, or the rasterizer for formats the selected one lacks."""
        if image_format in self.driver.supported_formats():
            return self.driver
        if self.driver is not self.rasterizer and image_format in self.rasterizer.supported_formats():
            logger.info(f"{self.driver.name} driver does not handle {image_format.value}, using rasterizer")
            return self.rasterizer
        raise UnsupportedFormatException(image_format.value)

    def _run_driver(
        self,
        driver: ImageDriver,
        source: Path,
        destination: Path,
        options: TransformOptions,
        cancel_token: Optional[CancellationToken],
    ) -> ImageDriver:
        """Run a driver; a DriverUnavailable from native gets one rasterizer retry."""
        try:
            driver.process(source, destination, options, cancel_token)
            return driver
        except DriverUnavailableException as e:
            if driver is self.rasterizer:
                raise
            logger.warning(f"{e.message}; retrying {destination.name} with rasterizer")

        self.rasterizer.process(source, destination, options, cancel_token)
        return self.rasterizer

    def process_derivative(
        self,
        source: Path,
        source_format: ImageFormat,
        destination: Path,
        size: SizeSpec,
        options: TransformOptions,
        cancel_token: Optional[CancellationToken] = None,
    ) -> DerivativeResult:
        """
        Resize the source to one named size, then run the driver stages on it.

        Args:
            source: Source image path
            source_format: Sniffed source format
            destination: Primary destination (derivative path derives from it)
            size: Named size
            options: Request options (sizes/resize/crop_ratio are ignored)
            cancel_token: Optional cancellation token

        Returns:
            DerivativeResult (success=False with the reason on stage failure)
        """
        path = self.derivative_path(destination, size.name)
        stage_options = options.model_copy(update={"sizes": [], "resize": None, "crop_ratio": None})

        try:
            with ArtifactScope(path) as scope:
                check_cancelled(cancel_token, PipelineConstants.STAGE_RESIZE)
                resized = scope.create(PipelineConstants.STAGE_RESIZE, source_format.extension)
                width, height = self.rasterizer.resize_file(
                    source, resized, size.width, size.height, size.mode
                )
                self._run_driver(self.driver_for(source_format), resized, path, stage_options, cancel_token)
        except DERIVATIVE_ERRORS as e:
            logger.error(f"Size '{size.name}' failed: {e.message}")
            if self.fail_fast:
                raise ProcessingException(size.name, e.message) from e
            return DerivativeResult(
                name=size.name, path=str(path), width=0, height=0, success=False, error=e.message
            )

        logger.info(f"Wrote size '{size.name}' {width}x{height} -> {path}")
        return DerivativeResult(name=size.name, path=str(path), width=width, height=height, success=True)

    def _process_derivatives(
        self,
        source: Path,
        source_format: ImageFormat,
        destination: Path,
        options: TransformOptions,
        cancel_token: Optional[CancellationToken],
    ) -> List[DerivativeResult]:
        sizes = options.sizes
        if self.max_workers == 1 or len(sizes) < 2:
            return [
                self.process_derivative(source, source_format, destination, size, options, cancel_token)
                for size in sizes
            ]

        results: Dict[str, DerivativeResult] = {}
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(sizes))) as executor:
            futures = {
                executor.submit(
                    self.process_derivative, source, source_format, destination, size, options, cancel_token
                ): size.name
                for size in sizes
            }
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        # Report in configured order, not completion order
        return [results[size.name] for size in sizes]

    def process(
        self,
        source: PathLike,
        destination: PathLike,
        options: OptionsInput = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> TransformResult:
        """
        Transform one source file into its derivatives and primary output.

        Args:
            source: Source image path
            destination: Primary output path
            options: Request options (defaults to the service options)
            cancel_token: Optional cancellation token checked between stages

        Returns:
            TransformResult

        Raises:
            SourceNotFoundException: Source does not exist
            InvalidImageDataException: Source is not a decodable image
            UnsupportedFormatException: Source format cannot be handled
            ProcessingException: A derivative failed and fail_fast is set
            OperationCancelledException: Request cancelled
        """
        options = prepare_params(options, TransformOptions) if options is not None else self.options
        source, destination = Path(source), Path(destination)

        with timer() as t:
            if not source.is_file():
                raise SourceNotFoundException(source)

            source_format = sniff_format(source)
            derivatives = self._process_derivatives(source, source_format, destination, options, cancel_token)

            check_cancelled(cancel_token, "primary")
            driver = self._run_driver(
                self.driver_for(source_format), source, destination, options, cancel_token
            )

            output_format = sniff_format(destination)
            width, height = probe_size(destination)

        result = TransformResult(
            source=str(source),
            destination=str(destination),
            driver=driver.kind,
            output_format=output_format,
            width=width,
            height=height,
            derivatives=derivatives,
            processing_time_ms=t["ms"],
        )
        logger.info(
            f"Transformed {source} -> {destination} with {driver.name} "
            f"({output_format.value}, {width}x{height}, {len(derivatives)} sizes, {t['ms']}ms)"
        )
        return result

    def run(self, request: TransformRequest, cancel_token: Optional[CancellationToken] = None) -> TransformResult:
        """Process a TransformRequest envelope."""
        return self.process(request.source_path, request.destination_path, request.options, cancel_token)

    def process_bytes(
        self,
        data: bytes,
        destination: PathLike,
        options: OptionsInput = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> TransformResult:
        """
        Transform an in-memory image.

        The payload is staged as a temp file beside the destination (named
        after the sniffed format) and removed afterwards.
        """
        destination = Path(destination)
        image_format = sniff_format(data)

        with ArtifactScope(destination) as scope:
            staged = scope.create(PipelineConstants.STAGE_INPUT, image_format.extension)
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                staged.write_bytes(data)
            except OSError as e:
                raise EncodeException(f"Failed to stage input for {destination}: {e}")
            result = self.process(staged, destination, options, cancel_token)

        return result.model_copy(update={"source": "memory"})

    def process_base64(
        self,
        payload: Union[str, bytes],
        destination: PathLike,
        options: OptionsInput = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> TransformResult:
        """Transform a base64 string or ``data:image/...;base64,`` URI."""
        return self.process_bytes(ImageConverters.from_base64(payload), destination, options, cancel_token)

