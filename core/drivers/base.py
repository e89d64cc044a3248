"""
Driver contract shared by the native-tool and rasterizer drivers.

Selection between drivers lives in the orchestrator; drivers only report
whether they can run and which formats they accept.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Optional, Union

from core.cancellation import CancellationToken
from core.enums import DriverKind, ImageFormat
from schemas.options import TransformOptions

PathLike = Union[str, Path]


@dataclass(frozen=True)
class DriverCapability:
    """What a driver can do on this host"""

    kind: DriverKind
    available: bool
    formats: FrozenSet[ImageFormat]

    def supports(self, image_format: ImageFormat) -> bool:
        return self.available and image_format in self.formats


class ImageDriver(ABC):
    """Base class for image processing drivers"""

    kind: DriverKind

    @abstractmethod
    def process(
        self,
        source: PathLike,
        destination: PathLike,
        options: TransformOptions,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Path:
        """
        Run the driver's stage sequence from source to destination.

        The destination is only ever replaced atomically; on failure it is
        left as it was.

        Returns:
            The destination path
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the driver can run on this host"""

    @abstractmethod
    def supported_formats(self) -> FrozenSet[ImageFormat]:
        """Source formats this driver accepts"""

    def capability(self) -> DriverCapability:
        available = self.is_available()
        formats = self.supported_formats() if available else frozenset()
        return DriverCapability(kind=self.kind, available=available, formats=formats)

    @property
    def name(self) -> str:
        return self.kind.value
