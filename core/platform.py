"""
Platform capability - where the native tool binaries live and how they are named.

The orchestrator receives a PlatformCapability at construction time instead
of sniffing the OS itself, so tests can describe any platform explicitly.
"""

import logging
import os
import platform as _platform
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from core.constants import ToolConstants
from core.exceptions import DriverUnavailableException

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatformCapability:
    """OS family plus the directory holding bundled tool binaries"""

    system: str
    binary_dir: Path
    suffix: str = ""

    @classmethod
    def for_system(cls, system: str, binary_dir: Union[str, Path]) -> "PlatformCapability":
        """
        Build a capability for an explicit OS family.

        Args:
            system: "linux", "darwin", "windows" or "freebsd" (case-insensitive)
            binary_dir: Directory containing the tool binaries

        Raises:
            DriverUnavailableException: For OS families without bundled binaries
        """
        family = system.strip().lower()
        if family.startswith("win"):
            family = "windows"
        suffix = ToolConstants.PLATFORM_SUFFIXES.get(family)
        if suffix is None:
            raise DriverUnavailableException(f"native tools (unsupported OS: {system})")
        return cls(system=family, binary_dir=Path(binary_dir), suffix=suffix)

    @classmethod
    def detect(cls, binary_dir: Union[str, Path]) -> "PlatformCapability":
        """Capability for the interpreter's own OS."""
        return cls.for_system(_platform.system(), binary_dir)

    def candidates(self, tool: str):
        """Paths tried for a tool, most specific first."""
        yield self.binary_dir / f"{tool}{self.suffix}"
        yield self.binary_dir / tool

    def find_tool(self, tool: str) -> Optional[Path]:
        """
        Locate a tool binary, making it executable when needed.

        Args:
            tool: Base tool name (e.g. "jpegtran")

        Returns:
            Path to the binary, or None if no candidate exists
        """
        for candidate in self.candidates(tool):
            if not candidate.is_file():
                continue
            ensure_executable(candidate)
            return candidate
        return None


def ensure_executable(path: Path) -> bool:
    """Best-effort chmod 0755 of a binary; returns whether it is executable."""
    if os.access(path, os.X_OK):
        return True
    try:
        path.chmod(ToolConstants.EXECUTABLE_MODE)
        logger.info(f"Made tool binary executable: {path}")
    except OSError as e:
        logger.warning(f"Could not make {path} executable: {e}")
    return os.access(path, os.X_OK)
