"""
Temporary artifact lifecycle.

Intermediate files are created beside their final destination with names
derived from that destination and the stage that produced them, so distinct
destinations never share a temp name. Every artifact registered with an
ArtifactScope is removed when the scope exits, on success and on error,
unless it was committed (moved onto a final path).
"""

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from core.exceptions import EncodeException

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def artifact_path(anchor: PathLike, stage: str, suffix: Optional[str] = None) -> Path:
    """
    Deterministic temp path for a stage of the request targeting ``anchor``.

    Example:
        >>> artifact_path("/out/photo_thumb.jpg", "webp", ".webp")
        >>> # PosixPath('/out/.photo_thumb.jpg.webp.webp')
    """
    anchor = Path(anchor)
    suffix = anchor.suffix if suffix is None else suffix
    return anchor.with_name(f".{anchor.name}.{stage}{suffix}")


def remove_quietly(path: PathLike) -> bool:
    """Delete a file if it exists; log (not raise) on failure."""
    try:
        os.unlink(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Failed to remove temporary artifact {path}: {e}")
        return False


@contextmanager
def staged_replacement(target: PathLike, stage: str = "tmp") -> Iterator[Path]:
    """
    Yield a temp path to write a replacement for ``target``.

    On a clean exit the temp file is atomically moved over the target. If
    the block raises, the temp file is deleted, the target is left untouched
    and the exception propagates.
    """
    target = Path(target)
    temp = artifact_path(target, stage)
    remove_quietly(temp)
    try:
        yield temp
        if not temp.is_file():
            raise EncodeException(f"Stage '{stage}' produced no file for {target}")
        os.replace(temp, target)
    except BaseException:
        remove_quietly(temp)
        raise


def atomic_write_bytes(destination: PathLike, data: bytes) -> Path:
    """Write bytes to a temp file beside destination, then rename into place."""
    destination = Path(destination)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with staged_replacement(destination, "write") as temp:
            temp.write_bytes(data)
    except OSError as e:
        raise EncodeException(f"Failed to write {destination}: {e}")
    return destination


class ArtifactScope:
    """
    Owns the temp files of one request.

    Use as a context manager; everything registered and not committed is
    deleted on exit.
    """

    def __init__(self, anchor: PathLike):
        """
        Initialize artifact scope.

        Args:
            anchor: Final destination of the request; artifact names derive from it
        """
        self.anchor = Path(anchor)
        self._paths: List[Path] = []

    def __enter__(self) -> "ArtifactScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def create(self, stage: str, suffix: Optional[str] = None) -> Path:
        """Reserve (and register) the temp path for a stage."""
        path = artifact_path(self.anchor, stage, suffix)
        remove_quietly(path)
        return self.adopt(path)

    def adopt(self, path: PathLike) -> Path:
        """Register an existing or future file for cleanup."""
        path = Path(path)
        if path not in self._paths:
            self._paths.append(path)
        return path

    def discard(self, path: PathLike) -> None:
        """Delete an artifact early."""
        path = Path(path)
        remove_quietly(path)
        if path in self._paths:
            self._paths.remove(path)

    def commit(self, path: PathLike, destination: PathLike) -> Path:
        """Atomically move an artifact onto its final destination."""
        path, destination = Path(path), Path(destination)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            os.replace(path, destination)
        except OSError as e:
            raise EncodeException(f"Failed to move {path} to {destination}: {e}")
        if path in self._paths:
            self._paths.remove(path)
        return destination

    @property
    def pending(self) -> List[Path]:
        return list(self._paths)

    def cleanup(self) -> None:
        """Remove every registered artifact."""
        for path in self._paths:
            if remove_quietly(path):
                logger.debug(f"Removed temporary artifact {path}")
        self._paths.clear()
