"""
Cooperative cancellation for multi-stage requests.
"""

import threading
from typing import Optional

from core.exceptions import OperationCancelledException


class CancellationToken:
    """Thread-safe flag checked by drivers between stages"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str = "") -> None:
        if self._event.is_set():
            raise OperationCancelledException(stage)


def check_cancelled(token: Optional[CancellationToken], stage: str = "") -> None:
    """No-op when no token was supplied."""
    if token is not None:
        token.raise_if_cancelled(stage)
