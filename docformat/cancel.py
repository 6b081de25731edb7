from __future__ import annotations
from dataclasses import dataclass, field
import threading

from docformat.errors import CancellationError


@dataclass
class CancelToken:
    """Shared between caller and engine for one analysis-or-apply call.

    ``cancel()`` may be called from another thread (e.g. a UI thread); the
    engine polls ``cancelled`` between steps, and ``abort_event`` wakes any
    in-flight model request that is waiting on a response.
    """
    cancelled: bool = False
    abort_event: threading.Event = field(default_factory=threading.Event)

    def cancel(self) -> None:
        self.cancelled = True
        self.abort_event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            self.abort_event.set()
            raise CancellationError()


def check_cancelled(token: "CancelToken | None") -> None:
    if token is not None:
        token.raise_if_cancelled()
