from __future__ import annotations
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from docformat.verify import IntegrityResult

CANCELLED_MESSAGE = "operation cancelled"


class FormatEngineError(Exception):
    """Base class for engine failures."""


class CancellationError(FormatEngineError):
    """Raised cooperatively when the caller cancels; not a fault."""

    def __init__(self, message: str = CANCELLED_MESSAGE):
        super().__init__(message)


class ParseError(FormatEngineError):
    """Model response holds no extractable JSON object."""


class SchemaUnsupportedError(FormatEngineError):
    """The model endpoint rejected the structured-output schema."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class IntegrityError(FormatEngineError):
    """Post-batch content fingerprint differs and no item declared a content change."""

    def __init__(self, result: "IntegrityResult"):
        super().__init__(f"content integrity check failed: {result.error}")
        self.result = result


class PerItemApplyError(FormatEngineError):
    """A change item failed; the remaining batch is aborted."""

    def __init__(self, item_id: str, title: str, cause: BaseException):
        super().__init__(f"applying change '{title}' failed: {cause}")
        self.item_id = item_id
        self.title = title
