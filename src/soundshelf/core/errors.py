"""Exception types raised by the indexing pipeline.

Recoverable errors (``ExtractionError``) never leave the reconciler. Fatal
errors (``ScanRootError``, ``WriteRetriesExhausted``) abort the scan and are
recorded on the scan state by the coordinator.
"""

from enum import Enum
from typing import Optional


class ScanError(Exception):
    """Base class for indexing errors."""


class ScanRootError(ScanError):
    """The configured library root is missing or cannot be listed."""

    def __init__(self, root: str, reason: str):
        self.root = root
        self.reason = reason
        super().__init__(f"Cannot scan library root {root!r}: {reason}")


class WriteRetriesExhausted(ScanError):
    """A write batch failed on every attempt."""

    def __init__(self, batch_size: int, attempts: int, last_error: Exception):
        self.batch_size = batch_size
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Write batch of {batch_size} records failed after {attempts} attempts: "
            f"{last_error}"
        )


class ExtractionErrorKind(str, Enum):
    UNSUPPORTED = "unsupported"
    CORRUPT = "corrupt"
    IO_ERROR = "io_error"


class ExtractionError(ScanError):
    """Metadata could not be read from a single file."""

    def __init__(
        self,
        kind: ExtractionErrorKind,
        path: str,
        detail: Optional[str] = None,
    ):
        self.kind = kind
        self.path = path
        self.detail = detail
        message = f"{kind.value}: {path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
