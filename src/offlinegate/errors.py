"""Error codes and the single exception type raised by offlinegate.

Cache misses are not errors: lookups return ``None``. Only conditions the
caller has to react to are raised as ``OfflineGateError``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    QUEUE_WRITE_FAILED = "QUEUE_WRITE_FAILED"
    INVALID_MESSAGE = "INVALID_MESSAGE"


class OfflineGateError(Exception):
    """Raised for failures that cross a component boundary."""

    def __init__(self, code: ErrorCode, message: str, recoverable: bool) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "recoverable": self.recoverable,
            }
        }
