"""!
@brief Exception types raised by Office Remover.
@details Only run-level failures are exceptions. Per-target removal failures
are returned as :class:`office_remover.report.RemovalOutcome` values.
"""
from __future__ import annotations

from typing import Iterable, List


class OfficeRemoverError(Exception):
    """!
    @brief Base class for errors that end a run.
    """


class ValidationError(OfficeRemoverError):
    """!
    @brief Raised when the supplied options do not form a valid request.
    @details Carries every validation message so the caller can report them
    together instead of one per invocation.
    """

    def __init__(self, messages: Iterable[str]) -> None:
        self.messages: List[str] = [str(message) for message in messages]
        super().__init__("; ".join(self.messages) or "invalid arguments")


class ElevationDenied(OfficeRemoverError):
    """!
    @brief Raised when administrative rights were requested and not granted.
    """


__all__ = ["ElevationDenied", "OfficeRemoverError", "ValidationError"]
