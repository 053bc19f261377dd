"""Exceptions raised by the table collaborators (loader, store).

The resolver itself never raises for routing outcomes; those come back
as TraceFailure on the result.
"""

from __future__ import annotations


class RouteTraceError(RuntimeError):
    """Base class for routetrace errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class TableFormatError(RouteTraceError):
    """Raised when a routing table file can't be turned into records."""

    def __init__(self, message: str, line: int | None = None) -> None:
        super().__init__(message if line is None else f"line {line}: {message}")
        self.line = line
