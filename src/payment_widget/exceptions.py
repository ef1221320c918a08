from __future__ import annotations

from dataclasses import dataclass


class WidgetError(Exception):
    pass


class AmountFormatError(WidgetError, ValueError):
    """Raised when an amount input is not a non-negative decimal."""


class UnknownMethodError(WidgetError, ValueError):
    pass


class ChannelStateError(WidgetError):
    """A channel transition was requested from a state that does not allow it."""


@dataclass
class SubmissionError(WidgetError):
    code: str
    message: str
    details: object | None = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"
