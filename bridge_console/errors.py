from typing import Optional


class ConsoleError(Exception):
    """Base class for errors the console recovers from locally."""


class TransportError(ConsoleError):
    """A bridge request failed: non-2xx status or network failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ConsoleError):
    """User input rejected before it was sent to the bridge."""

    def __init__(self, label: str, message: str):
        super().__init__(f"{label}: {message}")
        self.label = label
        self.message = message


class PartialDataError(ConsoleError):
    """A snapshot sub-object was missing or malformed."""

    def __init__(self, section: str, detail: str = ""):
        super().__init__(f"{section}: {detail}" if detail else section)
        self.section = section
        self.detail = detail
