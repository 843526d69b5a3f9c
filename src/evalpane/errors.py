"""Exceptions raised by evalpane.

PUBLIC API:
  - EvalPaneError: Base exception for all evalpane operations
  - ConfigurationError: Interpreter cannot be resolved, validated, or found
  - StalledInterpreterError: Interpreter run exceeded its bounded wait
  - ViewError: Host view operation failed (closed or unknown view)
"""


class EvalPaneError(Exception):
    """Base exception for all evalpane operations."""

    pass


class ConfigurationError(EvalPaneError):
    """Raised when an interpreter identity or descriptor is unusable."""

    pass


class StalledInterpreterError(EvalPaneError):
    """Raised when an interpreter does not finish within the bounded wait."""

    def __init__(self, binary: str, timeout: float) -> None:
        super().__init__(f"{binary} did not finish within {timeout:g}s")
        self.binary = binary
        self.timeout = timeout


class ViewError(EvalPaneError):
    """Raised by view hosts for operations on closed or unknown views."""

    pass
