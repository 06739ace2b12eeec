"""Exception types raised by the import pipelines.

Row-level problems never raise; they become ``error`` rows in the run report.
Only run-level (structural) problems abort an import.
"""

from __future__ import annotations


class StructuralImportError(ValueError):
    """The whole import cannot proceed (bad upload, unknown timezone, ...).

    The message is user-facing and is returned verbatim by the HTTP layer.
    """


class SplitwiseNotConfiguredError(StructuralImportError):
    """No Splitwise API key is available to the running process."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "Splitwise API key is not configured. Set SPLITWISE_API_KEY in the environment."
        )


__all__ = ["SplitwiseNotConfiguredError", "StructuralImportError"]
