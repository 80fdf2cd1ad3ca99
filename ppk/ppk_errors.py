"""
Error types raised by the PPK pipeline.

Library modules raise these; only the command-line entry points turn them
into a one-line diagnostic and a process exit status.
"""

from __future__ import annotations


class PPKError(Exception):
    """Base class for all pipeline failures."""

    exit_code = 1
    label = "Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def diagnostic(self) -> str:
        return f"{self.label}: {self.message}"


class MissingRequiredArgumentError(PPKError):
    label = "Missing required argument"


class InputFileNotFoundError(PPKError):
    label = "File not found"


class EmptyDirectoryError(PPKError):
    label = "Empty directory"


class MissingNavigationError(PPKError):
    label = "Missing navigation file"


class ConversionFailedError(PPKError):
    label = "Conversion failed"


class AmbiguousInputError(PPKError):
    label = "Ambiguous input"


class InvalidOptionError(PPKError):
    label = "Invalid option"


class ToolNotFoundError(PPKError):
    label = "Tool not found"


class NoOutputProducedError(PPKError):
    label = "No output produced"
