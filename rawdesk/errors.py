"""
Exception hierarchy for rawdesk.
"""

from typing import Optional


class RawDeskError(Exception):
    """Base exception for rawdesk operations."""
    pass


class CollaboratorError(RawDeskError):
    """Raised when an external tool fails.

    The message is the tool's own error text, passed through unchanged.
    """

    def __init__(self, message: str, tool: str = "", returncode: Optional[int] = None):
        super().__init__(message)
        self.tool = tool
        self.returncode = returncode


class ConverterError(CollaboratorError):
    """Raised when the DNG converter fails or produces no output."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message, tool="dng-converter", returncode=returncode)


class MetadataError(CollaboratorError):
    """Raised when an ExifTool command fails."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message, tool="exiftool", returncode=returncode)


class OperationCancelled(RawDeskError):
    """Raised when an operation observes its cancel signal."""
    pass
