"""Error taxonomy for receipt composition and printing.

Every error is terminal for the request that raised it; callers resubmit.
The HTTP layer maps ``ValidationError`` to 400 and everything else to 500.
"""

from __future__ import annotations


class ComposeError(Exception):
    """Base class for all receipt errors."""


class ValidationError(ComposeError):
    """Bad or missing client input."""


class AssetMissing(ComposeError):
    """A required branding asset is not on disk."""

    def __init__(self, role: str) -> None:
        self.role = role
        super().__init__(f"Required {role} image asset not found")


class DecodeError(ComposeError):
    """Image bytes could not be decoded."""


class PrinterError(ComposeError):
    """Printer unreachable or failed while printing."""


class ConnectTimeout(PrinterError):
    """Connection to the printer was not established in time."""


class ConnectError(PrinterError):
    """Network-level failure while connecting (refused, unreachable)."""


class TransmitError(PrinterError):
    """Failure after the connection was open; part of the job may be printed."""
