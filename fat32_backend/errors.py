#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
Result codes and exceptions for the FAT32 formatter.

I/O primitives and formatter operations report failures as FormatResult
values. Exceptions are reserved for problems detected before any byte is
written (bad handle, undersized device, malformed structure input).
"""

import errno
import enum
from dataclasses import dataclass
from typing import Optional


class FormatStatus(enum.Enum):
    """Outcome of a single format operation"""
    SUCCESS = 0
    ACCESS_DENIED = 1
    DEVICE_BUSY = 2
    INVALID_DEVICE = 3
    IO_ERROR = 4
    TOO_SMALL = 5
    UNKNOWN_ERROR = 6

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    FormatStatus.SUCCESS: "Success",
    FormatStatus.ACCESS_DENIED: "Access denied",
    FormatStatus.DEVICE_BUSY: "Device busy",
    FormatStatus.INVALID_DEVICE: "Invalid device",
    FormatStatus.IO_ERROR: "I/O error",
    FormatStatus.TOO_SMALL: "Device too small",
    FormatStatus.UNKNOWN_ERROR: "Unknown error",
}


@dataclass
class FormatResult:
    """Result of a format operation"""
    success: bool = False
    status: FormatStatus = FormatStatus.UNKNOWN_ERROR
    message: str = ""
    error: Optional[str] = None
    operation: str = ""

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, message: str = "", operation: str = "") -> "FormatResult":
        return cls(success=True, status=FormatStatus.SUCCESS,
                   message=message, operation=operation)

    @classmethod
    def failure(cls, status: FormatStatus, message: str = "",
                error: Optional[str] = None, operation: str = "") -> "FormatResult":
        return cls(success=False, status=status,
                   message=message or status.description,
                   error=error, operation=operation)


# OS error codes that map onto something more specific than IO_ERROR
_ERRNO_STATUS = {
    errno.EACCES: FormatStatus.ACCESS_DENIED,
    errno.EPERM: FormatStatus.ACCESS_DENIED,
    errno.EROFS: FormatStatus.ACCESS_DENIED,
    errno.EBUSY: FormatStatus.DEVICE_BUSY,
    errno.EBADF: FormatStatus.INVALID_DEVICE,
    errno.ENODEV: FormatStatus.INVALID_DEVICE,
    errno.ENXIO: FormatStatus.INVALID_DEVICE,
}


def status_from_errno(code: Optional[int]) -> FormatStatus:
    """
    Map an OS error number from a failed seek/write onto a FormatStatus.

    Codes without a dedicated status are reported as IO_ERROR. A missing
    code (an OSError raised without errno) is UNKNOWN_ERROR.
    """
    if code is None:
        return FormatStatus.UNKNOWN_ERROR
    return _ERRNO_STATUS.get(code, FormatStatus.IO_ERROR)


class FAT32Error(Exception):
    """Base exception for FAT32 formatter errors"""

    def __init__(self, message: str, status: FormatStatus = FormatStatus.UNKNOWN_ERROR):
        super().__init__(message)
        self.status = status


class VolumeTooSmallError(FAT32Error):
    """Device has fewer sectors than the fixed layout needs"""

    def __init__(self, message: str):
        super().__init__(message, FormatStatus.TOO_SMALL)


class GeometryError(FAT32Error):
    """Derived geometry does not fit the on-disk field widths"""


class StructureError(FAT32Error):
    """A structure layout could not be serialized"""


class VolumeLabelError(FAT32Error):
    """Volume label failed strict validation"""

    EMPTY = 'empty'
    TOO_LONG = 'too_long'
    INVALID_CHARACTER = 'invalid_character'

    def __init__(self, message: str, reason: str, character: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
        self.character = character
