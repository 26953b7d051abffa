#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
Sector I/O
Raw write and zero-fill primitives on a caller-owned device handle.

A handle is an integer file descriptor or any object exposing fileno()
(for example a file opened with open(path, 'r+b', buffering=0)). The
handle is never opened or closed here. Failures are returned as
FormatResult values instead of being raised.
"""

import os
import logging
from typing import Union

from .errors import FAT32Error, FormatResult, FormatStatus, status_from_errno

logger = logging.getLogger(__name__)

SECTOR_SIZE = 512
ZERO_CHUNK_SECTORS = 64  # one 32 KiB cluster per write

Handle = Union[int, object]


def resolve_fd(handle: Handle) -> int:
    """
    Return the file descriptor behind a handle.

    Raises:
        FAT32Error: With INVALID_DEVICE status if the handle is not a
            non-negative descriptor and has no usable fileno().
    """
    if isinstance(handle, bool):
        raise FAT32Error(f"Invalid device handle: {handle!r}", FormatStatus.INVALID_DEVICE)
    if isinstance(handle, int):
        fd = handle
    else:
        fileno = getattr(handle, 'fileno', None)
        if fileno is None:
            raise FAT32Error(f"Invalid device handle: {handle!r}", FormatStatus.INVALID_DEVICE)
        try:
            fd = fileno()
        except (OSError, ValueError) as e:
            # ValueError: fileno() on a closed file object
            raise FAT32Error(f"Invalid device handle: {e}", FormatStatus.INVALID_DEVICE)
    if fd < 0:
        raise FAT32Error(f"Invalid file descriptor: {fd}", FormatStatus.INVALID_DEVICE)
    return fd


def _os_failure(e: OSError, what: str) -> FormatResult:
    status = status_from_errno(e.errno)
    logger.debug(f"{what} failed: {e}")
    return FormatResult.failure(status, f"{what} failed: {status.description}", error=str(e))


def write_at(handle: Handle, offset: int, data: bytes) -> FormatResult:
    """
    Write all of `data` at byte `offset`.

    Short writes are continued and interrupted calls (EINTR) are retried;
    any other OS error ends the write.

    Args:
        handle: Device handle.
        offset: Absolute byte offset.
        data: Bytes to write. Empty data is a successful no-op.

    Returns:
        FormatResult with operation status.
    """
    try:
        fd = resolve_fd(handle)
    except FAT32Error as e:
        logger.debug(str(e))
        return FormatResult.failure(e.status, str(e))

    if not data:
        return FormatResult.ok()

    try:
        os.lseek(fd, offset, os.SEEK_SET)
    except OSError as e:
        return _os_failure(e, f"Seek to offset {offset}")

    view = memoryview(data)
    done = 0
    while done < len(view):
        try:
            written = os.write(fd, view[done:])
        except InterruptedError:
            logger.debug(f"Write at offset {offset + done} interrupted, retrying")
            continue
        except OSError as e:
            return _os_failure(e, f"Write at offset {offset + done}")
        if written == 0:
            logger.debug(f"Write at offset {offset + done} made no progress")
            return FormatResult.failure(FormatStatus.IO_ERROR,
                                        f"Write at offset {offset + done} made no progress")
        done += written

    return FormatResult.ok()


def write_sector(handle: Handle, sector_index: int, data: bytes,
                 sector_size: int = SECTOR_SIZE) -> FormatResult:
    """Write one or more whole sectors starting at `sector_index`.

    Data that is not a whole number of sectors is refused with
    UNKNOWN_ERROR and nothing is written.
    """
    if len(data) % sector_size:
        message = f"Sector data must be a multiple of {sector_size} bytes, got {len(data)}"
        logger.debug(message)
        return FormatResult.failure(FormatStatus.UNKNOWN_ERROR, message)
    return write_at(handle, sector_index * sector_size, data)


def zero_region(handle: Handle, start_sector: int, sector_count: int,
                sector_size: int = SECTOR_SIZE,
                chunk_sectors: int = ZERO_CHUNK_SECTORS) -> FormatResult:
    """
    Fill `sector_count` sectors with zeros, one chunk at a time.

    The first failing chunk aborts the fill. Sectors already written stay
    zeroed; the rest of the region is left as it was.
    """
    logger.debug(f"Zeroing {sector_count} sectors starting at LBA {start_sector}")
    scratch = memoryview(bytes(chunk_sectors * sector_size))

    current = start_sector
    remaining = sector_count
    while remaining > 0:
        count = min(remaining, chunk_sectors)
        result = write_sector(handle, current, scratch[:count * sector_size], sector_size)
        if not result.success:
            logger.debug(f"Zeroing aborted at LBA {current}")
            return result
        current += count
        remaining -= count

    return FormatResult.ok()


def sync(handle: Handle) -> FormatResult:
    """Flush written sectors to stable storage"""
    try:
        fd = resolve_fd(handle)
    except FAT32Error as e:
        return FormatResult.failure(e.status, str(e))
    try:
        os.fsync(fd)
    except OSError as e:
        return _os_failure(e, "Sync")
    return FormatResult.ok()
