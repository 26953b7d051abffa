#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
FAT32 Formatter
Writes a flashcart-compatible FAT32 volume onto a caller-owned device handle.

Each of the five on-disk regions is written by its own operation:

    formatter = FAT32Formatter(f, total_sectors, "NDS")
    formatter.write_mbr()
    formatter.write_volume_boot_record()
    formatter.write_fs_info()
    formatter.write_fat_tables()
    formatter.write_root_directory()

Operations may run in any order, but the volume is only mountable once all
five have succeeded. Nothing is rolled back when an operation fails.
"""

import time
import logging
from typing import Callable, Iterable, Optional

from .errors import FormatResult
from .geometry import DEFAULT_CONFIG, FormatConfig, VolumeGeometry
from .label_utils import normalize_volume_label
from .sector_io import Handle, resolve_fd, sync, write_sector, zero_region
from .structures import (encode_fat_header, encode_fsinfo, encode_mbr,
                         encode_root_directory, encode_vbr)

ProgressCallback = Callable[[str, FormatResult], None]


def default_volume_serial() -> int:
    """Volume ID taken from the wall clock, as classic format tools do"""
    return int(time.time()) & 0xFFFFFFFF


class FAT32Formatter:
    """Writes the MBR, boot records, FSInfo, FATs and root directory of one volume"""

    OP_MBR = 'mbr'
    OP_VBR = 'volume_boot_record'
    OP_FSINFO = 'fs_info'
    OP_FAT = 'fat_tables'
    OP_ROOT = 'root_directory'

    def __init__(self, device: Handle, total_sectors: int, label: str,
                 config: FormatConfig = DEFAULT_CONFIG,
                 serial_source: Optional[Callable[[], int]] = None,
                 progress: Optional[ProgressCallback] = None,
                 sync_writes: bool = False,
                 logger: Optional[logging.Logger] = None):
        """Validate the handle and device size, then derive the session geometry.

        Args:
            device: Open, writable handle (file descriptor or object with fileno()).
            total_sectors: Device size in 512-byte sectors.
            label: Volume label; normalized to 11 uppercase characters.
            config: Layout parameters.
            serial_source: Returns the 32-bit volume ID. Defaults to the wall clock.
            progress: Called as progress(operation, result) after each operation.
            sync_writes: fsync the device after each successful operation.
            logger: Logger instance for operation logging.

        Raises:
            FAT32Error: INVALID_DEVICE if the handle is unusable.
            VolumeTooSmallError: If the device is below the minimum size.
        """
        self.logger = logger or logging.getLogger(__name__)

        resolve_fd(device)
        self.device = device
        self.config = config
        self.geometry = VolumeGeometry.from_total_sectors(total_sectors, config)
        self.label = normalize_volume_label(label)
        self.volume_serial = (serial_source or default_volume_serial)() & 0xFFFFFFFF
        self.progress = progress
        self.sync_writes = sync_writes

        self.logger.debug(f"Formatter ready: {total_sectors} sectors, label '{self.label}', "
                          f"serial {self.volume_serial:08X}")

    @property
    def sector_count(self) -> int:
        return self.geometry.total_sectors

    @property
    def partition_sector_count(self) -> int:
        return self.geometry.partition_sector_count

    def _write(self, sector: int, image: bytes) -> FormatResult:
        return write_sector(self.device, sector, image, self.config.sector_size)

    def _write_copies(self, image: bytes, sectors: Iterable[int]) -> FormatResult:
        """Write the same image at each sector, stopping at the first failure"""
        for sector in sectors:
            self.logger.debug(f"Writing sector {sector}")
            result = self._write(sector, image)
            if not result.success:
                return result
        return FormatResult.ok()

    def _zero(self, start_sector: int, sector_count: int) -> FormatResult:
        return zero_region(self.device, start_sector, sector_count,
                           self.config.sector_size, self.config.sectors_per_cluster)

    def _finish(self, operation: str, result: FormatResult, done_message: str) -> FormatResult:
        if result.success and self.sync_writes:
            result = sync(self.device)

        result.operation = operation
        if result.success:
            result.message = done_message
            self.logger.info(done_message)
        else:
            self.logger.info(f"{operation} failed: {result.message}")

        if self.progress is not None:
            self.progress(operation, result)
        return result

    def write_mbr(self) -> FormatResult:
        """Write the partition table to sector 0"""
        self.logger.info("Writing MBR...")
        result = self._write(0, encode_mbr(self.geometry))
        return self._finish(self.OP_MBR, result, "MBR written")

    def write_volume_boot_record(self) -> FormatResult:
        """Write the boot sector and its backup"""
        self.logger.info("Writing VBR...")
        image = encode_vbr(self.geometry, self.label, self.volume_serial)
        result = self._write_copies(image, (self.geometry.vbr_sector,
                                            self.geometry.backup_vbr_sector))
        return self._finish(self.OP_VBR, result, "VBR and backup written")

    def write_fs_info(self) -> FormatResult:
        """Write the FSInfo sector and its backup"""
        self.logger.info("Writing FSInfo...")
        image = encode_fsinfo(self.geometry)
        result = self._write_copies(image, (self.geometry.fs_info_sector,
                                            self.geometry.backup_fs_info_sector))
        return self._finish(self.OP_FSINFO, result, "FSInfo and backup written")

    def write_fat_tables(self) -> FormatResult:
        """Clear every FAT copy and write its reserved leading entries"""
        self.logger.info("Initializing FAT tables...")
        header = encode_fat_header(self.config)
        result = FormatResult.ok()
        for i in range(self.geometry.fat_copies):
            start = self.geometry.fat_copy_start(i)
            self.logger.debug(f"Zeroing FAT {i + 1} ({self.geometry.fat_size_sectors} sectors at {start})")
            result = self._zero(start, self.geometry.fat_size_sectors)
            if not result.success:
                break
            result = self._write(start, header)
            if not result.success:
                break
        return self._finish(self.OP_FAT, result,
                            f"{self.geometry.fat_copies} FAT copies initialized")

    def write_root_directory(self) -> FormatResult:
        """Clear the root directory cluster and write the volume label entry"""
        self.logger.info("Initializing root directory...")
        start = self.geometry.root_directory_sector
        result = self._zero(start, self.config.sectors_per_cluster)
        if result.success:
            result = self._write(start, encode_root_directory(self.label, self.config))
        return self._finish(self.OP_ROOT, result, "Root directory written")

    def format_all(self) -> FormatResult:
        """
        Run all five operations in the canonical order.

        Returns:
            The first failing result, or a success result once every
            region is written.
        """
        steps = (self.write_mbr, self.write_volume_boot_record, self.write_fs_info,
                 self.write_fat_tables, self.write_root_directory)
        for step in steps:
            result = step()
            if not result.success:
                return result
        self.logger.info("Format complete")
        return FormatResult.ok("Format complete")
