#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
FAT32 Volume Geometry
Derives the on-disk layout of a flashcart-friendly FAT32 volume from the
total sector count of the target device.
"""

import logging
from dataclasses import dataclass, field

from .errors import GeometryError, VolumeTooSmallError

logger = logging.getLogger(__name__)

MAX_UINT32 = 0xFFFFFFFF


@dataclass(frozen=True)
class FormatConfig:
    """Fixed layout parameters shared by every component of a format session"""
    sector_size: int = 512
    sectors_per_cluster: int = 64
    partition_alignment: int = 8192     # 4 MiB
    reserved_sectors: int = 32
    fat_copies: int = 2
    root_cluster: int = 2
    media_descriptor: int = 0xF8
    fs_info_sector: int = 1             # relative to partition start
    backup_boot_sector: int = 6         # relative to partition start
    sectors_per_track: int = 63
    heads: int = 255
    minimum_total_sectors: int = 18432  # 9 MiB

    @property
    def cluster_size(self) -> int:
        return self.sector_size * self.sectors_per_cluster

    @property
    def fat_start_offset(self) -> int:
        """Absolute sector of the first FAT copy"""
        return self.partition_alignment + self.reserved_sectors

    @property
    def fat_entry_density(self) -> int:
        """Sectors covered per FAT sector, FAT32 form of the Microsoft sizing formula"""
        entries_per_sector = self.sector_size // 2
        return (entries_per_sector * self.sectors_per_cluster + self.fat_copies) // 2

    @property
    def layout_floor(self) -> int:
        """Fewest sectors holding the alignment gap, reserved area, one sector
        per FAT copy, the root cluster and one free cluster"""
        return (self.partition_alignment + self.reserved_sectors + self.fat_copies
                + 2 * self.sectors_per_cluster)

    @property
    def effective_minimum_sectors(self) -> int:
        return max(self.minimum_total_sectors, self.layout_floor)


DEFAULT_CONFIG = FormatConfig()


def ceil_div(a: int, b: int) -> int:
    return (a + b - 1) // b


@dataclass(frozen=True)
class VolumeGeometry:
    """Layout of one FAT32 volume, derived once per format session"""
    total_sectors: int
    partition_start_sector: int
    partition_sector_count: int
    reserved_sector_count: int
    fat_size_sectors: int
    fat_start_sector: int
    data_start_sector: int
    free_cluster_count: int
    sectors_per_cluster: int
    fat_copies: int
    config: FormatConfig = field(default=DEFAULT_CONFIG, repr=False, compare=False)

    @classmethod
    def from_total_sectors(cls, total_sectors: int,
                           config: FormatConfig = DEFAULT_CONFIG) -> "VolumeGeometry":
        """
        Derive the volume layout for a device.

        Args:
            total_sectors: Device size in 512-byte sectors.
            config: Layout parameters (the flashcart design point by default).

        Returns:
            The derived VolumeGeometry.

        Raises:
            ValueError: If total_sectors is not a positive integer.
            VolumeTooSmallError: If the device cannot hold the fixed layout.
            GeometryError: If the partition does not fit 32-bit sector fields.
        """
        if isinstance(total_sectors, bool) or not isinstance(total_sectors, int):
            raise ValueError(f"total_sectors must be an integer, got {total_sectors!r}")
        if total_sectors <= 0:
            raise ValueError(f"total_sectors must be positive, got {total_sectors}")

        # Checked before any subtraction so the layout never goes negative
        minimum = config.effective_minimum_sectors
        if total_sectors < minimum:
            logger.debug(f"Device too small: {total_sectors} sectors (minimum {minimum})")
            raise VolumeTooSmallError(
                f"Device has {total_sectors} sectors, at least {minimum} are required")

        partition_sectors = total_sectors - config.partition_alignment
        if partition_sectors > MAX_UINT32:
            raise GeometryError(
                f"Partition of {partition_sectors} sectors exceeds the 32-bit sector count limit")

        sectors_to_allocate = partition_sectors - config.reserved_sectors
        fat_size = ceil_div(sectors_to_allocate, config.fat_entry_density)

        fat_start = config.partition_alignment + config.reserved_sectors
        data_start = fat_start + config.fat_copies * fat_size

        data_sectors = partition_sectors - config.reserved_sectors - config.fat_copies * fat_size
        # Minus the single cluster holding the root directory
        free_clusters = data_sectors // config.sectors_per_cluster - 1
        if free_clusters < 1:
            raise VolumeTooSmallError(
                f"Device of {total_sectors} sectors leaves no free data cluster")

        geometry = cls(
            total_sectors=total_sectors,
            partition_start_sector=config.partition_alignment,
            partition_sector_count=partition_sectors,
            reserved_sector_count=config.reserved_sectors,
            fat_size_sectors=fat_size,
            fat_start_sector=fat_start,
            data_start_sector=data_start,
            free_cluster_count=free_clusters,
            sectors_per_cluster=config.sectors_per_cluster,
            fat_copies=config.fat_copies,
            config=config,
        )
        logger.debug(f"Derived geometry: {partition_sectors} partition sectors, "
                     f"FAT {fat_size} sectors x{config.fat_copies}, "
                     f"data at {data_start}, {free_clusters} free clusters")
        return geometry

    @property
    def total_data_clusters(self) -> int:
        """Clusters in the data region, including the root directory cluster"""
        data_sectors = (self.partition_sector_count - self.reserved_sector_count
                        - self.fat_copies * self.fat_size_sectors)
        return data_sectors // self.sectors_per_cluster

    def fat_copy_start(self, index: int) -> int:
        """Absolute start sector of FAT copy `index` (0-based)"""
        if not 0 <= index < self.fat_copies:
            raise IndexError(f"FAT copy {index} out of range (0..{self.fat_copies - 1})")
        return self.fat_start_sector + index * self.fat_size_sectors

    @property
    def vbr_sector(self) -> int:
        return self.partition_start_sector

    @property
    def backup_vbr_sector(self) -> int:
        return self.partition_start_sector + self.config.backup_boot_sector

    @property
    def fs_info_sector(self) -> int:
        return self.partition_start_sector + self.config.fs_info_sector

    @property
    def backup_fs_info_sector(self) -> int:
        # The backup FSInfo sits right after the backup boot sector
        return self.backup_vbr_sector + self.config.fs_info_sector

    @property
    def root_directory_sector(self) -> int:
        return self.data_start_sector
