#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
FAT32 Structure Encoder
Builds the exact byte images of the MBR, volume boot record, FSInfo sector,
first FAT sector and first root directory sector.

Every structure is described by a layout table { offset: (field, struct format) }
and serialized field by field, so the byte positions never depend on how the
host would pack a C struct. All multi-byte fields are little-endian.
"""

import struct
from typing import Dict, Mapping, Tuple

from .errors import StructureError
from .geometry import DEFAULT_CONFIG, FormatConfig, VolumeGeometry
from .label_utils import encode_volume_label

# Bump when any layout table below changes
LAYOUT_VERSION = 1

Layout = Dict[int, Tuple[str, str]]

# Master Boot Record
MBR_BOOTSTRAP_SIZE = 446
PARTITION_TABLE_OFFSET = 0x1BE
PARTITION_ENTRY_SIZE = 16
PARTITION_TYPE_FAT32_LBA = 0x0C
PARTITION_STATUS_ACTIVE = 0x80
CHS_LBA_SENTINEL = b'\xFF\xFF\xFF'
BOOT_SIGNATURE = 0xAA55

# Directory entry attributes
ATTR_VOLUME_ID = 0x08
DIR_ENTRY_SIZE = 32

# FAT entries
FAT_ENTRY_SIZE = 4
FAT_END_OF_CHAIN = 0x0FFFFFFF
# End of chain with the clean-shutdown (bit 27) and no-I/O-error (bit 26) flags set
FAT_ENTRY1_CLEAN = 0xFFFFFFFF

# FSInfo
FSINFO_LEAD_SIGNATURE = 0x41615252    # "RRaA"
FSINFO_STRUCT_SIGNATURE = 0x61417272  # "rrAa"
FSINFO_TRAIL_SIGNATURE = 0xAA550000
FSINFO_NEXT_FREE = 3

PARTITION_ENTRY_LAYOUT: Layout = {
    0x00: ('status', 'B'),           # 80h = active
    0x01: ('chs_start', '3s'),       # FF FF FF, LBA addressing only
    0x04: ('partition_type', 'B'),   # 0Ch = FAT32 LBA
    0x05: ('chs_end', '3s'),
    0x08: ('lba_start', '<I'),
    0x0C: ('sector_count', '<I'),
}   # Size = 0x10

MBR_LAYOUT: Layout = {
    0x000: ('bootstrap', f'{MBR_BOOTSTRAP_SIZE}s'),
    0x1BE: ('partition_1', f'{PARTITION_ENTRY_SIZE}s'),
    0x1CE: ('partition_2', f'{PARTITION_ENTRY_SIZE}s'),
    0x1DE: ('partition_3', f'{PARTITION_ENTRY_SIZE}s'),
    0x1EE: ('partition_4', f'{PARTITION_ENTRY_SIZE}s'),
    0x1FE: ('boot_signature', '<H'),  # 55 AA
}   # Size = 0x200

VBR_LAYOUT: Layout = {
    0x00: ('jump_instruction', '3s'),
    0x03: ('oem_name', '8s'),
    # BIOS Parameter Block
    0x0B: ('bytes_per_sector', '<H'),
    0x0D: ('sectors_per_cluster', 'B'),
    0x0E: ('reserved_sector_count', '<H'),
    0x10: ('fat_count', 'B'),
    0x11: ('root_entry_count', '<H'),   # 0 on FAT32
    0x13: ('total_sectors_16', '<H'),   # 0 on FAT32
    0x15: ('media_descriptor', 'B'),
    0x16: ('fat_size_16', '<H'),        # 0 on FAT32
    0x18: ('sectors_per_track', '<H'),
    0x1A: ('head_count', '<H'),
    0x1C: ('hidden_sectors', '<I'),
    0x20: ('total_sectors_32', '<I'),
    # FAT32 extended BPB
    0x24: ('fat_size_32', '<I'),
    0x28: ('ext_flags', '<H'),          # mirroring on, no active FAT
    0x2A: ('fs_version', '<H'),
    0x2C: ('root_cluster', '<I'),
    0x30: ('fs_info_sector', '<H'),
    0x32: ('backup_boot_sector', '<H'),
    0x34: ('reserved', '12s'),
    0x40: ('drive_number', 'B'),
    0x41: ('reserved1', 'B'),
    0x42: ('boot_signature', 'B'),      # 29h: the next three fields are valid
    0x43: ('volume_id', '<I'),
    0x47: ('volume_label', '11s'),
    0x52: ('fs_type', '8s'),            # informational, never used to detect the FAT type
    0x5A: ('boot_code', '420s'),
    0x1FE: ('signature', '<H'),         # 55 AA
}   # Size = 0x200

FSINFO_LAYOUT: Layout = {
    0x000: ('lead_signature', '<I'),
    0x004: ('reserved1', '480s'),
    0x1E4: ('struct_signature', '<I'),
    0x1E8: ('free_count', '<I'),
    0x1EC: ('next_free', '<I'),
    0x1F0: ('reserved2', '12s'),
    0x1FC: ('trail_signature', '<I'),
}   # Size = 0x200

DIR_ENTRY_LAYOUT: Layout = {
    0x00: ('name', '11s'),
    0x0B: ('attributes', 'B'),
    0x0C: ('nt_reserved', 'B'),
    0x0D: ('creation_time_tenths', 'B'),
    0x0E: ('creation_time', '<H'),
    0x10: ('creation_date', '<H'),
    0x12: ('last_access_date', '<H'),
    0x14: ('first_cluster_high', '<H'),
    0x16: ('write_time', '<H'),
    0x18: ('write_date', '<H'),
    0x1A: ('first_cluster_low', '<H'),
    0x1C: ('file_size', '<I'),
}   # Size = 0x20


def pack_layout(layout: Layout, values: Mapping[str, object], size: int) -> bytes:
    """
    Serialize `values` according to `layout` into a zero-filled buffer.

    Args:
        layout: { offset: (field name, struct format) } table.
        values: Value for every field named in the layout.
        size: Total size of the resulting buffer in bytes.

    Returns:
        Immutable bytes of exactly `size` bytes.

    Raises:
        StructureError: On missing or unknown fields, overlapping or
            out-of-bounds fields, oversized byte strings, or values that do
            not fit their field width.
    """
    names = {name for name, _ in layout.values()}
    unknown = set(values) - names
    if unknown:
        raise StructureError(f"Unknown fields: {', '.join(sorted(unknown))}")

    buf = bytearray(size)
    end_of_previous = 0
    for offset in sorted(layout):
        name, fmt = layout[offset]
        width = struct.calcsize(fmt)
        if offset < end_of_previous:
            raise StructureError(f"Field '{name}' at {offset:#x} overlaps the previous field")
        if offset + width > size:
            raise StructureError(f"Field '{name}' at {offset:#x} runs past {size} bytes")
        end_of_previous = offset + width

        if name not in values:
            raise StructureError(f"Missing value for field '{name}'")
        value = values[name]
        if fmt.endswith('s') and len(value) > width:
            raise StructureError(f"Field '{name}' takes {width} bytes, got {len(value)}")
        try:
            struct.pack_into(fmt, buf, offset, value)
        except struct.error as e:
            raise StructureError(f"Cannot encode field '{name}' = {value!r}: {e}")
    return bytes(buf)


def encode_partition_entry(lba_start: int, sector_count: int) -> bytes:
    """Active FAT32 LBA partition entry with CHS addressing disabled"""
    return pack_layout(PARTITION_ENTRY_LAYOUT, {
        'status': PARTITION_STATUS_ACTIVE,
        'chs_start': CHS_LBA_SENTINEL,
        'partition_type': PARTITION_TYPE_FAT32_LBA,
        'chs_end': CHS_LBA_SENTINEL,
        'lba_start': lba_start,
        'sector_count': sector_count,
    }, PARTITION_ENTRY_SIZE)


def encode_mbr(geometry: VolumeGeometry) -> bytes:
    """Master boot record holding a single partition at the aligned start sector"""
    return pack_layout(MBR_LAYOUT, {
        'bootstrap': b'',
        'partition_1': encode_partition_entry(geometry.partition_start_sector,
                                              geometry.partition_sector_count),
        'partition_2': b'',
        'partition_3': b'',
        'partition_4': b'',
        'boot_signature': BOOT_SIGNATURE,
    }, geometry.config.sector_size)


def encode_vbr(geometry: VolumeGeometry, label: str, volume_serial: int) -> bytes:
    """
    Build the FAT32 volume boot record.

    Args:
        geometry: Derived volume geometry.
        label: Volume label, normalized before encoding.
        volume_serial: 32-bit volume ID.

    Returns:
        The 512-byte boot sector, identical for the primary and backup copies.
    """
    config = geometry.config
    return pack_layout(VBR_LAYOUT, {
        'jump_instruction': b'\xEB\x58\x90',
        'oem_name': b'MSWIN4.1',
        'bytes_per_sector': config.sector_size,
        'sectors_per_cluster': config.sectors_per_cluster,
        'reserved_sector_count': config.reserved_sectors,
        'fat_count': config.fat_copies,
        'root_entry_count': 0,
        'total_sectors_16': 0,
        'media_descriptor': config.media_descriptor,
        'fat_size_16': 0,
        'sectors_per_track': config.sectors_per_track,
        'head_count': config.heads,
        'hidden_sectors': geometry.partition_start_sector,
        'total_sectors_32': geometry.partition_sector_count,
        'fat_size_32': geometry.fat_size_sectors,
        'ext_flags': 0,
        'fs_version': 0,
        'root_cluster': config.root_cluster,
        'fs_info_sector': config.fs_info_sector,
        'backup_boot_sector': config.backup_boot_sector,
        'reserved': b'',
        'drive_number': 0x80,
        'reserved1': 0,
        'boot_signature': 0x29,
        'volume_id': volume_serial & 0xFFFFFFFF,
        'volume_label': encode_volume_label(label),
        'fs_type': b'FAT32   ',
        'boot_code': b'',
        'signature': BOOT_SIGNATURE,
    }, config.sector_size)


def encode_fsinfo(geometry: VolumeGeometry) -> bytes:
    """FSInfo sector with the free-cluster and next-free hints"""
    return pack_layout(FSINFO_LAYOUT, {
        'lead_signature': FSINFO_LEAD_SIGNATURE,
        'reserved1': b'',
        'struct_signature': FSINFO_STRUCT_SIGNATURE,
        'free_count': geometry.free_cluster_count,
        'next_free': FSINFO_NEXT_FREE,
        'reserved2': b'',
        'trail_signature': FSINFO_TRAIL_SIGNATURE,
    }, geometry.config.sector_size)


def encode_fat_header(config: FormatConfig = DEFAULT_CONFIG) -> bytes:
    """
    First sector of a FAT copy.

    Entry 0 carries the media descriptor, entry 1 is end-of-chain with the
    clean flags set, entry 2 terminates the one-cluster root directory.
    The remaining entries are free.
    """
    entries = [0] * (config.sector_size // FAT_ENTRY_SIZE)
    entries[0] = 0xFFFFFF00 | config.media_descriptor
    entries[1] = FAT_ENTRY1_CLEAN
    entries[config.root_cluster] = FAT_END_OF_CHAIN
    return struct.pack(f'<{len(entries)}I', *entries)


def encode_volume_label_entry(label: str) -> bytes:
    """32-byte VOLUME_ID directory entry with every time, cluster and size field zero"""
    return pack_layout(DIR_ENTRY_LAYOUT, {
        'name': encode_volume_label(label),
        'attributes': ATTR_VOLUME_ID,
        'nt_reserved': 0,
        'creation_time_tenths': 0,
        'creation_time': 0,
        'creation_date': 0,
        'last_access_date': 0,
        'first_cluster_high': 0,
        'write_time': 0,
        'write_date': 0,
        'first_cluster_low': 0,
        'file_size': 0,
    }, DIR_ENTRY_SIZE)


def encode_root_directory(label: str, config: FormatConfig = DEFAULT_CONFIG) -> bytes:
    """First root directory sector: the volume label entry followed by free entries"""
    entry = encode_volume_label_entry(label)
    return entry + bytes(config.sector_size - len(entry))
