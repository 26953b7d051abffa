import struct
import pytest
from fat32_backend.geometry import VolumeGeometry, FormatConfig
from fat32_backend.errors import StructureError
from fat32_backend.structures import (
    encode_mbr, encode_vbr, encode_fsinfo, encode_fat_header,
    encode_root_directory, encode_partition_entry, encode_volume_label_entry,
    pack_layout, VBR_LAYOUT, MBR_LAYOUT, FSINFO_LAYOUT, DIR_ENTRY_LAYOUT,
    PARTITION_ENTRY_LAYOUT, LAYOUT_VERSION
)

@pytest.fixture
def geometry():
    return VolumeGeometry.from_total_sectors(8_388_608)

@pytest.fixture
def vbr(geometry):
    return encode_vbr(geometry, "nds_fat32", 0x12345678)

class TestMBR:
    def test_size_and_signature(self, geometry):
        mbr = encode_mbr(geometry)
        assert len(mbr) == 512
        assert mbr[510:512] == b'\x55\xAA'

    def test_bootstrap_is_zero(self, geometry):
        assert encode_mbr(geometry)[:446] == bytes(446)

    def test_partition_entry(self, geometry):
        entry = encode_mbr(geometry)[0x1BE:0x1CE]
        assert entry[0] == 0x80
        assert entry[1:4] == b'\xFF\xFF\xFF'
        assert entry[4] == 0x0C
        assert entry[5:8] == b'\xFF\xFF\xFF'
        lba_start, count = struct.unpack('<II', entry[8:16])
        assert lba_start == 8192
        assert count == 8_380_416

    def test_other_slots_empty(self, geometry):
        assert encode_mbr(geometry)[0x1CE:0x1FE] == bytes(48)

    def test_partition_entry_size(self):
        assert len(encode_partition_entry(8192, 10240)) == 16

class TestVBR:
    def test_size_and_signature(self, vbr):
        assert len(vbr) == 512
        assert vbr[510:512] == b'\x55\xAA'

    def test_header(self, vbr):
        assert vbr[0:3] == b'\xEB\x58\x90'
        assert vbr[3:11] == b'MSWIN4.1'

    def test_bpb(self, vbr, geometry):
        (bytes_per_sector, sectors_per_cluster, reserved, fat_count, root_entries,
         total16, media, fat16, spt, heads, hidden, total32) = struct.unpack_from('<HBHBHHBHHHII', vbr, 0x0B)
        assert bytes_per_sector == 512
        assert sectors_per_cluster == 64
        assert reserved == 32
        assert fat_count == 2
        assert root_entries == 0
        assert total16 == 0
        assert media == 0xF8
        assert fat16 == 0
        assert spt == 63
        assert heads == 255
        assert hidden == 8192
        assert total32 == geometry.partition_sector_count

    def test_extended_bpb(self, vbr, geometry):
        fat32, ext_flags, version, root_cluster, fsinfo, backup = struct.unpack_from('<IHHIHH', vbr, 0x24)
        assert fat32 == geometry.fat_size_sectors
        assert ext_flags == 0
        assert version == 0
        assert root_cluster == 2
        assert fsinfo == 1
        assert backup == 6
        assert vbr[0x34:0x40] == bytes(12)

    def test_fat_size_round_trip(self, vbr):
        stored = struct.unpack_from('<I', vbr, 0x24)[0]
        assert stored == VolumeGeometry.from_total_sectors(8_388_608).fat_size_sectors

    def test_boot_fields(self, vbr):
        assert vbr[0x40] == 0x80
        assert vbr[0x41] == 0
        assert vbr[0x42] == 0x29
        assert struct.unpack_from('<I', vbr, 0x43)[0] == 0x12345678
        assert vbr[0x47:0x52] == b'NDS_FAT32  '
        assert vbr[0x52:0x5A] == b'FAT32   '
        assert vbr[0x5A:0x1FE] == bytes(420)

    def test_serial_masked_to_32_bits(self, geometry):
        vbr = encode_vbr(geometry, "x", 0x1_0000_0001)
        assert struct.unpack_from('<I', vbr, 0x43)[0] == 1

class TestFSInfo:
    def test_layout(self, geometry):
        fsinfo = encode_fsinfo(geometry)
        assert len(fsinfo) == 512
        assert struct.unpack_from('<I', fsinfo, 0)[0] == 0x41615252
        assert fsinfo[4:484] == bytes(480)
        assert struct.unpack_from('<I', fsinfo, 484)[0] == 0x61417272
        assert struct.unpack_from('<I', fsinfo, 488)[0] == geometry.free_cluster_count
        assert struct.unpack_from('<I', fsinfo, 492)[0] == 3
        assert fsinfo[496:508] == bytes(12)
        assert struct.unpack_from('<I', fsinfo, 508)[0] == 0xAA550000
        assert fsinfo[510:512] == b'\x55\xAA'

class TestFATHeader:
    def test_entries(self):
        fat = encode_fat_header()
        assert len(fat) == 512
        entries = struct.unpack('<128I', fat)
        assert entries[0] == 0xFFFFFFF8
        assert entries[1] == 0xFFFFFFFF
        assert entries[2] == 0x0FFFFFFF
        assert all(e == 0 for e in entries[3:])

    def test_media_descriptor_from_config(self):
        fat = encode_fat_header(FormatConfig(media_descriptor=0xF0))
        assert struct.unpack_from('<I', fat, 0)[0] == 0xFFFFFFF0

class TestRootDirectory:
    def test_volume_label_entry(self):
        sector = encode_root_directory("nds_fat32")
        assert len(sector) == 512
        assert sector[0:11] == b'NDS_FAT32  '
        assert sector[11] == 0x08
        assert sector[12:32] == bytes(20)
        assert sector[32:] == bytes(480)

    def test_label_matches_vbr(self, geometry):
        label = "ThisIsWayTooLongALabel"
        vbr = encode_vbr(geometry, label, 0)
        root = encode_root_directory(label)
        assert vbr[0x47:0x52] == root[0:11] == b'THISISWAYTO'

    def test_entry_size(self):
        assert len(encode_volume_label_entry("r4")) == 32

class TestPackLayout:
    def test_layout_version(self):
        assert LAYOUT_VERSION == 1

    @pytest.mark.parametrize("layout,size", [
        (MBR_LAYOUT, 512), (VBR_LAYOUT, 512), (FSINFO_LAYOUT, 512),
        (DIR_ENTRY_LAYOUT, 32), (PARTITION_ENTRY_LAYOUT, 16),
    ])
    def test_layouts_cover_whole_structure(self, layout, size):
        covered = sum(struct.calcsize(fmt) for _, fmt in layout.values())
        assert covered == size

    def test_missing_field(self):
        with pytest.raises(StructureError):
            pack_layout({0: ('a', '<H'), 2: ('b', '<H')}, {'a': 1}, 4)

    def test_unknown_field(self):
        with pytest.raises(StructureError):
            pack_layout({0: ('a', '<H')}, {'a': 1, 'z': 2}, 2)

    def test_value_out_of_range(self):
        with pytest.raises(StructureError):
            pack_layout({0: ('a', '<H')}, {'a': 0x10000}, 2)

    def test_bytes_too_long(self):
        with pytest.raises(StructureError):
            pack_layout({0: ('a', '3s')}, {'a': b'abcd'}, 3)

    def test_overlap(self):
        with pytest.raises(StructureError):
            pack_layout({0: ('a', '<I'), 2: ('b', '<H')}, {'a': 0, 'b': 0}, 8)

    def test_out_of_bounds(self):
        with pytest.raises(StructureError):
            pack_layout({6: ('a', '<I')}, {'a': 0}, 8)

    def test_little_endian(self):
        assert pack_layout({1: ('a', '<H')}, {'a': 0xAA55}, 4) == b'\x00\x55\xAA\x00'

    def test_partition_too_large_for_field(self):
        geometry = VolumeGeometry.from_total_sectors(8_388_608)
        bad = VolumeGeometry(**{**geometry.__dict__, 'partition_sector_count': 0x1_0000_0000})
        with pytest.raises(StructureError):
            encode_mbr(bad)
