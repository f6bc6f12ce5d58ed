"""
Unit Tests - Test individual components in isolation.
"""

import io
import json
import random
import struct

import pytest

from mtxfs import dti as dti_module
from mtxfs.dti import TypeDescriptor, TypeRegistry, crc32, default_registry, dti_hash
from mtxfs.errors import TruncatedInput
from mtxfs.records import iter_structs, read_cstring, read_stream_cstring, read_struct
from mtxfs.schema import (
    Header,
    PropertyInfo,
    PropertyRecord,
    SchemaHeader,
    pack_property_bits,
    unpack_property_bits,
)
from mtxfs.spec import (
    DYNAMIC_FLAG,
    HEADER_SIZE,
    MAGIC,
    MAGIC_BYTES,
    MAJOR_VERSION,
    PROPERTY_INFO_SIZE,
    SCHEMA_HEADER_SIZE,
    PropType,
)


# =============================================================================
# Spec constants
# =============================================================================

class TestSpec:

    def test_magic(self):
        assert MAGIC == 0x00534658
        assert struct.pack("<I", MAGIC) == MAGIC_BYTES == b"XFS\x00"

    def test_major_version(self):
        assert MAJOR_VERSION == 16

    def test_struct_sizes(self):
        assert Header.size() == HEADER_SIZE == 0x18
        assert SchemaHeader.size() == SCHEMA_HEADER_SIZE == 16
        assert PropertyRecord.size() == PROPERTY_INFO_SIZE == 48

    def test_prop_type_decode(self):
        assert PropType.decode(0x01) is PropType.CLASS
        assert PropType.decode(0x80) is PropType.CUSTOM
        assert PropType.decode(0x7F) is None


# =============================================================================
# DTI registry
# =============================================================================

class TestCrc:

    def test_jamcrc_check_value(self):
        # Standard CRC-32 check value is 0xCBF43926; without the final XOR it inverts
        assert crc32(b"123456789") == 0x340BC6D9

    def test_seed_chains(self):
        assert crc32(b"world", crc32(b"hello ")) == crc32(b"hello world")

    def test_dti_hash_is_31_bits(self):
        assert dti_hash("rTexture") <= 0x7FFFFFFF


class TestTypeRegistry:

    def test_lookup(self, registry):
        found = registry.lookup(dti_hash("rTexture"))
        assert found == TypeDescriptor("rTexture", dti_hash("rTexture"), "tex")
        assert found.is_resource

    def test_lookup_missing(self, registry):
        assert registry.lookup(0x12345678) is None
        assert 0x12345678 not in registry

    def test_from_name(self, registry):
        assert registry.from_name("cTestRoot").hash == dti_hash("cTestRoot")
        assert registry.from_name("nope") is None

    def test_duplicates_keep_first(self):
        reg = TypeRegistry.from_entries([("a", 1, "x"), ("b", 1, "y")])
        assert len(reg) == 1
        assert reg.lookup(1).name == "a"

    def test_verify_reports_bad_entries(self):
        reg = TypeRegistry.from_entries([("good", dti_hash("good"), None), ("bad", 5, None)])
        assert [d.name for d in reg.verify()] == ["bad"]

    def test_load_jsonl(self, tmp_path):
        path = tmp_path / "dti.jsonl"
        lines = [
            {"address": 1, "parent_address": 0, "name": "rModel",
             "hash": dti_hash("rModel"), "size": 8, "file_extension": "mod"},
            {"name": "cThing", "hash": dti_hash("cThing")},
        ]
        path.write_text("\n".join(json.dumps(l) for l in lines) + "\n\n")
        reg = TypeRegistry.load(path)
        assert len(reg) == 2
        assert reg.lookup(dti_hash("rModel")).file_ext == "mod"
        assert reg.lookup(dti_hash("cThing")).file_ext is None

    def test_load_rejects_bad_line(self, tmp_path):
        path = tmp_path / "dti.jsonl"
        path.write_text('{"hash": 1}\n')
        with pytest.raises(ValueError, match="invalid DTI entry"):
            TypeRegistry.load(path)

    def test_registry_is_read_only(self, registry):
        with pytest.raises(TypeError):
            registry._by_hash[1] = None


class TestPackagedRegistry:

    def test_known_entry(self):
        assert default_registry().lookup(0x5D5AF4F2).name == "bitset_prop<32>"

    def test_hash_law_holds_for_every_entry(self):
        reg = TypeRegistry.load(dti_module.DEFAULT_DTI_PATH)
        assert len(reg) > 0
        for entry in reg:
            assert crc32(entry.name.encode("utf-8"), 0xFFFFFFFF) & 0x7FFFFFFF == entry.hash, entry
        assert reg.verify() == []

    def test_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.jsonl"
        path.write_text(json.dumps({"name": "cOnly", "hash": dti_hash("cOnly")}) + "\n")
        monkeypatch.setenv("MTXFS_DTI_PATH", str(path))
        reg = default_registry()
        assert [d.name for d in reg] == ["cOnly"]
        assert default_registry() is reg


# =============================================================================
# Record overlays
# =============================================================================

class TestRecords:

    def test_read_struct(self):
        data = struct.pack("<IIII", 0xAABBCCDD, 0, 3, 0)
        rec = read_struct(io.BytesIO(data), SchemaHeader)
        assert rec.type_hash == 0xAABBCCDD
        assert rec.num_props == 3
        assert not rec.is_init

    def test_record_read(self):
        stream = io.BytesIO(struct.pack("<IHHIIII", MAGIC, MAJOR_VERSION, 0, 0, 0, 2, 64) + b"tail")
        header = Header.read(stream)
        assert header.object_num == 2
        assert header.pointer_table_size == 16
        assert stream.tell() == HEADER_SIZE

    def test_record_read_short(self):
        with pytest.raises(TruncatedInput, match="Truncated Header"):
            Header.read(io.BytesIO(b"XFS\x00"))

    def test_read_struct_short(self):
        with pytest.raises(TruncatedInput, match="expected 16 bytes, found 5"):
            read_struct(io.BytesIO(b"\x00" * 5), SchemaHeader)

    def test_iter_structs(self):
        buf = b"".join(struct.pack("<QI36x", i * 10, i) for i in range(3))
        recs = list(iter_structs(buf, 0, 3, PropertyRecord))
        assert [(r.name_offset, r.bitfield) for r in recs] == [(0, 0), (10, 1), (20, 2)]

    def test_iter_structs_checks_span_up_front(self):
        buf = b"\x00" * (48 * 2)
        # Raised at call time, before any iteration
        with pytest.raises(TruncatedInput):
            iter_structs(buf, 0, 3, PropertyRecord)

    def test_iter_structs_is_lazy(self):
        it = iter_structs(b"\x00" * 96, 0, 2, PropertyRecord)
        assert next(it).bitfield == 0

    def test_read_cstring_cp932(self):
        text = "攻撃力"
        buf = b"xx" + text.encode("cp932") + b"\x00rest"
        assert read_cstring(buf, 2, 64) == text

    def test_read_cstring_capped(self):
        assert read_cstring(b"abcdefgh", 0, 3) == "abc"

    def test_read_cstring_unterminated_to_end(self):
        assert read_cstring(b"abc", 1, 64) == "bc"

    def test_read_cstring_invalid_bytes_replaced(self):
        # Lone lead byte of a double-byte sequence
        assert read_cstring(b"\x81\x00", 0, 8) == "\ufffd"

    def test_read_cstring_out_of_bounds(self):
        with pytest.raises(TruncatedInput):
            read_cstring(b"abc", 10, 8)

    def test_stream_cstring_consumes_terminator(self):
        s = io.BytesIO(b"name\x00next")
        assert read_stream_cstring(s, 32) == "name"
        assert s.tell() == 5

    def test_stream_cstring_cap(self):
        s = io.BytesIO(b"abcdefgh\x00")
        assert read_stream_cstring(s, 4) == "abcd"
        assert s.tell() == 4

    def test_stream_cstring_eof(self):
        with pytest.raises(TruncatedInput):
            read_stream_cstring(io.BytesIO(b"abc"), 32)


# =============================================================================
# Property bitfield
# =============================================================================

class TestPropertyBits:

    @pytest.mark.parametrize("v", [0, 1, 0xFF, 0xFF00, 0x7FFF0000, 0x80000000, 0xFFFFFFFF])
    def test_round_trip_edges(self, v):
        assert pack_property_bits(*unpack_property_bits(v)) == v

    def test_round_trip_random(self):
        rng = random.Random(1234)
        for _ in range(2000):
            v = rng.getrandbits(32)
            assert pack_property_bits(*unpack_property_bits(v)) == v

    def test_unpack_fields(self):
        v = 0x0E | (0x20 << 8) | (0x1234 << 16) | (1 << 31)
        assert unpack_property_bits(v) == (0x0E, 0x20, 0x1234, True)

    def test_property_info_flags(self):
        info = PropertyInfo.from_bits("mName", pack_property_bits(0x0E, DYNAMIC_FLAG, 4, False))
        assert info.is_dynamic
        assert not info.is_disabled
        assert info.decoded_type is PropType.STRING
        assert info.type_label == "string"

    def test_unknown_raw_type_kept(self):
        info = PropertyInfo.from_bits("mOdd", pack_property_bits(0x7E, 0, 0, False))
        assert info.decoded_type is None
        assert info.raw_type_code == 0x7E
        assert info.type_label == "0x7e"
