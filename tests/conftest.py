"""
Shared fixtures: a synthetic type registry and a builder for XFS documents.
"""

import struct

import pytest

from mtxfs.dti import TypeRegistry, dti_hash
from mtxfs.schema import pack_property_bits
from mtxfs.spec import DYNAMIC_FLAG, MAGIC, MAJOR_VERSION, PropType

TYPE_NAMES = ["cTestRoot", "cTestChild", "cEmpty"]

ROOT_HASH = dti_hash("cTestRoot")
CHILD_HASH = dti_hash("cTestChild")
EMPTY_HASH = dti_hash("cEmpty")


def prop(name, prop_type, dynamic=False, size=4, disabled=False, raw=None):
    """A property declaration for build_document: (name, bitfield)."""
    code = raw if raw is not None else int(prop_type)
    attr = DYNAMIC_FLAG if dynamic else 0
    return name, pack_property_bits(code, attr, size, disabled)


def build_header(object_num, database_size, magic=MAGIC, major=MAJOR_VERSION, minor=0):
    return struct.pack("<IHHIIII", magic, major, minor, 0, 0, object_num, database_size)


def build_database(schemas, pointers=None):
    """
    Lay out a database blob.

    schemas: list of (type_hash, [(name, bitfield), ...]) or
             (type_hash, props, is_init)
    pointers: override the computed object pointers
    """
    table_size = len(schemas) * 8
    records = bytearray()
    names = bytearray()
    computed = []

    # Records first, names after all of them; name offsets patched once known
    layouts = []
    for schema in schemas:
        type_hash, props = schema[0], schema[1]
        is_init = schema[2] if len(schema) > 2 else False
        computed.append(table_size + len(records))
        records += struct.pack("<IIII", type_hash, 0, len(props) | (int(is_init) << 15), 0)
        for name, bits in props:
            layouts.append((len(records), name, bits))
            records += b"\x00" * 48

    names_base = table_size + len(records)
    for pos, name, bits in layouts:
        name_offset = names_base + len(names)
        names += name.encode("cp932") + b"\x00"
        struct.pack_into("<QI", records, pos, name_offset, bits)

    ptrs = pointers if pointers is not None else computed
    table = b"".join(struct.pack("<Q", p) for p in ptrs)
    return table + bytes(records) + bytes(names)


def build_document(schemas, instance=b"", **header_kw):
    database = build_database(schemas, header_kw.pop("pointers", None))
    return build_header(len(schemas), len(database), **header_kw) + database + instance


# Instance stream helpers

def node(index):
    """Discriminant for schema `index` plus the 8 reserved bytes."""
    return struct.pack("<I", index << 1) + b"\x00" * 8


NULL = struct.pack("<I", 0xFFFE)


def count(n):
    return struct.pack("<I", n)


def cstr(s):
    return s.encode("cp932") + b"\x00"


@pytest.fixture
def registry():
    return TypeRegistry.from_entries(
        [(name, dti_hash(name), None) for name in TYPE_NAMES]
        + [("rTexture", dti_hash("rTexture"), "tex")]
    )


@pytest.fixture
def config(registry):
    from mtxfs.config import ReaderConfig
    return ReaderConfig(registry=registry)
