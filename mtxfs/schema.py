"""
Schema table - the type/property description embedded at the front of every document.

The database blob starts with a table of u64 object pointers. Each pointer is a
blob offset to a 16-byte schema header followed by that type's property records.
The position of a schema in the pointer table is the index instance data uses
to refer to it, so the table is kept in pointer order.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from typing import BinaryIO, ClassVar

from mtxfs.dti import TypeDescriptor, TypeRegistry
from mtxfs.errors import (
    BadMagicOrVersion,
    CorruptPointerTable,
    UnknownType,
    UnsupportedSchemaShape,
)
from mtxfs.records import Record, iter_structs, read_cstring, read_exact
from mtxfs.spec import (
    DYNAMIC_FLAG,
    IS_INIT_SHIFT,
    MAGIC,
    MAJOR_VERSION,
    NUM_PROPS_MASK,
    OBJECT_PTR_SIZE,
    PROP_ATTR_MASK,
    PROP_ATTR_SHIFT,
    PROP_DISABLED_SHIFT,
    PROP_SIZE_MASK,
    PROP_SIZE_SHIFT,
    PROP_TYPE_MASK,
    PROPERTY_NAME_CAP,
    SCHEMA_HEADER_SIZE,
    PropType,
)

logger = logging.getLogger(__name__)


# =============================================================================
# On-disk records
# =============================================================================

@dataclass
class Header(Record):
    STRUCT: ClassVar[struct.Struct] = struct.Struct("<IHHIIII")

    magic: int
    major_version: int
    minor_version: int
    max_object_id: int
    reserved: int
    object_num: int
    database_size: int

    def validate(self) -> None:
        if self.magic != MAGIC or self.major_version != MAJOR_VERSION:
            raise BadMagicOrVersion(self.magic, self.major_version)

    @property
    def pointer_table_size(self) -> int:
        return self.object_num * OBJECT_PTR_SIZE


@dataclass
class SchemaHeader(Record):
    STRUCT: ClassVar[struct.Struct] = struct.Struct("<IIII")

    type_hash: int
    _pad0: int
    bitfield: int
    _pad1: int

    @property
    def num_props(self) -> int:
        return self.bitfield & NUM_PROPS_MASK

    @property
    def is_init(self) -> bool:
        return bool((self.bitfield >> IS_INIT_SHIFT) & 1)


@dataclass
class PropertyRecord(Record):
    STRUCT: ClassVar[struct.Struct] = struct.Struct("<QI36x")

    name_offset: int
    bitfield: int


# =============================================================================
# Property bitfield
# =============================================================================

def unpack_property_bits(v: int) -> tuple[int, int, int, bool]:
    """Split a property bitfield into (raw_type, attr, declared_size, disabled)."""
    return (
        v & PROP_TYPE_MASK,
        (v >> PROP_ATTR_SHIFT) & PROP_ATTR_MASK,
        (v >> PROP_SIZE_SHIFT) & PROP_SIZE_MASK,
        bool((v >> PROP_DISABLED_SHIFT) & 1),
    )


def pack_property_bits(raw_type: int, attr: int, declared_size: int, disabled: bool) -> int:
    return (
        (raw_type & PROP_TYPE_MASK)
        | (attr & PROP_ATTR_MASK) << PROP_ATTR_SHIFT
        | (declared_size & PROP_SIZE_MASK) << PROP_SIZE_SHIFT
        | int(disabled) << PROP_DISABLED_SHIFT
    )


# =============================================================================
# Decoded schema
# =============================================================================

@dataclass(frozen=True)
class PropertyInfo:
    name: str
    raw_type_code: int
    attr_flags: int
    declared_size: int
    is_disabled: bool = False

    @classmethod
    def from_bits(cls, name: str, bitfield: int) -> PropertyInfo:
        raw_type, attr, size, disabled = unpack_property_bits(bitfield)
        return cls(name, raw_type, attr, size, disabled)

    @property
    def is_dynamic(self) -> bool:
        return bool(self.attr_flags & DYNAMIC_FLAG)

    @property
    def decoded_type(self) -> PropType | None:
        return PropType.decode(self.raw_type_code)

    @property
    def type_label(self) -> str:
        decoded = self.decoded_type
        return decoded.name.lower() if decoded is not None else f"0x{self.raw_type_code:02x}"


@dataclass
class ObjectInfo:
    type: TypeDescriptor
    properties: list[PropertyInfo] = field(default_factory=list)

    def __repr__(self) -> str:
        props = ", ".join(f"{p.name}: {p.type_label}" for p in self.properties)
        return f"ObjectInfo({self.type.name} {{{props}}})"


# =============================================================================
# Reading
# =============================================================================

def read_header(stream: BinaryIO) -> Header:
    header = Header.read(stream)
    header.validate()
    logger.debug("Header %s", header)
    return header


def read_database(stream: BinaryIO, header: Header) -> bytes:
    return read_exact(stream, header.database_size, "database")


def build_schema_table(
    header: Header,
    database: bytes,
    registry: TypeRegistry,
    name_cap: int = PROPERTY_NAME_CAP,
) -> list[ObjectInfo]:
    """
    Resolve every object pointer into an ObjectInfo, in pointer-table order.

    Offsets in raised errors are relative to the start of the database blob.
    """
    table_size = header.pointer_table_size
    if table_size > len(database):
        raise CorruptPointerTable(
            f"Pointer table needs {table_size} bytes, database holds {len(database)}", 0
        )

    view = memoryview(database)
    table: list[ObjectInfo] = []
    for index in range(header.object_num):
        (ptr,) = struct.unpack_from("<Q", view, index * OBJECT_PTR_SIZE)
        logger.debug("object ptr %d: %08x", index, ptr)
        if ptr < table_size:
            raise CorruptPointerTable(
                f"Object pointer {index} (0x{ptr:x}) overlaps the pointer table",
                index * OBJECT_PTR_SIZE,
            )
        if ptr + SCHEMA_HEADER_SIZE > len(database):
            raise CorruptPointerTable(
                f"Object pointer {index} (0x{ptr:x}) is outside the database "
                f"({len(database)} bytes)",
                index * OBJECT_PTR_SIZE,
            )
        table.append(_read_object_info(view, ptr, registry, name_cap))
    return table


def _read_object_info(
    view: memoryview, ptr: int, registry: TypeRegistry, name_cap: int
) -> ObjectInfo:
    schema = SchemaHeader.unpack(view, ptr)
    if schema.is_init:
        raise UnsupportedSchemaShape("Pre-initialized schema is not supported", ptr)

    dti = registry.lookup(schema.type_hash)
    if dti is None:
        raise UnknownType(schema.type_hash, ptr)

    properties = []
    for record in iter_structs(view, ptr + SCHEMA_HEADER_SIZE, schema.num_props, PropertyRecord):
        name = read_cstring(view, record.name_offset, name_cap)
        prop = PropertyInfo.from_bits(name, record.bitfield)
        logger.debug(
            "  %s: %s attr=0x%02x size=%d%s",
            prop.name, prop.type_label, prop.attr_flags, prop.declared_size,
            " (disabled)" if prop.is_disabled else "",
        )
        properties.append(prop)

    logger.debug("DTI %08x %s: %d properties", dti.hash, dti.name, len(properties))
    return ObjectInfo(dti, properties)
