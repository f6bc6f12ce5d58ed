"""
XFS Format Specification (major version 16)
===========================================

Layout:
    Header (24 bytes)              <- magic "XFS\\0", version, object count, database size
    Database blob                  <- exactly database_size bytes
        object pointer table       <- object_num x u64, byte offsets into the blob
        schema records             <- 16-byte schema header + num_props x 48-byte property records
        property name strings      <- null-terminated, cp932
    Instance stream                <- flat, positional; interpreted only through the schema table
        discriminant (u32)         <- 0x....FFFE = absent, else (schema_index << 1)
        reserved (8 bytes)         <- unused, consumed for alignment
        per property:
            count (u32)            <- array length
            count x value          <- shape selected by the property's type and grammar

Design Decisions:
    - All integers little-endian
    - Offsets inside schema records are relative to the start of the database blob
    - The schema table is read fully before any instance data
    - A property's attribute byte selects one of two decoding grammars (static / dynamic)
    - Nested objects recurse through the same discriminant + properties layout
"""

from enum import IntEnum

# Magic bytes - "XFS\0" read as a little-endian u32
MAGIC = 0x00534658
MAGIC_BYTES = b"XFS\x00"

# Only this major version is understood
MAJOR_VERSION = 16

# Record sizes
HEADER_SIZE = 24
OBJECT_PTR_SIZE = 8
SCHEMA_HEADER_SIZE = 16
PROPERTY_INFO_SIZE = 48
RESERVED_AFTER_DISCRIMINANT = 8

# Schema header bitfield: num_props (15 bits) | is_init (1 bit)
NUM_PROPS_MASK = 0x7FFF
IS_INIT_SHIFT = 15

# Property bitfield: raw_type (8) | attr (8) | size (15) | disabled (1)
PROP_TYPE_MASK = 0xFF
PROP_ATTR_SHIFT = 8
PROP_ATTR_MASK = 0xFF
PROP_SIZE_SHIFT = 16
PROP_SIZE_MASK = 0x7FFF
PROP_DISABLED_SHIFT = 31

# Discriminant layout
NULL_DISCRIMINANT_MASK = 0xFFFE
SCHEMA_INDEX_SHIFT = 1
SCHEMA_INDEX_MASK = 0x7FFF

# Attribute flags (attr byte of the property bitfield)
DYNAMIC_FLAG = 0x20

# String scan caps (bytes, terminator excluded)
STATIC_STRING_CAP = 512
CUSTOM_STRING_CAP = 128
PROPERTY_NAME_CAP = 4096

# Text encoding for every string in the format (Shift-JIS, Microsoft variant)
TEXT_ENCODING = "cp932"

# Default recursion guard for nested objects
MAX_NESTING_DEPTH = 128

# Registry data file override
DTI_PATH_ENV = "MTXFS_DTI_PATH"
MAX_DEPTH_ENV = "MTXFS_MAX_DEPTH"

# File extension of serialized documents
EXTENSION = ".xfs"


class PropType(IntEnum):
    """Property type codes as stored in the low byte of a property bitfield."""

    UNDEFINED = 0x00
    CLASS = 0x01
    CLASSREF = 0x02
    BOOL = 0x03
    U8 = 0x04
    U16 = 0x05
    U32 = 0x06
    U64 = 0x07
    S8 = 0x08
    S16 = 0x09
    S32 = 0x0A
    S64 = 0x0B
    F32 = 0x0C
    F64 = 0x0D
    STRING = 0x0E
    COLOR = 0x0F
    POINT = 0x10
    SIZE = 0x11
    RECT = 0x12
    MATRIX = 0x13
    VECTOR3 = 0x14
    VECTOR4 = 0x15
    QUATERNION = 0x16
    PROPERTY = 0x17
    EVENT = 0x18
    GROUP = 0x19
    PAGE_BEGIN = 0x1A
    PAGE_END = 0x1B
    EVENT32 = 0x1C
    ARRAY = 0x1D
    PROPERTYLIST = 0x1E
    GROUP_END = 0x1F
    CSTRING = 0x20
    TIME = 0x21
    FLOAT2 = 0x22
    FLOAT3 = 0x23
    FLOAT4 = 0x24
    FLOAT3X3 = 0x25
    FLOAT4X3 = 0x26
    FLOAT4X4 = 0x27
    EASECURVE = 0x28
    LINE = 0x29
    LINESEGMENT = 0x2A
    RAY = 0x2B
    PLANE = 0x2C
    SPHERE = 0x2D
    CAPSULE = 0x2E
    AABB = 0x2F
    OBB = 0x30
    CYLINDER = 0x31
    TRIANGLE = 0x32
    CONE = 0x33
    TORUS = 0x34
    ELLIPSOID = 0x35
    RANGE = 0x36
    RANGEF = 0x37
    RANGEU16 = 0x38
    HERMITECURVE = 0x39
    ENUMLIST = 0x3A
    FLOAT3X4 = 0x3B
    LINESEGMENT4 = 0x3C
    AABB4 = 0x3D
    OSCILLATOR = 0x3E
    VARIABLE = 0x3F
    VECTOR2 = 0x40
    MATRIX33 = 0x41
    RECT3D_XZ = 0x42
    RECT3D = 0x43
    RECT3D_COLLISION = 0x44
    PLANE_XZ = 0x45
    RAY_Y = 0x46
    POINTF = 0x47
    SIZEF = 0x48
    RECTF = 0x49
    EVENT64 = 0x4A
    CUSTOM = 0x80

    @classmethod
    def decode(cls, raw: int) -> "PropType | None":
        """Map a raw type code to a member, or None for codes this build doesn't know."""
        try:
            return cls(raw)
        except ValueError:
            return None
