"""
Property value grammars.

Every property occurrence is a u32 count followed by that many values. What a
value looks like depends on the property's type *and* on which grammar its
attribute byte selects:

    static:  class, u16, vector3, bool, u8, f32, s32, u32, s16, s8, string
    dynamic: custom, bool, classref, s16, s32, u32

The two sets overlap only partly; that mirrors the wire format. A type outside
the active grammar is a hard failure, never a skip: skipping would leave the
stream misaligned for every later read.
"""

from __future__ import annotations

import struct
from typing import BinaryIO, Callable

from mtxfs.document import Node, PropertyValue, PropertyValues, Vector3
from mtxfs.errors import FormatViolation, RequiredNodeAbsent, UnsupportedPropertyType
from mtxfs.records import read_exact, read_stream_cstring, tell
from mtxfs.schema import PropertyInfo
from mtxfs.spec import CUSTOM_STRING_CAP, STATIC_STRING_CAP, PropType

# Scalars with a plain little-endian layout
_SCALARS: dict[PropType, struct.Struct] = {
    PropType.U8: struct.Struct("<B"),
    PropType.U16: struct.Struct("<H"),
    PropType.U32: struct.Struct("<I"),
    PropType.S8: struct.Struct("<b"),
    PropType.S16: struct.Struct("<h"),
    PropType.S32: struct.Struct("<i"),
    PropType.F32: struct.Struct("<f"),
}

STATIC_TYPES = frozenset(_SCALARS) | {
    PropType.CLASS, PropType.VECTOR3, PropType.BOOL, PropType.STRING
}
DYNAMIC_TYPES = frozenset(
    {PropType.CUSTOM, PropType.BOOL, PropType.CLASSREF, PropType.S16, PropType.S32, PropType.U32}
)

_COUNT = struct.Struct("<I")
_CUSTOM_COUNT = struct.Struct("<B")
_VECTOR3 = struct.Struct("<4f")


class ValueDecoder:
    """
    Reads property values off the live instance stream.

    `read_node` is the assembler's entry point for nested objects; it returns
    None for the absent sentinel. Nested objects recurse through `decode` and
    `read_node` only, so each nesting level costs two interpreter frames.
    """

    def __init__(
        self,
        stream: BinaryIO,
        read_node: Callable[[], Node | None],
        string_cap: int = STATIC_STRING_CAP,
        custom_string_cap: int = CUSTOM_STRING_CAP,
    ) -> None:
        self.stream = stream
        self.read_node = read_node
        self.string_cap = string_cap
        self.custom_string_cap = custom_string_cap

    def decode(self, prop: PropertyInfo, dynamic: bool | None = None) -> PropertyValues:
        """
        Read one property occurrence: a u32 count, then that many values.

        The grammar comes from the property's attribute byte unless `dynamic`
        forces one.
        """
        if dynamic is None:
            dynamic = prop.is_dynamic
        if dynamic:
            prop_type = self._resolve(prop, DYNAMIC_TYPES, "dynamic property")
            read_value = self._dynamic_value
        else:
            prop_type = self._resolve(prop, STATIC_TYPES, "static property")
            read_value = self._static_value

        count = self._read(_COUNT, "property count")
        values = []
        for _ in range(count):
            # Nested objects are read inline to keep the recursion shallow
            if prop_type is PropType.CLASS:
                values.append(PropertyValue(prop_type, self.read_node()))
            elif prop_type is PropType.CLASSREF:
                offset = tell(self.stream)
                node = self.read_node()
                if node is None:
                    raise RequiredNodeAbsent(f"classref '{prop.name}' decoded as absent", offset)
                values.append(PropertyValue(prop_type, node))
            else:
                values.append(read_value(prop, prop_type))
        return PropertyValues(prop_type, values)

    def decode_static(self, prop: PropertyInfo) -> PropertyValues:
        return self.decode(prop, dynamic=False)

    def decode_dynamic(self, prop: PropertyInfo) -> PropertyValues:
        return self.decode(prop, dynamic=True)

    # =========================================================================
    # Static grammar
    # =========================================================================

    def _static_value(self, prop: PropertyInfo, prop_type: PropType) -> PropertyValue:
        if prop_type is PropType.VECTOR3:
            return PropertyValue(prop_type, self._read_vector3(prop))
        if prop_type is PropType.BOOL:
            return PropertyValue(prop_type, self._read_bool())
        if prop_type is PropType.STRING:
            return PropertyValue(prop_type, read_stream_cstring(self.stream, self.string_cap))
        return PropertyValue(prop_type, self._read(_SCALARS[prop_type], prop.name))

    def _read_vector3(self, prop: PropertyInfo) -> Vector3:
        offset = tell(self.stream)
        x, y, z, pad = _VECTOR3.unpack(read_exact(self.stream, _VECTOR3.size, "vector3"))
        if pad != 0.0:
            raise FormatViolation(
                f"vector3 '{prop.name}' has non-zero padding {pad!r}, expected 0.0", offset
            )
        return Vector3(x, y, z)

    # =========================================================================
    # Dynamic grammar
    # =========================================================================

    def _dynamic_value(self, prop: PropertyInfo, prop_type: PropType) -> PropertyValue:
        if prop_type is PropType.CUSTOM:
            n = self._read(_CUSTOM_COUNT, "custom count")
            strings = tuple(
                read_stream_cstring(self.stream, self.custom_string_cap) for _ in range(n)
            )
            return PropertyValue(prop_type, strings)
        if prop_type is PropType.BOOL:
            return PropertyValue(prop_type, self._read_bool())
        return PropertyValue(prop_type, self._read(_SCALARS[prop_type], prop.name))

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve(self, prop: PropertyInfo, supported: frozenset, context: str) -> PropType:
        """The property's type, if the active grammar can read it."""
        prop_type = prop.decoded_type
        if prop_type is None or prop_type not in supported:
            raise UnsupportedPropertyType(
                prop.type_label, f"{context} '{prop.name}'", tell(self.stream)
            )
        return prop_type

    def _read_bool(self) -> bool:
        return self._read(_SCALARS[PropType.U8], "bool") != 0

    def _read(self, layout: struct.Struct, what: str):
        (value,) = layout.unpack(read_exact(self.stream, layout.size, what))
        return value
