"""
Decoded document tree.

A Node is one instance of a schema: its type descriptor plus an ordered list of
(property name, PropertyValues). Nested objects are plain values inside the
tree; decoding the same bytes twice never yields shared Nodes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterator, NamedTuple

from mtxfs.dti import TypeDescriptor
from mtxfs.spec import PropType


class Vector3(NamedTuple):
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class PropertyValue:
    """One decoded value, tagged with the property type it was read as."""

    type: PropType
    value: Any

    def _expect(self, *types: PropType) -> Any:
        if self.type not in types:
            expected = "/".join(t.name.lower() for t in types)
            raise TypeError(f"Expected {expected} value, got {self.type.name.lower()}")
        return self.value

    def as_int(self) -> int:
        return self._expect(
            PropType.U8, PropType.U16, PropType.U32, PropType.S8, PropType.S16, PropType.S32
        )

    def as_float(self) -> float:
        return self._expect(PropType.F32)

    def as_bool(self) -> bool:
        return self._expect(PropType.BOOL)

    def as_str(self) -> str:
        return self._expect(PropType.STRING)

    def as_vector3(self) -> Vector3:
        return self._expect(PropType.VECTOR3)

    def as_node(self) -> Node | None:
        """Nested object; None when the stream held the absent sentinel."""
        return self._expect(PropType.CLASS, PropType.CLASSREF)

    def as_strings(self) -> tuple[str, ...]:
        return self._expect(PropType.CUSTOM)

    @property
    def is_absent(self) -> bool:
        return self.type in (PropType.CLASS, PropType.CLASSREF) and self.value is None

    def to_plain(self) -> Any:
        if isinstance(self.value, Node):
            return self.value.to_dict()
        # Vector3 and custom string lists
        if isinstance(self.value, tuple):
            return [_plain_scalar(v) for v in self.value]
        return _plain_scalar(self.value)


def _plain_scalar(value: Any) -> Any:
    """Non-finite floats as strings, so exports stay strict JSON."""
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    return value


class PropertyValues:
    """The values of one property occurrence, in stream order (possibly empty)."""

    def __init__(self, type_: PropType, values: list[PropertyValue] | None = None) -> None:
        self.type = type_
        self._values: tuple[PropertyValue, ...] = tuple(values or ())

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[PropertyValue]:
        return iter(self._values)

    def __getitem__(self, index: int) -> PropertyValue:
        return self._values[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PropertyValues):
            return NotImplemented
        return self.type == other.type and self._values == other._values

    def first(self) -> PropertyValue | None:
        return self._values[0] if self._values else None

    def ints(self) -> list[int]:
        return [v.as_int() for v in self._values]

    def floats(self) -> list[float]:
        return [v.as_float() for v in self._values]

    def bools(self) -> list[bool]:
        return [v.as_bool() for v in self._values]

    def strs(self) -> list[str]:
        return [v.as_str() for v in self._values]

    def vectors(self) -> list[Vector3]:
        return [v.as_vector3() for v in self._values]

    def nodes(self) -> list[Node | None]:
        return [v.as_node() for v in self._values]

    def to_plain(self) -> list[Any]:
        return [v.to_plain() for v in self._values]

    def __repr__(self) -> str:
        return f"PropertyValues({self.type.name.lower()}, {list(self._values)!r})"


@dataclass
class Node:
    type: TypeDescriptor
    properties: list[tuple[str, PropertyValues]] = field(default_factory=list)

    def add_property(self, name: str, values: PropertyValues) -> None:
        self.properties.append((name, values))

    def get(self, name: str) -> PropertyValues | None:
        """First property with the given name, or None."""
        for prop_name, values in self.properties:
            if prop_name == name:
                return values
        return None

    def __getitem__(self, name: str) -> PropertyValues:
        values = self.get(name)
        if values is None:
            raise KeyError(name)
        return values

    def __contains__(self, name: object) -> bool:
        return any(prop_name == name for prop_name, _ in self.properties)

    @property
    def property_names(self) -> list[str]:
        return [name for name, _ in self.properties]

    def walk(self) -> Iterator[Node]:
        """This node and every nested node, depth-first in declaration order."""
        yield self
        for _, values in self.properties:
            for value in values:
                if isinstance(value.value, Node):
                    yield from value.value.walk()

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly export. Properties are [name, values] pairs in declaration order."""
        return {
            "type": self.type.name,
            "hash": f"0x{self.type.hash:08x}",
            "properties": [[name, values.to_plain()] for name, values in self.properties],
        }

    def __repr__(self) -> str:
        return f"Node({self.type.name}, properties={self.property_names})"
