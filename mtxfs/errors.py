"""
XFS decode errors.

Every error is structural and final for the document being decoded: there is
no partial result and no retry. Each carries the byte offset it was raised at
(absolute stream offset, or blob-relative where noted) so a format regression
can be located in a hex dump.
"""

from __future__ import annotations


class DecodeError(ValueError):
    """Base class for everything that stops a document from decoding."""

    def __init__(self, message: str, offset: int | None = None) -> None:
        self.offset = offset
        if offset is not None:
            message = f"{message} (at offset 0x{offset:x})"
        super().__init__(message)


class BadMagicOrVersion(DecodeError):
    def __init__(self, magic: int, major_version: int, offset: int | None = 0) -> None:
        self.magic = magic
        self.major_version = major_version
        super().__init__(
            f"Not an XFS v16 document: magic 0x{magic:08x}, major version {major_version}",
            offset,
        )


class UnknownType(DecodeError):
    def __init__(self, type_hash: int, offset: int | None = None) -> None:
        self.type_hash = type_hash
        super().__init__(f"Schema references unknown type hash 0x{type_hash:08x}", offset)


class CorruptPointerTable(DecodeError):
    """An object pointer aliases the pointer table or points outside the blob."""


class UnsupportedSchemaShape(DecodeError):
    """Pre-initialized schemas and disabled properties have no decode path."""


class UnsupportedPropertyType(DecodeError):
    def __init__(self, prop_type: object, context: str, offset: int | None = None) -> None:
        self.prop_type = prop_type
        self.context = context
        super().__init__(f"Unsupported property type {prop_type!s} in {context}", offset)


class TruncatedInput(DecodeError):
    def __init__(self, what: str, expected: int, found: int, offset: int | None = None) -> None:
        self.expected = expected
        self.found = found
        super().__init__(f"Truncated {what}: expected {expected} bytes, found {found}", offset)


class InvalidDiscriminant(DecodeError):
    def __init__(
        self, discriminant: int, index: int, table_size: int, offset: int | None = None
    ) -> None:
        self.discriminant = discriminant
        self.index = index
        self.table_size = table_size
        super().__init__(
            f"Discriminant 0x{discriminant:08x} selects schema {index}, "
            f"but the table holds {table_size}",
            offset,
        )


class RequiredNodeAbsent(DecodeError):
    """A classref property or the document root decoded as the absent sentinel."""


class NestingTooDeep(DecodeError):
    """Nested objects exceeded the configured recursion limit."""


class FormatViolation(DecodeError):
    """A value decoded cleanly but breaks a fixed rule of the format (e.g. vector padding)."""
