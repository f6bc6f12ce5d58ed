"""
XFS Reader - decodes one document into a Node tree.

Two phases:
  - Schema: header, database blob and the schema table, read exactly once
  - Instance: one top-level node, recursing through nested object properties

Usage:
    node = deserialize(open("file.xfs", "rb"))
    node = XFSReader.read("file.xfs")
    node = XFSReader.parse(data)

    with XFSReader.open("file.xfs") as reader:
        for info in reader.schema():
            print(info)
"""

from __future__ import annotations

import builtins
import logging
import struct
from io import BytesIO
from pathlib import Path
from typing import BinaryIO

from mtxfs.config import ReaderConfig
from mtxfs.document import Node
from mtxfs.errors import (
    InvalidDiscriminant,
    NestingTooDeep,
    RequiredNodeAbsent,
    UnsupportedSchemaShape,
)
from mtxfs.records import read_exact, tell
from mtxfs.schema import ObjectInfo, build_schema_table, read_database, read_header
from mtxfs.spec import (
    MAGIC_BYTES,
    NULL_DISCRIMINANT_MASK,
    RESERVED_AFTER_DISCRIMINANT,
    SCHEMA_INDEX_MASK,
    SCHEMA_INDEX_SHIFT,
)
from mtxfs.values import ValueDecoder

logger = logging.getLogger(__name__)

_DISCRIMINANT = struct.Struct("<I")

# Keep builtins reference so the 'open' classmethod doesn't shadow it
builtins_open = builtins.open


def is_null_discriminant(d: int) -> bool:
    return (d & NULL_DISCRIMINANT_MASK) == NULL_DISCRIMINANT_MASK


def schema_index(d: int) -> int:
    return (d >> SCHEMA_INDEX_SHIFT) & SCHEMA_INDEX_MASK


class XFSReader:
    """
    Decoder bound to one seekable source positioned at the start of a document.

    A reader decodes its document once; the schema table is built on first use
    and kept for the instance phase.
    """

    def __init__(self, handle: BinaryIO, config: ReaderConfig | None = None) -> None:
        self._handle = handle
        self.config = config or ReaderConfig()
        self._table: list[ObjectInfo] | None = None
        self._depth = 0
        self._warned_null = False
        self._values = ValueDecoder(
            handle,
            self.read_node,
            string_cap=self.config.string_cap,
            custom_string_cap=self.config.custom_string_cap,
        )

    # =========================================================================
    # Identification
    # =========================================================================

    @staticmethod
    def is_xfs(path: str | Path) -> bool:
        """Fast check if a file is an XFS document. Reads only the magic."""
        with builtins_open(path, "rb") as f:
            head = f.read(len(MAGIC_BYTES))
        return head == MAGIC_BYTES

    @staticmethod
    def is_xfs_bytes(data: bytes) -> bool:
        return data[:len(MAGIC_BYTES)] == MAGIC_BYTES

    # =========================================================================
    # Entry points
    # =========================================================================

    @classmethod
    def read(cls, path: str | Path, config: ReaderConfig | None = None) -> Node:
        """Fully decode an XFS file."""
        with builtins_open(path, "rb") as f:
            return cls(f, config).deserialize()

    @classmethod
    def parse(cls, data: bytes, config: ReaderConfig | None = None) -> Node:
        """Decode an in-memory document."""
        return cls(BytesIO(data), config).deserialize()

    @classmethod
    def open(cls, path: str | Path, config: ReaderConfig | None = None) -> XFSReader:
        """Open a file for decoding; close it with close() or a with-block."""
        return cls(builtins_open(path, "rb"), config)

    # =========================================================================
    # Schema phase
    # =========================================================================

    def schema(self) -> list[ObjectInfo]:
        """Read header and database and build the schema table (once)."""
        if self._table is None:
            header = read_header(self._handle)
            database = read_database(self._handle, header)
            self._table = build_schema_table(
                header, database, self.config.resolve_registry(), self.config.name_cap
            )
        return self._table

    # =========================================================================
    # Instance phase
    # =========================================================================

    def deserialize(self) -> Node:
        """Decode the whole document. The root must be present."""
        self.schema()
        offset = tell(self._handle)
        try:
            root = self.read_node()
        except RecursionError:
            # A max_depth raised past what the interpreter stack can hold
            raise NestingTooDeep(
                f"Nested objects exhausted the interpreter stack before max depth "
                f"{self.config.max_depth}",
                offset,
            ) from None
        if root is None:
            raise RequiredNodeAbsent("Document root decoded as absent", offset)
        return root

    def read_node(self) -> Node | None:
        """Read one node occurrence at the current stream position."""
        table = self.schema()
        offset = tell(self._handle)
        (d,) = _DISCRIMINANT.unpack(read_exact(self._handle, _DISCRIMINANT.size, "discriminant"))

        if is_null_discriminant(d):
            if not self._warned_null:
                # TODO: confirm the sentinel can't collide with a real schema index
                logger.warning("Null discriminant 0x%08x treated as absent object", d)
                self._warned_null = True
            return None

        index = schema_index(d)
        if index >= len(table):
            raise InvalidDiscriminant(d, index, len(table), offset)
        info = table[index]

        # Unknown meaning; must be consumed to stay aligned
        read_exact(self._handle, RESERVED_AFTER_DISCRIMINANT, "reserved")

        if self._depth >= self.config.max_depth:
            raise NestingTooDeep(
                f"Nested objects exceed max depth {self.config.max_depth}", offset
            )
        self._depth += 1
        try:
            node = Node(info.type)
            for prop in info.properties:
                if prop.is_disabled:
                    raise UnsupportedSchemaShape(
                        f"Disabled property '{prop.name}' of {info.type.name} is not supported",
                        tell(self._handle),
                    )
                node.add_property(prop.name, self._values.decode(prop))
        finally:
            self._depth -= 1

        logger.debug("Read %s (%d properties)", info.type.name, len(node.properties))
        return node

    # =========================================================================
    # Handle management
    # =========================================================================

    def close(self) -> None:
        self._handle.close()

    def __enter__(self) -> XFSReader:
        return self

    def __exit__(self, *args) -> None:
        self.close()


def deserialize(source: BinaryIO, config: ReaderConfig | None = None) -> Node:
    """Decode the document starting at the current position of `source`."""
    return XFSReader(source, config).deserialize()
