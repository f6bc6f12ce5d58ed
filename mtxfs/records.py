"""
Fixed-size record overlays and capped C strings.

Records are little-endian structs described by a class-level `struct.Struct`.
`read_struct` copies one record off a stream; `iter_structs` overlays `count`
records on an in-memory span without copying.
"""

from __future__ import annotations

import struct
from typing import BinaryIO, ClassVar, Iterator, TypeVar

from mtxfs.errors import TruncatedInput
from mtxfs.spec import TEXT_ENCODING

R = TypeVar("R", bound="Record")


class Record:
    """Base for fixed-layout records. Subclasses are dataclasses with a matching STRUCT."""

    STRUCT: ClassVar[struct.Struct]

    @classmethod
    def size(cls) -> int:
        return cls.STRUCT.size

    @classmethod
    def unpack(cls: type[R], buffer: bytes | memoryview, offset: int = 0) -> R:
        return cls(*cls.STRUCT.unpack_from(buffer, offset))

    @classmethod
    def read(cls: type[R], stream: BinaryIO) -> R:
        return read_struct(stream, cls)


def tell(stream: BinaryIO) -> int | None:
    """Current stream position, or None for streams that can't report one."""
    try:
        return stream.tell()
    except (OSError, AttributeError):
        return None


def read_exact(stream: BinaryIO, n: int, what: str) -> bytes:
    offset = tell(stream)
    data = stream.read(n)
    if len(data) != n:
        raise TruncatedInput(what, n, len(data), offset)
    return data


def read_struct(stream: BinaryIO, record: type[R]) -> R:
    """Read exactly one record from the stream."""
    return record.unpack(read_exact(stream, record.size(), record.__name__))


def iter_structs(
    buffer: bytes | memoryview, offset: int, count: int, record: type[R]
) -> Iterator[R]:
    """
    Overlay `count` consecutive records starting at `offset`.

    The span is checked before anything is yielded, so a short buffer fails
    here rather than halfway through the caller's loop.
    """
    view = memoryview(buffer)
    needed = count * record.size()
    available = max(len(view) - offset, 0)
    if offset < 0 or available < needed:
        raise TruncatedInput(f"{record.__name__}[{count}]", needed, available, offset)
    return _overlay(view, offset, count, record)


def _overlay(view: memoryview, offset: int, count: int, record: type[R]) -> Iterator[R]:
    step = record.size()
    for i in range(count):
        yield record.unpack(view, offset + i * step)


def decode_text(raw: bytes) -> str:
    return raw.decode(TEXT_ENCODING, errors="replace")


def read_cstring(buffer: bytes | memoryview, offset: int, cap: int) -> str:
    """
    Decode the null-terminated run at `offset`, scanning at most `cap` bytes.
    A run with no terminator inside the cap (or the buffer) is returned as-is.
    """
    if offset < 0 or offset >= len(buffer):
        raise TruncatedInput("string", 1, 0, offset)
    window = bytes(buffer[offset:offset + cap])
    end = window.find(b"\x00")
    if end != -1:
        window = window[:end]
    return decode_text(window)


def read_stream_cstring(stream: BinaryIO, cap: int) -> str:
    """
    Read a null-terminated string from the live stream, consuming the terminator.
    Stops after `cap` bytes if no terminator shows up.
    """
    offset = tell(stream)
    out = bytearray()
    while len(out) < cap:
        ch = stream.read(1)
        if not ch:
            raise TruncatedInput("string", len(out) + 1, len(out), offset)
        if ch == b"\x00":
            break
        out += ch
    return decode_text(bytes(out))
