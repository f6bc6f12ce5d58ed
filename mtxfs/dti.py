"""
DTI - the engine's runtime type registry.

Every serialized type is identified by a 31-bit hash of its qualified name:

    hash = crc32(name, seed=0xFFFFFFFF) & 0x7FFFFFFF

where crc32 is the reflected CRC-32 update *without* the final inversion.
The table is loaded once per process from a JSON-lines file (one entry per
line, as dumped from the game executable) and never mutated afterwards, so a
single registry can be shared across threads.
"""

from __future__ import annotations

import functools
import json
import logging
import os
import zlib
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from mtxfs.spec import DTI_PATH_ENV

logger = logging.getLogger(__name__)

HASH_MASK = 0x7FFFFFFF

DEFAULT_DTI_PATH = Path(__file__).parent / "data" / "dti.jsonl"


def crc32(data: bytes, seed: int = 0xFFFFFFFF) -> int:
    """CRC-32 starting from `seed`, with no final XOR (a.k.a. JAMCRC for the default seed)."""
    # zlib inverts on the way in and out; undo both so `seed` is the raw register
    return zlib.crc32(data, seed ^ 0xFFFFFFFF) ^ 0xFFFFFFFF


def dti_hash(name: str) -> int:
    return crc32(name.encode("utf-8")) & HASH_MASK


@dataclass(frozen=True)
class TypeDescriptor:
    """One registered type: qualified name, hash and (for resources) file extension."""

    name: str
    hash: int
    file_ext: str | None = None

    @property
    def is_resource(self) -> bool:
        return self.file_ext is not None

    def __str__(self) -> str:
        return self.name


class TypeRegistry:
    """
    Read-only hash -> TypeDescriptor table.

    Usage:
        registry = default_registry()
        dti = registry.lookup(0x5D5AF4F2)        # TypeDescriptor or None

        registry = TypeRegistry.load("dti.jsonl")
        registry = TypeRegistry.from_entries([("rTexture", 0x241F5DEB, "tex")])
    """

    def __init__(self, entries: Iterable[TypeDescriptor]) -> None:
        by_hash: dict[int, TypeDescriptor] = {}
        by_name: dict[str, TypeDescriptor] = {}
        for entry in entries:
            # Some dumps list a type twice; the first one wins
            if entry.hash in by_hash:
                continue
            by_hash[entry.hash] = entry
            by_name.setdefault(entry.name, entry)
        self._by_hash: Mapping[int, TypeDescriptor] = MappingProxyType(by_hash)
        self._by_name: Mapping[str, TypeDescriptor] = MappingProxyType(by_name)

    @classmethod
    def from_entries(cls, entries: Iterable[tuple[str, int, str | None]]) -> TypeRegistry:
        return cls(TypeDescriptor(name, hash_, ext) for name, hash_, ext in entries)

    @classmethod
    def load(cls, path: str | Path) -> TypeRegistry:
        """Load a JSON-lines dump. Keys other than name/hash/file_extension are ignored."""
        entries = []
        with open(path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    raw = json.loads(line)
                    entries.append(
                        TypeDescriptor(
                            name=raw["name"],
                            hash=int(raw["hash"]),
                            file_ext=raw.get("file_extension"),
                        )
                    )
                except (json.JSONDecodeError, KeyError, TypeError) as e:
                    raise ValueError(f"{path}:{lineno}: invalid DTI entry: {e}") from e
        registry = cls(entries)
        logger.debug("Loaded %d DTI entries from %s", len(registry), path)
        return registry

    def lookup(self, hash_: int) -> TypeDescriptor | None:
        return self._by_hash.get(hash_)

    def from_name(self, name: str) -> TypeDescriptor | None:
        return self._by_name.get(name)

    def verify(self) -> list[TypeDescriptor]:
        """Return every entry whose stored hash disagrees with its name."""
        return [d for d in self._by_hash.values() if dti_hash(d.name) != d.hash]

    def __contains__(self, hash_: object) -> bool:
        return hash_ in self._by_hash

    def __len__(self) -> int:
        return len(self._by_hash)

    def __iter__(self) -> Iterator[TypeDescriptor]:
        return iter(self._by_hash.values())

    def __repr__(self) -> str:
        return f"TypeRegistry({len(self)} types)"


@functools.lru_cache(maxsize=None)
def _load_cached(path: str) -> TypeRegistry:
    return TypeRegistry.load(path)


def default_registry() -> TypeRegistry:
    """The process-wide registry: $MTXFS_DTI_PATH if set, else the packaged table."""
    path = os.getenv(DTI_PATH_ENV) or str(DEFAULT_DTI_PATH)
    return _load_cached(path)
