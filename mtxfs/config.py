from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from mtxfs.dti import TypeRegistry, default_registry
from mtxfs.spec import (
    CUSTOM_STRING_CAP,
    DTI_PATH_ENV,
    MAX_DEPTH_ENV,
    MAX_NESTING_DEPTH,
    PROPERTY_NAME_CAP,
    STATIC_STRING_CAP,
)

__all__ = ["ReaderConfig"]


@dataclass(frozen=True)
class ReaderConfig:
    """
    Knobs for one decode.

    Fields
    ------
    registry : TypeRegistry | None
        Type table schema hashes are resolved against. None means the
        process-wide `default_registry()`.
    name_cap : int, default=4096
        Longest property name scanned in the database blob.
    string_cap : int, default=512
        Longest static `string` value.
    custom_string_cap : int, default=128
        Longest string inside a dynamic `custom` value.
    max_depth : int, default=128
        Nested objects deeper than this abort the decode (NestingTooDeep).

    ENV keys
    --------
    MTXFS_DTI_PATH   -> registry JSON-lines file
    MTXFS_MAX_DEPTH  -> max_depth
    """

    registry: TypeRegistry | None = None
    name_cap: int = PROPERTY_NAME_CAP
    string_cap: int = STATIC_STRING_CAP
    custom_string_cap: int = CUSTOM_STRING_CAP
    max_depth: int = MAX_NESTING_DEPTH

    def __post_init__(self) -> None:
        for name in ("name_cap", "string_cap", "custom_string_cap", "max_depth"):
            if getattr(self, name) <= 0:
                raise ValueError(f"ReaderConfig.{name} must be > 0")

    @staticmethod
    def from_env() -> ReaderConfig:
        path = os.getenv(DTI_PATH_ENV)
        depth = os.getenv(MAX_DEPTH_ENV)
        return ReaderConfig(
            registry=TypeRegistry.load(Path(path)) if path else None,
            max_depth=int(depth) if depth else MAX_NESTING_DEPTH,
        )

    def resolve_registry(self) -> TypeRegistry:
        return self.registry if self.registry is not None else default_registry()
