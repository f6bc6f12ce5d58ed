"""mtxfs - reader for XFS property-graph documents (MT Framework, major version 16)."""

from mtxfs.document import Node, PropertyValue, PropertyValues, Vector3
from mtxfs.dti import TypeDescriptor, TypeRegistry, default_registry, dti_hash
from mtxfs.errors import DecodeError
from mtxfs.reader import XFSReader, deserialize

__version__ = "0.1.0"

__all__ = [
    "DecodeError",
    "Node",
    "PropertyValue",
    "PropertyValues",
    "TypeDescriptor",
    "TypeRegistry",
    "Vector3",
    "XFSReader",
    "default_registry",
    "deserialize",
    "dti_hash",
]
