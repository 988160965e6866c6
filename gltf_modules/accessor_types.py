"""
Accessor Type Tables
--------------------
Component sizes, component counts and numpy dtypes for glTF accessors, plus
prefix lookups over a primitive's attribute mapping.
"""

from typing import Any, Dict, Iterator, Optional, Tuple

import numpy as np
import pygltflib

from .errors import FormatError

# Shape -> number of components per element
COMPONENT_COUNTS: Dict[str, int] = {
    pygltflib.SCALAR: 1,
    pygltflib.VEC2: 2,
    pygltflib.VEC3: 3,
    pygltflib.VEC4: 4,
    pygltflib.MAT2: 4,
    pygltflib.MAT3: 9,
    pygltflib.MAT4: 16,
}

# Component type -> little-endian numpy dtype
COMPONENT_DTYPES: Dict[int, np.dtype] = {
    pygltflib.BYTE: np.dtype("<i1"),
    pygltflib.UNSIGNED_BYTE: np.dtype("<u1"),
    pygltflib.SHORT: np.dtype("<i2"),
    pygltflib.UNSIGNED_SHORT: np.dtype("<u2"),
    pygltflib.UNSIGNED_INT: np.dtype("<u4"),
    pygltflib.FLOAT: np.dtype("<f4"),
}

INDEX_COMPONENT_TYPES = (pygltflib.SHORT, pygltflib.UNSIGNED_SHORT, pygltflib.UNSIGNED_INT)

COMPONENT_NAMES: Dict[int, str] = {
    pygltflib.BYTE: "BYTE",
    pygltflib.UNSIGNED_BYTE: "UNSIGNED_BYTE",
    pygltflib.SHORT: "SHORT",
    pygltflib.UNSIGNED_SHORT: "UNSIGNED_SHORT",
    pygltflib.UNSIGNED_INT: "UNSIGNED_INT",
    pygltflib.FLOAT: "FLOAT",
}


def component_count(shape: str) -> int:
    try:
        return COMPONENT_COUNTS[shape]
    except KeyError:
        raise FormatError(f"Unknown accessor type {shape!r}") from None


def component_dtype(component_type: int) -> np.dtype:
    try:
        return COMPONENT_DTYPES[component_type]
    except KeyError:
        raise FormatError(f"Unknown accessor component type {component_type!r}") from None


def component_size(component_type: int) -> int:
    return component_dtype(component_type).itemsize


def component_name(component_type: int) -> str:
    return COMPONENT_NAMES.get(component_type, str(component_type))


def element_size(accessor: pygltflib.Accessor) -> int:
    """Size in bytes of one accessor element (e.g. 12 for a FLOAT VEC3)"""
    return component_count(accessor.type) * component_size(accessor.componentType)


def iter_attributes(primitive: pygltflib.Primitive) -> Iterator[Tuple[str, int]]:
    """
    Yield (semantic, accessor index) pairs of a primitive in insertion order.

    Attributes may come back from pygltflib either as an `Attributes` dataclass
    (with unset semantics left as None) or as a plain dict.
    """
    attributes: Any = primitive.attributes
    if attributes is None:
        return
    items = attributes.items() if isinstance(attributes, dict) else vars(attributes).items()
    for name, value in items:
        if value is None or isinstance(value, bool) or not isinstance(value, int):
            continue
        yield name, value


def find_attribute(primitive: pygltflib.Primitive, prefix: str) -> Optional[int]:
    """Accessor index of the first attribute whose semantic starts with `prefix`"""
    for name, index in iter_attributes(primitive):
        if name.startswith(prefix):
            return index
    return None


def has_attribute(primitive: pygltflib.Primitive, prefix: str) -> bool:
    return find_attribute(primitive, prefix) is not None


def set_attribute(primitive: pygltflib.Primitive, name: str, accessor_index: int) -> None:
    attributes: Any = primitive.attributes
    if isinstance(attributes, dict):
        attributes[name] = accessor_index
    else:
        setattr(attributes, name, accessor_index)
