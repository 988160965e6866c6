"""
Index Normalizer
----------------
Reads a primitive's index buffer as a flat uint32 array, whatever its stored width.
"""

import numpy as np
import pygltflib

from .accessor_types import INDEX_COMPONENT_TYPES, component_dtype, component_name
from .accessors import AccessorResolver
from .errors import FormatError, MissingIndicesError, UnsupportedIndexTypeError


def index_accessor(document: pygltflib.GLTF2, primitive: pygltflib.Primitive) -> pygltflib.Accessor:
    """
    Return the primitive's index accessor after validating its layout.

    Raises:
        MissingIndicesError: primitive is not indexed
        UnsupportedIndexTypeError: accessor is not SCALAR, or not SHORT,
            UNSIGNED_SHORT or UNSIGNED_INT
    """
    if primitive.indices is None:
        raise MissingIndicesError("Meshes without indices aren't supported")

    accessors = document.accessors or []
    if primitive.indices < 0 or primitive.indices >= len(accessors):
        raise FormatError(f"Index accessor {primitive.indices} out of range")
    accessor = accessors[primitive.indices]
    if accessor.type != pygltflib.SCALAR:
        raise UnsupportedIndexTypeError(f"Only scalar index buffers are supported, got {accessor.type}")
    if accessor.componentType not in INDEX_COMPONENT_TYPES:
        raise UnsupportedIndexTypeError(
            f"Index of type {component_name(accessor.componentType)} isn't supported"
        )
    return accessor


def read_indices(resolver: AccessorResolver, primitive: pygltflib.Primitive) -> np.ndarray:
    """
    Get the primitive's indices widened to uint32, order preserved.

    SHORT indices are taken by their 16-bit pattern, so a stored -1 reads as 65535.
    """
    accessor = index_accessor(resolver.document, primitive)
    data = resolver.read_array(primitive.indices, component_dtype(accessor.componentType))
    if accessor.componentType == pygltflib.SHORT:
        data = data.view("<u2")
    return data.astype(np.uint32)
