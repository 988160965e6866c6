"""
Vertex color premultiplication: RGB *= A for every RGBA COLOR_* attribute,
patched in place in the backing buffer.
"""

import logging
from typing import Set

import numpy as np
import pygltflib

from .accessor_types import component_dtype, component_name, iter_attributes
from .accessors import AccessorResolver

logger = logging.getLogger(__name__)

_NORMALIZED_MAX = {
    pygltflib.UNSIGNED_BYTE: 255.0,
    pygltflib.UNSIGNED_SHORT: 65535.0,
}


def premultiply_rgba(data: np.ndarray, max_value: float = 1.0) -> None:
    """Premultiply an (N, 4) color array in place; `max_value` is 1.0 for floats"""
    if data.size == 0:
        return
    rgb = data[:, 0:3].astype(np.float64)
    alpha = data[:, 3:4].astype(np.float64) / max_value
    result = rgb * alpha
    if np.issubdtype(data.dtype, np.integer):
        result = np.clip(np.rint(result), 0, max_value)
    data[:, 0:3] = result.astype(data.dtype)


def premultiply_vertex_colors(resolver: AccessorResolver) -> int:
    """
    Premultiply all RGBA vertex colors of a document.

    Returns:
        Number of color accessors patched
    """
    document = resolver.document
    done: Set[int] = set()
    for mesh in document.meshes or []:
        mesh_name = mesh.name or "(unnamed)"
        for primitive_index, primitive in enumerate(mesh.primitives):
            for name, accessor_index in iter_attributes(primitive):
                if not name.startswith("COLOR_") or accessor_index in done:
                    continue
                accessor = document.accessors[accessor_index]
                if accessor.type != pygltflib.VEC4:
                    logger.debug(f"Mesh {mesh_name} primitive {primitive_index} {name} has no alpha, skipping")
                    continue

                if accessor.componentType == pygltflib.FLOAT:
                    max_value = 1.0
                elif accessor.componentType in _NORMALIZED_MAX and accessor.normalized:
                    max_value = _NORMALIZED_MAX[accessor.componentType]
                else:
                    logger.warning(
                        f"Mesh {mesh_name} primitive {primitive_index} {name} uses "
                        f"{component_name(accessor.componentType)} colors, skipping"
                    )
                    continue

                done.add(accessor_index)
                flat = resolver.writable_array(accessor_index, component_dtype(accessor.componentType))
                premultiply_rgba(flat.reshape(-1, 4), max_value)

    logger.info(f"Premultiplied {len(done)} vertex color channel(s)")
    return len(done)
