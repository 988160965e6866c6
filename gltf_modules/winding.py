"""
Winding Reverser
----------------
Flips front/back faces by swapping the first and last index of every triangle,
patching the index bytes in place.
"""

import logging
from typing import Set

import numpy as np
import pygltflib

from .accessor_types import component_dtype
from .accessors import AccessorResolver
from .indices import index_accessor

logger = logging.getLogger(__name__)


def reverse_triangles(data: np.ndarray) -> None:
    """Swap a and c of every complete (a, b, c) triple; a trailing remainder is left as is"""
    whole = (data.size // 3) * 3
    tris = data[:whole].reshape(-1, 3)
    tris[:, [0, 2]] = tris[:, [2, 0]]


class WindingReverser:
    """Reverses triangle winding for every indexed primitive of a document"""

    def __init__(self, resolver: AccessorResolver):
        self.resolver = resolver

    @property
    def document(self) -> pygltflib.GLTF2:
        return self.resolver.document

    def run(self) -> int:
        """
        Reverse winding of all primitives.

        Returns:
            Number of index accessors patched

        Non-triangle primitives are skipped before their indices are looked at.

        Raises:
            MissingIndicesError: a triangle primitive is not indexed
            UnsupportedIndexTypeError: an index accessor has an unsupported layout
        """
        done: Set[int] = set()
        for mesh in self.document.meshes or []:
            mesh_name = mesh.name or "(unnamed)"
            for primitive_index, primitive in enumerate(mesh.primitives):
                mode = pygltflib.TRIANGLES if primitive.mode is None else primitive.mode
                if mode != pygltflib.TRIANGLES:
                    logger.warning(
                        f"Skipping mesh {mesh_name} primitive {primitive_index}: not a triangle list (mode {mode})"
                    )
                    continue

                accessor = index_accessor(self.document, primitive)
                if primitive.indices in done:
                    continue
                done.add(primitive.indices)

                data = self.resolver.writable_array(primitive.indices, component_dtype(accessor.componentType))
                if data.size % 3 != 0:
                    logger.warning(
                        f"Mesh {mesh_name} primitive {primitive_index} has {data.size} indices, "
                        f"leaving the trailing {data.size % 3} untouched"
                    )
                reverse_triangles(data)

        logger.info(f"Reversed winding of {len(done)} index buffer(s)")
        return len(done)
