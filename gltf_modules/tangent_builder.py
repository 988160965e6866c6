"""
Tangent Channel Builder
-----------------------
Generates TANGENT attributes for every eligible mesh primitive and commits
them with a single rebuild of the document's buffer graph.
"""

import logging
from typing import List, Optional

import numpy as np
import pygltflib

from .accessor_types import find_attribute
from .accessors import AccessorResolver
from .buffer_cache import BufferCache
from .buffer_graph import TangentChannel, install_buffer_graph, rebuild_buffer_graph
from .indices import read_indices
from .tangents import calculate_tangents

logger = logging.getLogger(__name__)


def skip_reason(primitive: pygltflib.Primitive) -> Optional[str]:
    """Why tangents can't be generated for a primitive, or None if it is eligible"""
    mode = pygltflib.TRIANGLES if primitive.mode is None else primitive.mode
    if mode != pygltflib.TRIANGLES:
        return f"it isn't a triangle list (mode {mode})"
    if find_attribute(primitive, "POSITION") is None:
        return "it lacks positions channel"
    if find_attribute(primitive, "NORMAL") is None:
        return "it lacks normals channel"
    if find_attribute(primitive, "TEXCOORD_") is None:
        return "it lacks uvs channel"
    if primitive.indices is None:
        return "it lacks indices"
    return None


class TangentChannelBuilder:
    """Adds or replaces the tangent channel of every eligible primitive"""

    def __init__(self, document: pygltflib.GLTF2, cache: BufferCache, resolver: AccessorResolver):
        self.document = document
        self.cache = cache
        self.resolver = resolver

    def collect(self) -> List[TangentChannel]:
        """Generate tangents for all eligible primitives without touching the document"""
        channels: List[TangentChannel] = []
        for mesh in self.document.meshes or []:
            mesh_name = mesh.name or "(unnamed)"
            for primitive_index, primitive in enumerate(mesh.primitives):
                reason = skip_reason(primitive)
                if reason:
                    logger.warning(
                        f"Could not generate tangents for mesh {mesh_name} primitive {primitive_index} since {reason}"
                    )
                    continue

                existing = find_attribute(primitive, "TANGENT")
                if existing is not None:
                    logger.warning(
                        f"Mesh {mesh_name} primitive {primitive_index} already has tangents channel, overwriting it"
                    )

                tangents = self._generate(primitive, mesh_name, primitive_index)
                channels.append(TangentChannel(primitive=primitive, tangents=tangents, accessor_index=existing))
        return channels

    def build(self) -> List[TangentChannel]:
        """
        Generate and commit tangents for the whole document.

        The document always ends up with exactly one buffer. Nothing is committed
        if any accessor fails to resolve.
        """
        channels = self.collect()
        if not self.document.accessors and not self.document.buffers:
            return channels

        graph = rebuild_buffer_graph(
            self.document.accessors or [],
            self.document.bufferViews or [],
            self.resolver.accessor_bytes,
            channels=channels,
            images=self.document.images or [],
            read_view=self.resolver.view_bytes,
        )
        install_buffer_graph(self.document, self.cache, graph, channels)
        logger.info(f"Generated tangents for {len(channels)} primitive(s)")
        return channels

    def _generate(self, primitive: pygltflib.Primitive, mesh_name: str, primitive_index: int) -> np.ndarray:
        positions = self.resolver.read_array(find_attribute(primitive, "POSITION"), np.float32, 3)
        uvs = self.resolver.read_array(find_attribute(primitive, "TEXCOORD_"), np.float32, 2)
        normals = self.resolver.read_array(find_attribute(primitive, "NORMAL"), np.float32, 3)
        indices = read_indices(self.resolver, primitive)

        if indices.size % 3 != 0:
            logger.warning(
                f"Mesh {mesh_name} primitive {primitive_index} has {indices.size} indices, "
                f"ignoring the trailing {indices.size % 3}"
            )
            indices = indices[: (indices.size // 3) * 3]

        return calculate_tangents(positions, normals, uvs, indices)
