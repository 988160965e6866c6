"""
Shared helpers for building small glTF documents in tests.
"""

from pathlib import Path
from typing import Optional

import numpy as np
import pygltflib
import pytest

from gltf_modules.accessor_types import component_dtype
from gltf_modules.accessors import AccessorResolver
from gltf_modules.buffer_cache import BufferCache

# Unit quad in the XY plane facing +Z, uvs equal to xy
QUAD_POSITIONS = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], dtype=np.float32)
QUAD_NORMALS = np.array([[0, 0, 1]] * 4, dtype=np.float32)
QUAD_UVS = np.array([[0, 0], [1, 0], [1, 1], [0, 1]], dtype=np.float32)
QUAD_INDICES = np.array([0, 1, 2, 2, 3, 0], dtype=np.uint16)


class AssetBuilder:
    """Packs numpy arrays into one buffer with one buffer view per accessor"""

    def __init__(self):
        self.document = pygltflib.GLTF2(asset=pygltflib.Asset(version="2.0"))
        self.blob = bytearray()

    def add_view(self, payload: bytes, target: Optional[int] = None) -> int:
        pad = (4 - len(self.blob) % 4) % 4
        self.blob.extend(b"\x00" * pad)
        self.document.bufferViews.append(
            pygltflib.BufferView(buffer=0, byteOffset=len(self.blob), byteLength=len(payload), target=target)
        )
        self.blob.extend(payload)
        return len(self.document.bufferViews) - 1

    def add_accessor(self, data, component_type: int, accessor_type: str, target: Optional[int] = None) -> int:
        arr = np.ascontiguousarray(np.asarray(data), dtype=component_dtype(component_type))
        view = self.add_view(arr.tobytes(), target)
        self.document.accessors.append(
            pygltflib.Accessor(bufferView=view, componentType=component_type, count=int(arr.shape[0]), type=accessor_type)
        )
        return len(self.document.accessors) - 1

    def add_mesh(self, *primitives: pygltflib.Primitive, name: Optional[str] = None) -> int:
        self.document.meshes.append(pygltflib.Mesh(name=name, primitives=list(primitives)))
        return len(self.document.meshes) - 1

    def add_quad(self, index_type: int = pygltflib.UNSIGNED_SHORT, texcoords: bool = True, tangents: bool = False) -> pygltflib.Primitive:
        attributes = pygltflib.Attributes(
            POSITION=self.add_accessor(QUAD_POSITIONS, pygltflib.FLOAT, pygltflib.VEC3),
            NORMAL=self.add_accessor(QUAD_NORMALS, pygltflib.FLOAT, pygltflib.VEC3),
        )
        if texcoords:
            attributes.TEXCOORD_0 = self.add_accessor(QUAD_UVS, pygltflib.FLOAT, pygltflib.VEC2)
        if tangents:
            attributes.TANGENT = self.add_accessor(np.zeros((4, 4)), pygltflib.FLOAT, pygltflib.VEC4)
        indices = self.add_accessor(QUAD_INDICES, index_type, pygltflib.SCALAR)
        return pygltflib.Primitive(attributes=attributes, indices=indices)

    def finish(self, uri: Optional[str] = None) -> pygltflib.GLTF2:
        self.document.buffers = [pygltflib.Buffer(uri=uri, byteLength=len(self.blob))]
        return self.document

    def save_glb(self, path: Path) -> Path:
        document = self.finish()
        document.set_binary_blob(bytes(self.blob))
        document.save_binary(str(path))
        return path

    def save_gltf(self, path: Path, bin_name: Optional[str] = None) -> Path:
        bin_name = bin_name or f"{path.stem}.bin"
        (path.parent / bin_name).write_bytes(bytes(self.blob))
        document = self.finish(uri=bin_name)
        document.save_json(str(path))
        return path


def make_resolver(document: pygltflib.GLTF2, blob: bytes, source_path: str = "memory.glb") -> AccessorResolver:
    cache = BufferCache(document, source_path)
    cache.set(0, blob)
    return AccessorResolver(document, cache)


@pytest.fixture
def builder() -> AssetBuilder:
    return AssetBuilder()
