"""
Buffer Graph Rebuild
--------------------
Rewrites the buffer / buffer view / accessor graph of a document into a single
buffer with one view per accessor, optionally adding or replacing tangent channels.
Vertex attributes that came from strided views keep a byteStride, with each
element padded to a 4-byte boundary.

`rebuild_buffer_graph` is pure: it reads old data through callbacks and returns
new lists without touching the old ones. `install_buffer_graph` commits a
rebuilt graph into a document and its buffer cache.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pygltflib

from .accessor_types import element_size, set_attribute
from .accessors import AccessorResolver
from .buffer_cache import BufferCache
from .errors import UnsupportedAccessorError

logger = logging.getLogger(__name__)

ALIGNMENT = 4


@dataclass
class TangentChannel:
    """Tangents generated for one primitive"""
    primitive: pygltflib.Primitive
    tangents: np.ndarray
    accessor_index: Optional[int] = None  # existing TANGENT accessor to overwrite


@dataclass
class BufferGraph:
    """Result of a rebuild; `tangent_accessors` is parallel to the input channels"""
    blob: bytes
    buffer_views: List[pygltflib.BufferView]
    accessors: List[pygltflib.Accessor]
    tangent_accessors: List[int] = field(default_factory=list)
    image_views: Dict[int, int] = field(default_factory=dict)


class _BlobWriter:
    def __init__(self):
        self.data = bytearray()
        self.views: List[pygltflib.BufferView] = []

    def append(
        self,
        payload: bytes,
        template: Optional[pygltflib.BufferView] = None,
        stride: Optional[int] = None,
    ) -> int:
        pad = (ALIGNMENT - len(self.data) % ALIGNMENT) % ALIGNMENT
        self.data.extend(b"\x00" * pad)
        offset = len(self.data)
        self.data.extend(payload)

        view = pygltflib.BufferView(buffer=0, byteOffset=offset, byteLength=len(payload), byteStride=stride)
        if template is not None:
            view.target = template.target
            view.name = template.name
            view.extras = template.extras
        self.views.append(view)
        return len(self.views) - 1


def _pad_elements(payload: bytes, element: int) -> Tuple[bytes, int]:
    """Pad every element of a packed payload to a 4-byte boundary"""
    stride = (element + ALIGNMENT - 1) // ALIGNMENT * ALIGNMENT
    if stride == element:
        return payload, stride
    rows = np.frombuffer(payload, dtype=np.uint8).reshape(-1, element)
    padded = np.zeros((rows.shape[0], stride), dtype=np.uint8)
    padded[:, :element] = rows
    return padded.tobytes(), stride


def rebuild_buffer_graph(
    accessors: Sequence[pygltflib.Accessor],
    buffer_views: Sequence[pygltflib.BufferView],
    read_accessor: Callable[[int], bytes],
    channels: Sequence[TangentChannel] = (),
    images: Sequence[pygltflib.Image] = (),
    read_view: Optional[Callable[[int], bytes]] = None,
) -> BufferGraph:
    """
    Build a fresh single-buffer graph.

    Every accessor keeps its position in the list. Accessors not being replaced
    by a tangent channel get their bytes copied verbatim into their own new
    buffer view at byteOffset 0; those read from a strided view are repacked
    at a 4-byte aligned stride. Tangent channels then either rewrite the
    accessor they already point at, or append a new accessor after all
    existing ones. Images stored in buffer views are copied last.

    Args:
        accessors: current accessor list (not modified)
        buffer_views: current buffer view list (not modified)
        read_accessor: returns the raw bytes of accessor i
        channels: tangents to add or replace
        images: current image list, for images embedded in buffer views
        read_view: returns the raw bytes of buffer view i (needed only for images)

    Raises:
        UnsupportedAccessorError: a sparse accessor is encountered
    """
    replaced = {c.accessor_index for c in channels if c.accessor_index is not None}
    writer = _BlobWriter()
    new_accessors: List[pygltflib.Accessor] = []

    for i, accessor in enumerate(accessors):
        if i in replaced:
            new_accessors.append(dataclasses.replace(accessor))
            continue
        if accessor.sparse is not None:
            raise UnsupportedAccessorError(f"Accessor {i} is sparse; sparse accessors aren't supported")

        template = None
        if accessor.bufferView is not None and accessor.bufferView < len(buffer_views):
            template = buffer_views[accessor.bufferView]
        payload = read_accessor(i)
        stride = None
        if template is not None and template.byteStride:
            payload, stride = _pad_elements(payload, element_size(accessor))
        view_index = writer.append(payload, template, stride)
        new_accessors.append(dataclasses.replace(accessor, bufferView=view_index, byteOffset=0))

    tangent_accessors: List[int] = []
    for channel in channels:
        tangents = np.ascontiguousarray(channel.tangents, dtype="<f4").reshape(-1, 4)
        view_index = writer.append(tangents.tobytes(order="C"))
        fields = dict(
            bufferView=view_index,
            byteOffset=0,
            componentType=pygltflib.FLOAT,
            type=pygltflib.VEC4,
            count=int(tangents.shape[0]),
            normalized=False,
            sparse=None,
            min=None,
            max=None,
        )
        if channel.accessor_index is not None:
            index = channel.accessor_index
            new_accessors[index] = dataclasses.replace(new_accessors[index], **fields)
        else:
            new_accessors.append(pygltflib.Accessor(**fields))
            index = len(new_accessors) - 1
        tangent_accessors.append(index)

    image_views: Dict[int, int] = {}
    for i, image in enumerate(images):
        if image.bufferView is None or read_view is None:
            continue
        image_views[i] = writer.append(read_view(image.bufferView))

    # GLB requires the BIN chunk to be 4-byte aligned
    pad = (ALIGNMENT - len(writer.data) % ALIGNMENT) % ALIGNMENT
    writer.data.extend(b"\x00" * pad)

    return BufferGraph(
        blob=bytes(writer.data),
        buffer_views=writer.views,
        accessors=new_accessors,
        tangent_accessors=tangent_accessors,
        image_views=image_views,
    )


def install_buffer_graph(
    document: pygltflib.GLTF2,
    cache: BufferCache,
    graph: BufferGraph,
    channels: Sequence[TangentChannel] = (),
) -> None:
    """Replace the document's buffers, views and accessors with a rebuilt graph"""
    uri = document.buffers[0].uri if document.buffers else None
    document.buffers = [pygltflib.Buffer(uri=uri, byteLength=len(graph.blob))]
    document.bufferViews = list(graph.buffer_views)
    document.accessors = list(graph.accessors)

    for channel, index in zip(channels, graph.tangent_accessors):
        set_attribute(channel.primitive, "TANGENT", index)
    for image_index, view_index in graph.image_views.items():
        document.images[image_index].bufferView = view_index

    cache.invalidate()
    cache.set(0, graph.blob)
    logger.debug(
        f"Installed buffer graph: {len(graph.blob)} bytes, {len(graph.buffer_views)} views, "
        f"{len(graph.accessors)} accessors"
    )


def collapse_buffers(document: pygltflib.GLTF2, cache: BufferCache, resolver: AccessorResolver) -> None:
    """Merge all buffers of a document into buffer 0"""
    graph = rebuild_buffer_graph(
        document.accessors or [],
        document.bufferViews or [],
        resolver.accessor_bytes,
        images=document.images or [],
        read_view=resolver.view_bytes,
    )
    install_buffer_graph(document, cache, graph)
