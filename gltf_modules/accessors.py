"""
Accessor Resolver
-----------------
Maps accessors to byte spans inside their backing buffer and reinterprets
those spans as numpy arrays.
"""

import logging
from dataclasses import dataclass
from typing import Union

import numpy as np
from pygltflib import GLTF2

from .accessor_types import component_count, component_size
from .buffer_cache import BufferCache
from .errors import FormatError, SizeMismatchError, UnsupportedAccessorError

logger = logging.getLogger(__name__)

DTypeLike = Union[np.dtype, type, str]


@dataclass(frozen=True)
class ByteSpan:
    """
    Byte range of one buffer.

    `stride` is 0 for tightly packed elements. For strided views it holds the
    distance between element starts and `element` the bytes used per element;
    `length` then runs from the first element's start to the last one's end.
    """
    buffer: int
    offset: int
    length: int
    stride: int = 0
    element: int = 0

    @property
    def end(self) -> int:
        return self.offset + self.length

    @property
    def count(self) -> int:
        """Number of elements of a strided span"""
        if not self.stride or self.length == 0:
            return 0
        return (self.length - self.element) // self.stride + 1


class AccessorResolver:
    """Resolves accessor data against the current document and buffer cache"""

    def __init__(self, document: GLTF2, cache: BufferCache):
        self.document = document
        self.cache = cache

    def resolve(self, accessor_index: int) -> ByteSpan:
        """
        Compute the byte span of an accessor.

        length = componentCount(type) * componentSize(componentType) * count
        offset = bufferView.byteOffset + accessor.byteOffset

        Views whose byteStride exceeds the element size (interleaved attributes,
        or 3-byte elements padded to 4) yield a strided span.

        Raises:
            UnsupportedAccessorError: accessor has no buffer view
            FormatError: indices out of range, byteStride smaller than the
                element size, or span past the end of the buffer
        """
        accessors = self.document.accessors or []
        if accessor_index < 0 or accessor_index >= len(accessors):
            raise FormatError(f"Accessor index {accessor_index} out of range")
        accessor = accessors[accessor_index]
        if accessor.bufferView is None:
            raise UnsupportedAccessorError(
                f"Accessor {accessor_index} has no buffer view; accessors without buffer views aren't supported"
            )

        views = self.document.bufferViews or []
        if accessor.bufferView < 0 or accessor.bufferView >= len(views):
            raise FormatError(f"Accessor {accessor_index} references missing buffer view {accessor.bufferView}")
        view = views[accessor.bufferView]

        element = component_count(accessor.type) * component_size(accessor.componentType)
        stride = view.byteStride or 0
        if stride and stride < element:
            raise FormatError(
                f"Accessor {accessor_index} has element size {element} but buffer view "
                f"{accessor.bufferView} has byteStride={stride}"
            )

        offset = (view.byteOffset or 0) + (accessor.byteOffset or 0)
        if stride > element:
            length = stride * (accessor.count - 1) + element if accessor.count else 0
            span = ByteSpan(buffer=view.buffer or 0, offset=offset, length=length, stride=stride, element=element)
        else:
            span = ByteSpan(buffer=view.buffer or 0, offset=offset, length=element * accessor.count)
        self._check_bounds(span, f"accessor {accessor_index}")
        return span

    def view_span(self, view_index: int) -> ByteSpan:
        views = self.document.bufferViews or []
        if view_index < 0 or view_index >= len(views):
            raise FormatError(f"Buffer view index {view_index} out of range")
        view = views[view_index]
        span = ByteSpan(buffer=view.buffer or 0, offset=view.byteOffset or 0, length=view.byteLength)
        self._check_bounds(span, f"buffer view {view_index}")
        return span

    def accessor_bytes(self, accessor_index: int) -> bytes:
        """Accessor data with strided elements gathered into packed form"""
        span = self.resolve(accessor_index)
        if span.stride:
            return self._strided_view(span, np.dtype(np.uint8), span.element).tobytes()
        return bytes(self.cache.get(span.buffer)[span.offset:span.end])

    def view_bytes(self, view_index: int) -> bytes:
        span = self.view_span(view_index)
        return bytes(self.cache.get(span.buffer)[span.offset:span.end])

    def read_array(self, accessor_index: int, dtype: DTypeLike, width: int = 1) -> np.ndarray:
        """
        Reinterpret an accessor's bytes as packed elements of `width` x `dtype`.

        The bytes are taken as-is; a FLOAT VEC3 read with (np.float32, 3) yields a
        (count, 3) array. The result is a copy detached from the buffer cache.

        Raises:
            SizeMismatchError: span length is not a multiple of the element size
        """
        span = self.resolve(accessor_index)
        return self._typed_view(span, dtype, width, accessor_index).copy()

    def writable_array(self, accessor_index: int, dtype: DTypeLike) -> np.ndarray:
        """
        Array aliasing the cached buffer bytes; writes patch the buffer in place.

        Packed accessors come back 1-D. Strided accessors come back as
        (count, components), or 1-D when each element holds a single value.
        """
        span = self.resolve(accessor_index)
        return self._typed_view(span, dtype, 1, accessor_index)

    def _strided_view(self, span: ByteSpan, dt: np.dtype, row_items: int) -> np.ndarray:
        count = span.count
        if count == 0:
            return np.zeros((0, row_items), dtype=dt)
        return np.ndarray(
            shape=(count, row_items),
            dtype=dt,
            buffer=self.cache.get(span.buffer),
            offset=span.offset,
            strides=(span.stride, dt.itemsize),
        )

    def _typed_view(self, span: ByteSpan, dtype: DTypeLike, width: int, accessor_index: int) -> np.ndarray:
        dt = np.dtype(dtype)
        item = dt.itemsize * width
        if span.stride:
            if span.element % item != 0:
                raise SizeMismatchError(
                    f"Accessor {accessor_index} has {span.element}-byte elements, not a multiple of element size {item}"
                )
            arr = self._strided_view(span, dt, span.element // dt.itemsize)
            if width > 1:
                return arr.reshape(-1, width)
            return arr[:, 0] if arr.shape[1] == 1 else arr

        if span.length % item != 0:
            raise SizeMismatchError(
                f"Accessor {accessor_index} spans {span.length} bytes, not a multiple of element size {item}"
            )
        if span.length == 0:
            empty = np.zeros(0, dtype=dt)
            return empty.reshape(-1, width) if width > 1 else empty
        buf = self.cache.get(span.buffer)
        arr = np.frombuffer(buf, dtype=dt, count=span.length // dt.itemsize, offset=span.offset)
        if width > 1:
            arr = arr.reshape(-1, width)
        return arr

    def _check_bounds(self, span: ByteSpan, what: str) -> None:
        size = len(self.cache.get(span.buffer))
        if span.offset < 0 or span.end > size:
            raise FormatError(
                f"{what.capitalize()} range [{span.offset}, {span.end}) exceeds buffer {span.buffer} ({size} bytes)"
            )
