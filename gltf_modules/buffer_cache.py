"""
Buffer Cache
------------
Lazily loads and memoizes the raw bytes of each glTF buffer for one run.
"""

import base64
import binascii
import logging
from pathlib import Path
from typing import Dict, Union
from urllib.parse import unquote

from pygltflib import GLTF2

from . import asset_io
from .errors import AssetIOError, FormatError, MissingFileError

logger = logging.getLogger(__name__)


class BufferCache:
    """Resolves buffer bytes by index; external payloads are read relative to the input file"""

    def __init__(self, document: GLTF2, source_path: Union[str, Path]):
        """
        Initialize buffer cache

        Args:
            document: Parsed glTF document whose buffers are resolved
            source_path: Path of the input .gltf/.glb the document came from
        """
        self.document = document
        self.source_path = Path(source_path)
        self._buffers: Dict[int, bytearray] = {}

    def get(self, index: int) -> bytearray:
        """
        Get the bytes of buffer `index`, loading them on first access.

        The returned bytearray is the cached object itself, so in-place edits
        are visible to every later reader.
        """
        data = self._buffers.get(index)
        if data is None:
            data = bytearray(self._load(index))
            self._buffers[index] = data
        return data

    def set(self, index: int, data: Union[bytes, bytearray]) -> None:
        self._buffers[index] = bytearray(data)

    def invalidate(self) -> None:
        self._buffers.clear()

    def load_all(self) -> None:
        for i in range(len(self.document.buffers or [])):
            self.get(i)

    def is_loaded(self, index: int) -> bool:
        return index in self._buffers

    def _load(self, index: int) -> bytes:
        buffers = self.document.buffers or []
        if index < 0 or index >= len(buffers):
            raise FormatError(f"Buffer index {index} out of range ({len(buffers)} buffers)")

        uri = buffers[index].uri
        if not uri:
            # glb: payload is the container's BIN chunk
            try:
                with self.source_path.open("rb") as stream:
                    data = asset_io.load_binary_payload(stream)
            except FileNotFoundError as e:
                raise MissingFileError(f"Input file {self.source_path} doesn't exist") from e
        elif uri.startswith("data:"):
            data = self._decode_data_uri(uri)
        else:
            path = self.source_path.parent / unquote(uri)
            if not path.is_file():
                raise MissingFileError(f"Buffer {index} payload {path} doesn't exist")
            try:
                data = path.read_bytes()
            except OSError as e:
                raise AssetIOError(f"Failed to read {path}: {e}") from e

        byte_length = buffers[index].byteLength
        if byte_length is not None and len(data) < byte_length:
            raise FormatError(
                f"Buffer {index} holds {len(data)} bytes but declares byteLength={byte_length}"
            )
        logger.debug(f"Loaded buffer {index}: {len(data)} bytes")
        return data

    @staticmethod
    def _decode_data_uri(uri: str) -> bytes:
        header, sep, payload = uri.partition(",")
        if not sep or not header.endswith(";base64"):
            raise FormatError("Only base64 data URIs are supported for buffers")
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise FormatError(f"Malformed base64 buffer data: {e}") from e
