"""
glTF Document I/O
-----------------
Parse documents and binary containers from streams, and save documents as
.glb packages or .gltf text through pygltflib.
"""

import json
import logging
import struct
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

from pygltflib import GLTF2

from .errors import AssetIOError, FormatError

logger = logging.getLogger(__name__)

GLB_MAGIC = 0x46546C67  # b"glTF"
JSON_CHUNK_TYPE = 0x4E4F534A  # b"JSON"
BIN_CHUNK_TYPE = 0x004E4942  # b"BIN\0"


def is_binary_container(data: bytes) -> bool:
    return len(data) >= 4 and struct.unpack_from("<I", data, 0)[0] == GLB_MAGIC


def read_glb_chunks(data: bytes) -> Tuple[str, Optional[bytes]]:
    """
    Split a binary container into its JSON text and BIN chunk.

    Raises:
        FormatError: bad header, unsupported version, truncated chunks or no JSON chunk
    """
    if len(data) < 20:
        raise FormatError("GLB too small")

    magic, version, total_length = struct.unpack_from("<III", data, 0)
    if magic != GLB_MAGIC:
        raise FormatError("Invalid GLB magic")
    if version != 2:
        raise FormatError(f"Unsupported GLB version: {version}")
    if total_length > len(data):
        raise FormatError("GLB truncated")

    offset = 12
    json_chunk: Optional[bytes] = None
    bin_chunk: Optional[bytes] = None

    while offset + 8 <= total_length:
        chunk_len, chunk_type = struct.unpack_from("<II", data, offset)
        offset += 8
        chunk_end = offset + chunk_len
        if chunk_end > total_length:
            raise FormatError("GLB chunk exceeds file size")

        chunk_data = data[offset:chunk_end]
        offset = chunk_end

        if chunk_type == JSON_CHUNK_TYPE and json_chunk is None:
            json_chunk = chunk_data
        elif chunk_type == BIN_CHUNK_TYPE and bin_chunk is None:
            bin_chunk = chunk_data

    if json_chunk is None:
        raise FormatError("GLB missing JSON chunk")

    try:
        text = json_chunk.decode("utf-8").rstrip(" \t\r\n\x00")
    except UnicodeDecodeError as e:
        raise FormatError(f"GLB JSON chunk is not UTF-8: {e}") from e
    return text, bin_chunk


def _parse_json(text: str) -> GLTF2:
    try:
        if not isinstance(json.loads(text), dict):
            raise FormatError("glTF JSON root is not an object")
        return GLTF2.gltf_from_json(text)
    except (ValueError, KeyError, TypeError) as e:
        raise FormatError(f"Could not parse glTF document: {e}") from e


def load_document(stream: BinaryIO) -> GLTF2:
    """
    Parse a glTF document from a byte stream.

    Accepts both the binary container (.glb) and the JSON text form (.gltf);
    the container kind is detected from the magic bytes, not the file name.
    """
    data = stream.read()
    if is_binary_container(data):
        text, blob = read_glb_chunks(data)
        document = _parse_json(text)
        if blob is not None:
            document.set_binary_blob(blob)
        return document

    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise FormatError(f"glTF document is not UTF-8: {e}") from e
    return _parse_json(text)


def load_binary_payload(stream: BinaryIO) -> bytes:
    """Return the BIN chunk of a binary container"""
    data = stream.read()
    if not is_binary_container(data):
        raise FormatError("Buffer without uri requires a binary (.glb) container")
    _, blob = read_glb_chunks(data)
    if blob is None:
        raise FormatError("Binary container has no BIN chunk")
    return blob


def save_binary_package(document: GLTF2, blob: bytes, output_path: Union[str, Path]) -> None:
    document.set_binary_blob(bytes(blob))
    try:
        document.save_binary(str(output_path))
    except OSError as e:
        raise AssetIOError(f"Failed to write {output_path}: {e}") from e


def save_document(document: GLTF2, output_path: Union[str, Path]) -> None:
    # Payloads were already flushed to sibling .bin files
    document.set_binary_blob(None)
    try:
        document.save_json(str(output_path))
    except OSError as e:
        raise AssetIOError(f"Failed to write {output_path}: {e}") from e
