"""
Asset Writer
------------
Saves a processed document either as a single .glb package or as a .gltf
document with sibling .bin payloads.
"""

import logging
from pathlib import Path
from typing import List, Union
from urllib.parse import unquote

from pygltflib import GLTF2

from . import asset_io
from .accessors import AccessorResolver
from .buffer_cache import BufferCache
from .buffer_graph import collapse_buffers
from .errors import AssetIOError

logger = logging.getLogger(__name__)

BINARY_EXTENSION = ".glb"
DOCUMENT_EXTENSION = ".gltf"
SUPPORTED_EXTENSIONS = (DOCUMENT_EXTENSION, BINARY_EXTENSION)


def payload_name(output_stem: str, buffer_index: int) -> str:
    if buffer_index == 0:
        return f"{output_stem}.bin"
    return f"{output_stem}_{buffer_index}.bin"


class AssetWriter:
    """Writes a document and its buffers; the container kind follows the output extension"""

    def __init__(self, document: GLTF2, cache: BufferCache, resolver: AccessorResolver):
        self.document = document
        self.cache = cache
        self.resolver = resolver

    def write(self, output_path: Union[str, Path]) -> List[Path]:
        """
        Write the document to `output_path`.

        Returns:
            Paths written, the document itself last
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if output_path.suffix.lower() == BINARY_EXTENSION:
            written = self._write_binary_package(output_path)
        else:
            written = self._write_document(output_path)

        logger.info(f"Wrote {output_path}")
        return written

    def _write_binary_package(self, output_path: Path) -> List[Path]:
        buffers = self.document.buffers or []
        if len(buffers) > 1:
            # A .glb holds a single BIN chunk
            logger.info(f"Merging {len(buffers)} buffers into one")
            collapse_buffers(self.document, self.cache, self.resolver)
            buffers = self.document.buffers

        # Load all buffers and erase their uris, the payload becomes embedded
        for i, buffer in enumerate(buffers):
            self.cache.get(i)
            buffer.uri = None

        blob = bytes(self.cache.get(0)) if buffers else b""
        if buffers:
            buffers[0].byteLength = len(blob)
        asset_io.save_binary_package(self.document, blob, output_path)
        return [output_path]

    def _write_document(self, output_path: Path) -> List[Path]:
        output_folder = output_path.parent
        output_name = output_path.stem
        source_name = self.cache.source_path.stem
        name_changed = source_name != output_name

        written: List[Path] = []
        for i, buffer in enumerate(self.document.buffers or []):
            data = self.cache.get(i)

            if name_changed or not buffer.uri or buffer.uri.startswith("data:"):
                # Change name of the binary
                buffer.uri = payload_name(output_name, i)
            buffer.byteLength = len(data)

            full_uri = output_folder / unquote(buffer.uri)
            full_uri.parent.mkdir(parents=True, exist_ok=True)
            try:
                full_uri.write_bytes(bytes(data))
            except OSError as e:
                raise AssetIOError(f"Failed to write {full_uri}: {e}") from e
            logger.info(f"Wrote {full_uri}")
            written.append(full_uri)

        asset_io.save_document(self.document, output_path)
        written.append(output_path)
        return written
