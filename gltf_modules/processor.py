"""
glTF Processor
--------------
Runs one load -> tangents -> unwind -> premultiply -> save pass over an asset.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pygltflib import GLTF2

from . import asset_io
from .accessors import AccessorResolver
from .asset_writer import AssetWriter
from .buffer_cache import BufferCache
from .errors import MissingFileError
from .tangent_builder import TangentChannelBuilder
from .vertex_colors import premultiply_vertex_colors
from .winding import WindingReverser

logger = logging.getLogger(__name__)


@dataclass
class Options:
    input_file: str = ""
    output_file: Optional[str] = None
    tangent: bool = False
    unwind: bool = False
    premultiply_colors: bool = False


class GltfProcessor:
    """Processes a single glTF/GLB asset according to `Options`"""

    def __init__(self):
        self.document: Optional[GLTF2] = None
        self.cache: Optional[BufferCache] = None
        self.resolver: Optional[AccessorResolver] = None

    def process(self, options: Options) -> GLTF2:
        """
        Load, transform and save an asset.

        If `options.output_file` is empty the input file is overwritten.

        Returns:
            The mutated document

        Raises:
            GltfUtilityError: any failure aborts the run
        """
        if not options.output_file:
            options.output_file = options.input_file

        input_path = Path(options.input_file)
        try:
            with input_path.open("rb") as stream:
                self.document = asset_io.load_document(stream)
        except FileNotFoundError as e:
            raise MissingFileError(f"Input file {input_path} doesn't exist") from e

        # Fresh cache per run
        self.cache = BufferCache(self.document, input_path)
        self.resolver = AccessorResolver(self.document, self.cache)

        if options.tangent:
            logger.info("Generating tangents...")
            TangentChannelBuilder(self.document, self.cache, self.resolver).build()

        if options.unwind:
            logger.info("Unwinding indices...")
            WindingReverser(self.resolver).run()

        if options.premultiply_colors:
            logger.info("Premultiplying vertex colors...")
            premultiply_vertex_colors(self.resolver)

        AssetWriter(self.document, self.cache, self.resolver).write(options.output_file)
        return self.document
