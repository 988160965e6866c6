#!/usr/bin/env python3
"""
Post-process a glTF/GLB asset.

- -t: generate tangent frames for every primitive with positions, normals and uvs
- -u: unwind indices (reverse triangle winding order)
- -p: premultiply RGBA vertex colors by alpha

The output container follows the output extension: .glb writes a single
self-contained package, .gltf writes the document plus sibling .bin payload(s).

Usage:
  python gltf_utility.py model.gltf model_out.glb -t -u
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from gltf_modules import __version__
from gltf_modules.asset_writer import SUPPORTED_EXTENSIONS
from gltf_modules.config import configure_logging, load_settings
from gltf_modules.processor import GltfProcessor, Options

# See system error codes: http://msdn.microsoft.com/en-us/library/windows/desktop/ms681382.aspx
ERROR_SUCCESS = 0
ERROR_BAD_ARGUMENTS = 160  # 0x0A0
ERROR_UNHANDLED_EXCEPTION = 574  # 0x23E

logger = logging.getLogger(__name__)


class UsageError(Exception):
    pass


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    ap = _ArgumentParser(
        prog="gltf-utility",
        description=f"glTF utility {__version__}: post-process glTF/GLB assets.",
    )
    ap.add_argument("input_file", help="Input .gltf or .glb file")
    ap.add_argument("output_file", help="Output file; extension must be .gltf or .glb")
    ap.add_argument("-t", dest="tangent", action="store_true", help="Generate tangent frames")
    ap.add_argument("-u", dest="unwind", action="store_true", help="Unwind indices")
    ap.add_argument("-p", dest="premultiply_colors", action="store_true", help="Premultiply vertex colors by alpha")
    ap.add_argument("--log-level", default="", help="Logging level (default: gltf_log_level or INFO)")
    return ap


def _bad_arguments(parser: argparse.ArgumentParser, message: str) -> int:
    print(message)
    parser.print_usage()
    return ERROR_BAD_ARGUMENTS


def process(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except UsageError as e:
        return _bad_arguments(parser, str(e))

    configure_logging(load_settings(), args.log_level or None)

    if not Path(args.input_file).is_file():
        return _bad_arguments(parser, f"Input file {args.input_file} doesn't exist")

    ext = Path(args.output_file).suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        return _bad_arguments(parser, "Output file extension should be either gltf or glb")

    options = Options(
        input_file=args.input_file,
        output_file=args.output_file,
        tangent=args.tangent,
        unwind=args.unwind,
        premultiply_colors=args.premultiply_colors,
    )
    GltfProcessor().process(options)
    return ERROR_SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    try:
        return process(argv)
    except Exception as e:
        logger.error(f"Processing failed: {e}", exc_info=True)
        return ERROR_UNHANDLED_EXCEPTION


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
