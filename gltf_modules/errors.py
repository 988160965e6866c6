"""
Error types raised while processing a glTF asset.

None of these are recovered inside the engine: they abort the current run and
are reported by the command script.
"""


class GltfUtilityError(Exception):
    """Base class for all processing failures"""


class AssetIOError(GltfUtilityError, OSError):
    """A referenced file could not be read or written"""


class MissingFileError(AssetIOError, FileNotFoundError):
    """The input file or a buffer payload it references does not exist"""


class FormatError(GltfUtilityError):
    """The document or its binary container is malformed"""


class UnsupportedAccessorError(GltfUtilityError):
    """Accessor layout the engine cannot handle (no buffer view, sparse, interleaved)"""


class UnsupportedIndexTypeError(GltfUtilityError):
    """Index accessor is not scalar or not SHORT/UNSIGNED_SHORT/UNSIGNED_INT"""


class MissingIndicesError(GltfUtilityError):
    """Primitive has no index accessor"""


class SizeMismatchError(GltfUtilityError):
    """Byte span is not an exact multiple of the requested element size"""


class TangentGenerationError(GltfUtilityError):
    """Tangent-space generator rejected its input"""
