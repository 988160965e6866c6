"""
glTF Modules
------------
Buffer, accessor and index helpers for post-processing glTF/GLB assets.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    # Type-only imports (won't execute at runtime)
    from .processor import GltfProcessor, Options  # noqa: F401

__version__ = "0.1.0"
__all__ = [
    # Intentionally empty: consumers should import concrete modules directly, e.g.
    # `from gltf_modules.processor import GltfProcessor`
]
