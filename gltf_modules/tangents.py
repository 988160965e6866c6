"""
Tangent Space Generation
------------------------
Per-vertex tangents for normal mapping, computed from positions, normals and uvs.

The generator only sees triangles through lookup callbacks indexed by
(face, corner) and reports results through a writeback callback, so it never
needs to know how the caller stores its vertices. Corners with identical
position/normal/uv are welded before accumulation, which makes the result
independent of whether the mesh was indexed or flattened.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

import numpy as np

from .errors import TangentGenerationError

Lookup3 = Callable[[int, int], Sequence[float]]
Lookup2 = Callable[[int, int], Sequence[float]]
Writeback = Callable[[int, int, Tuple[float, float, float, float]], None]


@dataclass
class TangentSpaceContext:
    """Callbacks the generator uses to read triangles and store tangents"""
    triangle_count: Callable[[], int]
    get_position: Lookup3
    get_normal: Lookup3
    get_texcoord: Lookup2
    set_tangent: Writeback


def _vertex_tangents(positions: np.ndarray, normals: np.ndarray, uvs: np.ndarray, indices: np.ndarray) -> np.ndarray:
    vcount = int(positions.shape[0])
    tan1 = np.zeros((vcount, 3), dtype=np.float64)
    tan2 = np.zeros((vcount, 3), dtype=np.float64)

    tris = indices.reshape(-1, 3)
    p0 = positions[tris[:, 0]]
    p1 = positions[tris[:, 1]]
    p2 = positions[tris[:, 2]]
    w0 = uvs[tris[:, 0]]
    w1 = uvs[tris[:, 1]]
    w2 = uvs[tris[:, 2]]

    x1 = p1 - p0
    x2 = p2 - p0
    s1 = w1[:, 0] - w0[:, 0]
    s2 = w2[:, 0] - w0[:, 0]
    t1 = w1[:, 1] - w0[:, 1]
    t2 = w2[:, 1] - w0[:, 1]

    r = s1 * t2 - s2 * t1
    valid = np.abs(r) > 1e-20
    if np.any(valid):
        rv = np.zeros_like(r)
        rv[valid] = 1.0 / r[valid]
        sdir = (x1 * t2[:, None] - x2 * t1[:, None]) * rv[:, None]
        tdir = (x2 * s1[:, None] - x1 * s2[:, None]) * rv[:, None]
        for corner in range(3):
            np.add.at(tan1, tris[:, corner], sdir)
            np.add.at(tan2, tris[:, corner], tdir)

    nl = np.linalg.norm(normals, axis=1)
    n = normals / np.where(nl > 0.0, nl, 1.0)[:, None]

    # Gram-Schmidt against the normal
    t = tan1 - n * np.sum(n * tan1, axis=1, keepdims=True)
    tl = np.linalg.norm(t, axis=1)
    t = t / np.where(tl > 0.0, tl, 1.0)[:, None]

    # No usable uv gradient: any direction perpendicular to the normal
    deg = tl <= 1e-8
    if np.any(deg):
        ref = np.zeros_like(t)
        ref[:, 0] = 1.0
        use_y = np.abs(n[:, 0]) > 0.9
        ref[use_y, 0] = 0.0
        ref[use_y, 1] = 1.0
        tf = np.cross(ref, n)
        tfl = np.linalg.norm(tf, axis=1)
        tf = tf / np.where(tfl > 0.0, tfl, 1.0)[:, None]
        t[deg] = tf[deg]

    w = np.where(np.sum(np.cross(n, t) * tan2, axis=1) < 0.0, -1.0, 1.0)

    out = np.zeros((vcount, 4), dtype=np.float32)
    out[:, 0:3] = t
    out[:, 3] = w
    return out


def _corner_tangents(positions: np.ndarray, normals: np.ndarray, uvs: np.ndarray) -> Optional[np.ndarray]:
    """
    Tangents for a flat triangle list given as per-corner arrays.

    Returns:
        (corners, 4) float32 array, or None if the input holds non-finite values
    """
    keys = np.concatenate(
        [np.asarray(positions, np.float64), np.asarray(normals, np.float64), np.asarray(uvs, np.float64)],
        axis=1,
    )
    if not np.all(np.isfinite(keys)):
        return None

    welded, inverse = np.unique(keys, axis=0, return_inverse=True)
    inverse = inverse.reshape(-1)
    tangents = _vertex_tangents(welded[:, 0:3], welded[:, 3:6], welded[:, 6:8], inverse)
    return tangents[inverse]


def generate_tangent_space(ctx: TangentSpaceContext) -> bool:
    """
    Generate a tangent (xyz + handedness sign) for every triangle corner.

    Returns:
        False if there are no triangles or the input holds non-finite values,
        True after every corner has been written back.
    """
    face_count = int(ctx.triangle_count())
    if face_count <= 0:
        return False

    corners = face_count * 3
    positions = np.empty((corners, 3), dtype=np.float64)
    normals = np.empty((corners, 3), dtype=np.float64)
    uvs = np.empty((corners, 2), dtype=np.float64)
    for face in range(face_count):
        for vertex in range(3):
            c = face * 3 + vertex
            positions[c] = ctx.get_position(face, vertex)
            normals[c] = ctx.get_normal(face, vertex)
            uvs[c] = ctx.get_texcoord(face, vertex)

    tangents = _corner_tangents(positions, normals, uvs)
    if tangents is None:
        return False

    for face in range(face_count):
        for vertex in range(3):
            x, y, z, sign = (float(v) for v in tangents[face * 3 + vertex])
            ctx.set_tangent(face, vertex, (x, y, z, sign))
    return True


def calculate_tangents(positions: np.ndarray, normals: np.ndarray, uvs: np.ndarray, indices: np.ndarray) -> np.ndarray:
    """
    Calculate one tangent per vertex of an indexed triangle list.

    Produces the same tangents as driving `generate_tangent_space` with index
    lookups, but gathers the corner arrays in one step.

    Args:
        positions: (N, 3) float array
        normals: (N, 3) float array
        uvs: (N, 2) float array
        indices: flat index array; every 3 consecutive entries form a triangle,
            trailing entries that don't complete a triangle are ignored

    Returns:
        (N, 4) float32 array; vertices not referenced by any triangle get (1, 0, 0, 1)

    Raises:
        TangentGenerationError: inconsistent sizes, out-of-range indices, or the
            generator rejected the input
    """
    if positions.shape[0] != normals.shape[0]:
        raise TangentGenerationError(
            f"Inconsistent sizes: positions = {positions.shape[0]}, normals = {normals.shape[0]}"
        )
    if positions.shape[0] != uvs.shape[0]:
        raise TangentGenerationError(
            f"Inconsistent sizes: positions = {positions.shape[0]}, uvs = {uvs.shape[0]}"
        )

    vcount = int(positions.shape[0])
    if indices.size and int(indices.max()) >= vcount:
        raise TangentGenerationError(f"Index {int(indices.max())} out of range for {vcount} vertices")

    corners = indices.reshape(-1)[: (indices.size // 3) * 3].astype(np.int64)
    tangents = None
    if corners.size:
        tangents = _corner_tangents(positions[corners], normals[corners], uvs[corners])
    if tangents is None:
        raise TangentGenerationError("Tangents generation failed")

    result = np.zeros((vcount, 4), dtype=np.float32)
    result[:, 0] = 1.0
    result[:, 3] = 1.0
    result[corners] = tangents
    return result
