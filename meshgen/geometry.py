# meshgen/geometry.py

"""
================================================================================
BUFFER LAYOUT, SIZE QUERIES AND NORMAL HOOKS
================================================================================
Describes the memory layout the rasterizers write and the size queries a
caller must run before allocating output buffers.

Data Contract:
---------------
- Vertex buffer: VERTEX_DTYPE records (pos xyz, normal xyz, tangent xyzw,
  uv), 48 bytes each, (side_len + 1)**2 entries.
- Quad buffer: int32 array of shape (side_len**2, 6), two triangles per cell.
- Color/pixel buffers: uint8 arrays of shape (n, 4), RGBA8.
- Size queries raise SizeOverflowError before anything is allocated when a
  byte size would not fit a 32-bit signed length.
================================================================================
"""

import numbers
from typing import NamedTuple

import numpy as np

from . import config as DEFAULTS
from .errors import InvalidArgumentError, SizeOverflowError

VERTEX_DTYPE = np.dtype([
    ('pos', np.float32, (3,)),
    ('normal', np.float32, (3,)),
    ('tangent', np.float32, (4,)),
    ('uv', np.float32, (2,)),
])
QUAD_DTYPE = np.dtype(np.int32)
COLOR_DTYPE = np.dtype(np.uint8)
INDICES_PER_QUAD = 6


class PlaneDesc(NamedTuple):
    side_len: int
    vertex_count: int
    edge_count: int
    face_count: int
    vertex_bytes: int
    edge_bytes: int
    face_bytes: int

    @property
    def quad_count(self) -> int:
        return self.face_count // 2


class TextureDesc(NamedTuple):
    width: int
    height: int
    pixel_count: int
    pixel_bytes: int


def _require_size(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise InvalidArgumentError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidArgumentError(f"{name} must be non-negative, got {value}")
    return int(value)


def get_plane_desc(side_len: int) -> PlaneDesc:
    """
    Counts and byte sizes of a side_len x side_len chunk.
    Edges are checked first, then vertices, then faces.
    """
    side_len = _require_size("side_len", side_len)
    vertex_count = (side_len + 1) * (side_len + 1)
    edge_count = 2 * side_len + 3 * side_len * side_len
    face_count = 2 * side_len * side_len

    vertex_bytes = vertex_count * DEFAULTS.VERTEX_BYTES
    edge_bytes = edge_count * DEFAULTS.INDEX_BYTES
    face_bytes = face_count * DEFAULTS.TRIANGLE_BYTES

    if edge_bytes >= DEFAULTS.MAX_BUFFER_BYTES:
        raise SizeOverflowError(f"Edge list would require too many bytes! {edge_bytes}")
    if vertex_bytes >= DEFAULTS.MAX_BUFFER_BYTES:
        raise SizeOverflowError(f"Vertex list would require too many bytes! {vertex_bytes}")
    if face_bytes >= DEFAULTS.MAX_BUFFER_BYTES:
        raise SizeOverflowError(f"Face list would require too many bytes! {face_bytes}")

    return PlaneDesc(side_len, vertex_count, edge_count, face_count, vertex_bytes, edge_bytes, face_bytes)


def get_texture_desc(width: int, height: int) -> TextureDesc:
    width = _require_size("width", width)
    height = _require_size("height", height)
    pixel_count = width * height
    pixel_bytes = pixel_count * DEFAULTS.PIXEL_BYTES
    if pixel_bytes >= DEFAULTS.MAX_BUFFER_BYTES:
        raise SizeOverflowError(f"Pixel buffer would require too many bytes! {pixel_bytes}")
    return TextureDesc(width, height, pixel_count, pixel_bytes)


def allocate_chunk_buffers(desc: PlaneDesc, with_colors: bool = True):
    """Zeroed vertex, quad and (optionally) color buffers sized from a PlaneDesc."""
    vertices = np.zeros(desc.vertex_count, dtype=VERTEX_DTYPE)
    quads = np.zeros((desc.quad_count, INDICES_PER_QUAD), dtype=QUAD_DTYPE)
    colors = np.zeros((desc.vertex_count, 4), dtype=COLOR_DTYPE) if with_colors else None
    return vertices, quads, colors


def allocate_texture_buffer(desc: TextureDesc) -> np.ndarray:
    return np.zeros((desc.pixel_count, 4), dtype=COLOR_DTYPE)


def check_buffer(name: str, buffer, shape: tuple, dtype: np.dtype) -> None:
    """Rejects missing, mis-shaped, mis-typed or read-only output buffers."""
    if buffer is None:
        raise InvalidArgumentError(f"{name} buffer is missing")
    if not isinstance(buffer, np.ndarray):
        raise InvalidArgumentError(f"{name} must be a NumPy array, got {type(buffer).__name__}")
    if buffer.dtype != dtype:
        raise InvalidArgumentError(f"{name} must have dtype {dtype}, got {buffer.dtype}")
    if buffer.shape != shape:
        raise InvalidArgumentError(f"{name} must have shape {shape}, got {buffer.shape}")
    if not buffer.flags.writeable:
        raise InvalidArgumentError(f"{name} buffer is read-only")


# --- Normal/Tangent Hooks ---
# A hook takes the (n, 3) vertex positions and the chunk side length and
# returns (normals (n, 3), tangents (n, 4)).

def flat_normals(positions: np.ndarray, side_len: int):
    """Straight-up normals with +x tangents, ignoring the heights."""
    count = positions.shape[0]
    normals = np.zeros((count, 3), dtype=np.float32)
    normals[:, 1] = 1.0
    tangents = np.zeros((count, 4), dtype=np.float32)
    tangents[:, 0] = 1.0
    tangents[:, 3] = 1.0
    return normals, tangents


def finite_difference_normals(positions: np.ndarray, side_len: int):
    """
    Normals from central differences of the height grid (one-sided on the
    border). Vertices are one world unit apart along both axes.
    """
    if side_len == 0:
        return flat_normals(positions, side_len)

    vert_side = side_len + 1
    heights = positions[:, 1].astype(np.float64).reshape(vert_side, vert_side)
    # Rows advance along z, columns along x.
    dh_dz, dh_dx = np.gradient(heights)

    normals = np.stack([-dh_dx, np.ones_like(heights), -dh_dz], axis=-1).reshape(-1, 3)
    normals /= np.linalg.norm(normals, axis=1, keepdims=True)

    tangents = np.zeros((positions.shape[0], 4), dtype=np.float64)
    tangents[:, 0] = 1.0
    tangents[:, 1] = dh_dx.ravel()
    tangents[:, :3] /= np.linalg.norm(tangents[:, :3], axis=1, keepdims=True)
    tangents[:, 3] = 1.0

    return normals.astype(np.float32), tangents.astype(np.float32)
