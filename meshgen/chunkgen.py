# meshgen/chunkgen.py

"""
================================================================================
CHUNK (GRID) RASTERIZER
================================================================================
Samples the fractal field over a regular (side_len + 1)^2 vertex grid and
writes vertex positions, UVs, optional per-vertex colors and the quad index
list into caller-owned buffers.

Data Contract:
---------------
- Inputs:
    - field (NoiseConfig), gradient (Gradient or None), side_len, height,
      plane_offset (x, y, z).
    - out_vertices, out_quads, out_colors: buffers sized by get_plane_desc().
- Outputs: None. Every slot of every given buffer is overwritten.
- Side Effects: Logs fills through the generator's logger.
- Invariants: Either every buffer is fully written or none is touched. The
  kernels write into scratch arrays that are validated before the commit.
================================================================================
"""

import logging
import math
import numbers

import numpy as np
from numba import njit, prange

from . import config as DEFAULTS
from .errors import ComputationPanicError, InvalidArgumentError, MeshgenError
from .field import NoiseConfig, fractal_sample
from .geometry import (
    COLOR_DTYPE,
    INDICES_PER_QUAD,
    QUAD_DTYPE,
    VERTEX_DTYPE,
    allocate_chunk_buffers,
    check_buffer,
    get_plane_desc,
)
from .gradient import DEFAULT_GRADIENT, Gradient, write_gradient_color


@njit(cache=True, parallel=True, error_model="numpy")
def _fill_vertices(side_len, height, off_x, off_y, off_z, positions, uvs, heights,
                   colors, write_colors, key_colors, key_ts, linear,
                   p, scale, frequency, amplitude, offsets, max_sum, displacement, a, curve):
    vert_side = side_len + 1
    half_side_len = side_len / 2.0
    for i in prange(vert_side * vert_side):
        col = i % vert_side
        row = i // vert_side
        x_pos = -half_side_len + col
        z_pos = -half_side_len + row
        n = fractal_sample(x_pos + off_x, z_pos + off_z, p, scale, frequency, amplitude,
                           offsets, max_sum, displacement, a, curve)
        heights[i] = n
        positions[i, 0] = x_pos
        positions[i, 1] = n * height + off_y
        positions[i, 2] = z_pos
        uvs[i, 0] = col / vert_side
        uvs[i, 1] = row / vert_side
        if write_colors:
            write_gradient_color(key_colors, key_ts, linear, n, colors, i)


@njit(cache=True, parallel=True)
def _fill_quads(side_len, quads):
    vert_side = side_len + 1
    for i in prange(side_len * side_len):
        z = i // side_len
        x = i % side_len
        s = x * vert_side + z
        quads[i, 0] = s + vert_side
        quads[i, 1] = s + 1
        quads[i, 2] = s
        quads[i, 3] = s + 1
        quads[i, 4] = s + vert_side
        quads[i, 5] = s + vert_side + 1


def _require_offset(plane_offset, dims: int) -> tuple:
    try:
        values = tuple(float(v) for v in plane_offset)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"plane offset must be a sequence of {dims} numbers, got {plane_offset!r}") from None
    if len(values) != dims or not all(math.isfinite(v) for v in values):
        raise InvalidArgumentError(f"plane offset must hold {dims} finite numbers, got {plane_offset!r}")
    return values


def _require_height(height) -> float:
    if isinstance(height, bool) or not isinstance(height, numbers.Real) or not math.isfinite(height):
        raise InvalidArgumentError(f"height must be a finite number, got {height!r}")
    return float(height)


def _run_normal_hook(normal_hook, positions: np.ndarray, side_len: int, vertex_count: int):
    """Calls the hook on a read-only view and checks what it returns before any commit."""
    view = positions.view()
    view.setflags(write=False)
    try:
        normals, tangents = normal_hook(view, side_len)
        normals = np.asarray(normals, dtype=np.float64)
        tangents = np.asarray(tangents, dtype=np.float64)
    except MeshgenError:
        raise
    except Exception as e:
        raise ComputationPanicError(f"normal hook failed: {e}; buffers left untouched") from e

    if normals.shape != (vertex_count, 3) or tangents.shape != (vertex_count, 4):
        raise InvalidArgumentError(
            f"normal hook must return ({vertex_count}, 3) normals and ({vertex_count}, 4) tangents, "
            f"got {normals.shape} and {tangents.shape}"
        )
    if not (np.isfinite(normals).all() and np.isfinite(tangents).all()):
        raise ComputationPanicError("normal hook produced non-finite values; buffers left untouched")
    return normals, tangents


def fill_chunk(field: NoiseConfig, gradient, side_len: int, height: float, plane_offset,
               out_vertices: np.ndarray, out_quads: np.ndarray, out_colors: np.ndarray = None,
               normal_hook=None) -> None:
    """
    Rasterizes one chunk of the field.

    Vertex i sits at local (x, z) = (-side_len/2 + i % vs, -side_len/2 + i // vs)
    with vs = side_len + 1; its height samples the field at the local position
    plus the plane offset. Normals and tangents stay zero unless a normal_hook
    (see meshgen.geometry) is supplied.
    """
    desc = get_plane_desc(side_len)
    side_len = desc.side_len
    height = _require_height(height)
    off_x, off_y, off_z = _require_offset(plane_offset, 3)

    check_buffer("vertex", out_vertices, (desc.vertex_count,), VERTEX_DTYPE)
    check_buffer("quad", out_quads, (desc.quad_count, INDICES_PER_QUAD), QUAD_DTYPE)
    write_colors = out_colors is not None
    if write_colors:
        check_buffer("color", out_colors, (desc.vertex_count, 4), COLOR_DTYPE)
    if gradient is None:
        gradient = DEFAULT_GRADIENT

    # --- Rasterize into scratch buffers ---
    positions = np.empty((desc.vertex_count, 3), dtype=np.float64)
    uvs = np.empty((desc.vertex_count, 2), dtype=np.float64)
    heights = np.empty(desc.vertex_count, dtype=np.float64)
    colors = np.empty((desc.vertex_count if write_colors else 0, 4), dtype=COLOR_DTYPE)
    quads = np.empty((desc.quad_count, INDICES_PER_QUAD), dtype=QUAD_DTYPE)

    try:
        _fill_vertices(side_len, height, off_x, off_y, off_z, positions, uvs, heights,
                       colors, write_colors, *gradient.kernel_args, *field.kernel_args)
        _fill_quads(side_len, quads)
    except ArithmeticError as e:
        raise ComputationPanicError(f"chunk fill failed: {e}") from e

    if not (np.isfinite(heights).all() and np.isfinite(positions).all()):
        bad = int(np.count_nonzero(~np.isfinite(heights)))
        raise ComputationPanicError(f"field produced {bad} non-finite heights; buffers left untouched")

    if normal_hook is not None:
        normals, tangents = _run_normal_hook(normal_hook, positions, side_len, desc.vertex_count)
    else:
        normals = 0.0
        tangents = 0.0

    # --- Commit ---
    out_vertices['pos'] = positions
    out_vertices['normal'] = normals
    out_vertices['tangent'] = tangents
    out_vertices['uv'] = uvs
    out_quads[...] = quads
    if write_colors:
        out_colors[...] = colors


class ChunkGenerator:
    """
    Holds the dimensions, noise and color gradient of a terrain chunk and
    fills caller-owned buffers with its geometry.
    """
    def __init__(self, side_len: int = DEFAULTS.DEFAULT_SIDE_LEN, height: float = DEFAULTS.DEFAULT_HEIGHT,
                 noise: NoiseConfig = None, gradient: Gradient = None, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger(__name__)
        self.set_dim(side_len, height)
        self.noise = noise if noise is not None else NoiseConfig()
        self.gradient = gradient if gradient is not None else Gradient()
        self.logger.info(f"ChunkGenerator initialized: side_len={self.side_len}, height={self.height}")

    @classmethod
    def from_settings(cls, settings: dict, logger: logging.Logger = None) -> "ChunkGenerator":
        """Builds a generator from a settings dict, falling back to the defaults."""
        keys = [(key['color'], key['t']) for key in settings.get('color_keys', [])]
        return cls(
            side_len=settings.get('side_len', DEFAULTS.DEFAULT_SIDE_LEN),
            height=settings.get('height', DEFAULTS.DEFAULT_HEIGHT),
            noise=NoiseConfig.from_settings(settings),
            gradient=Gradient.from_blend_flag(keys, settings.get('blend_linear', True)),
            logger=logger,
        )

    def set_dim(self, side_len: int, height: float) -> None:
        get_plane_desc(side_len)
        self.height = _require_height(height)
        self.side_len = int(side_len)
        self.logger.info(f"Chunk dimensions set: side_len={self.side_len}, height={self.height}")

    def set_noise(self, **params) -> None:
        """Replaces the whole noise config. Unspecified parameters use the defaults."""
        self.noise = NoiseConfig(**params)
        self.logger.info(f"Chunk noise set: {self.noise}")

    def set_color_gradient(self, keys, linear: bool) -> None:
        self.gradient = Gradient.from_blend_flag(keys, linear)
        self.logger.info(f"Chunk gradient set: {len(self.gradient.keys)} keys, {self.gradient.blend_mode.name}")

    def geometry_desc(self):
        return get_plane_desc(self.side_len)

    def allocate_buffers(self, with_colors: bool = True):
        return allocate_chunk_buffers(self.geometry_desc(), with_colors)

    def fill(self, plane_offset, vertices: np.ndarray, quads: np.ndarray, colors: np.ndarray = None,
             normal_hook=None) -> None:
        self.logger.info(f"Filling chunk with data at offset {plane_offset}")
        try:
            fill_chunk(self.noise, self.gradient, self.side_len, self.height, plane_offset,
                       vertices, quads, colors, normal_hook)
        except MeshgenError as e:
            self.logger.error(f"Chunk fill failed: {e}")
            raise
