from .chunkgen import ChunkGenerator, fill_chunk
from .errors import ComputationPanicError, InvalidArgumentError, MeshgenError, SizeOverflowError
from .export import save_chunk_npz, save_texture_png
from .field import NoiseConfig
from .geometry import (
    VERTEX_DTYPE,
    PlaneDesc,
    TextureDesc,
    allocate_chunk_buffers,
    allocate_texture_buffer,
    finite_difference_normals,
    flat_normals,
    get_plane_desc,
    get_texture_desc,
)
from .gradient import BlendMode, Gradient, GradientKey, color_at, lerp_bounded
from .texturegen import TextureGenerator, fill_texture

__all__ = [
    "BlendMode",
    "ChunkGenerator",
    "ComputationPanicError",
    "Gradient",
    "GradientKey",
    "InvalidArgumentError",
    "MeshgenError",
    "NoiseConfig",
    "PlaneDesc",
    "SizeOverflowError",
    "TextureDesc",
    "TextureGenerator",
    "VERTEX_DTYPE",
    "allocate_chunk_buffers",
    "allocate_texture_buffer",
    "color_at",
    "fill_chunk",
    "fill_texture",
    "finite_difference_normals",
    "flat_normals",
    "get_plane_desc",
    "get_texture_desc",
    "lerp_bounded",
    "save_chunk_npz",
    "save_texture_png",
]
