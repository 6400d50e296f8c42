# meshgen/export.py

"""
================================================================================
BUFFER EXPORT
================================================================================
Writes filled buffers to disk: textures as PNG images (Pillow) and chunk
geometry as compressed NumPy archives.

Data Contract:
---------------
- save_texture_png(pixels, width, height, path) -> str
    - pixels: (width * height, 4) uint8 RGBA rows, as filled by fill_texture.
    - Returns the storage tier used: 'uniform', 'palettized' or 'full'.
- save_chunk_npz(path, vertices, quads, colors=None) -> None
- Side Effects: Creates the parent directory if needed and writes one file.
================================================================================
"""

import os

import numpy as np
from PIL import Image

from .errors import InvalidArgumentError
from .geometry import COLOR_DTYPE, QUAD_DTYPE, VERTEX_DTYPE


def save_texture_png(pixels: np.ndarray, width: int, height: int, path: str) -> str:
    """
    Saves an RGBA8 texture using a tiered, lossless strategy.
    Fully opaque textures are stored without their alpha channel.
    """
    if not isinstance(pixels, np.ndarray) or pixels.dtype != COLOR_DTYPE or pixels.shape != (width * height, 4):
        raise InvalidArgumentError(f"pixels must be a ({width * height}, 4) uint8 array")
    if width == 0 or height == 0:
        raise InvalidArgumentError("cannot save an empty texture")

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    img_data = pixels.reshape(height, width, 4)
    mode = 'RGBA'
    if (img_data[..., 3] == 255).all():
        img_data = np.ascontiguousarray(img_data[..., :3])
        mode = 'RGB'

    # Tier 1: a single color becomes a 1x1 image.
    if (img_data == img_data[0, 0]).all():
        img = Image.new(mode, (1, 1), tuple(int(c) for c in img_data[0, 0]))
        img.save(path, 'PNG')
        return 'uniform'

    img = Image.fromarray(img_data)

    # Tier 2: few enough colors for a palette.
    colors = img.getcolors(256)
    if colors:
        if mode == 'RGBA':
            img = img.quantize(colors=256, method=Image.Quantize.FASTOCTREE)
        else:
            img = img.quantize(colors=256)
        img.save(path, 'PNG')
        return 'palettized'

    # Tier 3: everything else.
    img.save(path, 'PNG')
    return 'full'


def save_chunk_npz(path: str, vertices: np.ndarray, quads: np.ndarray, colors: np.ndarray = None) -> None:
    """Stores a filled chunk as a compressed .npz with one array per attribute."""
    if vertices.dtype != VERTEX_DTYPE or quads.dtype != QUAD_DTYPE:
        raise InvalidArgumentError("vertices and quads must come from allocate_chunk_buffers()")

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    arrays = {
        'positions': vertices['pos'],
        'normals': vertices['normal'],
        'tangents': vertices['tangent'],
        'uvs': vertices['uv'],
        'quads': quads,
    }
    if colors is not None:
        arrays['colors'] = colors
    np.savez_compressed(path, **arrays)
