# meshgen/texturegen.py

"""
================================================================================
TEXTURE RASTERIZER
================================================================================
Samples the fractal field once per pixel of a width x height texture and
writes RGBA8 colors, row-major, into a caller-owned buffer.

Data Contract:
---------------
- Inputs:
    - field (NoiseConfig), gradient (Gradient or None), width, height, scale,
      offset (x, z) and a (width * height, 4) uint8 output buffer.
- Outputs: None. Every pixel is overwritten.
- Side Effects: Logs fills through the generator's logger.
- Invariants: Pixel i samples ((i % width) - width/2, (i // height) - height/2)
  plus the offset, divided by scale. The row index divides by the texture
  height, not the width. The color is the gradient at field/2 + 0.5.
================================================================================
"""

import logging
import math
import numbers

import numpy as np
from numba import njit, prange

from . import config as DEFAULTS
from .chunkgen import _require_offset
from .errors import ComputationPanicError, InvalidArgumentError, MeshgenError
from .field import NoiseConfig, fractal_sample
from .geometry import COLOR_DTYPE, allocate_texture_buffer, check_buffer, get_texture_desc
from .gradient import DEFAULT_GRADIENT, Gradient, write_gradient_color


@njit(cache=True, parallel=True, error_model="numpy")
def _fill_pixels(width, height, scale, off_x, off_z, pixels, heights, key_colors, key_ts, linear,
                 p, noise_scale, frequency, amplitude, offsets, max_sum, displacement, a, curve):
    half_width = width / 2.0
    half_height = height / 2.0
    for i in prange(width * height):
        x_pos = ((i % width) - half_width + off_x) / scale
        z_pos = ((i // height) - half_height + off_z) / scale
        n = fractal_sample(x_pos, z_pos, p, noise_scale, frequency, amplitude,
                           offsets, max_sum, displacement, a, curve)
        heights[i] = n
        write_gradient_color(key_colors, key_ts, linear, n / 2.0 + 0.5, pixels, i)


def fill_texture(field: NoiseConfig, gradient, width: int, height: int, scale: float, plane_offset,
                 out_pixels: np.ndarray) -> None:
    """
    Rasterizes a texture of the field. Without a gradient the colors follow
    the opaque black-to-white ramp. scale=1.0 samples the field at pixel
    positions directly.
    """
    desc = get_texture_desc(width, height)
    if isinstance(scale, bool) or not isinstance(scale, numbers.Real) or not math.isfinite(scale) or scale == 0:
        raise InvalidArgumentError(f"scale must be a finite, non-zero number, got {scale!r}")
    off_x, off_z = _require_offset(plane_offset, 2)
    check_buffer("pixel", out_pixels, (desc.pixel_count, 4), COLOR_DTYPE)
    if gradient is None:
        gradient = DEFAULT_GRADIENT

    pixels = np.empty((desc.pixel_count, 4), dtype=COLOR_DTYPE)
    heights = np.empty(desc.pixel_count, dtype=np.float64)
    try:
        _fill_pixels(desc.width, desc.height, float(scale), off_x, off_z, pixels, heights,
                     *gradient.kernel_args, *field.kernel_args)
    except ArithmeticError as e:
        raise ComputationPanicError(f"texture fill failed: {e}") from e

    if not np.isfinite(heights).all():
        bad = int(np.count_nonzero(~np.isfinite(heights)))
        raise ComputationPanicError(f"field produced {bad} non-finite samples; buffer left untouched")

    out_pixels[...] = pixels


class TextureGenerator:
    """Holds the dimensions, noise and color gradient of a terrain texture."""

    def __init__(self, width: int = DEFAULTS.DEFAULT_TEXTURE_WIDTH, height: int = DEFAULTS.DEFAULT_TEXTURE_HEIGHT,
                 noise: NoiseConfig = None, gradient: Gradient = None, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger(__name__)
        self.set_dim(width, height)
        self.noise = noise if noise is not None else NoiseConfig()
        self.gradient = gradient if gradient is not None else Gradient()
        self.logger.info(f"TextureGenerator initialized: {self.width}x{self.height}")

    @classmethod
    def from_settings(cls, settings: dict, logger: logging.Logger = None) -> "TextureGenerator":
        keys = [(key['color'], key['t']) for key in settings.get('color_keys', [])]
        return cls(
            width=settings.get('texture_width', DEFAULTS.DEFAULT_TEXTURE_WIDTH),
            height=settings.get('texture_height', DEFAULTS.DEFAULT_TEXTURE_HEIGHT),
            noise=NoiseConfig.from_settings(settings),
            gradient=Gradient.from_blend_flag(keys, settings.get('blend_linear', True)),
            logger=logger,
        )

    def set_dim(self, width: int, height: int) -> None:
        desc = get_texture_desc(width, height)
        self.width = desc.width
        self.height = desc.height
        self.logger.info(f"Texture dimensions set: {self.width}x{self.height}")

    def set_noise(self, **params) -> None:
        """Replaces the whole noise config. Unspecified parameters use the defaults."""
        self.noise = NoiseConfig(**params)
        self.logger.info(f"Texture noise set: {self.noise}")

    def set_color_gradient(self, keys, linear: bool) -> None:
        self.gradient = Gradient.from_blend_flag(keys, linear)
        self.logger.info(f"Texture gradient set: {len(self.gradient.keys)} keys, {self.gradient.blend_mode.name}")

    def texture_desc(self):
        return get_texture_desc(self.width, self.height)

    def allocate_buffer(self) -> np.ndarray:
        return allocate_texture_buffer(self.texture_desc())

    def fill(self, offset, pixels: np.ndarray, scale: float = 1.0) -> None:
        self.logger.debug(f"Filling texture buffer at offset {offset}")
        try:
            fill_texture(self.noise, self.gradient, self.width, self.height, scale, offset, pixels)
        except MeshgenError as e:
            self.logger.error(f"Texture fill failed: {e}")
            raise
