# meshgen/noise.py

"""
================================================================================
BASE GRADIENT NOISE
================================================================================
This module provides the 2D Perlin noise primitive that every octave and
domain-warp tap of the fractal field samples. It is a pure, stateless utility.

Data Contract:
---------------
- Inputs:
    - p: A pre-shuffled, doubled NumPy permutation table (int array, 512).
    - x, y: Scalar sample coordinates.
- Outputs:
    - A float noise value in the range [-1, 1]. The value is 0 on lattice
      points and continuous everywhere.
- Side Effects: None.
- Invariants: The same table and coordinates always give the same value.
================================================================================
"""

import numpy as np
from numba import njit

from . import config as DEFAULTS

# Pre-defined gradient vectors for performance.
_GRADIENT_VECTORS = np.array([[0, 1], [0, -1], [1, 0], [-1, 0]])


def build_permutation_table(lattice_seed: int) -> np.ndarray:
    """Shuffles 0..255 with the lattice seed and doubles it to avoid wrapping."""
    p = np.arange(DEFAULTS.PERMUTATION_SIZE, dtype=np.int64)
    rng = np.random.default_rng(lattice_seed)
    rng.shuffle(p)
    table = np.concatenate([p, p])
    table.setflags(write=False)
    return table


@njit(cache=True)
def _lerp(a, b, x):
    "Linear interpolation."
    return a + x * (b - a)


@njit(cache=True)
def _fade(t):
    "6t^5 - 15t^4 + 10t^3"
    return t * t * t * (t * (t * 6 - 15) + 10)


@njit(cache=True)
def _gradient(h, x, y):
    """Calculates the dot product between a gradient vector and coordinates."""
    g = _GRADIENT_VECTORS[h % 4]
    # Use explicit indexing for Numba compatibility
    return g[0] * x + g[1] * y


@njit(cache=True)
def perlin_2d(p, x, y):
    """
    Samples single-octave 2D Perlin noise at (x, y).
    Octave summation lives in the fractal field, not here.
    Any finite coordinate is valid; non-finite ones give NaN.
    """
    if not (np.isfinite(x) and np.isfinite(y)):
        return np.nan

    x_floor = np.floor(x)
    y_floor = np.floor(y)

    xf = x - x_floor
    yf = y - y_floor

    u = _fade(xf)
    v = _fade(yf)

    # Wrap the lattice cell before converting, so huge coordinates never overflow int64.
    px0 = int(x_floor % 256.0)
    px1 = (px0 + 1) % 256
    py0 = int(y_floor % 256.0)
    py1 = (py0 + 1) % 256

    # Numba requires scalar indexing
    idx00 = p[p[px0] + py0]
    idx01 = p[p[px0] + py1]
    idx10 = p[p[px1] + py0]
    idx11 = p[p[px1] + py1]

    g00 = _gradient(idx00, xf, yf)
    g01 = _gradient(idx01, xf, yf - 1)
    g10 = _gradient(idx10, xf - 1, yf)
    g11 = _gradient(idx11, xf - 1, yf - 1)

    x1 = _lerp(g00, g10, u)
    x2 = _lerp(g01, g11, u)
    return _lerp(x1, x2, v)
