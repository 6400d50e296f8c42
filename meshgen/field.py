# meshgen/field.py

"""
================================================================================
FRACTAL TERRAIN FIELD
================================================================================
This module contains NoiseConfig, the immutable, seeded description of the
terrain height field, and the compiled kernels that evaluate it.

Data Contract:
---------------
- Inputs (on construction):
    - seed, scale, octaves, persistence, lacunarity, displacement: fractal
      parameters. Missing values fall back to meshgen.config.
    - a, bezier_from, bezier_to, bezier_curvature: contrast shaping parameters.
- Outputs (from methods):
    - evaluate(x, z): a float height, roughly in [0, 1].
    - evaluate_many(xs, zs): a NumPy array of heights with the input shape.
- Side Effects: Logs the derived bezier control polygon at DEBUG level.
- Invariants: Given the same constructor inputs the derived tables (offsets,
  permutation table, bezier curve) and every sampled value are identical.
  A config is never mutated; reconfiguring means building a new one.
================================================================================
"""

import logging
import math
import numbers
from dataclasses import dataclass, field

import numpy as np
from numba import njit, prange

from . import config as DEFAULTS
from .errors import InvalidArgumentError
from .noise import build_permutation_table, perlin_2d
from .shaping import build_bezier_curve, shape_height

logger = logging.getLogger(__name__)


@njit(cache=True, error_model="numpy")
def fractal_sample(x, z, p, scale, frequency, amplitude, offsets, max_sum, displacement, a, curve):
    """
    Sums every octave at (x, z), normalizes by the amplitude total and runs
    the result through the contrast shaper.
    """
    octaves = frequency.shape[0]
    total = 0.0
    for i in range(octaves):
        sample_x = x / scale * frequency[i] + offsets[i, 0]
        sample_z = z / scale * frequency[i] + offsets[i, 1]
        if displacement > 0.0:
            # The second tap sees the already displaced x.
            sample_x += displacement * perlin_2d(p, offsets[octaves, 0] + sample_x, offsets[octaves, 1] + sample_z)
            sample_z += displacement * perlin_2d(p, offsets[octaves + 1, 0] + sample_x, offsets[octaves + 1, 1] + sample_z)
        n = perlin_2d(p, sample_x, sample_z)
        total += (n + 1.0) / 2.0 * amplitude[i]

    if max_sum == 0.0:
        h_pre = 0.0
    else:
        h_pre = total / max_sum
    return shape_height(h_pre, a, curve)


@njit(cache=True, parallel=True, error_model="numpy")
def _fractal_many(xs, zs, out, p, scale, frequency, amplitude, offsets, max_sum, displacement, a, curve):
    for i in prange(xs.shape[0]):
        out[i] = fractal_sample(xs[i], zs[i], p, scale, frequency, amplitude, offsets, max_sum, displacement, a, curve)


def _require_finite(name: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidArgumentError(f"{name} must be a real number, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise InvalidArgumentError(f"{name} must be finite, got {value}")
    return value


def _require_point(name: str, value) -> tuple:
    try:
        px, py = value
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"{name} must be an (x, y) pair, got {value!r}") from None
    return (_require_finite(f"{name}.x", px), _require_finite(f"{name}.y", py))


def _require_count(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise InvalidArgumentError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidArgumentError(f"{name} must be non-negative, got {value}")
    return int(value)


@dataclass(frozen=True)
class NoiseConfig:
    """Seeded, precomputed parameters of the fractal terrain field."""

    seed: int = DEFAULTS.DEFAULT_SEED
    scale: float = DEFAULTS.DEFAULT_SCALE
    octaves: int = DEFAULTS.DEFAULT_OCTAVES
    persistence: float = DEFAULTS.DEFAULT_PERSISTENCE
    lacunarity: float = DEFAULTS.DEFAULT_LACUNARITY
    displacement: float = DEFAULTS.DEFAULT_DISPLACEMENT
    a: float = DEFAULTS.DEFAULT_BIAS_GAIN_A
    bezier_from: tuple = DEFAULTS.DEFAULT_BEZIER_FROM
    bezier_to: tuple = DEFAULTS.DEFAULT_BEZIER_TO
    bezier_curvature: float = DEFAULTS.DEFAULT_BEZIER_CURVATURE

    # --- Derived at construction ---
    amplitude: np.ndarray = field(init=False, repr=False, compare=False)
    frequency: np.ndarray = field(init=False, repr=False, compare=False)
    max_sum: float = field(init=False, repr=False, compare=False)
    offsets: np.ndarray = field(init=False, repr=False, compare=False)
    permutation_table: np.ndarray = field(init=False, repr=False, compare=False)
    bezier_curve: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        # --- Validate and normalize the inputs ---
        seed = _require_count("seed", self.seed)
        octaves = _require_count("octaves", self.octaves)
        scale = _require_finite("scale", self.scale)
        if scale == 0.0:
            raise InvalidArgumentError("scale must be non-zero")
        a = _require_finite("a", self.a)
        if not 0.0 < a < 1.0:
            raise InvalidArgumentError(f"a must lie strictly inside (0, 1), got {a}")

        normalized = {
            'seed': seed,
            'octaves': octaves,
            'scale': scale,
            'a': a,
            'persistence': _require_finite("persistence", self.persistence),
            'lacunarity': _require_finite("lacunarity", self.lacunarity),
            'displacement': _require_finite("displacement", self.displacement),
            'bezier_from': _require_point("bezier_from", self.bezier_from),
            'bezier_to': _require_point("bezier_to", self.bezier_to),
            'bezier_curvature': _require_finite("bezier_curvature", self.bezier_curvature),
        }
        for name, value in normalized.items():
            object.__setattr__(self, name, value)

        # --- Per-octave tables ---
        # Overflow is left to the fills, which reject non-finite heights.
        exponents = np.arange(octaves, dtype=np.float64)
        with np.errstate(over='ignore', invalid='ignore'):
            amplitude = np.power(self.persistence, exponents)
            frequency = np.power(self.lacunarity, exponents)
            max_sum = float(amplitude.sum())

        # --- Seeded stream: lattice seed first, then the offset pairs ---
        rng = np.random.default_rng(seed)
        lattice_seed = int(rng.integers(0, 2**32))
        offsets = rng.uniform(
            -DEFAULTS.OFFSET_RANGE, DEFAULTS.OFFSET_RANGE, size=(octaves + 2, 2)
        )

        curve = build_bezier_curve(self.bezier_from, self.bezier_to, self.bezier_curvature)
        logger.debug(f"Bezier bias control polygon: {curve.tolist()}")

        for array in (amplitude, frequency, offsets):
            array.setflags(write=False)

        object.__setattr__(self, 'amplitude', amplitude)
        object.__setattr__(self, 'frequency', frequency)
        object.__setattr__(self, 'max_sum', max_sum)
        object.__setattr__(self, 'offsets', offsets)
        object.__setattr__(self, 'permutation_table', build_permutation_table(lattice_seed))
        object.__setattr__(self, 'bezier_curve', curve)

    @classmethod
    def from_settings(cls, settings: dict) -> "NoiseConfig":
        """Builds a config from a user settings dict, falling back to the defaults."""
        return cls(
            seed=settings.get('seed', DEFAULTS.DEFAULT_SEED),
            scale=settings.get('scale', DEFAULTS.DEFAULT_SCALE),
            octaves=settings.get('octaves', DEFAULTS.DEFAULT_OCTAVES),
            persistence=settings.get('persistence', DEFAULTS.DEFAULT_PERSISTENCE),
            lacunarity=settings.get('lacunarity', DEFAULTS.DEFAULT_LACUNARITY),
            displacement=settings.get('displacement', DEFAULTS.DEFAULT_DISPLACEMENT),
            a=settings.get('a', DEFAULTS.DEFAULT_BIAS_GAIN_A),
            bezier_from=tuple(settings.get('bezier_from', DEFAULTS.DEFAULT_BEZIER_FROM)),
            bezier_to=tuple(settings.get('bezier_to', DEFAULTS.DEFAULT_BEZIER_TO)),
            bezier_curvature=settings.get('bezier_curvature', DEFAULTS.DEFAULT_BEZIER_CURVATURE),
        )

    @property
    def kernel_args(self) -> tuple:
        """The read-only parameter block every field kernel takes after (x, z)."""
        return (
            self.permutation_table,
            self.scale,
            self.frequency,
            self.amplitude,
            self.offsets,
            self.max_sum,
            self.displacement,
            self.a,
            self.bezier_curve,
        )

    def evaluate(self, x: float, z: float) -> float:
        """
        Samples the shaped height at a single world position. Coordinates
        must be finite. With finite octave tables and a finite x / scale the
        result is finite too. Far from the origin the lattice wraps with
        period 256 and the fractional part loses precision.
        """
        x = _require_finite("x", x)
        z = _require_finite("z", z)
        return float(fractal_sample(x, z, *self.kernel_args))

    def evaluate_many(self, xs: np.ndarray, zs: np.ndarray) -> np.ndarray:
        """Samples the field at every (xs[i], zs[i]) pair in parallel."""
        xs = np.asarray(xs, dtype=np.float64)
        zs = np.asarray(zs, dtype=np.float64)
        if xs.shape != zs.shape:
            raise InvalidArgumentError(f"coordinate shapes differ: {xs.shape} vs {zs.shape}")
        if not (np.isfinite(xs).all() and np.isfinite(zs).all()):
            raise InvalidArgumentError("sample coordinates must be finite")
        out = np.empty(xs.size, dtype=np.float64)
        _fractal_many(np.ascontiguousarray(xs).ravel(), np.ascontiguousarray(zs).ravel(), out, *self.kernel_args)
        return out.reshape(xs.shape)
