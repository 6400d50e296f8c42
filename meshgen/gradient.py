# meshgen/gradient.py

"""
================================================================================
KEYED COLOR GRADIENTS
================================================================================
This module maps normalized field values to RGBA8 colors through an ordered
list of color keys. It is a pure, stateless utility shared by the grid and
texture rasterizers.

Data Contract:
---------------
- Inputs:
    - keys: GradientKey stops in caller order. Sortedness is NOT assumed;
      an unsorted list gives the order-dependent result of the linear scan.
    - blend_mode: DISCRETE (right key color) or LINEAR (bounded blend).
    - t: The value to color. It does not need to be pre-clamped.
- Outputs:
    - An (r, g, b, a) tuple of ints in [0, 255].
- Side Effects: None.
- Invariants: An empty key list is the opaque black-to-white ramp.
================================================================================
"""

import math
import numbers
from dataclasses import dataclass, field
from enum import Enum

import numpy as np
from numba import njit

from . import config as DEFAULTS
from .errors import InvalidArgumentError

_BLACK = np.array(DEFAULTS.COLOR_BLACK, dtype=np.float64)
_WHITE = np.array(DEFAULTS.COLOR_WHITE, dtype=np.float64)


class BlendMode(Enum):
    DISCRETE = 0
    LINEAR = 1


@njit(cache=True)
def lerp_channel(c0, c1, t):
    """Bounded blend of one 8-bit channel, rounded half away from zero."""
    if not t >= 0.0:  # also catches NaN
        t = 0.0
    elif t > 1.0:
        t = 1.0
    v = c0 + (c1 - c0) * t
    if v < 0.0:
        v = 0.0
    elif v > 255.0:
        v = 255.0
    return int(math.floor(v + 0.5))


@njit(cache=True)
def write_gradient_color(key_colors, key_ts, linear, t, out, row):
    """Writes the gradient color for t into out[row, :4]."""
    n = key_ts.shape[0]
    if n == 0:
        for c in range(4):
            out[row, c] = lerp_channel(_BLACK[c], _WHITE[c], t)
        return

    # Keep the LAST segment whose left key lies below t.
    left = 0
    right = n - 1
    fraction = t
    for j in range(n - 1):
        if key_ts[j] < t:
            left = j
            right = j + 1
            span = key_ts[right] - key_ts[left]
            if span == 0.0:
                fraction = 1.0
            else:
                fraction = (t - key_ts[left]) / span

    if not linear:
        for c in range(4):
            out[row, c] = int(key_colors[right, c])
        return
    for c in range(4):
        out[row, c] = lerp_channel(key_colors[left, c], key_colors[right, c], fraction)


def _validate_color(color) -> tuple:
    try:
        channels = tuple(color)
    except TypeError:
        raise InvalidArgumentError(f"color must be an RGBA sequence, got {color!r}") from None
    if len(channels) != 4:
        raise InvalidArgumentError(f"color must have 4 channels, got {len(channels)}")
    for channel in channels:
        if isinstance(channel, bool) or not isinstance(channel, numbers.Integral) or not 0 <= channel <= 255:
            raise InvalidArgumentError(f"color channels must be integers in [0, 255], got {channels}")
    return tuple(int(c) for c in channels)


@dataclass(frozen=True)
class GradientKey:
    """One color stop. t is stored at float32 precision."""
    color: tuple
    t: float

    def __post_init__(self):
        object.__setattr__(self, 'color', _validate_color(self.color))
        if isinstance(self.t, bool) or not isinstance(self.t, numbers.Real) or not math.isfinite(self.t):
            raise InvalidArgumentError(f"gradient key position must be finite, got {self.t!r}")
        object.__setattr__(self, 't', float(np.float32(self.t)))


@dataclass(frozen=True)
class Gradient:
    keys: tuple = ()
    blend_mode: BlendMode = BlendMode.LINEAR

    key_colors: np.ndarray = field(init=False, repr=False, compare=False)
    key_ts: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        keys = tuple(k if isinstance(k, GradientKey) else GradientKey(*k) for k in self.keys)
        if not isinstance(self.blend_mode, BlendMode):
            raise InvalidArgumentError(f"blend_mode must be a BlendMode, got {self.blend_mode!r}")
        object.__setattr__(self, 'keys', keys)

        key_colors = np.array([k.color for k in keys], dtype=np.float64).reshape(len(keys), 4)
        key_ts = np.array([k.t for k in keys], dtype=np.float64)
        key_colors.setflags(write=False)
        key_ts.setflags(write=False)
        object.__setattr__(self, 'key_colors', key_colors)
        object.__setattr__(self, 'key_ts', key_ts)

    @classmethod
    def from_blend_flag(cls, keys, linear: bool) -> "Gradient":
        """Builds a gradient from a boolean blend switch (True = LINEAR)."""
        return cls(tuple(keys), BlendMode.LINEAR if linear else BlendMode.DISCRETE)

    @property
    def is_linear(self) -> bool:
        return self.blend_mode is BlendMode.LINEAR

    @property
    def kernel_args(self) -> tuple:
        return (self.key_colors, self.key_ts, self.is_linear)

    def color_at(self, t: float) -> tuple:
        out = np.zeros((1, 4), dtype=np.uint8)
        write_gradient_color(self.key_colors, self.key_ts, self.is_linear, float(t), out, 0)
        return tuple(int(c) for c in out[0])


DEFAULT_GRADIENT = Gradient()


def color_at(gradient, t: float) -> tuple:
    """Colors t with the gradient, or with the black-to-white ramp if it is None."""
    if gradient is None:
        gradient = DEFAULT_GRADIENT
    return gradient.color_at(t)


def lerp_bounded(color_from, color_to, t: float) -> tuple:
    """Channel-wise bounded blend between two RGBA8 colors."""
    color_from = _validate_color(color_from)
    color_to = _validate_color(color_to)
    return tuple(lerp_channel(float(c0), float(c1), float(t)) for c0, c1 in zip(color_from, color_to))
