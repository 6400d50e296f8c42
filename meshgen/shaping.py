# meshgen/shaping.py

"""
================================================================================
CONTRAST SHAPING CURVES
================================================================================
Remaps a normalized fractal sum before it becomes a height. Two stages are
composed: a bias/gain S-curve controlled by a single scalar `a`, then a
bezier bias that reshapes a bounded mid-range window between two anchors.

Data Contract:
---------------
- Inputs:
    - h: A normalized height, nominally in [0, 1].
    - a: The bias/gain control parameter, strictly inside (0, 1).
    - curve: A (4, 2) float array holding the cubic control polygon
      [from, ctrl1, ctrl2, to], as built by build_bezier_curve().
- Outputs:
    - The remapped height. [0, 1] maps onto [0, 1] for valid parameters.
- Side Effects: None.
================================================================================
"""

import numpy as np
from numba import njit

from .errors import InvalidArgumentError


@njit(cache=True, error_model="numpy")
def bias(h, a):
    """Schlick's bias. a=0.5 is the identity."""
    return h / ((1.0 / a - 2.0) * (1.0 - h) + 1.0)


@njit(cache=True, error_model="numpy")
def gain(h, a):
    """Mirrored bias: an S-curve through (0.5, 0.5)."""
    if h < 0.5:
        return bias(2.0 * h, a) / 2.0
    return (bias(2.0 * h - 1.0, 1.0 - a) + 1.0) / 2.0


@njit(cache=True, error_model="numpy")
def cubic_bezier_y(curve, t):
    """y coordinate of the cubic at parameter t."""
    mt = 1.0 - t
    return (
        mt * mt * mt * curve[0, 1]
        + 3.0 * mt * mt * t * curve[1, 1]
        + 3.0 * mt * t * t * curve[2, 1]
        + t * t * t * curve[3, 1]
    )


@njit(cache=True, error_model="numpy")
def bezier_bias(h, curve):
    """
    Straight lines outside [from.x, to.x], the cubic inside.
    The cubic parameter is the normalized x fraction, not the inverse of the
    curve's x component.
    """
    from_x = curve[0, 0]
    from_y = curve[0, 1]
    to_x = curve[3, 0]
    to_y = curve[3, 1]
    if h < from_x:
        return h * from_y / from_x
    if h > to_x:
        return (h - to_x) * (1.0 - to_y) / (1.0 - to_x) + to_y
    return cubic_bezier_y(curve, (h - from_x) / (to_x - from_x))


@njit(cache=True, error_model="numpy")
def shape_height(h, a, curve):
    """Full contrast pipeline: gain first, then the bezier window."""
    return bezier_bias(gain(h, a), curve)


def build_bezier_curve(bezier_from, bezier_to, curvature: float) -> np.ndarray:
    """
    Derives the two interior control points of the bias curve.

    The line through the origin and `from` is intersected with the line through
    `to` and (1, 1); each interior point slides from its anchor toward that
    corner by `curvature` (clamped to [0, 1]).
    """
    from_x, from_y = float(bezier_from[0]), float(bezier_from[1])
    to_x, to_y = float(bezier_to[0]), float(bezier_to[1])

    if from_x == 0.0:
        raise InvalidArgumentError("bezier_from.x must be non-zero")
    if to_x == 1.0:
        raise InvalidArgumentError("bezier_to.x must differ from 1.0")
    if from_x == to_x:
        raise InvalidArgumentError("bezier_from.x and bezier_to.x must differ")

    m_from = from_y / from_x
    m_to = (1.0 - to_y) / (1.0 - to_x)
    if m_from == m_to:
        raise InvalidArgumentError(
            f"bezier anchor slopes are parallel ({m_from}); no corner point exists"
        )

    c_x = (-m_to * to_x + to_y) / (m_from - m_to)
    c_y = m_from * c_x

    f = min(max(float(curvature), 0.0), 1.0)
    ctrl1 = (from_x + (c_x - from_x) * f, from_y + (c_y - from_y) * f)
    ctrl2 = (to_x + (c_x - to_x) * f, to_y + (c_y - to_y) * f)

    curve = np.array([[from_x, from_y], ctrl1, ctrl2, [to_x, to_y]], dtype=np.float64)
    curve.setflags(write=False)
    return curve
