"""
grid.py - Spatial sampling grid.
================================

A grid is specified per axis by a row ``(lower, upper, count)``:

    | xl  xu  nx |
    | yl  yu  ny |
    | zl  zu  nz |

Positions along each axis are linearly spaced,

    r_i = lower + (upper - lower) * i / (count - 1),   i = 0 .. count-1

and an axis with ``count == 1`` sits exactly at ``lower`` (no division by
zero).  The realised grid is the Cartesian product of the three axes with
``ij`` indexing, so voxel ``[ix, iy, iz]`` is at ``(x[ix], y[iy], z[iz])``.
"""

from __future__ import annotations

import numpy as np
from typing import Tuple

from .errors import ConfigurationError


def _as_count(count, name: str = "count") -> int:
    """Return *count* as an int, or raise if it is not a positive integer."""
    value = float(count)
    if not np.isfinite(value) or value != np.floor(value):
        raise ConfigurationError(f"{name} must be an integer, got {count}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be >= 1, got {count}")
    return int(value)


def axis_positions(lower: float, upper: float, count) -> np.ndarray:
    """Return *count* linearly-spaced positions from *lower* to *upper*.

    Parameters
    ----------
    lower, upper : float   axis limits (cm); *upper* is included when count > 1
    count        : int     number of positions, >= 1

    Returns
    -------
    np.ndarray, shape ``(count,)``

    Examples
    --------
    >>> axis_positions(-1.0, 1.0, 5)
    array([-1. , -0.5,  0. ,  0.5,  1. ])
    >>> axis_positions(0.3, 9.0, 1)
    array([0.3])
    """
    n = _as_count(count)
    lower = float(lower)
    if n == 1:
        return np.array([lower])
    i = np.arange(n, dtype=float)
    return lower + (float(upper) - lower) * i / (n - 1)


def _as_grid(p) -> np.ndarray:
    p = np.asarray(p, dtype=float)
    if p.shape != (3, 3):
        raise ConfigurationError(
            f"grid array must have shape (3, 3) with rows (lower, upper, count), "
            f"got shape {p.shape}"
        )
    return p


def grid_shape(p) -> Tuple[int, int, int]:
    """Return ``(nx, ny, nz)`` for a ``(3, 3)`` grid array."""
    p = _as_grid(p)
    return tuple(_as_count(p[k, 2], name=f"{axis} count")
                 for k, axis in enumerate("xyz"))


def grid_axes(p) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return the x, y and z position vectors of a grid array."""
    p = _as_grid(p)
    nx, ny, nz = grid_shape(p)
    return (axis_positions(p[0, 0], p[0, 1], nx),
            axis_positions(p[1, 0], p[1, 1], ny),
            axis_positions(p[2, 0], p[2, 1], nz))


def voxel_positions(p) -> np.ndarray:
    """Return every voxel position as an ``(nx, ny, nz, 3)`` array."""
    x, y, z = grid_axes(p)
    X, Y, Z = np.meshgrid(x, y, z, indexing="ij")
    return np.stack([X, Y, Z], axis=-1)
