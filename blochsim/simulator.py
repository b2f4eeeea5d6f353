"""
simulator.py - Voxel-grid Bloch simulation under the hard-pulse approximation.
==============================================================================

Entry points:
  - simulate       : full-grid simulation; every input given explicitly
  - simulate_voxel : one voxel, written as a fold of bloch_step over samples
  - bloch          : convenience wrapper that fills in default maps

Output layout:
  final state  : (nx, ny, nz, 3)        last dimension is [Mx, My, Mz]
  time course  : (nx, ny, nz, 3, nr)    out[..., ir] is the state after sample ir

Every voxel evolves independently; the sample loop is strictly sequential.
The voxels are advanced together, one sample at a time, as whole-grid
numpy operations.
"""

from __future__ import annotations

import logging
import time
from functools import reduce
from itertools import accumulate
from typing import Tuple

import numpy as np

from .core import GAMMA_H1, RELAXATION_DISABLED, bloch_step
from .errors import ConfigurationError
from .grid import grid_shape, voxel_positions

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Input checks
# ---------------------------------------------------------------------------

def _check_waveforms(rf, g) -> Tuple[np.ndarray, np.ndarray]:
    rf = np.asarray(rf, dtype=complex)
    if rf.ndim != 1:
        raise ConfigurationError(
            f"rf must be a 1-D sequence of samples, got shape {rf.shape}")
    nr = rf.shape[0]
    g = np.asarray(g, dtype=float)
    if g.shape != (nr, 3):
        raise ConfigurationError(
            f"gradients have shape {g.shape}, expected ({nr}, 3) "
            f"to match the {nr}-sample rf pulse")
    return rf, g


def _check_dt(dt) -> float:
    dt = float(dt)
    if not np.isfinite(dt) or dt <= 0:
        raise ConfigurationError(f"dt must be positive and finite, got {dt}")
    return dt


def _as_array(name: str, value, dtype=float) -> np.ndarray:
    arr = np.asarray(value)
    if dtype is not complex and np.iscomplexobj(arr):
        if np.any(arr.imag != 0):
            raise ConfigurationError(
                f"{name} must be real, got complex values")
        arr = arr.real
    return arr.astype(dtype, copy=False)


def _check_map(name: str, value, shape: Tuple[int, ...], dtype=float) -> np.ndarray:
    arr = _as_array(name, value, dtype)
    if arr.shape != shape:
        raise ConfigurationError(
            f"{name} has shape {arr.shape}, expected {shape} to match the grid")
    return arr


def _warn_negative(name: str, t: np.ndarray) -> None:
    bad = (t < 0) & (t != RELAXATION_DISABLED)
    if np.any(bad):
        logger.warning(
            "%s has %d negative value(s) other than the disabled marker %g; "
            "they are used as given", name, int(np.count_nonzero(bad)),
            RELAXATION_DISABLED)


# ===========================================================================
# Full grid
# ===========================================================================

def simulate(rf, g, p, dt: float, gam: float, m0, t1, t2, b0, b1,
             time_course: bool = False) -> np.ndarray:
    """Simulate every voxel of a grid through an RF/gradient waveform.

    Parameters
    ----------
    rf          : (nr,) complex array        RF pulse (G)
    g           : (nr, 3) array              gradients [Gx, Gy, Gz] (G/cm)
    p           : (3, 3) array               grid rows (lower, upper, count) (cm)
    dt          : float                      sample interval (ms)
    gam         : float                      gyromagnetic ratio (kHz/G)
    m0          : (nx, ny, nz, 3) array      initial magnetisation [Mx, My, Mz]
    t1, t2      : (nx, ny, nz) arrays        relaxation times (ms); -1 disables
    b0          : (nx, ny, nz) array         off-resonance (Hz)
    b1          : (nx, ny, nz) complex array B1 scale and phase
    time_course : bool                       record every sample (True) or
                                             only the final state (False)

    Returns
    -------
    np.ndarray
        ``(nx, ny, nz, 3)`` final magnetisation, or ``(nx, ny, nz, 3, nr)``
        when *time_course* is set.  ``out[..., -1]`` of a time course equals
        the final-state output for the same inputs.

    Raises
    ------
    ConfigurationError
        If any input shape disagrees with the pulse length or the grid, or a
        grid count is not a positive integer.  Raised before simulating.
    """
    rf, g = _check_waveforms(rf, g)
    dt = _check_dt(dt)
    shape = grid_shape(p)
    m0 = _check_map("m0", m0, shape + (3,))
    t1 = _check_map("t1", t1, shape)
    t2 = _check_map("t2", t2, shape)
    b0 = _check_map("b0", b0, shape)
    b1 = _check_map("b1", b1, shape, dtype=complex)
    _warn_negative("t1", t1)
    _warn_negative("t2", t2)

    nr = rf.shape[0]
    positions = voxel_positions(p)
    logger.debug("simulating %d voxels %s over %d samples (time_course=%s)",
                 int(np.prod(shape)), shape, nr, time_course)
    started = time.perf_counter()

    if time_course:
        out = np.empty(shape + (3, nr))

        def record(ir, m):
            out[..., ir] = m
    else:
        out = None

        def record(ir, m):
            pass

    m = m0.copy()
    for ir in range(nr):
        m = bloch_step(m, rf[ir], g[ir], positions, dt, gam,
                       t1=t1, t2=t2, b0=b0, b1=b1)
        record(ir, m)

    if not time_course:
        out = m

    logger.info("simulated %d samples on grid %s in %.3f s",
                nr, shape, time.perf_counter() - started)
    return out


# ===========================================================================
# Single voxel
# ===========================================================================

def simulate_voxel(m0, rf, g, position, dt: float, gam: float,
                   t1=None, t2=None, b0=0.0, b1=1.0,
                   time_course: bool = False) -> np.ndarray:
    """Simulate one voxel as a fold of :func:`bloch_step` over the samples.

    Parameters
    ----------
    m0       : (3,) array   initial magnetisation
    rf, g    : waveforms as in :func:`simulate`
    position : (3,) array   voxel position (cm)
    t1, t2   : float | None relaxation times (ms); None or -1 disables
    b0       : float        off-resonance (Hz)
    b1       : complex      B1 scale

    Returns
    -------
    (3,) final magnetisation, or (3, nr) when *time_course* is set.

    Raises
    ------
    ConfigurationError
        If a waveform or vector has the wrong shape, or t1, t2, b0 or b1 is
        not a scalar.
    """
    rf, g = _check_waveforms(rf, g)
    dt = _check_dt(dt)
    m0 = _check_map("m0", m0, (3,))
    position = _check_map("position", position, (3,))
    if t1 is not None:
        t1 = _check_map("t1", t1, ())
    if t2 is not None:
        t2 = _check_map("t2", t2, ())
    b0 = _check_map("b0", b0, ())
    b1 = _check_map("b1", b1, (), dtype=complex)

    def step(m, sample):
        rf_i, g_i = sample
        return bloch_step(m, rf_i, g_i, position, dt, gam,
                          t1=t1, t2=t2, b0=b0, b1=b1)

    samples = zip(rf, g)
    if not time_course:
        return reduce(step, samples, m0.copy())

    states = list(accumulate(samples, step, initial=m0))[1:]
    if not states:
        return np.empty((3, 0))
    return np.stack(states, axis=-1)


# ===========================================================================
# Convenience wrapper
# ===========================================================================

def _fill(name: str, value, default, shape: Tuple[int, ...], dtype=float) -> np.ndarray:
    arr = _as_array(name, default if value is None else value, dtype)
    try:
        return np.broadcast_to(arr, shape)
    except ValueError:
        raise ConfigurationError(
            f"{name} has shape {arr.shape}, which cannot cover the grid {shape}"
        ) from None


def bloch(rf, g, p, dt: float, gam: float = GAMMA_H1, m0=None, t1=None,
          t2=None, b0=None, b1=None, time_course: bool = False) -> np.ndarray:
    """Run :func:`simulate` with defaults for everything but the waveforms.

    Defaults
    --------
    gam : proton, 4.2576 kHz/G
    m0  : equilibrium [0, 0, 1]; a single 3-vector is used for every voxel
    t1  : relaxation disabled;  scalars apply to every voxel
    t2  : relaxation disabled;  scalars apply to every voxel
    b0  : 0 Hz;                 scalars apply to every voxel
    b1  : 1;                    scalars apply to every voxel

    A 1-D gradient of length nr is taken to be Gz alone.

    Examples
    --------
    >>> rf = np.full(10, 0.0587 + 0j)              # ~90° hard pulse, dt = 0.1
    >>> m = bloch(rf, np.zeros(10), [[0, 0, 1], [0, 0, 1], [0, 0, 1]], 0.1)
    >>> m.shape
    (1, 1, 1, 3)
    """
    g = np.asarray(g, dtype=float)
    if g.ndim == 1:
        gz = g
        g = np.zeros((gz.shape[0], 3))
        g[:, 2] = gz

    shape = grid_shape(p)
    m0 = _fill("m0", m0, [0.0, 0.0, 1.0], shape + (3,))
    t1 = _fill("t1", t1, RELAXATION_DISABLED, shape)
    t2 = _fill("t2", t2, RELAXATION_DISABLED, shape)
    b0 = _fill("b0", b0, 0.0, shape)
    b1 = _fill("b1", b1, 1.0, shape, dtype=complex)

    return simulate(rf, g, p, dt, gam, m0, t1, t2, b0, b1,
                    time_course=time_course)
