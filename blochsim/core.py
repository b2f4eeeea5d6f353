"""
core.py - Hard-pulse Bloch physics primitives.
==============================================

Each RF/gradient sample of length dt is applied to the magnetisation
M = [Mx, My, Mz] as three instantaneous operations:

  1. RF rotation (hard-pulse approximation)
       a     = 2π · γ · dt · |rf| · |b1|
       phase = arg(rf) + arg(b1)
       u     = [-cos(phase), -sin(phase), 0]
       M    ← R(u, a) · M          (Rodrigues axis-angle rotation)

  2. Free precession about z
       b   = 2π · γ · dt · (G · r)  +  2π · dt · Δf · 1e-3
       Mx ←  cos(b)·Mx + sin(b)·My
       My ← -sin(b)·Mx + cos(b)·My

  3. Relaxation
       Mx, My ← Mx, My · exp(-dt/T2)
       Mz     ← Mz + (1 - Mz) · (1 - exp(-dt/T1))

Units: rf in G, G in G/cm, r in cm, dt in ms, γ in kHz/G, Δf (B0) in Hz,
T1 and T2 in ms.  The 1e-3 factor reconciles Hz with 1/ms.

Key invariants:
  rotation only    → |M| unchanged (to machine precision)
  rf = 0           → step 1 is the identity
  T1 / T2 disabled → Mz / (Mx, My) untouched by step 3
  T1, T2 > 0       → |M_perp| shrinks, Mz → 1

Every function accepts magnetisation arrays of shape (..., 3) and
broadcasts its other arguments against the leading axes, so one call
handles a single spin or a whole voxel grid.
"""

from __future__ import annotations

import numpy as np


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TWO_PI = 2 * np.pi

# Relaxation time meaning "no relaxation" for that voxel/parameter.
RELAXATION_DISABLED = -1.0

# B0 maps are in Hz while dt is in ms.
B0_SCALE = 1e-3

# Proton gyromagnetic ratio, kHz/G.
GAMMA_H1 = 4.2576


# ---------------------------------------------------------------------------
# Time axis
# ---------------------------------------------------------------------------

def sample_times(nr: int, dt: float) -> np.ndarray:
    """Return the time at the end of each of *nr* samples: ``(ir + 1) * dt``.

    These are the times at which the time-course output of the simulator
    is recorded.

    Examples
    --------
    >>> sample_times(4, 0.5)
    array([0.5, 1. , 1.5, 2. ])
    """
    if nr < 0:
        raise ValueError(f"nr must be non-negative, got {nr}")
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")
    return dt * np.arange(1, nr + 1, dtype=float)


def transverse(m) -> np.ndarray:
    """Complex transverse magnetisation Mx + i·My of a (..., 3) array."""
    m = np.asarray(m, dtype=float)
    return m[..., 0] + 1j * m[..., 1]


# ===========================================================================
# Step 1 - RF rotation
# ===========================================================================

def rodrigues_rotate(m, axis, angle) -> np.ndarray:
    """Rotate *m* by *angle* about the unit vector *axis*.

    Closed-form Rodrigues rotation:

        m' = m cos(a) + (u × m) sin(a) + u (u · m)(1 - cos(a))

    Parameters
    ----------
    m     : (..., 3) array   vectors to rotate
    axis  : (..., 3) array   unit rotation axes (right-hand rule)
    angle : (...) array      rotation angles in radians

    Returns
    -------
    (..., 3) np.ndarray

    Examples
    --------
    >>> rodrigues_rotate([1., 0., 0.], [0., 0., 1.], np.pi / 2).round(12)
    array([0., 1., 0.])
    """
    m = np.asarray(m, dtype=float)
    axis = np.asarray(axis, dtype=float)
    angle = np.asarray(angle, dtype=float)[..., np.newaxis]

    c = np.cos(angle)
    s = np.sin(angle)
    u_dot_m = np.sum(axis * m, axis=-1, keepdims=True)
    return m * c + np.cross(axis, m) * s + axis * u_dot_m * (1 - c)


def rf_flip_angle(rf, dt: float, gam: float, b1=1.0) -> np.ndarray:
    """Flip angle imparted by one RF sample: ``2π · γ · dt · |rf| · |b1|``."""
    return TWO_PI * gam * dt * np.abs(rf) * np.abs(b1)


def rf_rotation(m, rf, dt: float, gam: float, b1=1.0) -> np.ndarray:
    """Apply the instantaneous rotation of one RF sample.

    The whole sample is treated as a single rotation (hard-pulse
    approximation) about a transverse axis set by the RF phase and the
    local B1 phase.

    Parameters
    ----------
    m   : (..., 3) array   magnetisation [Mx, My, Mz]
    rf  : complex          RF sample (G)
    dt  : float            sample interval (ms)
    gam : float            gyromagnetic ratio (kHz/G)
    b1  : complex array    local B1 scale/phase, broadcast against m[..., 0]

    Returns
    -------
    (..., 3) np.ndarray
        Rotated magnetisation, same norm as *m*.
    """
    rf = np.asarray(rf, dtype=complex)
    b1 = np.asarray(b1, dtype=complex)

    phase = np.angle(rf) + np.angle(b1)
    a = rf_flip_angle(rf, dt, gam, b1)
    axis = np.stack([-np.cos(phase), -np.sin(phase), np.zeros_like(phase)],
                    axis=-1)
    return rodrigues_rotate(m, axis, a)


# ===========================================================================
# Step 2 - Free precession
# ===========================================================================

def precession_angle(g, position, dt: float, gam: float, b0=0.0) -> np.ndarray:
    """In-plane phase accrued over one sample from gradients and B0.

    Parameters
    ----------
    g        : (3,) array        gradient sample [Gx, Gy, Gz] (G/cm)
    position : (..., 3) array    voxel positions [x, y, z] (cm)
    dt       : float             sample interval (ms)
    gam      : float             gyromagnetic ratio (kHz/G)
    b0       : (...) array       off-resonance (Hz)

    Returns
    -------
    (...) np.ndarray   angle in radians
    """
    g = np.asarray(g, dtype=float)
    position = np.asarray(position, dtype=float)
    b0 = np.asarray(b0, dtype=float)
    return (TWO_PI * gam * dt * np.sum(g * position, axis=-1)
            + TWO_PI * dt * b0 * B0_SCALE)


def free_precession(m, angle) -> np.ndarray:
    """Rotate (Mx, My) by *angle* about z; Mz is carried through unchanged.

    A positive angle turns the transverse vector clockwise when viewed
    from +z, i.e. the phase of Mx + i·My decreases by *angle*.
    """
    m = np.asarray(m, dtype=float)
    c = np.cos(angle)
    s = np.sin(angle)
    mx, my, mz = m[..., 0], m[..., 1], m[..., 2]
    return np.stack(np.broadcast_arrays(c * mx + s * my,
                                        -s * mx + c * my,
                                        mz), axis=-1)


# ===========================================================================
# Step 3 - Relaxation
# ===========================================================================

def _decay(dt: float, t) -> np.ndarray:
    """exp(-dt / t), with exactly 1 wherever *t* is the disabled sentinel."""
    t = np.asarray(t, dtype=float)
    # t == 0 underflows to a factor of 0; that is the intended limit.
    with np.errstate(divide="ignore", over="ignore", invalid="ignore"):
        e = np.exp(-dt / t)
    return np.where(t == RELAXATION_DISABLED, 1.0, e)


def relax(m, dt: float, t1=None, t2=None) -> np.ndarray:
    """Apply one sample of T2 decay and T1 recovery toward Mz = 1.

    Parameters
    ----------
    m   : (..., 3) array        magnetisation [Mx, My, Mz]
    dt  : float                 sample interval (ms)
    t1  : float | array | None  longitudinal relaxation time(s) (ms)
    t2  : float | array | None  transverse relaxation time(s) (ms)

    ``None`` disables the corresponding term everywhere; inside an array
    the value ``RELAXATION_DISABLED`` (-1) disables it for that voxel.
    Disabled components are returned bit-for-bit unchanged.

    Returns
    -------
    (..., 3) np.ndarray
    """
    m = np.asarray(m, dtype=float)
    mx, my, mz = m[..., 0], m[..., 1], m[..., 2]

    if t2 is not None:
        e2 = _decay(dt, t2)
        mx = mx * e2
        my = my * e2
    if t1 is not None:
        e1 = _decay(dt, t1)
        mz = mz + (1 - mz) * (1 - e1)

    return np.stack(np.broadcast_arrays(mx, my, mz), axis=-1)


# ===========================================================================
# One full sample
# ===========================================================================

def bloch_step(m, rf, g, position, dt: float, gam: float,
               t1=None, t2=None, b0=0.0, b1=1.0) -> np.ndarray:
    """Advance the magnetisation by one RF/gradient sample.

    RF rotation, then free precession, then relaxation.  The rotation is
    rebuilt from its angle and axis on every call; nothing is carried over
    between samples except the returned magnetisation.

    Parameters
    ----------
    m        : (..., 3) array   magnetisation before the sample
    rf       : complex          RF sample (G)
    g        : (3,) array       gradient sample (G/cm)
    position : (..., 3) array   voxel positions (cm)
    dt       : float            sample interval (ms)
    gam      : float            gyromagnetic ratio (kHz/G)
    t1, t2   : relaxation times (ms), ``None`` or -1 to disable
    b0       : off-resonance (Hz)
    b1       : complex B1 scale

    Returns
    -------
    (..., 3) np.ndarray   magnetisation after the sample
    """
    m = rf_rotation(m, rf, dt, gam, b1)
    m = free_precession(m, precession_angle(g, position, dt, gam, b0))
    return relax(m, dt, t1, t2)
