"""
waveforms.py - RF and gradient waveforms for the simulator.
============================================================

Builders for the sampled inputs of :func:`blochsim.simulator.simulate`:
  - hard_pulse             : constant RF, exact flip angle under the hard-pulse model
  - sinc_pulse             : windowed sinc (slice-selective) RF
  - flip_angle             : nominal on-resonance flip of a sampled pulse
  - slice_gradient_amplitude : Gz for a given slice thickness
  - slice_select_gradient  : Gz plateau + half-area rephasing lobe
  - concatenate            : join (rf, g) segments in time

All waveforms are sampled at a uniform dt (ms); RF is complex (G),
gradients are (nr, 3) arrays of [Gx, Gy, Gz] (G/cm).
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np
from scipy.signal import windows

from .core import GAMMA_H1, TWO_PI

logger = logging.getLogger(__name__)


def _n_samples(duration: float, dt: float) -> int:
    if duration <= 0:
        raise ValueError(f"duration must be positive, got {duration}")
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")
    n = int(round(duration / dt))
    if n < 1:
        raise ValueError(f"duration ({duration}) is shorter than one sample (dt={dt})")
    return n


def flip_angle(rf, dt: float, gam: float = GAMMA_H1) -> float:
    """Nominal flip angle (rad) of *rf* applied on resonance.

    All samples rotate about the same transverse axis only when their
    phases agree (up to a sign), which is the case for real-valued pulses
    such as :func:`hard_pulse` and :func:`sinc_pulse`; the flip is then

        α = 2π · γ · dt · |Σ rf|
    """
    return float(TWO_PI * gam * dt * np.abs(np.sum(rf)))


# ===========================================================================
# RF pulses
# ===========================================================================

def hard_pulse(
    flip: float,
    duration: float,
    dt: float,
    gam: float = GAMMA_H1,
    phase: float = 0.0,
) -> np.ndarray:
    """Constant-amplitude RF pulse with total flip angle *flip*.

    Parameters
    ----------
    flip     : float   flip angle (rad), e.g. π/2 for excitation
    duration : float   pulse length (ms)
    dt       : float   sample interval (ms)
    gam      : float   gyromagnetic ratio (kHz/G)
    phase    : float   RF phase (rad); 0 rotates about -x

    Returns
    -------
    (nr,) complex np.ndarray  (G)

    Examples
    --------
    >>> rf = hard_pulse(np.pi / 2, duration=1.0, dt=0.1)
    >>> len(rf)
    10
    """
    n = _n_samples(duration, dt)
    amplitude = flip / (TWO_PI * gam * dt * n)
    logger.debug("hard pulse: %d samples, %.4g G", n, amplitude)
    return np.full(n, amplitude * np.exp(1j * phase))


def sinc_pulse(
    flip: float,
    duration: float,
    dt: float,
    tbw: float = 4.0,
    gam: float = GAMMA_H1,
    window: Optional[str] = "hamming",
    phase: float = 0.0,
) -> np.ndarray:
    """Windowed sinc pulse with time-bandwidth product *tbw*.

    The envelope is ``sinc(tbw · t/T)`` for t in [-T/2, T/2], apodised by a
    symmetric window from :mod:`scipy.signal.windows`, then scaled so that
    the on-resonance flip angle equals *flip*.

    Parameters
    ----------
    flip     : float        flip angle (rad)
    duration : float        pulse length T (ms)
    dt       : float        sample interval (ms)
    tbw      : float        time-bandwidth product (number of zero crossings)
    gam      : float        gyromagnetic ratio (kHz/G)
    window   : str | None   any name accepted by ``scipy.signal.windows.get_window``;
                            None for a bare sinc
    phase    : float        RF phase (rad)

    Returns
    -------
    (nr,) complex np.ndarray  (G)
    """
    if tbw <= 0:
        raise ValueError(f"tbw must be positive, got {tbw}")
    n = _n_samples(duration, dt)

    t = (np.arange(n) - (n - 1) / 2) / n
    envelope = np.sinc(tbw * t)
    if window is not None:
        envelope = envelope * windows.get_window(window, n, fftbins=False)

    area = np.sum(envelope)
    if area <= 0:
        raise ValueError(
            f"sinc envelope has non-positive area ({area:.3g}); "
            f"use more samples or a smaller tbw")

    rf = envelope / area * flip / (TWO_PI * gam * dt)
    logger.debug("sinc pulse: %d samples, tbw=%g, window=%s, peak %.4g G",
                 n, tbw, window, float(np.max(np.abs(rf))))
    return rf * np.exp(1j * phase)


# ===========================================================================
# Gradients
# ===========================================================================

def slice_gradient_amplitude(
    tbw: float,
    duration: float,
    thickness: float,
    gam: float = GAMMA_H1,
) -> float:
    """Gz (G/cm) that maps the pulse bandwidth tbw/T onto *thickness* (cm)."""
    if duration <= 0:
        raise ValueError(f"duration must be positive, got {duration}")
    if thickness <= 0:
        raise ValueError(f"thickness must be positive, got {thickness}")
    bandwidth = tbw / duration          # kHz
    return bandwidth / (gam * thickness)


def slice_select_gradient(
    rf,
    amplitude: float,
    rephase: bool = True,
    rephase_fraction: float = 0.5,
) -> Tuple[np.ndarray, np.ndarray]:
    """Pair *rf* with a constant Gz plateau and, optionally, a rephasing lobe.

    The rephasing lobe has opposite sign and ``rephase_fraction`` times the
    plateau area.  Half the area is the small-tip choice; it removes most of
    the linear phase across the slice, but a large-tip pulse is not exactly
    linear-phase and leaves some residual twist.  A fraction slightly above
    0.5 reduces that residual for a 90° sinc.  The RF is zero-padded to the
    same length.

    Parameters
    ----------
    rf               : (n,) complex array   RF pulse
    amplitude        : float                plateau Gz (G/cm)
    rephase          : bool                 append the rephasing lobe (default True)
    rephase_fraction : float                lobe area / plateau area (default 0.5)

    Returns
    -------
    rf_out : (nr,) complex np.ndarray
    g      : (nr, 3) np.ndarray       [0, 0, Gz] per sample
    """
    rf = np.asarray(rf, dtype=complex)
    n = rf.shape[0]
    if n < 1:
        raise ValueError("rf must contain at least one sample")
    if rephase_fraction <= 0:
        raise ValueError(f"rephase_fraction must be positive, got {rephase_fraction}")

    gz = np.full(n, float(amplitude))
    if rephase:
        n_re = int(np.ceil(n / 2))
        lobe = np.full(n_re, -amplitude * n * rephase_fraction / n_re)
        gz = np.concatenate([gz, lobe])
        rf = np.concatenate([rf, np.zeros(n_re, dtype=complex)])

    g = np.zeros((gz.shape[0], 3))
    g[:, 2] = gz
    return rf, g


def concatenate(*segments) -> Tuple[np.ndarray, np.ndarray]:
    """Join ``(rf, g)`` segments end to end.

    Examples
    --------
    >>> rf, g = concatenate((np.ones(3), np.zeros((3, 3))),
    ...                     (np.zeros(2), np.ones((2, 3))))
    >>> rf.shape, g.shape
    ((5,), (5, 3))
    """
    if not segments:
        raise ValueError("need at least one (rf, g) segment")
    rfs = []
    gs = []
    for k, (rf, g) in enumerate(segments):
        rf = np.asarray(rf, dtype=complex)
        g = np.asarray(g, dtype=float)
        if rf.ndim != 1 or g.shape != (rf.shape[0], 3):
            raise ValueError(
                f"segment {k}: rf shape {rf.shape} and gradient shape {g.shape} "
                f"do not match (expected (n,) and (n, 3))")
        rfs.append(rf)
        gs.append(g)
    return np.concatenate(rfs), np.concatenate(gs, axis=0)
