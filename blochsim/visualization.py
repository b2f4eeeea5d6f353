"""
visualization.py - Figures for simulated magnetisation.
=======================================================

  - plot_slice_profile           : |Mxy|, Mx, My, Mz along one spatial axis
  - plot_time_course             : components of one voxel vs time
  - plot_bloch_sphere_trajectory : one voxel time course on the unit sphere,
                                   with the RF-on samples marked

All functions return the matplotlib Figure and save it when *save_path*
is given.
"""

from __future__ import annotations

import numpy as np
import matplotlib.pyplot as plt
from mpl_toolkits.mplot3d import Axes3D          # noqa: F401 (registers 3d projection)
from mpl_toolkits.mplot3d.art3d import Line3DCollection
from typing import Optional


C_MX   = "#E63946"
C_MY   = "#2C7BB6"
C_MZ   = "#6A994E"
C_PERP = "#9B2226"


def _finish(fig: plt.Figure, save_path: Optional[str]) -> plt.Figure:
    fig.patch.set_facecolor("white")
    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
    return fig


def _style(ax, ylabel: str) -> None:
    ax.axhline(0, color="black", lw=0.6, alpha=0.4)
    ax.set_ylabel(ylabel, fontsize=11)
    ax.set_ylim(-1.15, 1.15)
    ax.legend(fontsize=8, loc="upper right", framealpha=0.85)
    ax.grid(True, linestyle="--", alpha=0.35)
    ax.set_facecolor("#F9F9F9")


# ---------------------------------------------------------------------------
# Spatial profile
# ---------------------------------------------------------------------------

def plot_slice_profile(
    positions: np.ndarray,
    m: np.ndarray,
    axis_label: str = "z (cm)",
    title: str = "Slice Profile",
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Two-panel profile of the final magnetisation along one axis.

    Parameters
    ----------
    positions  : (n,) array      positions along the profiled axis
    m          : (n, 3) array    magnetisation at each position, e.g.
                                 ``simulate(...)[0, 0, :, :]`` for a z profile
    axis_label : horizontal axis label
    title      : figure title
    save_path  : save PNG if given

    Panels
    ------
    Top    : transverse magnitude |Mxy| and longitudinal Mz
    Bottom : Mx and My (phase of the excited slice)
    """
    positions = np.asarray(positions, dtype=float)
    m = np.asarray(m, dtype=float)
    if m.shape != positions.shape + (3,):
        raise ValueError(
            f"m must have shape {positions.shape + (3,)}, got {m.shape}")

    m_perp = np.hypot(m[:, 0], m[:, 1])

    fig, (ax_mag, ax_xy) = plt.subplots(2, 1, figsize=(9, 6.5), sharex=True)
    fig.suptitle(title, fontsize=13, fontweight="bold")

    ax_mag.plot(positions, m_perp, color=C_PERP, lw=2.0,
                label=r"$|M_{xy}|$")
    ax_mag.plot(positions, m[:, 2], color=C_MZ, lw=1.6, ls="--",
                label=r"$M_z$")
    _style(ax_mag, "Magnetisation")

    ax_xy.plot(positions, m[:, 0], color=C_MX, lw=1.6, label=r"$M_x$")
    ax_xy.plot(positions, m[:, 1], color=C_MY, lw=1.6, label=r"$M_y$")
    _style(ax_xy, "Transverse")
    ax_xy.set_xlabel(axis_label, fontsize=11)

    return _finish(fig, save_path)


# ---------------------------------------------------------------------------
# Time course
# ---------------------------------------------------------------------------

def plot_time_course(
    t: np.ndarray,
    m: np.ndarray,
    time_unit: str = "ms",
    title: str = "Magnetisation Time Course",
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Plot Mx, My, Mz and |Mxy| of one voxel against time.

    Parameters
    ----------
    t : (nr,) array       sample times, e.g. ``core.sample_times(nr, dt)``
    m : (3, nr) array     one voxel of a time-course run, e.g.
                          ``simulate(..., time_course=True)[ix, iy, iz]``
    """
    t = np.asarray(t, dtype=float)
    m = np.asarray(m, dtype=float)
    if m.shape != (3,) + t.shape:
        raise ValueError(f"m must have shape {(3,) + t.shape}, got {m.shape}")

    fig, ax = plt.subplots(figsize=(10, 4.5))
    ax.plot(t, m[0], color=C_MX, lw=1.6, label=r"$M_x$")
    ax.plot(t, m[1], color=C_MY, lw=1.6, label=r"$M_y$")
    ax.plot(t, m[2], color=C_MZ, lw=2.0, label=r"$M_z$")
    ax.plot(t, np.hypot(m[0], m[1]), color=C_PERP, lw=1.4, ls=":",
            label=r"$|M_{xy}|$")
    _style(ax, "Magnetisation")
    ax.set_xlabel(f"Time  ({time_unit})", fontsize=11)
    ax.set_title(title, fontsize=13, fontweight="bold", pad=10)

    return _finish(fig, save_path)


# ---------------------------------------------------------------------------
# Bloch sphere
# ---------------------------------------------------------------------------

def _unit_sphere(ax) -> None:
    """Light wireframe sphere with the equator and the xz / yz meridians."""
    u, v = np.mgrid[0:2 * np.pi:25j, 0:np.pi:13j]
    ax.plot_wireframe(np.cos(u) * np.sin(v), np.sin(u) * np.sin(v), np.cos(v),
                      color="#BBBBBB", lw=0.4, alpha=0.35)
    s = np.linspace(0, 2 * np.pi, 181)
    zero = np.zeros_like(s)
    for circle in [(np.cos(s), np.sin(s), zero),
                   (np.cos(s), zero, np.sin(s)),
                   (zero, np.cos(s), np.sin(s))]:
        ax.plot(*circle, color="#888888", lw=0.7, alpha=0.5)

    for tip, label, c in zip(1.3 * np.eye(3), ["x", "y", "z"], [C_MX, C_MY, C_MZ]):
        ax.quiver(0, 0, 0, *tip, color=c, lw=1.2, arrow_length_ratio=0.1)
        ax.text(*(1.05 * tip), label, color=c, fontsize=11, fontweight="bold")


def plot_bloch_sphere_trajectory(
    m: np.ndarray,
    rf: Optional[np.ndarray] = None,
    title: str = "Bloch Sphere Trajectory",
    color_by_time: bool = True,
    save_path: Optional[str] = None,
    elev: float = 22,
    azim: float = -55,
) -> plt.Figure:
    """Draw one voxel's time course as a path on the unit sphere.

    Parameters
    ----------
    m             : (3, nr) array   one voxel of a time-course run, e.g.
                                    ``simulate(..., time_course=True)[ix, iy, iz]``
    rf            : (nr,) array     the RF waveform of that run; samples with
                                    non-zero RF are marked on the path
    color_by_time : colour the path by sample index (True) or draw it solid
    save_path     : save PNG if given
    elev, azim    : 3-D viewing angle in degrees
    """
    m = np.asarray(m, dtype=float)
    if m.ndim != 2 or m.shape[0] != 3:
        raise ValueError(f"m must have shape (3, nr), got {m.shape}")
    nr = m.shape[1]
    if nr == 0:
        raise ValueError("trajectory is empty")
    if rf is not None:
        rf = np.asarray(rf, dtype=complex)
        if rf.shape != (nr,):
            raise ValueError(f"rf must have shape ({nr},), got {rf.shape}")

    fig = plt.figure(figsize=(8, 7.5))
    ax = fig.add_subplot(111, projection="3d")
    _unit_sphere(ax)

    pts = m.T
    if color_by_time and nr > 1:
        path = Line3DCollection(np.stack([pts[:-1], pts[1:]], axis=1),
                                cmap="plasma_r", linewidths=1.8)
        path.set_array(np.arange(1, nr, dtype=float))
        ax.add_collection3d(path)
        cb = fig.colorbar(path, ax=ax, shrink=0.5, pad=0.05, aspect=18)
        cb.set_label("Sample", fontsize=9)
    else:
        ax.plot(*m, color=C_PERP, lw=1.8, alpha=0.85)

    if rf is not None and np.any(rf != 0):
        on = rf != 0
        ax.scatter(*m[:, on], s=10, color="#FF9F1C", depthshade=False,
                   label=f"RF on ({int(on.sum())} samples)")
    ax.scatter(*m[:, :1], s=45, marker="^", color="#2C7BB6", label="first sample")
    ax.scatter(*m[:, -1:], s=45, color="#1A1A2E", label="last sample")

    for set_lim in (ax.set_xlim, ax.set_ylim, ax.set_zlim):
        set_lim(-1.2, 1.2)
    ax.set_xlabel("Mx")
    ax.set_ylabel("My")
    ax.set_zlabel("Mz")
    ax.set_title(title, fontsize=12, fontweight="bold", pad=14)
    ax.view_init(elev=elev, azim=azim)
    ax.legend(fontsize=9, loc="upper left")

    return _finish(fig, save_path)
