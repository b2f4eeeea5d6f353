"""
examples/run_free_precession.py
===============================
Tips one off-resonant voxel into the transverse plane with a hard pulse
and follows it through free precession with T1 recovery and T2 decay.

Usage:
    python examples/run_free_precession.py
"""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import matplotlib
matplotlib.use("Agg")
import numpy as np
from blochsim.core import sample_times
from blochsim.simulator import bloch
from blochsim.visualization import plot_bloch_sphere_trajectory, plot_time_course
from blochsim.waveforms import concatenate, hard_pulse

# ── Parameters ──────────────────────────────────────────────────────────────
dt     = 0.05    # ms
tp     = 0.5     # ms   – hard pulse length
t_free = 40.0    # ms   – free precession after the pulse
df     = 100.0   # Hz   – off-resonance
T1, T2 = 60.0, 15.0   # ms

# ── Waveforms ────────────────────────────────────────────────────────────────
rf = hard_pulse(np.pi / 2, tp, dt)
n_free = int(round(t_free / dt))
rf, g = concatenate(
    (rf, np.zeros((len(rf), 3))),
    (np.zeros(n_free, dtype=complex), np.zeros((n_free, 3))),
)

# ── Simulate ─────────────────────────────────────────────────────────────────
p = [[0.0, 0.0, 1], [0.0, 0.0, 1], [0.0, 0.0, 1]]
m = bloch(rf, g, p, dt, t1=T1, t2=T2, b0=df, time_course=True)[0, 0, 0]
t = sample_times(len(rf), dt)

# ── Quick verification prints ────────────────────────────────────────────────
print("=== Free precession ===")
i_end = len(t) - 1
print(f"  |Mxy| after pulse = {np.hypot(*m[:2, len(t) - n_free - 1]):.4f}   (expected ≈ 1)")
print(f"  |Mxy| at end      = {np.hypot(*m[:2, i_end]):.4f}   "
      f"(expected ≈ {np.exp(-t_free / T2):.4f})")
print(f"  Mz at end         = {m[2, i_end]:.4f}   "
      f"(expected ≈ {1 - np.exp(-t_free / T1):.4f})")

# ── Plot ─────────────────────────────────────────────────────────────────────
here = os.path.dirname(__file__)
plot_time_course(
    t, m,
    title=rf"Free Precession  ($\Delta f$ = {df:g} Hz, $T_2$ = {T2:g} ms)",
    save_path=os.path.join(here, "free_precession.png"),
)
plot_bloch_sphere_trajectory(
    m, rf=rf,
    title="Free Precession on the Bloch Sphere",
    save_path=os.path.join(here, "free_precession_sphere.png"),
)
print(f"\n  Plots saved → {here}")
