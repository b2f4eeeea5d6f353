"""
tests/test_core.py – Unit tests for the per-sample physics primitives.
======================================================================

Physics invariants under test:

  A. rodrigues_rotate  – norm preservation, identity, agreement with scipy
  B. rf_rotation       – flip angle, axis from RF and B1 phase, worked π/2 case
  C. precession        – angle formula, Mz untouched, rotation sense
  D. relax             – T2 decay, T1 recovery, disabled terms, T=0 limits
  E. bloch_step        – composition order
  F. helpers           – sample_times, transverse

Run with:  pytest tests/ -v
"""

import warnings

import numpy as np
import pytest
import sys, os
from scipy.spatial.transform import Rotation

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from blochsim.core import (
    RELAXATION_DISABLED,
    bloch_step,
    free_precession,
    precession_angle,
    relax,
    rf_flip_angle,
    rf_rotation,
    rodrigues_rotate,
    sample_times,
    transverse,
)


def _random_unit_vectors(n, seed=0):
    rng = np.random.default_rng(seed)
    v = rng.normal(size=(n, 3))
    return v / np.linalg.norm(v, axis=-1, keepdims=True)


# ---------------------------------------------------------------------------
# A. rodrigues_rotate
# ---------------------------------------------------------------------------

class TestRodriguesRotate:
    def test_quarter_turn_about_z(self):
        m = rodrigues_rotate([1.0, 0.0, 0.0], [0.0, 0.0, 1.0], np.pi / 2)
        assert np.allclose(m, [0.0, 1.0, 0.0], atol=1e-15)

    def test_zero_angle_is_identity(self):
        m = np.array([0.3, -0.5, 0.8])
        assert np.array_equal(rodrigues_rotate(m, [0.0, 1.0, 0.0], 0.0), m)

    def test_norm_preserved(self):
        m = _random_unit_vectors(200, seed=1)
        axis = _random_unit_vectors(200, seed=2)
        angle = np.random.default_rng(3).uniform(-10, 10, 200)
        out = rodrigues_rotate(m, axis, angle)
        assert np.allclose(np.linalg.norm(out, axis=-1), 1.0, atol=1e-14)

    def test_matches_scipy_rotation(self):
        m = _random_unit_vectors(50, seed=4)
        axis = _random_unit_vectors(50, seed=5)
        angle = np.random.default_rng(6).uniform(-np.pi, np.pi, 50)
        expected = Rotation.from_rotvec(axis * angle[:, None]).apply(m)
        assert np.allclose(rodrigues_rotate(m, axis, angle), expected, atol=1e-13)

    def test_full_turn_is_identity(self):
        m = np.array([0.3, 0.5, 0.8])
        out = rodrigues_rotate(m, [0.0, -1.0, 0.0], 2 * np.pi)
        assert np.allclose(out, m, atol=1e-14)


# ---------------------------------------------------------------------------
# B. rf_rotation
# ---------------------------------------------------------------------------

class TestRFRotation:
    def test_worked_example_pi_over_2(self):
        """γ·dt·|rf| = 1/4 gives a = π/2; phase 0 puts the axis along -x.

        Rodrigues with u = (-1, 0, 0):  u × ẑ = (0, 1, 0), so
        (0, 0, 1) → cos(π/2)·ẑ + sin(π/2)·(0, 1, 0) = (0, 1, 0).
        """
        m = rf_rotation([0.0, 0.0, 1.0], rf=0.25, dt=1.0, gam=1.0)
        assert np.allclose(m, [0.0, 1.0, 0.0], atol=1e-15)

    def test_flip_angle_formula(self):
        a = rf_flip_angle(0.3 + 0.4j, dt=0.01, gam=4.0, b1=2.0)
        assert np.isclose(a, 2 * np.pi * 4.0 * 0.01 * 0.5 * 2.0)

    def test_zero_rf_is_identity(self):
        m = _random_unit_vectors(20, seed=7)
        out = rf_rotation(m, rf=0.0, dt=0.1, gam=4.2576,
                          b1=np.exp(1j * np.linspace(0, 3, 20)))
        assert np.array_equal(out, m)

    def test_norm_preserved_any_rf_and_b1(self):
        rng = np.random.default_rng(8)
        m = _random_unit_vectors(100, seed=9)
        b1 = rng.uniform(0, 2, 100) * np.exp(1j * rng.uniform(-np.pi, np.pi, 100))
        for rf in [0.01, 0.2 - 0.7j, -1.3j, 5.0 + 5.0j]:
            out = rf_rotation(m, rf, dt=0.1, gam=4.2576, b1=b1)
            assert np.allclose(np.linalg.norm(out, axis=-1), 1.0, atol=1e-13)

    def test_rf_phase_sets_axis(self):
        """Phase π/2 gives axis -y, tipping +z onto -x."""
        m = rf_rotation([0.0, 0.0, 1.0], rf=0.25j, dt=1.0, gam=1.0)
        assert np.allclose(m, [-1.0, 0.0, 0.0], atol=1e-15)

    def test_b1_phase_adds_to_rf_phase(self):
        a = rf_rotation([0.0, 0.0, 1.0], rf=0.25j, dt=1.0, gam=1.0)
        b = rf_rotation([0.0, 0.0, 1.0], rf=0.25, dt=1.0, gam=1.0, b1=1j)
        assert np.allclose(a, b, atol=1e-15)

    def test_b1_magnitude_scales_flip(self):
        m = rf_rotation([0.0, 0.0, 1.0], rf=0.25, dt=1.0, gam=1.0, b1=0.5)
        assert np.isclose(m[2], np.cos(np.pi / 4))
        assert np.isclose(m[1], np.sin(np.pi / 4))

    def test_inversion(self):
        m = rf_rotation([0.0, 0.0, 1.0], rf=0.5, dt=1.0, gam=1.0)
        assert np.allclose(m, [0.0, 0.0, -1.0], atol=1e-15)


# ---------------------------------------------------------------------------
# C. Free precession
# ---------------------------------------------------------------------------

class TestPrecession:
    def test_angle_formula(self):
        g = [1.0, 2.0, 3.0]
        r = [0.5, 0.25, -1.0]
        b = precession_angle(g, r, dt=0.1, gam=2.0, b0=50.0)
        expected = 2 * np.pi * 2.0 * 0.1 * (0.5 + 0.5 - 3.0) + 2 * np.pi * 0.1 * 50.0 * 1e-3
        assert np.isclose(b, expected)

    def test_angle_over_grid(self):
        r = np.zeros((4, 2, 3, 3))
        r[..., 2] = np.linspace(-1, 1, 3)
        b = precession_angle([0.0, 0.0, 1.0], r, dt=1.0, gam=1.0)
        assert b.shape == (4, 2, 3)
        assert np.allclose(b[0, 0], 2 * np.pi * np.array([-1.0, 0.0, 1.0]))

    def test_mz_untouched(self):
        m = np.array([0.3, 0.4, -0.7])
        assert free_precession(m, 1.234)[2] == -0.7

    def test_transverse_magnitude_preserved(self):
        m = _random_unit_vectors(30, seed=10)
        out = free_precession(m, np.linspace(-5, 5, 30))
        assert np.allclose(np.hypot(out[:, 0], out[:, 1]), np.hypot(m[:, 0], m[:, 1]))

    def test_rotation_sense(self):
        """A positive angle decreases the phase of Mx + i·My."""
        out = free_precession([1.0, 0.0, 0.0], np.pi / 2)
        assert np.allclose(out, [0.0, -1.0, 0.0], atol=1e-15)


# ---------------------------------------------------------------------------
# D. Relaxation
# ---------------------------------------------------------------------------

class TestRelax:
    def test_t2_decay(self):
        out = relax([0.6, 0.8, 0.0], dt=1.0, t2=5.0)
        assert np.allclose(out[:2], np.array([0.6, 0.8]) * np.exp(-1.0 / 5.0))
        assert out[2] == 0.0

    def test_t1_recovery(self):
        out = relax([0.0, 0.0, -1.0], dt=2.0, t1=10.0)
        assert np.isclose(out[2], -1.0 + 2.0 * (1 - np.exp(-0.2)))

    def test_transverse_shrinks_and_mz_approaches_one(self):
        m = np.array([0.6, 0.8, 0.0])
        for _ in range(50):
            nxt = relax(m, dt=1.0, t1=20.0, t2=5.0)
            assert np.hypot(*nxt[:2]) < np.hypot(*m[:2])
            assert abs(1 - nxt[2]) < abs(1 - m[2])
            m = nxt

    def test_none_disables_everything(self):
        m = np.array([0.3, -0.2, 0.1])
        assert np.array_equal(relax(m, dt=1e6), m)

    @pytest.mark.parametrize("dt", [1e-6, 1.0, 1e9])
    def test_sentinel_disables(self, dt):
        m = np.array([0.3, -0.2, 0.1])
        out = relax(m, dt=dt, t1=RELAXATION_DISABLED, t2=RELAXATION_DISABLED)
        assert np.array_equal(out, m)

    def test_sentinel_per_voxel(self):
        m = np.tile([0.5, 0.5, 0.2], (3, 1))
        t1 = np.array([-1.0, 10.0, -1.0])
        t2 = np.array([-1.0, -1.0, 10.0])
        out = relax(m, dt=1.0, t1=t1, t2=t2)
        assert np.array_equal(out[0], m[0])
        assert np.array_equal(out[1, :2], m[1, :2]) and out[1, 2] > m[1, 2]
        assert out[2, 2] == m[2, 2] and out[2, 0] < m[2, 0]

    def test_zero_times_underflow_quietly(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            out = relax([0.6, 0.8, 0.2], dt=1.0, t1=0.0, t2=0.0)
        assert out[0] == 0.0 and out[1] == 0.0
        assert np.isclose(out[2], 1.0)


# ---------------------------------------------------------------------------
# E. bloch_step
# ---------------------------------------------------------------------------

class TestBlochStep:
    def test_order_rotation_precession_relaxation(self):
        kw = dict(dt=1.0, gam=1.0)
        m0 = np.array([0.0, 0.0, 1.0])
        g = np.array([0.0, 0.0, 0.1])
        r = np.array([0.0, 0.0, 1.0])
        expected = rf_rotation(m0, 0.25, b1=1.0, **kw)
        expected = free_precession(expected, precession_angle(g, r, b0=10.0, **kw))
        expected = relax(expected, 1.0, t1=7.0, t2=3.0)
        out = bloch_step(m0, 0.25, g, r, t1=7.0, t2=3.0, b0=10.0, b1=1.0, **kw)
        assert np.array_equal(out, expected)

    def test_equilibrium_without_rf_stays(self):
        out = bloch_step([0.0, 0.0, 1.0], 0.0, [1.0, 1.0, 1.0], [1.0, 2.0, 3.0],
                         dt=0.1, gam=4.2576, t1=100.0, t2=10.0, b0=30.0)
        assert np.allclose(out, [0.0, 0.0, 1.0], atol=1e-15)


# ---------------------------------------------------------------------------
# F. helpers
# ---------------------------------------------------------------------------

class TestHelpers:
    def test_sample_times(self):
        assert np.allclose(sample_times(4, 0.5), [0.5, 1.0, 1.5, 2.0])

    def test_sample_times_empty(self):
        assert sample_times(0, 0.1).shape == (0,)

    def test_sample_times_invalid(self):
        with pytest.raises(ValueError):
            sample_times(3, 0.0)
        with pytest.raises(ValueError):
            sample_times(-1, 0.1)

    def test_transverse(self):
        z = transverse(np.array([[1.0, 2.0, 3.0], [0.0, -1.0, 0.0]]))
        assert np.array_equal(z, [1.0 + 2.0j, -1.0j])
