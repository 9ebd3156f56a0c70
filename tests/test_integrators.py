"""Tests for the fixed-step integrators: rk4_step, Rk4, Rk4s and Adams4."""

import jax.numpy as jnp
import pytest

from orbprop.duration import Duration
from orbprop.dynamics import EquationsOfMotion, EvalMethod, GravityJn
from orbprop.epoch import Epoch
from orbprop.errors import ConfigurationError
from orbprop.integrators import (
    DEFAULT_STEP_MINUTES,
    Adams4,
    Integrator,
    Rk4,
    Rk4s,
    StepDirection,
    rk4_step,
)
from orbprop.integrators.adams4 import HISTORY_LENGTH

_EPC = Epoch(2451545.0)
_X_LEO = jnp.array([1.1, 0.0, 0.0, 0.0, 0.95, 0.1])
_X_ECC = jnp.array([1.1, 0.0, 0.0, 0.0, 1.2, 0.2])


def _energy(x):
    return 0.5 * jnp.dot(x[3:], x[3:]) - 1.0 / jnp.linalg.norm(x[:3])


def _momentum(x):
    return jnp.cross(x[:3], x[3:])


def _point_mass():
    return EquationsOfMotion(GravityJn(1))


class RecordingForce:
    """Zero force model that records the evaluation tags it receives."""

    def __init__(self):
        self.methods = []

    def acceleration(self, epc, state, method=EvalMethod.PREDICTOR):
        self.methods.append(method)
        return jnp.zeros(3)


# ──────────────────────────────────────────────
# Functional kernel
# ──────────────────────────────────────────────

class TestRk4Step:
    def test_harmonic_oscillator(self):
        """One step of x'' = -x matches cos/sin to fifth order."""
        def harmonic(t, x):
            return jnp.array([x[1], -x[0]])

        result = rk4_step(harmonic, 0.0, jnp.array([1.0, 0.0]), 0.1)
        assert float(result.state[0]) == pytest.approx(jnp.cos(0.1), abs=1e-7)
        assert float(result.state[1]) == pytest.approx(-jnp.sin(0.1), abs=1e-7)
        assert result.dt_used == 0.1
        assert result.dt_next == 0.1

    def test_known_derivative_not_recomputed(self):
        calls = []

        def decay(t, x):
            calls.append(t)
            return -x

        rk4_step(decay, 0.0, jnp.array([1.0]), 0.1, dx=jnp.array([-1.0]))
        assert len(calls) == 3

    def test_epoch_time(self):
        """Epoch and Duration work as the time type."""
        seen = []

        def const(t, x):
            seen.append(t)
            return jnp.ones_like(x)

        step = Duration.from_tu(0.5)
        result = rk4_step(const, _EPC, jnp.zeros(2), step)
        assert jnp.allclose(result.state, jnp.full(2, 0.5))
        assert bool(seen[-1] == _EPC + step)


# ──────────────────────────────────────────────
# Rk4
# ──────────────────────────────────────────────

class TestRk4:
    def test_protocol(self):
        rk = Rk4(_point_mass(), Duration.from_minutes(1.0), _EPC, _X_LEO)
        assert isinstance(rk, Integrator)

    def test_conserves_energy_and_momentum(self):
        rk = Rk4(_point_mass(), Duration.from_minutes(0.5), _EPC, _X_LEO)
        for _ in range(100):
            rk.advance()
        x = rk.state()
        assert float(_energy(x)) == pytest.approx(float(_energy(_X_LEO)), rel=1e-7)
        assert jnp.allclose(_momentum(x), _momentum(_X_LEO), rtol=1e-7, atol=1e-12)

    def test_time_advances_by_step(self):
        rk = Rk4(_point_mass(), Duration.from_minutes(1.0), _EPC, _X_LEO)
        for _ in range(10):
            epc = rk.advance()
        assert float((epc - _EPC).minutes) == pytest.approx(10.0, rel=1e-12)
        assert bool(rk.time() == epc)

    def test_derivative_consistent_with_state(self):
        eom = _point_mass()
        rk = Rk4(eom, Duration.from_minutes(1.0), _EPC, _X_LEO)
        rk.advance()
        assert jnp.allclose(rk.derivative(), eom(rk.time(), rk.state()), rtol=1e-15)

    def test_zero_step_uses_default(self):
        rk = Rk4(_point_mass(), Duration(0.0), _EPC, _X_LEO)
        assert float(rk.step_size.minutes) == pytest.approx(DEFAULT_STEP_MINUTES)

    def test_step_must_be_duration(self):
        with pytest.raises(ConfigurationError):
            Rk4(_point_mass(), 1.0, _EPC, _X_LEO)

    def test_state_shape_checked(self):
        with pytest.raises(ConfigurationError):
            Rk4(_point_mass(), Duration.from_minutes(1.0), _EPC, jnp.ones(4))

    def test_reset(self):
        rk = Rk4(_point_mass(), Duration.from_minutes(1.0), _EPC, _X_LEO)
        for _ in range(5):
            rk.advance()
        rk.reset()
        assert bool(rk.time() == _EPC)
        assert jnp.array_equal(rk.state(), _X_LEO)
        assert rk.step_direction is StepDirection.FORWARD

    def test_reset_and_reverse(self):
        rk = Rk4(_point_mass(), Duration.from_minutes(1.0), _EPC, _X_LEO)
        rk.advance()
        rk.reset_and_reverse()
        assert rk.step_direction is StepDirection.BACKWARD
        assert bool(rk.advance() < _EPC)

    def test_forward_backward_round_trip(self):
        dt = Duration.from_minutes(0.5)
        forward = Rk4(_point_mass(), dt, _EPC, _X_LEO)
        for _ in range(60):
            forward.advance()

        backward = Rk4(_point_mass(), -dt, forward.time(), forward.state())
        for _ in range(60):
            backward.advance()
        assert float((backward.time() - _EPC).seconds) == pytest.approx(0.0, abs=1e-6)
        # RK4 is not time-symmetric; the round trip leaves a few 1e-9 behind
        assert jnp.allclose(backward.state(), _X_LEO, atol=1e-8)


# ──────────────────────────────────────────────
# Rk4s
# ──────────────────────────────────────────────

class TestRk4s:
    def test_default_step(self):
        rk = Rk4s(_point_mass(), _EPC, _X_ECC)
        assert rk.step_size == pytest.approx(rk.regularization.max_step() / 16.0)
        assert rk.step_direction is StepDirection.FORWARD

    def test_conserves_energy_and_momentum(self):
        rk = Rk4s(_point_mass(), _EPC, _X_ECC)
        rk = Rk4s(_point_mass(), _EPC, _X_ECC, ds=rk.regularization.max_step())
        for _ in range(120):
            rk.advance()
        x = rk.state()
        assert float(_energy(x)) == pytest.approx(float(_energy(_X_ECC)), rel=1e-6)
        assert jnp.allclose(_momentum(x), _momentum(_X_ECC), rtol=1e-6, atol=1e-10)

    def test_physical_step_longer_at_apoapsis(self):
        """Equal regularized steps cover more time far from the body."""
        rk = Rk4s(_point_mass(), _EPC, _X_ECC)
        rk = Rk4s(_point_mass(), _EPC, _X_ECC, ds=rk.regularization.max_step())
        t0 = rk.time()
        t1 = rk.advance()
        dt_periapsis = float((t1 - t0).tu)
        for _ in range(59):
            rk.advance()
        t_before = rk.time()
        dt_apoapsis = float((rk.advance() - t_before).tu)
        assert dt_apoapsis > 2.0 * dt_periapsis

    def test_derivative_consistent_with_state(self):
        eom = _point_mass()
        rk = Rk4s(eom, _EPC, _X_ECC)
        rk.advance()
        assert jnp.allclose(rk.derivative(), eom(rk.time(), rk.state()), rtol=1e-14)

    def test_zero_step_rejected(self):
        with pytest.raises(ConfigurationError):
            Rk4s(_point_mass(), _EPC, _X_ECC, ds=0.0)

    def test_hyperbolic_rejected(self):
        with pytest.raises(ConfigurationError):
            Rk4s(_point_mass(), _EPC, jnp.array([1.1, 0.0, 0.0, 0.0, 2.0, 0.0]))

    def test_reset_and_reverse(self):
        rk = Rk4s(_point_mass(), _EPC, _X_ECC)
        for _ in range(3):
            rk.advance()
        rk.reset_and_reverse()
        assert bool(rk.time() == _EPC)
        assert rk.step_direction is StepDirection.BACKWARD
        assert bool(rk.advance() < _EPC)

    def test_forward_backward_round_trip(self):
        forward = Rk4s(_point_mass(), _EPC, _X_ECC)
        for _ in range(40):
            forward.advance()

        backward = Rk4s(_point_mass(), forward.time(), forward.state(), ds=-forward.step_size)
        for _ in range(40):
            backward.advance()
        # The regularized variable depends only on the orbit, so the grids coincide
        assert float((backward.time() - _EPC).seconds) == pytest.approx(0.0, abs=1e-6)
        assert jnp.allclose(backward.state(), _X_ECC, atol=1e-9)


# ──────────────────────────────────────────────
# Adams4
# ──────────────────────────────────────────────

class TestAdams4:
    def test_protocol(self):
        ab = Adams4(_point_mass(), Duration.from_minutes(0.5), _EPC, _X_LEO)
        assert isinstance(ab, Integrator)

    def test_zero_step_uses_default(self):
        ab = Adams4(_point_mass(), Duration(0.0), _EPC, _X_LEO)
        assert float(ab.step_size.minutes) == pytest.approx(DEFAULT_STEP_MINUTES)

    def test_validation(self):
        with pytest.raises(ConfigurationError):
            Adams4(_point_mass(), 1.0, _EPC, _X_LEO)
        with pytest.raises(ConfigurationError):
            Adams4(_point_mass(), Duration.from_minutes(1.0), _EPC, jnp.ones(5))

    def test_startup_matches_rk4(self):
        """The history is filled with ordinary RK4 steps."""
        dt = Duration.from_minutes(0.5)
        ab = Adams4(_point_mass(), dt, _EPC, _X_LEO)
        rk = Rk4(_point_mass(), dt, _EPC, _X_LEO)
        for _ in range(HISTORY_LENGTH - 1):
            assert ab.is_starting
            ab.advance()
            rk.advance()
            assert jnp.array_equal(ab.state(), rk.state())
            assert jnp.array_equal(ab.derivative(), rk.derivative())
        assert not ab.is_starting

    def test_startup_uses_corrector_tag(self):
        fm = RecordingForce()
        ab = Adams4(EquationsOfMotion(GravityJn(1), force_models=[fm]),
                    Duration.from_minutes(0.5), _EPC, _X_LEO)
        for _ in range(HISTORY_LENGTH - 1):
            ab.advance()
        assert set(fm.methods) == {EvalMethod.CORRECTOR}

    def test_predictor_then_corrector_tags(self):
        fm = RecordingForce()
        ab = Adams4(EquationsOfMotion(GravityJn(1), force_models=[fm]),
                    Duration.from_minutes(0.5), _EPC, _X_LEO)
        for _ in range(HISTORY_LENGTH - 1):
            ab.advance()
        fm.methods.clear()
        ab.advance()
        assert fm.methods == [EvalMethod.PREDICTOR, EvalMethod.CORRECTOR]

    def test_derivative_consistent_with_state(self):
        eom = _point_mass()
        ab = Adams4(eom, Duration.from_minutes(0.5), _EPC, _X_LEO)
        for _ in range(HISTORY_LENGTH + 2):
            ab.advance()
        assert jnp.allclose(ab.derivative(), eom(ab.time(), ab.state()), rtol=1e-15)

    def test_time_advances_by_step(self):
        ab = Adams4(_point_mass(), Duration.from_minutes(0.5), _EPC, _X_LEO)
        for _ in range(10):
            epc = ab.advance()
        assert ab.step_count == 10
        assert float((epc - _EPC).minutes) == pytest.approx(5.0, rel=1e-12)

    def test_conserves_energy_and_momentum(self):
        ab = Adams4(_point_mass(), Duration.from_minutes(0.5), _EPC, _X_LEO)
        for _ in range(200):
            ab.advance()
        x = ab.state()
        assert float(_energy(x)) == pytest.approx(float(_energy(_X_LEO)), rel=1e-6)
        assert jnp.allclose(_momentum(x), _momentum(_X_LEO), rtol=1e-6, atol=1e-10)

    def test_agrees_with_fine_rk4(self):
        ab = Adams4(_point_mass(), Duration.from_minutes(0.5), _EPC, _X_LEO)
        for _ in range(120):
            ab.advance()
        rk = Rk4(_point_mass(), Duration.from_minutes(0.125), _EPC, _X_LEO)
        for _ in range(480):
            rk.advance()
        assert float((ab.time() - rk.time()).seconds) == pytest.approx(0.0, abs=1e-6)
        assert jnp.allclose(ab.state(), rk.state(), atol=1e-6)

    def test_reset(self):
        ab = Adams4(_point_mass(), Duration.from_minutes(0.5), _EPC, _X_LEO)
        for _ in range(HISTORY_LENGTH + 1):
            ab.advance()
        ab.reset()
        assert bool(ab.time() == _EPC)
        assert jnp.array_equal(ab.state(), _X_LEO)
        assert ab.step_count == 0
        assert ab.is_starting

    def test_reset_and_reverse(self):
        ab = Adams4(_point_mass(), Duration.from_minutes(0.5), _EPC, _X_LEO)
        ab.advance()
        ab.reset_and_reverse()
        assert ab.step_direction is StepDirection.BACKWARD
        assert ab.is_starting
        for _ in range(HISTORY_LENGTH + 1):
            epc = ab.advance()
        assert bool(epc < _EPC)
