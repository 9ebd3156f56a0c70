"""Tests for the Gauss-Jackson multistep integrator."""

from fractions import Fraction

import jax.numpy as jnp
import pytest

from orbprop.config import get_multistep_tolerances, set_dtype
from orbprop.duration import Duration
from orbprop.dynamics import EquationsOfMotion, EvalMethod, GravityJn
from orbprop.epoch import Epoch
from orbprop.errors import ConfigurationError, NonconvergenceError
from orbprop.integrators import (
    GaussJackson,
    Integrator,
    MultistepConfig,
    Rk4,
    StepDirection,
    difference_coefficients,
)
from orbprop.integrators.gauss_jackson import ORDER

_EPC = Epoch(2451545.0)
_X_LEO = jnp.array([1.1, 0.0, 0.0, 0.0, 0.95, 0.1])
_FIXED = MultistepConfig(step_control=False)
_MIN = Duration.from_minutes(1.0)


def _energy(x):
    return 0.5 * jnp.dot(x[3:], x[3:]) - 1.0 / jnp.linalg.norm(x[:3])


def _point_mass():
    return EquationsOfMotion(GravityJn(1))


class RecordingForce:
    """Zero force model that records the evaluation tags it receives."""

    def __init__(self):
        self.methods = []

    def acceleration(self, epc, state, method=EvalMethod.PREDICTOR):
        self.methods.append(method)
        return jnp.zeros(3)


class StiffForce:
    """Force model that becomes violently stiff once armed."""

    def __init__(self, stiffness):
        self.stiffness = stiffness
        self.armed = False

    def acceleration(self, epc, state, method=EvalMethod.PREDICTOR):
        if not self.armed:
            return jnp.zeros(3)
        return self.stiffness * state[:3]


# ===========================================================================
# Coefficients
# ===========================================================================
class TestDifferenceCoefficients:
    def test_adams_bashforth(self):
        gamma, _ = difference_coefficients(4)
        assert gamma[:4] == (Fraction(1), Fraction(1, 2), Fraction(5, 12), Fraction(3, 8))

    def test_stormer(self):
        _, sigma = difference_coefficients(4)
        assert sigma == (Fraction(1), Fraction(0), Fraction(1, 12), Fraction(1, 12),
                         Fraction(19, 240))

    def test_length(self):
        gamma, sigma = difference_coefficients(ORDER)
        assert len(gamma) == len(sigma) == ORDER + 1

    def test_adams_bashforth_tail(self):
        """Known values of the higher Adams-Bashforth coefficients."""
        gamma, _ = difference_coefficients(ORDER)
        assert gamma[4] == Fraction(251, 720)
        assert gamma[5] == Fraction(95, 288)


# ===========================================================================
# Construction
# ===========================================================================
class TestConstruction:
    def test_protocol(self):
        assert isinstance(GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO), Integrator)

    def test_zero_step_uses_default(self):
        gj = GaussJackson(_point_mass(), Duration(0.0), _EPC, _X_LEO)
        assert float(gj.step_size.minutes) == pytest.approx(0.3)

    def test_step_outside_bounds(self):
        with pytest.raises(ConfigurationError):
            GaussJackson(_point_mass(), Duration.from_minutes(90.0), _EPC, _X_LEO)
        with pytest.raises(ConfigurationError):
            GaussJackson(_point_mass(), Duration.from_seconds(0.01), _EPC, _X_LEO)

    def test_invalid_config(self):
        with pytest.raises(ConfigurationError):
            GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, MultistepConfig(corrector_tol=0.0))
        with pytest.raises(ConfigurationError):
            GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO,
                         MultistepConfig(min_step=10.0, max_step=1.0))
        with pytest.raises(ConfigurationError):
            GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO,
                         MultistepConfig(max_corrector_passes=0))

    def test_step_must_be_duration(self):
        with pytest.raises(ConfigurationError):
            GaussJackson(_point_mass(), 1.0, _EPC, _X_LEO)


# ===========================================================================
# Startup
# ===========================================================================
class TestStartup:
    def test_startup_length(self):
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, _FIXED)
        for _ in range(ORDER - 1):
            assert gj.is_starting
            gj.advance()
        assert not gj.is_starting
        assert gj.steps_since_restart == ORDER - 1

    def test_startup_matches_rk4(self):
        """Startup steps are RK4 steps at the current step size."""
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, _FIXED)
        rk = Rk4(_point_mass(), _MIN, _EPC, _X_LEO)
        for _ in range(ORDER - 1):
            gj.advance()
            rk.advance()
        assert jnp.allclose(gj.state(), rk.state(), rtol=1e-14, atol=1e-15)

    def test_startup_derivative_is_direct_evaluation(self):
        eom = _point_mass()
        gj = GaussJackson(eom, _MIN, _EPC, _X_LEO, _FIXED)
        for _ in range(3):
            gj.advance()
            assert jnp.allclose(gj.derivative(), eom(gj.time(), gj.state()), rtol=1e-15)

    def test_startup_uses_corrector_tag(self):
        fm = RecordingForce()
        gj = GaussJackson(EquationsOfMotion(GravityJn(1), force_models=[fm]),
                          _MIN, _EPC, _X_LEO, _FIXED)
        for _ in range(3):
            gj.advance()
        assert set(fm.methods) == {EvalMethod.CORRECTOR}


# ===========================================================================
# Steady state
# ===========================================================================
class TestSteadyState:
    def test_predictor_then_corrector_tags(self):
        fm = RecordingForce()
        gj = GaussJackson(EquationsOfMotion(GravityJn(1), force_models=[fm]),
                          _MIN, _EPC, _X_LEO, _FIXED)
        for _ in range(ORDER - 1):
            gj.advance()
        fm.methods.clear()

        gj.advance()
        assert fm.methods[0] is EvalMethod.PREDICTOR
        assert len(fm.methods) >= 2
        assert all(m is EvalMethod.CORRECTOR for m in fm.methods[1:])
        assert len(fm.methods) == gj.corrector_passes + 1

    def test_derivative_consistent_with_state(self):
        eom = _point_mass()
        gj = GaussJackson(eom, _MIN, _EPC, _X_LEO, _FIXED)
        for _ in range(ORDER + 3):
            gj.advance()
        assert jnp.allclose(gj.derivative(), eom(gj.time(), gj.state()), rtol=1e-15)

    def test_corrector_converges(self):
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, _FIXED)
        for _ in range(ORDER + 5):
            gj.advance()
        assert 1 <= gj.corrector_passes <= _FIXED.max_corrector_passes
        assert gj.convergence_test <= gj.config.corrector_tol
        assert gj.error_estimate < 1e-9

    def test_conserves_energy(self):
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, _FIXED)
        for _ in range(200):
            gj.advance()
        assert gj.step_count == 200
        assert float(_energy(gj.state())) == pytest.approx(float(_energy(_X_LEO)), rel=1e-7)

    def test_agrees_with_fine_rk4(self):
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, _FIXED)
        for _ in range(60):
            gj.advance()
        rk = Rk4(_point_mass(), Duration.from_minutes(0.25), _EPC, _X_LEO)
        for _ in range(240):
            rk.advance()
        assert float((gj.time() - rk.time()).seconds) == pytest.approx(0.0, abs=1e-6)
        assert jnp.allclose(gj.state(), rk.state(), atol=1e-6)

    def test_backward_round_trip(self):
        forward = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, _FIXED)
        for _ in range(30):
            forward.advance()
        backward = GaussJackson(_point_mass(), -_MIN, forward.time(), forward.state(), _FIXED)
        assert backward.step_direction is StepDirection.BACKWARD
        for _ in range(30):
            backward.advance()
        assert float((backward.time() - _EPC).seconds) == pytest.approx(0.0, abs=1e-6)
        assert jnp.allclose(backward.state(), _X_LEO, atol=1e-6)

    def test_default_config_reaches_target(self):
        config = MultistepConfig(max_step=2.0)
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, config)
        target = _EPC + Duration.from_minutes(120.0)
        while bool(gj.time() < target):
            gj.advance()
        assert not gj.failed
        assert float(_energy(gj.state())) == pytest.approx(float(_energy(_X_LEO)), rel=1e-6)


# ===========================================================================
# Step control
# ===========================================================================
class TestStepControl:
    def test_rejected_step_is_halved(self):
        config = MultistepConfig(error_tol=1e-30, min_step=0.1)
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, config)
        for _ in range(ORDER - 1):
            gj.advance()
        gj.advance()
        assert float(gj.step_size.minutes) == pytest.approx(0.5)
        assert gj.is_starting
        assert gj.steps_since_restart == 1
        assert float((gj.time() - _EPC).minutes) == pytest.approx(ORDER - 1 + 0.5)

    def test_rejection_below_min_step(self):
        config = MultistepConfig(error_tol=1e-30, min_step=0.6)
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, config)
        for _ in range(ORDER - 1):
            gj.advance()
        t_last = gj.time()
        with pytest.raises(NonconvergenceError):
            gj.advance()
        assert gj.failed
        assert bool(gj.time() == t_last)

    def test_small_errors_double_step(self):
        config = MultistepConfig(error_tol=1.0, double_after=2)
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, config)
        for _ in range(ORDER - 1 + 2):
            gj.advance()
        assert float(gj.step_size.minutes) == pytest.approx(2.0)
        assert gj.is_starting

    def test_doubling_respects_max_step(self):
        config = MultistepConfig(error_tol=1.0, double_after=2, max_step=1.5)
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, config)
        for _ in range(ORDER - 1 + 4):
            gj.advance()
        assert float(gj.step_size.minutes) == pytest.approx(1.0)
        assert not gj.is_starting

    def test_disabled_step_control_keeps_step(self):
        config = MultistepConfig(error_tol=1e-30, step_control=False)
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, config)
        for _ in range(ORDER + 4):
            gj.advance()
        assert float(gj.step_size.minutes) == pytest.approx(1.0)


# ===========================================================================
# Failure and recovery
# ===========================================================================
class TestNonconvergence:
    def _armed_integrator(self):
        stiff = StiffForce(1e5)
        eom = EquationsOfMotion(GravityJn(1), force_models=[stiff])
        gj = GaussJackson(eom, _MIN, _EPC, _X_LEO, _FIXED)
        for _ in range(ORDER - 1):
            gj.advance()
        stiff.armed = True
        return gj, stiff

    def test_raises(self):
        gj, _ = self._armed_integrator()
        t_last = gj.time()
        x_last = gj.state()
        with pytest.raises(NonconvergenceError):
            gj.advance()
        assert gj.failed
        assert gj.corrector_passes == _FIXED.max_corrector_passes
        assert bool(gj.time() == t_last)
        assert jnp.array_equal(gj.state(), x_last)

    def test_refuses_until_restart(self):
        gj, stiff = self._armed_integrator()
        with pytest.raises(NonconvergenceError):
            gj.advance()
        stiff.armed = False
        with pytest.raises(NonconvergenceError):
            gj.advance()

        gj.restart()
        assert not gj.failed
        assert gj.is_starting
        gj.advance()
        assert gj.steps_since_restart == 1

    def test_restart_requires_duration(self):
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO)
        with pytest.raises(ConfigurationError):
            gj.restart(0.5)

    def test_restart_step_within_bounds(self):
        config = MultistepConfig(min_step=0.5, max_step=2.0)
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, config)
        with pytest.raises(ConfigurationError):
            gj.restart(Duration.from_minutes(4.0))
        with pytest.raises(ConfigurationError):
            gj.restart(Duration.from_minutes(-0.25))
        assert float(gj.step_size.minutes) == pytest.approx(1.0)

        gj.restart(Duration.from_minutes(-2.0))
        assert gj.step_direction is StepDirection.BACKWARD


# ===========================================================================
# Reset
# ===========================================================================
class TestReset:
    def test_reset(self):
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, _FIXED)
        for _ in range(ORDER + 2):
            gj.advance()
        gj.reset()
        assert bool(gj.time() == _EPC)
        assert jnp.array_equal(gj.state(), _X_LEO)
        assert gj.step_count == 0
        assert gj.is_starting
        assert gj.step_direction is StepDirection.FORWARD

    def test_reset_restores_initial_step(self):
        config = MultistepConfig(error_tol=1.0, double_after=2)
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, config)
        for _ in range(ORDER + 2):
            gj.advance()
        gj.reset()
        assert float(gj.step_size.minutes) == pytest.approx(1.0)

    def test_reset_and_reverse(self):
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO, _FIXED)
        gj.advance()
        gj.reset_and_reverse()
        assert gj.step_direction is StepDirection.BACKWARD
        assert float(gj.step_size.minutes) == pytest.approx(-1.0)
        assert bool(gj.advance() < _EPC)


# ===========================================================================
# Precision
# ===========================================================================
class TestPrecision:
    def test_default_tolerances_follow_dtype(self):
        gj = GaussJackson(_point_mass(), _MIN, _EPC, _X_LEO)
        assert (gj.config.corrector_tol, gj.config.error_tol) == get_multistep_tolerances()
        assert gj.config.corrector_tol == 1e-12

    def test_explicit_tolerances_are_kept(self):
        set_dtype(jnp.float32)
        config = MultistepConfig(corrector_tol=1e-6, error_tol=1e-3)
        gj = GaussJackson(_point_mass(), Duration.from_minutes(1.0), Epoch(2451545.0),
                          _X_LEO, config)
        assert gj.config.corrector_tol == 1e-6
        assert gj.config.error_tol == 1e-3

    def test_float32_defaults(self):
        set_dtype(jnp.float32)
        gj = GaussJackson(_point_mass(), Duration.from_minutes(1.0), Epoch(2451545.0),
                          _X_LEO)
        assert (gj.config.corrector_tol, gj.config.error_tol) == (1e-5, 1e-4)
        assert gj.state().dtype == jnp.float32

    def test_float32_propagation_completes(self):
        """Default tolerances are reachable in single precision."""
        set_dtype(jnp.float32)
        epc0 = Epoch(2451545.0)
        gj = GaussJackson(EquationsOfMotion(GravityJn(2)), Duration.from_minutes(1.0), epc0,
                          _X_LEO, MultistepConfig(max_step=2.0))
        target = epc0 + Duration.from_minutes(120.0)
        while bool(gj.time() < target):
            gj.advance()
        assert not gj.failed
        assert gj.step_count > ORDER
        assert float(_energy(gj.state())) == pytest.approx(float(_energy(_X_LEO)), rel=1e-3)

    def test_float32_unbounded_step_does_not_fail(self):
        set_dtype(jnp.float32)
        epc0 = Epoch(2451545.0)
        gj = GaussJackson(EquationsOfMotion(GravityJn(4)), Duration.from_minutes(1.0), epc0,
                          _X_LEO)
        for _ in range(60):
            gj.advance()
        assert not gj.failed
        assert abs(float(gj.step_size.minutes)) >= 1.0
