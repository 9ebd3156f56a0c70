"""Multistep predictor-corrector integrator of the Gauss-Jackson family.

Position and velocity are advanced from a backward-difference table of the
acceleration history:

- position with the Störmer (explicit) / Cowell (implicit) second-sum
  formulas,

  .. math::

      r_{n+1} = 2 r_n - r_{n-1} + h^2 \\sum_{j} \\sigma_j \\nabla^j a_n

- velocity with the Adams-Bashforth / Adams-Moulton formulas,

  .. math::

      v_{n+1} = v_n + h \\sum_{j} \\gamma_j \\nabla^j a_n

The table holds :data:`ORDER` backward differences ``∇^0 a_n .. ∇^7 a_n``
plus the previous position.  Written in difference form, each implicit
corrector equals its predictor plus one extra term,
``σ_8 ∇^8 a_{n+1}`` (and ``γ_8 ∇^8 a_{n+1}``), where
``∇^8 a_{n+1} = a_{n+1} - Σ_{j<8} ∇^j a_n``.  The corrector is iterated
until the state stops changing.

Life cycle of an integrator:

1. **Startup.** Until the table is full (``ORDER - 1`` steps), steps are
   taken with RK4 at the current step size and every accepted derivative
   is a direct evaluation of the equations of motion.
2. **Steady state.** Predict (``PREDICTOR`` evaluation), correct
   (``CORRECTOR`` evaluations) until the convergence test passes, then
   evaluate once more so the stored derivative matches the stored state,
   and shift the table.
3. **Step control.** The scaled difference between corrected and
   predicted state estimates the local error.  Steps whose estimate is too
   large are rejected and the step is halved; runs of very small estimates
   double the step.  Either change restarts the table.

A corrector that does not converge raises
:class:`~orbprop.errors.NonconvergenceError`.  The integrator then stays at
its last accepted step and refuses to advance until :meth:`restart`,
:meth:`reset` or :meth:`reset_and_reverse` is called.

References:
    1. E. Hairer, S. Nørsett and G. Wanner, *Solving Ordinary Differential
       Equations I*, 2nd ed., 1993, sec. III.1 and III.10.
    2. M. Berry and L. Healy, "Implementation of Gauss-Jackson
       integration for orbit propagation", *J. Astronaut. Sci.* 52, 2004.
"""

from __future__ import annotations

import logging
from fractions import Fraction

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbprop.config import get_dtype, get_multistep_tolerances
from orbprop.duration import Duration
from orbprop.dynamics import EquationsOfMotion, EvalMethod
from orbprop.epoch import Epoch
from orbprop.errors import ConfigurationError, NonconvergenceError
from orbprop.integrators._types import MultistepConfig, StepDirection, StepResult
from orbprop.integrators.rk4 import DEFAULT_STEP_MINUTES, rk4_step

logger = logging.getLogger(__name__)

"""
Number of backward differences kept in the acceleration table.
"""
ORDER = 8

"""
Local error estimates below ``error_tol / DOUBLING_MARGIN`` count toward
doubling the step.
"""
DOUBLING_MARGIN = 2**10


def difference_coefficients(order: int = ORDER) -> tuple[tuple[Fraction, ...], tuple[Fraction, ...]]:
    """Exact Adams and Störmer coefficients in backward-difference form.

    The implicit Adams-Moulton coefficients ``γ*_j`` are the Taylor
    coefficients of ``t / -log(1 - t)``, i.e. the reciprocal of the series
    ``Σ t^j / (j + 1)``; the implicit Cowell coefficients ``σ*_j`` are those
    of its square.  The explicit coefficients are their running sums.

    Args:
        order: Number of explicit terms; ``order + 1`` coefficients are
            returned so that the last one closes the implicit formula.

    Returns:
        ``(gamma, sigma)``: Adams-Bashforth and Störmer coefficients,
        ``gamma = (1, 1/2, 5/12, 3/8, ...)`` and
        ``sigma = (1, 0, 1/12, 1/12, 19/240, ...)``.
    """
    n = order + 1
    series = [Fraction(1, j + 1) for j in range(n)]

    gamma_star = [Fraction(1)]
    for k in range(1, n):
        gamma_star.append(-sum(series[i] * gamma_star[k - i] for i in range(1, k + 1)))

    sigma_star = [
        sum(gamma_star[i] * gamma_star[k - i] for i in range(k + 1)) for k in range(n)
    ]

    gamma = []
    sigma = []
    g = s = Fraction(0)
    for k in range(n):
        g += gamma_star[k]
        s += sigma_star[k]
        gamma.append(g)
        sigma.append(s)
    return tuple(gamma), tuple(sigma)


_GAMMA, _SIGMA = difference_coefficients(ORDER)
_GAMMA_FLOAT = tuple(float(g) for g in _GAMMA)
_SIGMA_FLOAT = tuple(float(s) for s in _SIGMA)


def _scaled_change(new: Array, old: Array) -> float:
    """Largest component change scaled by ``max(1, |new|_inf)``."""
    scale = max(1.0, float(jnp.max(jnp.abs(new))))
    return float(jnp.max(jnp.abs(new - old))) / scale


class GaussJackson:
    """Gauss-Jackson-family multistep integrator with RK4 startup.

    Args:
        eom: Composer to integrate.  Owned by the integrator.
        dt: Initial step; negative integrates backward.  A zero step is
            replaced by the RK4 default.
        epc: Initial epoch.
        x: Initial inertial state ``[r, v]`` [DU, DU/TU].
        config: Corrector and step-control tuning.

    Raises:
        ConfigurationError: On an invalid step, state, or configuration.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbprop import Duration, Epoch, EquationsOfMotion, GaussJackson, GravityJn
        gj = GaussJackson(EquationsOfMotion(GravityJn(4)), Duration.from_minutes(1.0),
                          Epoch(2451545.0), jnp.array([1.1, 0.0, 0.0, 0.0, 0.95, 0.0]))
        for _ in range(20):
            gj.advance()
        ```
    """

    def __init__(
        self,
        eom: EquationsOfMotion,
        dt: Duration,
        epc: Epoch,
        x: ArrayLike,
        config: MultistepConfig | None = None,
    ):
        if config is None:
            config = MultistepConfig()
        corrector_tol, error_tol = get_multistep_tolerances()
        if config.corrector_tol is None:
            config = config._replace(corrector_tol=corrector_tol)
        if config.error_tol is None:
            config = config._replace(error_tol=error_tol)
        if not isinstance(dt, Duration):
            raise ConfigurationError(f"Step must be a Duration, got {type(dt).__name__}.")
        x = jnp.asarray(x, dtype=get_dtype())
        if x.shape != (6,):
            raise ConfigurationError(f"State must have shape (6,), got {x.shape}.")
        if not config.corrector_tol > 0.0 or not config.error_tol > 0.0:
            raise ConfigurationError("Multistep tolerances must be positive.")
        if config.max_corrector_passes < 1 or config.double_after < 1:
            raise ConfigurationError("Corrector passes and doubling count must be at least 1.")
        if not 0.0 < config.min_step <= config.max_step:
            raise ConfigurationError(
                f"Need 0 < min_step <= max_step, got {config.min_step}, {config.max_step}."
            )
        if bool(dt.tu == 0.0):
            dt = Duration.from_minutes(DEFAULT_STEP_MINUTES)

        self._eom = eom
        self._config = config
        dtype = get_dtype()
        self._sigma = jnp.asarray(_SIGMA_FLOAT[:ORDER], dtype=dtype)
        self._gamma = jnp.asarray(_GAMMA_FLOAT[:ORDER], dtype=dtype)
        self._epoch0 = epc
        self._x0 = x
        self._dt0 = dt
        self._step_count = 0
        self._reset(dt)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def eom(self) -> EquationsOfMotion:
        return self._eom

    @property
    def config(self) -> MultistepConfig:
        return self._config

    @property
    def step_size(self) -> Duration:
        """Current internal step."""
        return self._h

    @property
    def step_direction(self) -> StepDirection:
        return StepDirection.BACKWARD if bool(self._h.tu < 0.0) else StepDirection.FORWARD

    @property
    def step_count(self) -> int:
        """Accepted steps since construction or the last reset."""
        return self._step_count

    @property
    def steps_since_restart(self) -> int:
        """Accepted steps since the difference table was last restarted."""
        return self._k

    @property
    def is_starting(self) -> bool:
        """Whether the difference table is still being filled."""
        return self._table is None

    @property
    def corrector_passes(self) -> int:
        """Corrector passes used by the last steady-state step."""
        return self._passes

    @property
    def convergence_test(self) -> float:
        """Last value of the corrector convergence test."""
        return self._test

    @property
    def error_estimate(self) -> float:
        """Local error estimate of the last steady-state step."""
        return self._error

    @property
    def failed(self) -> bool:
        """Whether a nonconvergence blocks further advances."""
        return self._failed

    def time(self) -> Epoch:
        return self._epc

    def state(self) -> Array:
        return self._x

    def derivative(self) -> Array:
        return self._dx

    # ------------------------------------------------------------------
    # Life cycle
    # ------------------------------------------------------------------

    def _reset(self, dt: Duration) -> None:
        self._epc = self._epoch0
        self._x = self._x0
        self._dx = self._eom(self._epc, self._x, EvalMethod.CORRECTOR)
        self._step_count = 0
        self.restart(dt)

    def restart(self, step: Duration | None = None) -> None:
        """Discard the difference table and start up again from the current state.

        Also clears a nonconvergence failure.

        Args:
            step: New internal step (same sign convention as the
                constructor).  Default: keep the current step.

        Raises:
            ConfigurationError: If *step* is zero, not a Duration, or its
                magnitude is outside ``[min_step, max_step]``.
        """
        if step is not None:
            if not isinstance(step, Duration) or bool(step.tu == 0.0):
                raise ConfigurationError("Restart step must be a nonzero Duration.")
            minutes = abs(float(step.minutes))
            if not self._config.min_step <= minutes <= self._config.max_step:
                raise ConfigurationError(
                    f"Step of {minutes} min is outside "
                    f"[{self._config.min_step}, {self._config.max_step}] min."
                )
            self._h = step
        self._table = None
        self._r_prev = None
        self._history = [(self._x[:3], self._dx[3:6])]
        self._k = 0
        self._small_errors = 0
        self._passes = 0
        self._test = 0.0
        self._error = 0.0
        self._failed = False
        logger.debug("Multistep restart at %s with step %s", self._epc, self._h)

    def reset(self) -> None:
        """Return to the initial conditions, keeping the step direction."""
        sign = -1.0 if self.step_direction is StepDirection.BACKWARD else 1.0
        self._reset(abs(self._dt0) * sign)

    def reset_and_reverse(self) -> None:
        """Return to the initial conditions and reverse the step direction."""
        sign = 1.0 if self.step_direction is StepDirection.BACKWARD else -1.0
        self._reset(abs(self._dt0) * sign)

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def advance(self) -> Epoch:
        """Take one internal step.

        Returns:
            Epoch: Epoch of the new state.

        Raises:
            NonconvergenceError: If the corrector fails to converge, if the
                step would have to shrink below ``min_step``, or if an
                earlier failure has not been cleared by :meth:`restart`.
        """
        if self._failed:
            raise NonconvergenceError(
                f"Multistep integrator failed at {self._epc}; call restart() to continue."
            )
        if self._table is None:
            self._startup_step()
        else:
            self._multistep()
        return self._epc

    def _startup_step(self) -> None:
        def f(epc, x):
            return self._eom(epc, x, EvalMethod.CORRECTOR)

        epc_new = self._epc + self._h
        result = rk4_step(f, self._epc, self._x, self._h, dx=self._dx)
        self._accept(epc_new, result.state, f(epc_new, result.state))
        self._history.append((self._x[:3], self._dx[3:6]))

        if self._k >= ORDER - 1:
            self._build_table()
            logger.debug("Multistep startup complete after %d steps", self._k)

    def _build_table(self) -> None:
        acc = jnp.stack([a for _, a in self._history[-ORDER:]])
        table = [acc[-1]]
        for _ in range(1, ORDER):
            acc = acc[1:] - acc[:-1]
            table.append(acc[-1])
        self._table = jnp.stack(table)
        self._r_prev = self._history[-2][0]
        self._history = []

    def _accept(self, epc: Epoch, x: Array, dx: Array) -> None:
        self._epc = epc
        self._x = x
        self._dx = dx
        self._k += 1
        self._step_count += 1

    def _predict(self, h: float) -> tuple[Array, Array]:
        r_n = self._x[:3]
        v_n = self._x[3:6]
        r_p = 2.0 * r_n - self._r_prev + h * h * (self._sigma @ self._table)
        v_p = v_n + h * (self._gamma @ self._table)
        return r_p, v_p

    def _correct(self, epc_new: Epoch, h: float) -> StepResult:
        """Predict and iterate the corrector; returns the converged state."""
        cfg = self._config
        r_p, v_p = self._predict(h)
        x_p = jnp.concatenate([r_p, v_p])
        extrapolated = jnp.sum(self._table, axis=0)
        sigma_k = _SIGMA_FLOAT[ORDER]
        gamma_k = _GAMMA_FLOAT[ORDER]

        f = self._eom(epc_new, x_p, EvalMethod.PREDICTOR)
        x_c = x_p
        passes = 0
        while True:
            passes += 1
            nabla_k = f[3:6] - extrapolated
            x_new = jnp.concatenate([r_p + h * h * sigma_k * nabla_k,
                                     v_p + h * gamma_k * nabla_k])
            test = _scaled_change(x_new, x_c)
            x_c = x_new
            self._passes = passes
            self._test = test
            if test <= cfg.corrector_tol:
                break
            if passes >= cfg.max_corrector_passes:
                self._failed = True
                logger.warning(
                    "Corrector did not converge at %s after %d passes (test %.3e > %.3e)",
                    epc_new, passes, test, cfg.corrector_tol,
                )
                raise NonconvergenceError(
                    f"Corrector did not converge at {epc_new} after {passes} passes "
                    f"(test {test:.3e} > {cfg.corrector_tol:.3e})."
                )
            f = self._eom(epc_new, x_c, EvalMethod.CORRECTOR)

        return StepResult(
            state=x_c,
            dt_used=self._h,
            error_estimate=jnp.asarray(_scaled_change(x_c, x_p)),
            dt_next=self._h,
        )

    def _multistep(self) -> None:
        cfg = self._config
        h = float(self._h.tu)
        epc_new = self._epc + self._h
        result = self._correct(epc_new, h)
        error = float(result.error_estimate)
        self._error = error

        if cfg.step_control and error > cfg.error_tol:
            half = self._h * 0.5
            if abs(float(half.minutes)) < cfg.min_step:
                self._failed = True
                logger.warning(
                    "Step rejected at %s (error %.3e) and cannot be halved below %s min",
                    epc_new, error, cfg.min_step,
                )
                raise NonconvergenceError(
                    f"Local error {error:.3e} exceeds {cfg.error_tol:.3e} at the "
                    f"minimum step of {cfg.min_step} min."
                )
            logger.debug("Step rejected (error %.3e), halving to %s", error, half)
            self.restart(half)
            self._startup_step()
            return

        dx = self._eom(epc_new, result.state, EvalMethod.CORRECTOR)
        r_n = self._x[:3]
        self._accept(epc_new, result.state, dx)
        self._shift_table(dx[3:6], r_n)

        if not cfg.step_control:
            return
        if error < cfg.error_tol / DOUBLING_MARGIN:
            self._small_errors += 1
        else:
            self._small_errors = 0
        if (self._small_errors >= cfg.double_after
                and 2.0 * abs(float(self._h.minutes)) <= cfg.max_step):
            logger.debug("Error below %.3e for %d steps, doubling step to %s",
                         cfg.error_tol / DOUBLING_MARGIN, self._small_errors, self._h * 2.0)
            self.restart(self._h * 2.0)

    def _shift_table(self, acc: Array, r_prev: Array) -> None:
        old = self._table
        rows = [acc]
        for j in range(1, ORDER):
            rows.append(rows[j - 1] - old[j - 1])
        self._table = jnp.stack(rows)
        self._r_prev = r_prev
