"""Classic 4th-order Runge-Kutta integrator (RK4).

Implements the standard four-stage, 4th-order explicit Runge-Kutta method
with a fixed step.

The Butcher tableau for RK4 is:

.. math::

    \\begin{array}{c|cccc}
    0   &     &     &     &   \\\\
    1/2 & 1/2 &     &     &   \\\\
    1/2 &  0  & 1/2 &     &   \\\\
    1   &  0  &  0  &  1  &   \\\\
    \\hline
        & 1/6 & 1/3 & 1/3 & 1/6
    \\end{array}

:func:`rk4_step` is the functional kernel, generic over the time type: a
plain float with a float step, or an :class:`~orbprop.epoch.Epoch` with a
:class:`~orbprop.duration.Duration` step.  :class:`Rk4` wraps it around an
equations-of-motion composer.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbprop.config import get_dtype
from orbprop.duration import Duration
from orbprop.dynamics import EquationsOfMotion, EvalMethod
from orbprop.epoch import Epoch
from orbprop.errors import ConfigurationError
from orbprop.integrators._types import StepDirection, StepResult

logger = logging.getLogger(__name__)

"""
Step used when an RK4 integrator is given a zero step. Units: *min*
"""
DEFAULT_STEP_MINUTES = 0.3


def rk4_step(
    dynamics: Callable[[object, ArrayLike], Array],
    t,
    state: ArrayLike,
    dt,
    dx: ArrayLike | None = None,
) -> StepResult:
    """Perform a single RK4 integration step.

    Advances the state from time ``t`` to ``t + dt``.

    Args:
        dynamics: ODE right-hand side function ``f(t, x) -> dx/dt``.
        t: Current time.  Any type supporting ``t + dt * 0.5``.
        state: Current state vector.
        dt: Timestep, a float or a :class:`Duration`.  May be negative for
            backward integration.
        dx: Derivative at ``(t, state)`` if already known; saves one
            evaluation of *dynamics*.

    Returns:
        StepResult: Named tuple with fields:
            - ``state``: State at ``t + dt``.
            - ``dt_used``: Always equals ``dt``.
            - ``error_estimate``: Always 0.0.
            - ``dt_next``: Always equals ``dt``.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbprop.integrators import rk4_step
        def harmonic(t, x):
            return jnp.array([x[1], -x[0]])
        result = rk4_step(harmonic, 0.0, jnp.array([1.0, 0.0]), 0.01)
        result.state  # ~[cos(0.01), -sin(0.01)]
        ```
    """
    dtype = get_dtype()
    state = jnp.asarray(state, dtype=dtype)
    h = jnp.asarray(dt.tu if isinstance(dt, Duration) else dt, dtype=dtype)
    t_mid = t + dt * 0.5
    t_end = t + dt

    k1 = dynamics(t, state) if dx is None else jnp.asarray(dx, dtype=dtype)
    k2 = dynamics(t_mid, state + 0.5 * h * k1)
    k3 = dynamics(t_mid, state + 0.5 * h * k2)
    k4 = dynamics(t_end, state + h * k3)

    state_new = state + (h / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)

    return StepResult(
        state=state_new,
        dt_used=dt,
        error_estimate=jnp.asarray(0.0, dtype=dtype),
        dt_next=dt,
    )


class Rk4:
    """Fixed-step RK4 integrator around an equations-of-motion composer.

    The derivative at the current state is kept, so each :meth:`advance`
    evaluates the composer at the two midpoints, at the endpoint, and once
    more at the accepted state.  Every evaluation uses the ``CORRECTOR``
    tag.

    Args:
        eom: Composer to integrate.  Owned by the integrator.
        dt: Fixed step; negative integrates backward.  A zero step is
            replaced by :data:`DEFAULT_STEP_MINUTES`.
        epc: Initial epoch.
        x: Initial inertial state ``[r, v]`` [DU, DU/TU].

    Raises:
        ConfigurationError: If *dt* is not a Duration or *x* is not a
            6-vector.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbprop import Duration, Epoch, EquationsOfMotion, GravityJn, Rk4
        rk = Rk4(EquationsOfMotion(GravityJn(2)), Duration.from_minutes(1.0),
                 Epoch(2451545.0), jnp.array([1.1, 0.0, 0.0, 0.0, 0.95, 0.0]))
        epc = rk.advance()
        ```
    """

    def __init__(self, eom: EquationsOfMotion, dt: Duration, epc: Epoch, x: ArrayLike):
        if not isinstance(dt, Duration):
            raise ConfigurationError(f"Step must be a Duration, got {type(dt).__name__}.")
        x = jnp.asarray(x, dtype=get_dtype())
        if x.shape != (6,):
            raise ConfigurationError(f"State must have shape (6,), got {x.shape}.")
        if bool(dt.tu == 0.0):
            dt = Duration.from_minutes(DEFAULT_STEP_MINUTES)
            logger.debug("Zero RK4 step replaced by %s", dt)

        self._eom = eom
        self._epoch0 = epc
        self._x0 = x
        self._dt = dt
        self._reset(dt)

    def _evaluate(self, epc: Epoch, x: Array) -> Array:
        return self._eom(epc, x, EvalMethod.CORRECTOR)

    def _reset(self, dt: Duration) -> None:
        self._dt = dt
        self._epc = self._epoch0
        self._x = self._x0
        self._dx = self._evaluate(self._epc, self._x)

    @property
    def eom(self) -> EquationsOfMotion:
        return self._eom

    @property
    def step_size(self) -> Duration:
        """The fixed step."""
        return self._dt

    @property
    def step_direction(self) -> StepDirection:
        return StepDirection.BACKWARD if bool(self._dt.tu < 0.0) else StepDirection.FORWARD

    def time(self) -> Epoch:
        return self._epc

    def state(self) -> Array:
        return self._x

    def derivative(self) -> Array:
        return self._dx

    def advance(self) -> Epoch:
        """Take one RK4 step.

        Returns:
            Epoch: Epoch of the new state.
        """
        result = rk4_step(self._evaluate, self._epc, self._x, self._dt, dx=self._dx)
        self._epc = self._epc + self._dt
        self._x = result.state
        self._dx = self._evaluate(self._epc, self._x)
        return self._epc

    def reset(self) -> None:
        """Return to the initial conditions, keeping the step direction."""
        self._reset(self._dt)

    def reset_and_reverse(self) -> None:
        """Return to the initial conditions and reverse the step direction."""
        self._reset(-self._dt)
