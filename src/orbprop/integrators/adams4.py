"""Fixed-step 4th-order Adams-Bashforth-Moulton predictor-corrector.

The first three steps are taken with RK4 to fill the derivative history.
After that, each step predicts with the explicit Adams-Bashforth formula,

.. math::

    x^p_{n+1} = x_n + \\frac{h}{24} (55 f_n - 59 f_{n-1} + 37 f_{n-2} - 9 f_{n-3})

evaluates the equations of motion once at the prediction, and corrects
with a single pass of the implicit Adams-Moulton formula,

.. math::

    x_{n+1} = x_n + \\frac{h}{24} (9 f^p_{n+1} + 19 f_n - 5 f_{n-1} + f_{n-2})

A final evaluation at the corrected state gives the stored derivative, so
every step costs two evaluations.
"""

from __future__ import annotations

import logging

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbprop.config import get_dtype
from orbprop.duration import Duration
from orbprop.dynamics import EquationsOfMotion, EvalMethod
from orbprop.epoch import Epoch
from orbprop.errors import ConfigurationError
from orbprop.integrators._types import StepDirection
from orbprop.integrators.rk4 import DEFAULT_STEP_MINUTES, rk4_step

logger = logging.getLogger(__name__)

"""
Derivatives kept in the history, newest last.
"""
HISTORY_LENGTH = 4


class Adams4:
    """Adams-Bashforth-Moulton integrator of order 4 with RK4 startup.

    Startup steps tag every evaluation ``CORRECTOR``.  Steady-state steps
    tag the evaluation at the prediction ``PREDICTOR`` and the one at the
    corrected state ``CORRECTOR``.

    Args:
        eom: Composer to integrate.  Owned by the integrator.
        dt: Fixed step; negative integrates backward.  A zero step is
            replaced by :data:`~orbprop.integrators.rk4.DEFAULT_STEP_MINUTES`.
        epc: Initial epoch.
        x: Initial inertial state ``[r, v]`` [DU, DU/TU].

    Raises:
        ConfigurationError: If *dt* is not a Duration or *x* is not a
            6-vector.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbprop import Adams4, Duration, Epoch, EquationsOfMotion, GravityJn
        ab = Adams4(EquationsOfMotion(GravityJn(2)), Duration.from_minutes(0.5),
                    Epoch(2451545.0), jnp.array([1.1, 0.0, 0.0, 0.0, 0.95, 0.0]))
        for _ in range(10):
            ab.advance()
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
            logger.debug("Zero Adams step replaced by %s", dt)

        self._eom = eom
        self._epoch0 = epc
        self._x0 = x
        self._reset(dt)

    def _reset(self, dt: Duration) -> None:
        self._dt = dt
        self._epc = self._epoch0
        self._x = self._x0
        self._dx = self._eom(self._epc, self._x, EvalMethod.CORRECTOR)
        self._history = [self._dx]
        self._step_count = 0

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

    @property
    def step_count(self) -> int:
        """Steps taken since construction or the last reset."""
        return self._step_count

    @property
    def is_starting(self) -> bool:
        """Whether the next step is still an RK4 startup step."""
        return len(self._history) < HISTORY_LENGTH

    def time(self) -> Epoch:
        return self._epc

    def state(self) -> Array:
        return self._x

    def derivative(self) -> Array:
        return self._dx

    def advance(self) -> Epoch:
        """Take one step.

        Returns:
            Epoch: Epoch of the new state.
        """
        if self.is_starting:
            self._startup_step()
            if not self.is_starting:
                logger.debug("Adams startup complete at %s", self._epc)
        else:
            self._predict_correct()
        self._step_count += 1
        return self._epc

    def _startup_step(self) -> None:
        def f(epc, x):
            return self._eom(epc, x, EvalMethod.CORRECTOR)

        result = rk4_step(f, self._epc, self._x, self._dt, dx=self._dx)
        self._epc = self._epc + self._dt
        self._x = result.state
        self._dx = f(self._epc, self._x)
        self._history.append(self._dx)

    def _predict_correct(self) -> None:
        h = float(self._dt.tu)
        f0, f1, f2, f3 = self._history
        epc_new = self._epc + self._dt

        x_p = self._x + (h / 24.0) * (55.0 * f3 - 59.0 * f2 + 37.0 * f1 - 9.0 * f0)
        f_p = self._eom(epc_new, x_p, EvalMethod.PREDICTOR)
        x_c = self._x + (h / 24.0) * (9.0 * f_p + 19.0 * f3 - 5.0 * f2 + f1)

        self._epc = epc_new
        self._x = x_c
        self._dx = self._eom(epc_new, x_c, EvalMethod.CORRECTOR)
        self._history = [f1, f2, f3, self._dx]

    def reset(self) -> None:
        """Return to the initial conditions, keeping the step direction."""
        self._reset(self._dt)

    def reset_and_reverse(self) -> None:
        """Return to the initial conditions and reverse the step direction."""
        self._reset(-self._dt)
