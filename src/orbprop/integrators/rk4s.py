"""Fixed-step RK4 in a time-regularized independent variable.

Near-rectilinear and highly eccentric orbits need very short physical time
steps near periapsis.  :class:`Rk4s` instead takes fixed steps in the
Sundman-regularized variable *s* (see :mod:`orbprop.regularize`), so the
physical step shrinks automatically where the motion is fast.

Each stage maps the regularized stage state back to physical time through
the regularization, evaluates the equations of motion at the epoch
``origin + elapsed time``, and maps the derivative forward again.
"""

from __future__ import annotations

import logging

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbprop.config import get_dtype
from orbprop.dynamics import EquationsOfMotion, EvalMethod
from orbprop.epoch import Epoch
from orbprop.errors import ConfigurationError
from orbprop.integrators._types import StepDirection
from orbprop.regularize import Regularization, SundmanRegularization

logger = logging.getLogger(__name__)

"""
Default regularized step as a fraction of the regularization's maximum step.
"""
DEFAULT_STEP_FRACTION = 1.0 / 16.0


class Rk4s:
    """Time-regularized fixed-step RK4 integrator.

    Args:
        eom: Composer to integrate.  Owned by the integrator.
        epc: Initial epoch, the origin of the regularization's elapsed time.
        x: Initial inertial state ``[r, v]`` [DU, DU/TU] of an elliptical
            orbit.
        ds: Regularized step.  Default: ``max_step() / 16``.  A negative
            value integrates backward.

    Raises:
        ConfigurationError: If *ds* is zero, *x* is not a 6-vector, or the
            orbit is not elliptical.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbprop import Epoch, EquationsOfMotion, GravityJn, Rk4s
        rk = Rk4s(EquationsOfMotion(GravityJn(2)), Epoch(2451545.0),
                  jnp.array([1.1, 0.0, 0.0, 0.0, 1.2, 0.0]))
        epc = rk.advance()
        ```
    """

    def __init__(
        self,
        eom: EquationsOfMotion,
        epc: Epoch,
        x: ArrayLike,
        ds: float | None = None,
    ):
        x = jnp.asarray(x, dtype=get_dtype())
        if x.shape != (6,):
            raise ConfigurationError(f"State must have shape (6,), got {x.shape}.")
        if ds is not None and ds == 0.0:
            raise ConfigurationError("Regularized step must be nonzero.")

        self._eom = eom
        self._epoch0 = epc
        self._x0 = x
        self._reg = self._regularize()
        self._ds = float(ds) if ds is not None else self._reg.max_step() * DEFAULT_STEP_FRACTION

    def _regularize(self) -> Regularization:
        dx = self._eom(self._epoch0, self._x0, EvalMethod.CORRECTOR)
        return SundmanRegularization(self._x0, dx)

    @property
    def eom(self) -> EquationsOfMotion:
        return self._eom

    @property
    def regularization(self) -> Regularization:
        return self._reg

    @property
    def step_size(self) -> float:
        """The fixed regularized step."""
        return self._ds

    @property
    def step_direction(self) -> StepDirection:
        return StepDirection.BACKWARD if self._ds < 0.0 else StepDirection.FORWARD

    def time(self) -> Epoch:
        return self._epoch0 + self._reg.elapsed_time()

    def state(self) -> Array:
        return self._reg.state()

    def derivative(self) -> Array:
        return self._reg.derivative()

    def _stage(self, y: Array, dy: Array) -> Array:
        """Evaluate the regularized derivative at stage state *y*."""
        dy = dy.at[0:4].set(y[4:8])
        self._reg.set_regularized_state(y, dy)
        elapsed = self._reg.elapsed_time()
        x = self._reg.state()
        dx = self._eom(self._epoch0 + elapsed, x, EvalMethod.CORRECTOR)
        self._reg.set_time_state(elapsed, x, dx)
        return self._reg.regularized_derivative()

    def advance(self) -> Epoch:
        """Take one RK4 step of the regularized variable.

        Returns:
            Epoch: Epoch of the new state.
        """
        ds = self._ds
        y0 = self._reg.regularized_state()
        yd = self._reg.regularized_derivative()

        ya = ds * yd
        yy = y0 + 0.5 * ya
        yd = self._stage(yy, yd)

        q = ds * yd
        yy = y0 + 0.5 * q
        ya = ya + 2.0 * q
        yd = self._stage(yy, yd)

        q = ds * yd
        yy = y0 + q
        ya = ya + 2.0 * q
        yd = self._stage(yy, yd)

        yy = y0 + (ya + ds * yd) / 6.0
        # Derivative at the accepted state
        self._stage(yy, yd)
        return self.time()

    def reset(self) -> None:
        """Return to the initial conditions, keeping the step direction."""
        self._reg = self._regularize()

    def reset_and_reverse(self) -> None:
        """Return to the initial conditions and reverse the step direction."""
        self._reg = self._regularize()
        self._ds = -self._ds
