"""Numerical integrators for the equations of motion.

Four interchangeable integrators share one contract (:class:`Integrator`):
``advance()`` takes one internal step and returns the new epoch, and
``time()``, ``state()`` and ``derivative()`` read the current triple, which
is always mutually consistent.

- :class:`Rk4`: fixed-step classical Runge-Kutta, self-starting.
- :class:`Rk4s`: fixed-step RK4 in a Sundman-regularized variable.
- :class:`Adams4`: fixed-step 4th-order Adams-Bashforth-Moulton
  predictor-corrector with RK4 startup.
- :class:`GaussJackson`: multistep predictor-corrector with RK4 startup
  and step halving/doubling.

The functional kernel :func:`rk4_step` is exported for use with plain
callables.
"""

from orbprop.integrators._types import (
    Integrator,
    MultistepConfig,
    StepDirection,
    StepResult,
)
from orbprop.integrators.adams4 import Adams4
from orbprop.integrators.gauss_jackson import GaussJackson, difference_coefficients
from orbprop.integrators.rk4 import DEFAULT_STEP_MINUTES, Rk4, rk4_step
from orbprop.integrators.rk4s import Rk4s

__all__ = [
    # Types
    "Integrator",
    "MultistepConfig",
    "StepDirection",
    "StepResult",
    # Fixed step
    "DEFAULT_STEP_MINUTES",
    "Rk4",
    "rk4_step",
    # Regularized
    "Rk4s",
    # Multistep
    "Adams4",
    "GaussJackson",
    "difference_coefficients",
]
