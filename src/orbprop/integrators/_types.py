"""Type definitions for numerical integrators.

- :class:`StepResult`: output of the functional step kernel and of one
  multistep predictor-corrector cycle.
- :class:`MultistepConfig`: tuning of the multistep integrator's corrector
  and step-size control.
- :class:`StepDirection`: direction of propagation.
- :class:`Integrator`: the contract shared by every stateful integrator.

The named tuples are JAX pytrees automatically.
"""

from __future__ import annotations

import enum
from typing import NamedTuple, Protocol, runtime_checkable

from jax import Array

from orbprop.epoch import Epoch


class StepResult(NamedTuple):
    """Result of a single integrator step.

    Attributes:
        state: State vector at the end of the step.
        dt_used: Step actually taken.
        error_estimate: Scaled local error estimate.  Always 0.0 for RK4.
        dt_next: Step to use next.  Equals ``dt_used`` unless step-size
            control changed it.
    """

    state: Array
    dt_used: object
    error_estimate: Array
    dt_next: object


class MultistepConfig(NamedTuple):
    """Configuration of the multistep predictor-corrector.

    Step bounds are in minutes; tolerances are on the state scaled by
    ``max(1, |x|_inf)``.  Tolerances left at ``None`` are taken from
    :func:`~orbprop.config.get_multistep_tolerances` for the dtype active
    when the integrator is built.

    Attributes:
        corrector_tol: Convergence threshold of the corrector iteration:
            largest scaled change of the state between two passes.
        max_corrector_passes: Corrector passes allowed per step before the
            step is declared nonconvergent.
        error_tol: Largest accepted local error estimate (scaled difference
            between corrected and predicted state).  Larger estimates
            reject the step and halve the step size.
        double_after: Consecutive steps with an error estimate below
            ``error_tol / 2**10`` after which the step size is doubled.
        min_step: Smallest step the integrator may halve to [min].
        max_step: Largest step the integrator may double to [min].
        step_control: Enable step halving and doubling.
    """

    corrector_tol: float | None = None
    max_corrector_passes: int = 6
    error_tol: float | None = None
    double_after: int = 8
    min_step: float = 1e-3
    max_step: float = 60.0
    step_control: bool = True


class StepDirection(enum.Enum):
    """Direction of propagation."""

    FORWARD = 1
    BACKWARD = -1


@runtime_checkable
class Integrator(Protocol):
    """Owns one equations-of-motion composer and one (time, state, derivative)."""

    def time(self) -> Epoch:
        ...

    def state(self) -> Array:
        ...

    def derivative(self) -> Array:
        ...

    def advance(self) -> Epoch:
        ...

    def reset(self) -> None:
        ...

    def reset_and_reverse(self) -> None:
        ...

    @property
    def step_direction(self) -> StepDirection:
        ...
