"""Shared interfaces for acceleration providers.

Two provider families feed the equations of motion:

- :class:`CentralBodyGravity`: body-fixed position in, body-fixed
  acceleration components out (the time derivative is still taken with
  respect to the inertial frame; no Coriolis or centrifugal terms).
- :class:`ForceModel`: epoch and full inertial state in, inertial
  acceleration out.

Every evaluation carries an :class:`EvalMethod` tag.  Integrators guarantee
that within one step the ``PREDICTOR`` evaluation happens before the
``CORRECTOR`` evaluations, which lets expensive providers reuse the part of
the last corrector result that is still valid.  Cheap providers ignore the
tag.
"""

from __future__ import annotations

import enum
from typing import Protocol, runtime_checkable

from jax import Array
from jax.typing import ArrayLike

from orbprop.epoch import Epoch


class EvalMethod(enum.Enum):
    """Which pass of a step an acceleration evaluation belongs to."""

    PREDICTOR = "predictor"
    CORRECTOR = "corrector"


@runtime_checkable
class CentralBodyGravity(Protocol):
    """Gravity of the central body, evaluated in body-fixed coordinates."""

    def acceleration(
        self, pos_f: ArrayLike, method: EvalMethod = EvalMethod.PREDICTOR
    ) -> Array:
        """Acceleration at body-fixed position *pos_f* [DU/TU^2], shape ``(3,)``."""
        ...


@runtime_checkable
class ForceModel(Protocol):
    """A perturbing acceleration, evaluated in inertial coordinates."""

    def acceleration(
        self,
        epc: Epoch,
        state: ArrayLike,
        method: EvalMethod = EvalMethod.PREDICTOR,
    ) -> Array:
        """Acceleration at inertial *state* and *epc* [DU/TU^2], shape ``(3,)``."""
        ...
