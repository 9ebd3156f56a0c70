"""Equations of motion: central-body gravity plus perturbations.

:class:`EquationsOfMotion` turns an epoch and a 6-element inertial state
``[r, v]`` into its time derivative ``[v, a]``.  The central-body provider
is evaluated on the body-fixed position and its result rotated back to
inertial components; perturbation providers are evaluated on the inertial
state in the order they were added and summed.

The composer does not catch anything: errors raised by the frame converter
or by a provider (e.g. an ephemeris queried out of range) reach the caller
unchanged.
"""

from __future__ import annotations

import logging

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbprop.config import get_dtype
from orbprop.dynamics._types import CentralBodyGravity, EvalMethod, ForceModel
from orbprop.epoch import Epoch
from orbprop.errors import ConfigurationError
from orbprop.frames import FrameConverter, InertialFrame

logger = logging.getLogger(__name__)


class EquationsOfMotion:
    """Composes central-body gravity with perturbing force models.

    Providers are owned by the composer once passed in: registering the
    same instance twice, or a provider that is also the central body, is
    rejected.  The perturbation list is append-only.

    Args:
        gravity: Central-body gravity provider.
        frame_converter: Inertial/body-fixed converter.  Default:
            :class:`~orbprop.frames.InertialFrame`.
        force_models: Initial perturbation providers, in evaluation order.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbprop import Epoch, EquationsOfMotion, GravityJn
        eom = EquationsOfMotion(GravityJn(2))
        dx = eom(Epoch(2451545.0), jnp.array([1.1, 0.0, 0.0, 0.0, 0.95, 0.0]))
        ```
    """

    def __init__(
        self,
        gravity: CentralBodyGravity,
        frame_converter: FrameConverter | None = None,
        force_models: tuple[ForceModel, ...] | list[ForceModel] = (),
    ):
        if gravity is None:
            raise ConfigurationError("EquationsOfMotion requires a central-body gravity provider.")
        self._gravity = gravity
        self._frame = frame_converter if frame_converter is not None else InertialFrame()
        self._force_models: list[ForceModel] = []
        self._evaluations = 0
        for fm in force_models:
            self.add_force_model(fm)

    @property
    def gravity(self) -> CentralBodyGravity:
        """The central-body gravity provider."""
        return self._gravity

    @property
    def frame_converter(self) -> FrameConverter:
        return self._frame

    @property
    def force_models(self) -> tuple[ForceModel, ...]:
        """Registered perturbation providers, in evaluation order."""
        return tuple(self._force_models)

    @property
    def evaluation_count(self) -> int:
        """Number of derivative evaluations performed so far."""
        return self._evaluations

    def add_force_model(self, force_model: ForceModel) -> None:
        """Append a perturbation provider and take ownership of it.

        Args:
            force_model: Provider with an ``acceleration(epc, state, method)``
                method.

        Raises:
            ConfigurationError: If the instance is already registered.
        """
        if force_model is self._gravity or any(fm is force_model for fm in self._force_models):
            raise ConfigurationError(
                f"{type(force_model).__name__} instance is already owned by this composer."
            )
        self._force_models.append(force_model)
        logger.debug("Added force model %s", type(force_model).__name__)

    def derivative(
        self,
        epc: Epoch,
        x: ArrayLike,
        method: EvalMethod = EvalMethod.PREDICTOR,
    ) -> Array:
        """Time derivative of the inertial state.

        Args:
            epc: Epoch of the state.
            x: Inertial state ``[r, v]`` [DU, DU/TU], shape ``(6,)``.
            method: Evaluation mode passed to every provider.

        Returns:
            Derivative ``[v, a]`` [DU/TU, DU/TU^2], shape ``(6,)``.  The
            first three elements are the input velocity, bit for bit.
        """
        x = jnp.asarray(x, dtype=get_dtype())
        self._evaluations += 1

        pos_f = self._frame.to_body_fixed(epc, x[:3])
        acc = self._frame.to_inertial(epc, self._gravity.acceleration(pos_f, method))
        for fm in self._force_models:
            acc = acc + fm.acceleration(epc, x, method)

        return jnp.concatenate([x[3:6], acc])

    __call__ = derivative

    def __repr__(self) -> str:
        names = ", ".join(type(fm).__name__ for fm in self._force_models)
        return f"EquationsOfMotion(gravity={self._gravity!r}, force_models=[{names}])"
