"""Conversions between the inertial frame and the central body's rotating frame.

The equations of motion evaluate central-body gravity in body-fixed
coordinates and everything else in inertial coordinates.  The conversion is
injected as a :class:`FrameConverter`; two reference converters are
provided:

- :class:`InertialFrame`: body-fixed and inertial coincide (identity).
- :class:`EarthRotationFrame`: rotation about the z-axis by Greenwich Mean
  Sidereal Time, ignoring precession, nutation and polar motion.

Either may be restricted to a validity span, outside of which conversions
raise :class:`~orbprop.errors.OutOfRangeError`.  Converters hold no mutable
state and may be shared between composers and ephemerides.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbprop.config import get_dtype
from orbprop.epoch import Epoch
from orbprop.errors import ConfigurationError, OutOfRangeError


def rotation_x(angle: ArrayLike) -> Array:
    """Rotation matrix for a frame rotation about the x-axis.

    Args:
        angle: Counter-clockwise angle of rotation [rad].

    Returns:
        ``(3, 3)`` rotation matrix.
    """
    c = jnp.cos(angle)
    s = jnp.sin(angle)
    return jnp.array([[1.0, 0.0, 0.0],
                      [0.0,  +c,  +s],
                      [0.0,  -s,  +c]], dtype=get_dtype())


def rotation_z(angle: ArrayLike) -> Array:
    """Rotation matrix for a frame rotation about the z-axis.

    Args:
        angle: Counter-clockwise angle of rotation [rad].

    Returns:
        ``(3, 3)`` rotation matrix.
    """
    c = jnp.cos(angle)
    s = jnp.sin(angle)
    return jnp.array([[ +c,  +s, 0.0],
                      [ -s,  +c, 0.0],
                      [0.0, 0.0, 1.0]], dtype=get_dtype())


@runtime_checkable
class FrameConverter(Protocol):
    """Maps vectors between the inertial and body-fixed frames at an epoch."""

    def to_body_fixed(self, epc: Epoch, vec: ArrayLike) -> Array:
        """Express an inertial 3-vector in body-fixed components."""
        ...

    def to_inertial(self, epc: Epoch, vec: ArrayLike) -> Array:
        """Express a body-fixed 3-vector in inertial components."""
        ...


class _Span:
    """Optional [begin, end] validity window shared by the reference frames."""

    def __init__(self, begin: Epoch | None = None, end: Epoch | None = None):
        if begin is not None and end is not None and bool(end < begin):
            raise ConfigurationError(
                f"Validity span ends ({end}) before it begins ({begin})."
            )
        self._begin = begin
        self._end = end

    @property
    def begin(self) -> Epoch | None:
        return self._begin

    @property
    def end(self) -> Epoch | None:
        return self._end

    def _check(self, epc: Epoch) -> None:
        if self._begin is not None and bool(epc < self._begin):
            raise OutOfRangeError(
                f"{type(self).__name__} queried at {epc}, before {self._begin}."
            )
        if self._end is not None and bool(epc > self._end):
            raise OutOfRangeError(
                f"{type(self).__name__} queried at {epc}, after {self._end}."
            )


class InertialFrame(_Span):
    """Identity conversion: the body-fixed frame does not rotate.

    Args:
        begin: First epoch at which conversions are valid (optional).
        end: Last epoch at which conversions are valid (optional).
    """

    def to_body_fixed(self, epc: Epoch, vec: ArrayLike) -> Array:
        self._check(epc)
        return jnp.asarray(vec, dtype=get_dtype())

    def to_inertial(self, epc: Epoch, vec: ArrayLike) -> Array:
        self._check(epc)
        return jnp.asarray(vec, dtype=get_dtype())


class EarthRotationFrame(_Span):
    """Body-fixed frame rotating about the inertial z-axis at GMST.

    Args:
        begin: First epoch at which conversions are valid (optional).
        end: Last epoch at which conversions are valid (optional).

    Examples:
        ```python
        import jax.numpy as jnp
        from orbprop import Epoch, EarthRotationFrame
        frame = EarthRotationFrame()
        r_f = frame.to_body_fixed(Epoch(2451545.0), jnp.array([1.1, 0.0, 0.0]))
        ```
    """

    def to_body_fixed(self, epc: Epoch, vec: ArrayLike) -> Array:
        self._check(epc)
        return rotation_z(epc.gmst()) @ jnp.asarray(vec, dtype=get_dtype())

    def to_inertial(self, epc: Epoch, vec: ArrayLike) -> Array:
        self._check(epc)
        return rotation_z(epc.gmst()).T @ jnp.asarray(vec, dtype=get_dtype())
