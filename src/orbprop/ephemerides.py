"""Ephemeris sources for perturbing bodies.

Perturbation force models query the position of the perturbing body through
the :class:`Ephemeris` protocol, ``position_at(epc, frame)``, which returns a
3-vector in DU.  Reference sources provided here:

- :class:`SunEphemeris` and :class:`MoonEphemeris`: the low-precision
  analytical models of Montenbruck & Gill (about 0.1 deg accuracy), which
  is adequate for third-body and radiation-pressure modelling.
- :class:`FixedEphemeris`: a body held at a constant inertial position.

Ephemerides are read-only after construction and may be shared between any
number of force models.  A request in the body-fixed frame is answered by
rotating the inertial position with the injected
:class:`~orbprop.frames.FrameConverter`.

.. note::

    The analytical models take Julian centuries from J2000 in the epoch's
    own time scale; the difference between UTC and TT is negligible at
    this level of accuracy.

References:
    1. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, 2012, p. 70-73.
"""

from __future__ import annotations

import abc
import enum
from typing import Protocol, runtime_checkable

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbprop.config import get_dtype
from orbprop.constants import AS2RAD, DEG2RAD, DU_PER_KM
from orbprop.epoch import Epoch
from orbprop.errors import ConfigurationError, OutOfRangeError
from orbprop.frames import FrameConverter, rotation_x

# Obliquity of the J2000 ecliptic [rad]
_EPSILON = 23.43929111 * DEG2RAD


class EphemFrame(enum.Enum):
    """Frame in which an ephemeris position is requested."""

    ECI = "eci"
    ECF = "ecf"


@runtime_checkable
class Ephemeris(Protocol):
    """Source of a perturbing body's position."""

    def position_at(self, epc: Epoch, frame: EphemFrame = EphemFrame.ECI) -> Array:
        """Position of the body at *epc* in *frame* [DU], shape ``(3,)``."""
        ...


def _julian_centuries(epc: Epoch) -> jax.Array:
    return epc.days_since_j2000() / get_dtype()(36525.0)


def _frac(x):
    """Fractional part of x: ``x - floor(x)``."""
    return x - jnp.floor(x)


def sun_position(epc: Epoch) -> Array:
    """Position of the Sun in the inertial (EME2000) frame.

    Args:
        epc: Epoch at which to compute the Sun's position.

    Returns:
        3-element Sun position vector [DU].

    Examples:
        ```python
        import jax.numpy as jnp
        from orbprop import Epoch
        from orbprop.ephemerides import sun_position
        r_sun = sun_position(Epoch(2460365.5))
        float(jnp.linalg.norm(r_sun))  # ~23455 DU (1 AU)
        ```
    """
    _float = get_dtype()
    pi2 = _float(2.0) * jnp.pi
    T = _julian_centuries(epc)

    # Mean anomaly and ecliptic longitude [rad]
    M = pi2 * _frac(_float(0.9931267) + _float(99.9973583) * T)
    L = pi2 * _frac(
        _float(0.7859444)
        + M / pi2
        + (_float(6892.0) * jnp.sin(M) + _float(72.0) * jnp.sin(_float(2.0) * M))
        / _float(1296.0e3)
    )

    # Distance [km]
    r_km = (_float(149.619e6)
            - _float(2.499e6) * jnp.cos(M)
            - _float(0.021e6) * jnp.cos(_float(2.0) * M))
    r = r_km * _float(DU_PER_KM)

    r_ecliptic = jnp.array([r * jnp.cos(L), r * jnp.sin(L), _float(0.0)])
    return rotation_x(-_EPSILON) @ r_ecliptic


def moon_position(epc: Epoch) -> Array:
    """Position of the Moon in the inertial (EME2000) frame.

    Args:
        epc: Epoch at which to compute the Moon's position.

    Returns:
        3-element Moon position vector [DU].
    """
    _float = get_dtype()
    pi2 = _float(2.0) * jnp.pi
    T = _julian_centuries(epc)

    # Mean elements of the lunar orbit
    L_0 = _frac(_float(0.606433) + _float(1336.851344) * T)      # mean longitude [rev]
    l_m = pi2 * _frac(_float(0.374897) + _float(1325.552410) * T)  # Moon mean anomaly
    l_s = pi2 * _frac(_float(0.993133) + _float(99.997361) * T)    # Sun mean anomaly
    D = pi2 * _frac(_float(0.827361) + _float(1236.853086) * T)    # Moon-Sun elongation
    F = pi2 * _frac(_float(0.259086) + _float(1342.227825) * T)    # argument of latitude

    # Longitude perturbation [arcsec], as (amplitude, argument) pairs
    dL = sum(
        _float(amp) * jnp.sin(arg)
        for amp, arg in (
            (22640.0, l_m),
            (-4586.0, l_m - 2.0 * D),
            (2370.0, 2.0 * D),
            (769.0, 2.0 * l_m),
            (-668.0, l_s),
            (-412.0, 2.0 * F),
            (-212.0, 2.0 * l_m - 2.0 * D),
            (-206.0, l_m + l_s - 2.0 * D),
            (192.0, l_m + 2.0 * D),
            (-165.0, l_s - 2.0 * D),
            (-125.0, D),
            (-110.0, l_m + l_s),
            (148.0, l_m - l_s),
            (-55.0, 2.0 * F - 2.0 * D),
        )
    )
    L = pi2 * _frac(L_0 + dL / _float(1296.0e3))

    # Ecliptic latitude [rad]
    S = F + (dL + _float(412.0) * jnp.sin(2.0 * F) + _float(541.0) * jnp.sin(l_s)) * _float(AS2RAD)
    h = F - 2.0 * D
    N = sum(
        _float(amp) * jnp.sin(arg)
        for amp, arg in (
            (-526.0, h),
            (44.0, l_m + h),
            (-31.0, -l_m + h),
            (-23.0, l_s + h),
            (11.0, -l_s + h),
            (-25.0, -2.0 * l_m + F),
            (21.0, -l_m + F),
        )
    )
    B = (_float(18520.0) * jnp.sin(S) + N) * _float(AS2RAD)

    # Distance [km]
    r_km = _float(385000.0) + sum(
        _float(amp) * jnp.cos(arg)
        for amp, arg in (
            (-20905.0, l_m),
            (-3699.0, 2.0 * D - l_m),
            (-2956.0, 2.0 * D),
            (-570.0, 2.0 * l_m),
            (246.0, 2.0 * l_m - 2.0 * D),
            (-205.0, l_s - 2.0 * D),
            (-171.0, l_m + 2.0 * D),
            (-152.0, l_m + l_s - 2.0 * D),
        )
    )
    r = r_km * _float(DU_PER_KM)

    r_ecliptic = jnp.array([
        r * jnp.cos(L) * jnp.cos(B),
        r * jnp.sin(L) * jnp.cos(B),
        r * jnp.sin(B),
    ])
    return rotation_x(-_EPSILON) @ r_ecliptic


class _EphemerisBase(abc.ABC):
    """Shared validity-span check and body-fixed rotation."""

    def __init__(
        self,
        frame_converter: FrameConverter | None = None,
        begin: Epoch | None = None,
        end: Epoch | None = None,
    ):
        if begin is not None and end is not None and bool(end < begin):
            raise ConfigurationError(
                f"Ephemeris span ends ({end}) before it begins ({begin})."
            )
        self._frame_converter = frame_converter
        self._begin = begin
        self._end = end

    @abc.abstractmethod
    def _inertial_position(self, epc: Epoch) -> Array:
        """Inertial position of the body at *epc* [DU]."""

    def position_at(self, epc: Epoch, frame: EphemFrame = EphemFrame.ECI) -> Array:
        """Position of the body at *epc* [DU].

        Args:
            epc: Epoch of the request.
            frame: ``EphemFrame.ECI`` (default) or ``EphemFrame.ECF``.

        Returns:
            Position vector, shape ``(3,)``.

        Raises:
            OutOfRangeError: If *epc* is outside the ephemeris span.
            ConfigurationError: If ``ECF`` is requested without a frame
                converter.
        """
        if self._begin is not None and bool(epc < self._begin):
            raise OutOfRangeError(
                f"{type(self).__name__} queried at {epc}, before {self._begin}."
            )
        if self._end is not None and bool(epc > self._end):
            raise OutOfRangeError(
                f"{type(self).__name__} queried at {epc}, after {self._end}."
            )

        r = self._inertial_position(epc)
        if frame is EphemFrame.ECF:
            if self._frame_converter is None:
                raise ConfigurationError(
                    f"{type(self).__name__} has no frame converter for ECF requests."
                )
            r = self._frame_converter.to_body_fixed(epc, r)
        return r


class SunEphemeris(_EphemerisBase):
    """Analytical Sun ephemeris.

    Args:
        frame_converter: Converter used to answer body-fixed requests.
        begin: First epoch at which the ephemeris may be queried (optional).
        end: Last epoch at which the ephemeris may be queried (optional).
    """

    def _inertial_position(self, epc: Epoch) -> Array:
        return sun_position(epc)


class MoonEphemeris(_EphemerisBase):
    """Analytical Moon ephemeris.

    Args:
        frame_converter: Converter used to answer body-fixed requests.
        begin: First epoch at which the ephemeris may be queried (optional).
        end: Last epoch at which the ephemeris may be queried (optional).
    """

    def _inertial_position(self, epc: Epoch) -> Array:
        return moon_position(epc)


class FixedEphemeris(_EphemerisBase):
    """A body held at a constant inertial position.

    Useful for test geometries, e.g. a Sun placed on an axis to check the
    shadow test of the radiation-pressure model.

    Args:
        position: Inertial position of the body [DU], shape ``(3,)``.
        frame_converter: Converter used to answer body-fixed requests.
        begin: First epoch at which the ephemeris may be queried (optional).
        end: Last epoch at which the ephemeris may be queried (optional).
    """

    def __init__(
        self,
        position: ArrayLike,
        frame_converter: FrameConverter | None = None,
        begin: Epoch | None = None,
        end: Epoch | None = None,
    ):
        super().__init__(frame_converter, begin, end)
        position = jnp.asarray(position, dtype=get_dtype())
        if position.shape != (3,):
            raise ConfigurationError(
                f"FixedEphemeris position must have shape (3,), got {position.shape}."
            )
        self._position = position

    def _inertial_position(self, epc: Epoch) -> Array:
        return self._position
