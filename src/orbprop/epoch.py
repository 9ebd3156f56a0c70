"""The epoch module provides the ``Epoch`` class for representing instants in time.

The Epoch class uses an internal representation of integer Julian Day number,
seconds within the day, and a Kahan summation compensator for maintaining
precision during arithmetic operations.

The Kahan compensator tracks floating-point rounding errors that accumulate
during repeated additions (e.g., stepping an integrator thousands of times),
preventing error growth from O(N) to O(1) machine epsilon.

Epochs are advanced by :class:`~orbprop.duration.Duration` values and the
difference of two epochs is a ``Duration``.  Calendar conversion and
time-scale bookkeeping are left to the caller: an ``Epoch`` is built from a
Julian date, either as one float or as an integer day plus a day fraction.

The Epoch class is registered as a JAX pytree.
"""

from __future__ import annotations

import math

import jax
import jax.numpy as jnp

from orbprop.config import get_dtype, get_epoch_eq_tolerance
from orbprop.constants import JD_J2000, JD_MJD_OFFSET, SEC_PER_DAY
from orbprop.duration import Duration


class Epoch:
    """Represents a single instant in time with high-precision arithmetic.

    The internal representation uses three private components:
        ``_jd`` (jnp.int32), ``_seconds`` and ``_kahan_c`` (float, in the
        configured dtype).
    Use ``jd()`` and ``mjd()`` to access the absolute time as Julian Date
    or Modified Julian Date.

    Precision note:
        The ``jd()`` and ``mjd()`` accessors return a single float, which
        loses sub-day precision in float32.  For time differences use epoch
        subtraction (``epc1 - epc2``) which preserves the split
        representation.

    Constructors:
        Epoch(2451545.0)
        Epoch(2451545, 0.25)
        Epoch(other_epoch)
    """

    __slots__ = ('_jd', '_seconds', '_kahan_c')

    def __init__(self, *args: int | float | Epoch) -> None:
        """Initialize Epoch. Supports multiple constructor forms.

        Args:
            *args: Either a Julian date, a Julian day number and a day
                fraction, or another Epoch instance.

        Raises:
            ValueError: If the arguments do not match a constructor form.
        """
        _float = get_dtype()
        self._kahan_c = _float(0.0)

        if len(args) == 1 and isinstance(args[0], Epoch):
            other = args[0]
            self._jd = other._jd
            self._seconds = other._seconds
            self._kahan_c = other._kahan_c
            return

        if len(args) == 1 and isinstance(args[0], (int, float)):
            jd_int = int(math.floor(args[0]))
            fraction = float(args[0]) - jd_int
        elif len(args) == 2:
            jd_int = int(args[0])
            fraction = float(args[1])
        else:
            raise ValueError(
                "Epoch requires a Julian date, a (day, fraction) pair, or an Epoch"
            )

        self._jd = jnp.int32(jd_int)
        self._seconds = _float(fraction * SEC_PER_DAY)
        self._normalize()

    @classmethod
    def from_mjd(cls, mjd: float) -> Epoch:
        """Create an Epoch from a Modified Julian Date."""
        whole = math.floor(mjd)
        return cls(int(whole) + 2400000, 0.5 + (mjd - whole))

    @classmethod
    def _from_internal(cls, jd, seconds, kahan_c):
        """Create an Epoch from raw JAX arrays without normalization."""
        obj = object.__new__(cls)
        obj._jd = jd
        obj._seconds = seconds
        obj._kahan_c = kahan_c
        return obj

    def _normalize(self):
        """Normalize seconds to [0, 86400) by adjusting the Julian day number."""
        _float = get_dtype()
        day_offset = jnp.int32(jnp.floor(self._seconds / SEC_PER_DAY))
        self._seconds = self._seconds - _float(day_offset) * _float(SEC_PER_DAY)
        self._jd = self._jd + day_offset

    def _compensated_seconds(self):
        return self._seconds - self._kahan_c

    def _add_seconds(self, delta) -> Epoch:
        """Return a new Epoch advanced by *delta* seconds (Kahan summation)."""
        _float = get_dtype()
        delta = jnp.asarray(delta, dtype=_float)
        y = delta - self._kahan_c
        t = self._seconds + y
        new_kahan_c = (t - self._seconds) - y
        new_seconds = t

        day_offset = jnp.int32(jnp.floor(new_seconds / SEC_PER_DAY))
        new_seconds = new_seconds - _float(day_offset) * _float(SEC_PER_DAY)
        new_jd = self._jd + day_offset

        return Epoch._from_internal(new_jd, new_seconds, new_kahan_c)

    # Arithmetic operators

    def __add__(self, delta: Duration) -> Epoch:
        """Return a new Epoch advanced by a Duration.

        Args:
            delta (Duration): Time span to add. May be negative.

        Returns:
            Epoch: New Epoch advanced by *delta*.
        """
        if not isinstance(delta, Duration):
            return NotImplemented
        return self._add_seconds(delta.seconds)

    __radd__ = __add__

    def __sub__(self, other: Epoch | Duration) -> Epoch | Duration:
        """Subtract a Duration or compute the span between two Epochs.

        Args:
            other: If Epoch, returns the signed span ``self - other``.
                If Duration, returns a new Epoch moved back by it.

        Returns:
            Duration or Epoch.
        """
        if isinstance(other, Epoch):
            seconds = ((self._jd - other._jd) * SEC_PER_DAY
                       + (self._compensated_seconds()
                          - other._compensated_seconds()))
            return Duration.from_seconds(seconds)
        if isinstance(other, Duration):
            return self._add_seconds(-other.seconds)
        return NotImplemented

    # Comparison operators

    def _diff_seconds(self, other):
        return ((self._jd - other._jd) * SEC_PER_DAY
                + (self._compensated_seconds() - other._compensated_seconds()))

    def __eq__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return jnp.abs(self._diff_seconds(other)) <= get_epoch_eq_tolerance()

    def __ne__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return ~self.__eq__(other)

    def __lt__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return self._diff_seconds(other) < 0.0

    def __le__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return self.__lt__(other) | self.__eq__(other)

    def __gt__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return self._diff_seconds(other) > 0.0

    def __ge__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return self.__gt__(other) | self.__eq__(other)

    # Time properties

    def jd(self) -> jax.Array:
        """Return the Julian Date as a single float (lossy in float32)."""
        _float = get_dtype()
        return _float(self._jd) + self._compensated_seconds() / _float(SEC_PER_DAY)

    def mjd(self) -> jax.Array:
        """Return the Modified Julian Date as a single float."""
        _float = get_dtype()
        return (_float(self._jd - jnp.int32(2400000))
                + self._compensated_seconds() / _float(SEC_PER_DAY)
                - _float(JD_MJD_OFFSET - 2400000.0))

    def days_since_j2000(self) -> jax.Array:
        """Return the days elapsed since J2000.0, computed from the split form.

        The integer day difference is exact, so the result keeps the
        sub-day precision that ``jd()`` loses.

        Returns:
            Days since 2000-01-01 12:00:00 (negative before it).
        """
        _float = get_dtype()
        days = _float(self._jd - jnp.int32(int(JD_J2000)))
        return days + self._compensated_seconds() / _float(SEC_PER_DAY)

    # Sidereal time

    def gmst(self, use_degrees: bool = False) -> jax.Array:
        """Compute Greenwich Mean Sidereal Time using the IAU 1982 model.

        Uses the Vallado GMST82 polynomial approximation with UT1 taken as
        the epoch's own time scale.

        Args:
            use_degrees (bool): If True, return in degrees. Default: False
                (radians).

        Returns:
            Greenwich Mean Sidereal Time in [0, 2pi). Units: rad (or deg if
                use_degrees=True)

        References:

            1. D. Vallado, *Fundamentals of Astrodynamics and Applications
               (4th Ed.)*, 2010.
        """
        _float = get_dtype()
        t_ut1 = self.days_since_j2000() / _float(36525.0)

        # GMST in seconds of time
        gmst_sec = (_float(67310.54841)
                    + _float(876600.0 * 3600.0 + 8640184.812866) * t_ut1
                    + _float(0.093104) * t_ut1 * t_ut1
                    - _float(6.2e-6) * t_ut1 * t_ut1 * t_ut1)

        # 1 second of time = 1/240 degree
        gmst_rad = (gmst_sec / _float(240.0) * jnp.pi / _float(180.0)) % (_float(2.0) * jnp.pi)
        gmst_rad = jnp.where(gmst_rad < 0, gmst_rad + _float(2.0) * jnp.pi, gmst_rad)

        return jnp.where(use_degrees, gmst_rad * _float(180.0) / jnp.pi, gmst_rad)

    # String representations

    def __str__(self):
        return f'JD {int(self._jd)} + {float(self._compensated_seconds()):.6f} s'

    def __repr__(self):
        return (f'Epoch(_jd={int(self._jd)}, _seconds={float(self._seconds)}, '
                f'_kahan_c={float(self._kahan_c)})')

    def __hash__(self):
        return hash((int(self._jd), round(float(self._seconds), 3)))


# Register Epoch as a JAX pytree so it can be used with jit, vmap, scan, etc.
jax.tree_util.register_pytree_node(
    Epoch,
    lambda e: ((e._jd, e._seconds, e._kahan_c), None),
    lambda _, children: Epoch._from_internal(*children),
)
