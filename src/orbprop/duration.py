"""The duration module provides the ``Duration`` class for time spans.

A ``Duration`` is a signed span of time stored internally in canonical
time units (TU, see :mod:`orbprop.constants`).  Integrators, force models
and epochs all exchange time increments as ``Duration`` values so that no
caller has to remember which unit a bare float is in.

The class is registered as a JAX pytree with a single leaf, so it can be
passed through ``jax.jit`` and ``jax.tree_util`` utilities.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp

from orbprop.config import get_dtype
from orbprop.constants import DAY_PER_TU, MIN_PER_TU, SEC_PER_TU


class Duration:
    """A signed time span in canonical time units.

    Constructors:
        Duration.from_tu(1.0)
        Duration.from_days(0.5)
        Duration.from_minutes(1.0)
        Duration.from_seconds(60.0)

    Arithmetic:
        ``Duration + Duration``, ``Duration - Duration``, ``-Duration``,
        ``Duration * scalar``, ``scalar * Duration``, ``Duration / scalar``
        and ``Duration / Duration`` (a plain ratio) are supported.
    """

    __slots__ = ('_tu',)

    def __init__(self, tu: float = 0.0) -> None:
        self._tu = jnp.asarray(tu, dtype=get_dtype())

    @classmethod
    def _from_internal(cls, tu):
        obj = object.__new__(cls)
        obj._tu = tu
        return obj

    # Constructors

    @classmethod
    def from_tu(cls, tu: float) -> Duration:
        """Create a duration from canonical time units."""
        return cls(tu)

    @classmethod
    def from_days(cls, days: float) -> Duration:
        """Create a duration from days."""
        return cls(jnp.asarray(days, dtype=get_dtype()) / DAY_PER_TU)

    @classmethod
    def from_minutes(cls, minutes: float) -> Duration:
        """Create a duration from minutes."""
        return cls(jnp.asarray(minutes, dtype=get_dtype()) / MIN_PER_TU)

    @classmethod
    def from_seconds(cls, seconds: float) -> Duration:
        """Create a duration from seconds."""
        return cls(jnp.asarray(seconds, dtype=get_dtype()) / SEC_PER_TU)

    # Accessors

    @property
    def tu(self) -> jax.Array:
        """Length of the span in canonical time units."""
        return self._tu

    @property
    def days(self) -> jax.Array:
        """Length of the span in days."""
        return self._tu * DAY_PER_TU

    @property
    def minutes(self) -> jax.Array:
        """Length of the span in minutes."""
        return self._tu * MIN_PER_TU

    @property
    def seconds(self) -> jax.Array:
        """Length of the span in seconds."""
        return self._tu * SEC_PER_TU

    # Arithmetic operators

    def __add__(self, other: Duration) -> Duration:
        if not isinstance(other, Duration):
            return NotImplemented
        return Duration._from_internal(self._tu + other._tu)

    def __sub__(self, other: Duration) -> Duration:
        if not isinstance(other, Duration):
            return NotImplemented
        return Duration._from_internal(self._tu - other._tu)

    def __neg__(self) -> Duration:
        return Duration._from_internal(-self._tu)

    def __abs__(self) -> Duration:
        return Duration._from_internal(jnp.abs(self._tu))

    def __mul__(self, scale) -> Duration:
        if isinstance(scale, Duration):
            return NotImplemented
        return Duration._from_internal(self._tu * scale)

    __rmul__ = __mul__

    def __truediv__(self, other):
        if isinstance(other, Duration):
            return self._tu / other._tu
        return Duration._from_internal(self._tu / other)

    # Comparison operators

    def __eq__(self, other):
        if not isinstance(other, Duration):
            return NotImplemented
        return self._tu == other._tu

    def __ne__(self, other):
        if not isinstance(other, Duration):
            return NotImplemented
        return self._tu != other._tu

    def __lt__(self, other):
        if not isinstance(other, Duration):
            return NotImplemented
        return self._tu < other._tu

    def __le__(self, other):
        if not isinstance(other, Duration):
            return NotImplemented
        return self._tu <= other._tu

    def __gt__(self, other):
        if not isinstance(other, Duration):
            return NotImplemented
        return self._tu > other._tu

    def __ge__(self, other):
        if not isinstance(other, Duration):
            return NotImplemented
        return self._tu >= other._tu

    def __hash__(self):
        return hash(float(self._tu))

    def __repr__(self):
        return f'Duration(tu={float(self._tu)!r})'

    def __str__(self):
        return f'{float(self.minutes):.6f} min'


jax.tree_util.register_pytree_node(
    Duration,
    lambda d: ((d._tu,), None),
    lambda _, children: Duration._from_internal(*children),
)
