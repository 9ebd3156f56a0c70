"""Time regularization for near-singular orbital motion.

The generalized Sundman transformation replaces physical time *t* with a
new independent variable *s* through

.. math::

    \\frac{dt}{ds} = \\frac{r^{n}}{\\sqrt{GM}}, \\qquad n = 1.5

so that equal steps in *s* become short in time near periapsis and long
near apoapsis.  The regularized state is the 8-vector
``y = [t, r, dt/ds, dr/ds]`` and its derivative with respect to *s* is
``dy = [dt/ds, dr/ds, d2t/ds2, d2r/ds2]``.

:class:`SundmanRegularization` keeps the time-domain and regularized
representations of one state in step: setting either recomputes the other.
The regularized integrator drives it through the :class:`Regularization`
protocol.

References:
    1. M. Berry and L. Healy, "The generalized Sundman transformation for
       propagation of high-eccentricity elliptical orbits", AAS 02-109, 2002.
"""

from __future__ import annotations

import math
from typing import Protocol, runtime_checkable

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbprop.config import get_dtype
from orbprop.constants import GM
from orbprop.duration import Duration
from orbprop.errors import ConfigurationError

"""
Order of the generalized Sundman transformation (dt/ds ~ r^ORDER).
"""
ORDER = 1.5

"""
Quadrature intervals per half revolution used to size the regularized period.
"""
HALF_REV_INTERVALS = 18

"""
Regularized steps per revolution that define the maximum step.
"""
STEPS_PER_REV = 120.0


@runtime_checkable
class Regularization(Protocol):
    """Contract between a regularized integrator and its transformation."""

    def state(self) -> Array:
        """Current time-domain state ``[r, v]``."""
        ...

    def derivative(self) -> Array:
        """Current time-domain derivative ``[v, a]``."""
        ...

    def elapsed_time(self) -> Duration:
        """Physical time elapsed since the transformation's origin."""
        ...

    def regularized_state(self) -> Array:
        """Current regularized state ``y``."""
        ...

    def regularized_derivative(self) -> Array:
        """Current regularized derivative ``dy``."""
        ...

    def set_time_state(self, time: Duration, x: ArrayLike, dx: ArrayLike) -> None:
        """Set the time-domain state and recompute the regularized one."""
        ...

    def set_regularized_state(self, y: ArrayLike, dy: ArrayLike) -> None:
        """Set the regularized state and recompute the time-domain one."""
        ...

    def max_step(self) -> float:
        """Largest recommended regularized step."""
        ...


def eccentricity(x: ArrayLike, gm: float = GM) -> float:
    """Eccentricity of the osculating orbit of a Cartesian state.

    Args:
        x: Inertial state ``[r, v]`` [DU, DU/TU].
        gm: Gravitational parameter [DU^3/TU^2].

    Returns:
        Magnitude of the eccentricity vector.
    """
    x = jnp.asarray(x, dtype=get_dtype())
    r, v = x[:3], x[3:6]
    rmag = jnp.linalg.norm(r)
    e_vec = ((jnp.dot(v, v) - gm / rmag) * r - jnp.dot(r, v) * v) / gm
    return float(jnp.linalg.norm(e_vec))


def regularized_period(ecc: float) -> float:
    """Length of one revolution in the regularized variable (GM = 1).

    Integrates ``(1 + e cos theta)^(-1/2)`` over a full revolution with the
    trapezoid rule, using :data:`HALF_REV_INTERVALS` intervals per half
    revolution and the orbit's symmetry about the apse line.

    Args:
        ecc: Orbital eccentricity, ``0 <= ecc < 1``.

    Returns:
        Regularized period.

    Raises:
        ConfigurationError: If the orbit is not elliptical.
    """
    if not 0.0 <= ecc < 1.0:
        raise ConfigurationError(
            f"Time regularization requires an elliptical orbit, got e = {ecc}."
        )
    dtheta = math.pi / HALF_REV_INTERVALS
    total = 0.5 * (1.0 / math.sqrt(1.0 + ecc) + 1.0 / math.sqrt(1.0 - ecc))
    for ii in range(1, HALF_REV_INTERVALS):
        total += 1.0 / math.sqrt(1.0 + ecc * math.cos(ii * dtheta))
    return 2.0 * dtheta * total


class SundmanRegularization:
    """Generalized Sundman transformation of order 1.5.

    Constructed from an initial state and its time derivative; the
    elapsed time starts at zero.

    Args:
        x: Initial inertial state ``[r, v]`` [DU, DU/TU].
        dx: Time derivative of *x* ``[v, a]`` [DU/TU, DU/TU^2].

    Raises:
        ConfigurationError: If *x* does not describe an elliptical orbit.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbprop.regularize import SundmanRegularization
        x = jnp.array([1.1, 0.0, 0.0, 0.0, 1.0, 0.0])
        dx = jnp.array([0.0, 1.0, 0.0, -1.0 / 1.21, 0.0, 0.0])
        reg = SundmanRegularization(x, dx)
        reg.max_step()
        ```
    """

    def __init__(self, x: ArrayLike, dx: ArrayLike):
        self._ds_max = regularized_period(eccentricity(x)) / STEPS_PER_REV
        self._time = Duration(0.0)
        self._x = None
        self._dx = None
        self._y = None
        self._dy = None
        self.set_time_state(self._time, x, dx)

    def max_step(self) -> float:
        return self._ds_max

    def elapsed_time(self) -> Duration:
        return self._time

    def state(self) -> Array:
        return self._x

    def derivative(self) -> Array:
        return self._dx

    def regularized_state(self) -> Array:
        return self._y

    def regularized_derivative(self) -> Array:
        return self._dy

    def set_time_state(self, time: Duration, x: ArrayLike, dx: ArrayLike) -> None:
        """Set the time-domain state and recompute the regularized one.

        Args:
            time: Elapsed time since the origin.
            x: Inertial state ``[r, v]``.
            dx: Time derivative ``[v, a]``.
        """
        _float = get_dtype()
        x = jnp.asarray(x, dtype=_float)
        dx = jnp.asarray(dx, dtype=_float)
        r, v = x[:3], x[3:6]

        r2 = jnp.dot(r, r)
        rmag = jnp.sqrt(r2)
        dt_ds2 = rmag * r2 / GM           # (dt/ds)^2
        dt_ds = jnp.sqrt(dt_ds2)
        d2t_ds2 = ORDER * rmag * jnp.dot(r, v) / GM

        dr_ds = dt_ds * dx[:3]
        d2r_ds2 = d2t_ds2 * dx[:3] + dt_ds2 * dx[3:6]

        self._time = time
        self._x = x
        self._dx = dx
        self._y = jnp.concatenate([jnp.atleast_1d(time.tu).astype(_float), r,
                                   jnp.atleast_1d(dt_ds), dr_ds])
        self._dy = jnp.concatenate([jnp.atleast_1d(dt_ds), dr_ds,
                                    jnp.atleast_1d(d2t_ds2), d2r_ds2])

    def set_regularized_state(self, y: ArrayLike, dy: ArrayLike) -> None:
        """Set the regularized state and recompute the time-domain one.

        Only ``dy[5:8]`` (d2r/ds2) is used to recover the acceleration;
        the velocity follows from ``dy[1:4]``.

        Args:
            y: Regularized state ``[t, r, dt/ds, dr/ds]``.
            dy: Regularized derivative ``[dt/ds, dr/ds, d2t/ds2, d2r/ds2]``.
        """
        _float = get_dtype()
        y = jnp.asarray(y, dtype=_float)
        dy = jnp.asarray(dy, dtype=_float)

        r = y[1:4]
        r2 = jnp.dot(r, r)
        ds_dt2 = GM / (jnp.sqrt(r2) * r2)  # (ds/dt)^2
        ds_dt = jnp.sqrt(ds_dt2)

        v = ds_dt * dy[1:4]
        a = ds_dt2 * dy[5:8] - (ORDER * jnp.dot(r, v) / r2) * v

        self._y = y
        self._dy = dy
        self._time = Duration.from_tu(y[0])
        self._x = jnp.concatenate([r, v])
        self._dx = jnp.concatenate([v, a])
