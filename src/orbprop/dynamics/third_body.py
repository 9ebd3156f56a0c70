"""Third-body point-mass gravitational perturbations.

The perturbation of a third body on an object orbiting the central body is
the difference between the third body's pull on the object and its pull on
the central body:

.. math::

    a = -GM_3 \\left( \\frac{r - r_3}{|r - r_3|^3} + \\frac{r_3}{|r_3|^3} \\right)

Evaluating the two terms separately avoids the cancellation that a single
combined expression suffers when the object is close to the central body
and far from the perturber.

References:
    1. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, 2012, p. 69.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbprop.config import get_dtype
from orbprop.constants import GM_SUN
from orbprop.dynamics._types import EvalMethod
from orbprop.ephemerides import EphemFrame, Ephemeris
from orbprop.epoch import Epoch
from orbprop.errors import ConfigurationError


def accel_third_body(r_object: ArrayLike, r_body: ArrayLike, gm: float) -> Array:
    """Direct-minus-indirect acceleration due to a point mass at *r_body*.

    Args:
        r_object: Inertial position of the object [DU].  Shape ``(3,)``
            or ``(6,)`` (only the first 3 elements are used).
        r_body: Inertial position of the perturbing body [DU], shape ``(3,)``.
        gm: Gravitational parameter of the perturbing body [DU^3/TU^2].

    Returns:
        Acceleration vector [DU/TU^2], shape ``(3,)``.
    """
    _float = get_dtype()
    r = jnp.asarray(r_object, dtype=_float)[:3]
    r3 = jnp.asarray(r_body, dtype=_float)

    d = r - r3
    return -gm * (d / jnp.linalg.norm(d)**3 + r3 / jnp.linalg.norm(r3)**3)


class ThirdBodyGravity:
    """Point-mass gravity of a perturbing body located by an ephemeris.

    Args:
        gm: Gravitational parameter of the perturbing body [DU^3/TU^2].
        ephemeris: Source of the body's inertial position.  Shared,
            read-only.

    Raises:
        ConfigurationError: If *gm* is not positive.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbprop import Epoch
        from orbprop.constants import GM_MOON
        from orbprop.dynamics import ThirdBodyGravity
        from orbprop.ephemerides import MoonEphemeris
        moon = ThirdBodyGravity(GM_MOON, MoonEphemeris())
        a = moon.acceleration(Epoch(2451545.0), jnp.array([1.1, 0, 0, 0, 0.95, 0]))
        ```
    """

    def __init__(self, gm: float, ephemeris: Ephemeris):
        if not gm > 0.0:
            raise ConfigurationError(f"Gravitational parameter must be positive, got {gm}.")
        self._gm = float(gm)
        self._ephemeris = ephemeris

    @property
    def gm(self) -> float:
        return self._gm

    @property
    def ephemeris(self) -> Ephemeris:
        return self._ephemeris

    def acceleration(
        self,
        epc: Epoch,
        state: ArrayLike,
        method: EvalMethod = EvalMethod.PREDICTOR,
    ) -> Array:
        """Third-body acceleration at *epc* for the inertial *state*.

        Errors raised by the ephemeris (e.g. an out-of-range epoch) are
        propagated unchanged.

        Args:
            epc: Epoch of the evaluation.
            state: Inertial state ``[r, v]`` [DU, DU/TU].
            method: Evaluation mode (unused).

        Returns:
            Inertial acceleration [DU/TU^2], shape ``(3,)``.
        """
        r_body = self._ephemeris.position_at(epc, EphemFrame.ECI)
        return accel_third_body(state, r_body, self._gm)


class SunGravity(ThirdBodyGravity):
    """Third-body gravity of the Sun.

    Args:
        sun_ephemeris: Source of the Sun's inertial position.
    """

    def __init__(self, sun_ephemeris: Ephemeris):
        super().__init__(GM_SUN, sun_ephemeris)
