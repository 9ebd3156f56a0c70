"""Solar radiation pressure on a spherical (cannonball) body.

The reflectivity coefficient ``cr`` runs from 0 (translucent) through 1
(all light absorbed) to 2 (all light specularly reflected).  It is split
into the fraction of incident light absorbed and the fraction reflected;
absorbed photons transfer their momentum once and reflected photons twice,
so the effective force coefficient ``absorbed + 2 * reflected`` equals
``cr``.

Eclipses use a coarse angular test, :func:`srp_shadowed`, rather than a
cylindrical or conical shadow model.  Existing results depend on its exact
behavior, so it is kept as is.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbprop.config import get_dtype
from orbprop.constants import DU_PER_AU, DU_PER_M, P_SUN, RE, SEC_PER_TU
from orbprop.dynamics._types import EvalMethod
from orbprop.ephemerides import EphemFrame, Ephemeris
from orbprop.epoch import Epoch
from orbprop.errors import ConfigurationError

# m/s^2 -> DU/TU^2
_ACC_SI_TO_CANONICAL = DU_PER_M * SEC_PER_TU * SEC_PER_TU


def srp_shadowed(r_object: ArrayLike, r_sun: ArrayLike) -> Array:
    """Coarse angular shadow test.

    The object is judged shadowed when it and the Sun lie on the same side
    of the central body (positive dot product) and the angle between their
    directions, scaled by the object's distance, is under one central-body
    radius.

    Args:
        r_object: Inertial position of the object [DU].  Shape ``(3,)``
            or ``(6,)`` (only the first 3 elements are used).
        r_sun: Inertial position of the Sun [DU], shape ``(3,)``.

    Returns:
        Boolean scalar, True when shadowed.
    """
    _float = get_dtype()
    r = jnp.asarray(r_object, dtype=_float)[:3]
    r_s = jnp.asarray(r_sun, dtype=_float)

    rmag = jnp.linalg.norm(r)
    cos_angle = jnp.dot(r, r_s) / (rmag * jnp.linalg.norm(r_s))
    angle = jnp.arccos(jnp.clip(cos_angle, -1.0, 1.0))
    return (jnp.dot(r, r_s) > 0.0) & (rmag * angle < RE)


class SrpSpherical:
    """Cannonball solar radiation pressure with a coarse eclipse test.

    Args:
        cr: Reflectivity coefficient, ``0 <= cr <= 2``.
        aom: Area-to-mass ratio [m^2/kg].
        sun_ephemeris: Source of the Sun's inertial position.

    Raises:
        ConfigurationError: If *cr* is outside [0, 2] or *aom* is negative.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbprop import Epoch
        from orbprop.dynamics import SrpSpherical
        from orbprop.ephemerides import SunEphemeris
        srp = SrpSpherical(1.3, 0.02, SunEphemeris())
        a = srp.acceleration(Epoch(2451545.0), jnp.array([1.1, 0, 0, 0, 0.95, 0]))
        ```
    """

    def __init__(self, cr: float, aom: float, sun_ephemeris: Ephemeris):
        if not 0.0 <= cr <= 2.0:
            raise ConfigurationError(f"Reflectivity must be within [0, 2], got {cr}.")
        if aom < 0.0:
            raise ConfigurationError(f"Area-to-mass ratio must be non-negative, got {aom}.")
        self._reflected = max(cr - 1.0, 0.0)
        self._absorbed = min(cr, 1.0) - self._reflected
        self._aom = float(aom)
        self._sun_ephemeris = sun_ephemeris

    @property
    def absorbed_fraction(self) -> float:
        """Fraction of the incident light absorbed."""
        return self._absorbed

    @property
    def reflected_fraction(self) -> float:
        """Fraction of the incident light specularly reflected."""
        return self._reflected

    @property
    def coefficient(self) -> float:
        """Effective force coefficient, equal to ``cr``."""
        return self._absorbed + 2.0 * self._reflected

    @property
    def aom(self) -> float:
        return self._aom

    def acceleration(
        self,
        epc: Epoch,
        state: ArrayLike,
        method: EvalMethod = EvalMethod.PREDICTOR,
    ) -> Array:
        """Radiation-pressure acceleration, directed from the Sun to the object.

        The pressure is scaled by the inverse square of the object's
        distance from the Sun in AU.

        Args:
            epc: Epoch of the evaluation.
            state: Inertial state ``[r, v]`` [DU, DU/TU].
            method: Evaluation mode (unused).

        Returns:
            Inertial acceleration [DU/TU^2], shape ``(3,)``; exactly zero
            when :func:`srp_shadowed` is True.
        """
        _float = get_dtype()
        r = jnp.asarray(state, dtype=_float)[:3]
        r_sun = self._sun_ephemeris.position_at(epc, EphemFrame.ECI)

        d = r - r_sun
        d_norm = jnp.linalg.norm(d)
        scale = (P_SUN * self.coefficient * self._aom * _ACC_SI_TO_CANONICAL
                 * (DU_PER_AU / d_norm)**2)
        acc = scale * d / d_norm
        return jnp.where(srp_shadowed(r, r_sun), jnp.zeros(3, dtype=_float), acc)
