"""Central-body gravity providers: point-mass, zonal harmonics, spherical harmonics.

All providers take a body-fixed position in DU and return body-fixed
acceleration components in DU/TU^2, with the derivative taken with respect
to the inertial frame.  In canonical units the central body's gravitational
parameter and reference radius are both 1.

- :class:`GravityJn`: closed-form zonal series through J4.  Holds only its
  degree, so one instance may be evaluated concurrently from any number of
  integrators.
- :class:`GravitySphericalHarmonics`: general degree/order field from a
  :class:`GravityModel`, evaluated with the V/W recursion.  Caches the
  non-central part of the last corrector evaluation, so each instance must
  belong to a single composer.

References:
    1. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, 2012, p. 56-68.
    2. D. Vallado, *Fundamentals of Astrodynamics and Applications
       (4th Ed.)*, 2010, sec. 8.7.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path

import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.typing import ArrayLike

from orbprop.config import get_dtype
from orbprop.constants import (
    DU_PER_M,
    GM_KM3_SEC2,
    J2,
    J3,
    J4,
    KM_PER_DU,
    SEC_PER_TU,
)
from orbprop.dynamics._types import EvalMethod
from orbprop.errors import ConfigurationError

logger = logging.getLogger(__name__)

"""
Highest zonal degree supported by :class:`GravityJn`.
"""
MAX_JN_DEGREE = 4


# ---------------------------------------------------------------------------
# Point-mass gravity
# ---------------------------------------------------------------------------


def accel_point_mass(pos: ArrayLike, gm: float = 1.0) -> Array:
    """Two-body acceleration ``-gm * r / |r|^3`` toward the origin.

    Args:
        pos: Position [DU].  Shape ``(3,)`` or ``(6,)`` (only the first
            3 elements are used).
        gm: Gravitational parameter [DU^3/TU^2].  Default: 1.

    Returns:
        Acceleration vector [DU/TU^2], shape ``(3,)``.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbprop.dynamics import accel_point_mass
        a = accel_point_mass(jnp.array([2.0, 0.0, 0.0]))  # [-0.25, 0, 0]
        ```
    """
    r = jnp.asarray(pos, dtype=get_dtype())[:3]
    rmag = jnp.linalg.norm(r)
    return -gm * r / rmag**3


# ---------------------------------------------------------------------------
# Zonal harmonics
# ---------------------------------------------------------------------------


class GravityJn:
    """Zonal-harmonic gravity: point mass plus J2, J3 and J4.

    Terms are accumulated from the highest requested degree down, so that
    a degree-4 model adds J4, then J3, then J2 to the point-mass term.
    Degrees 0 and 1 give the point mass only.

    Args:
        degree: Highest zonal degree to include, ``0 <= degree <= 4``.

    Raises:
        ConfigurationError: If *degree* is outside the supported range.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbprop.dynamics import GravityJn
        grav = GravityJn(4)
        a = grav.acceleration(jnp.array([1.1, 0.0, 0.2]))
        ```
    """

    def __init__(self, degree: int = 2):
        if not 0 <= degree <= MAX_JN_DEGREE:
            raise ConfigurationError(
                f"GravityJn supports degree 0..{MAX_JN_DEGREE}, got {degree}."
            )
        self._degree = int(degree)

    @property
    def degree(self) -> int:
        """Highest zonal degree included."""
        return self._degree

    def acceleration(
        self, pos_f: ArrayLike, method: EvalMethod = EvalMethod.PREDICTOR
    ) -> Array:
        """Gravitational acceleration at a body-fixed position.

        The evaluation mode is ignored: every call is a full evaluation.

        Args:
            pos_f: Body-fixed position [DU], shape ``(3,)``.
            method: Evaluation mode (unused).

        Returns:
            Body-fixed acceleration components [DU/TU^2], shape ``(3,)``.
        """
        r = jnp.asarray(pos_f, dtype=get_dtype())[:3]
        acc = accel_point_mass(r)
        if self._degree < 2:
            return acc

        x, y, z = r[0], r[1], r[2]
        r2 = jnp.dot(r, r)
        invr2 = 1.0 / r2
        invr = jnp.sqrt(invr2)
        z2 = z * z
        invr5 = invr2 * invr2 * invr
        ax = ay = az = 0.0

        if self._degree >= 3:
            invr7 = invr5 * invr2
            if self._degree == 4:
                s = z2 * invr2
                c1 = 1.875 * J4 * invr7 * (1.0 - 14.0 * s + 21.0 * s * s)
                ax = ax + c1 * x
                ay = ay + c1 * y
                az = az + 0.625 * J4 * invr7 * z * (15.0 - 70.0 * s + 63.0 * s * s)
            c1 = 2.5 * J3 * invr7
            c2 = 7.0 * z2 * invr2
            ax = ax - c1 * x * z * (3.0 - c2)
            ay = ay - c1 * y * z * (3.0 - c2)
            az = az - c1 * (z2 * (6.0 - c2) - 0.6 * r2)

        c1 = 1.5 * J2 * invr5
        c2 = 5.0 * z2 * invr2
        ax = ax - c1 * x * (1.0 - c2)
        ay = ay - c1 * y * (1.0 - c2)
        az = az - c1 * z * (3.0 - c2)

        return acc + jnp.array([ax, ay, az], dtype=acc.dtype)

    def __repr__(self) -> str:
        return f"GravityJn(degree={self._degree})"


# ---------------------------------------------------------------------------
# Spherical harmonic coefficient container
# ---------------------------------------------------------------------------


class GravityModel:
    """Spherical harmonic gravity field coefficients.

    Stores Stokes coefficients (C_nm, S_nm) in the Montenbruck & Gill
    packed layout:

    - ``data[n, m]`` stores the C coefficient for degree *n*, order *m*
    - ``data[m-1, n]`` stores the S coefficient for *m* > 0

    ``gm`` and ``radius`` are kept in SI units as read from ICGEM GFC
    files; :class:`GravitySphericalHarmonics` rescales them to DU/TU.

    Args:
        model_name: Human-readable name of the gravity model.
        gm: Gravitational parameter [m^3/s^2].
        radius: Reference radius [m].
        n_max: Maximum degree of the model.
        m_max: Maximum order of the model.
        data: Coefficient matrix, shape ``(n_max+1, m_max+1)``.
        tide_system: Tide system convention (e.g. ``"tide_free"``).
        normalization: Normalization convention (e.g. ``"fully_normalized"``).
    """

    def __init__(
        self,
        model_name: str,
        gm: float,
        radius: float,
        n_max: int,
        m_max: int,
        data: np.ndarray,
        tide_system: str = "unknown",
        normalization: str = "fully_normalized",
    ):
        self.model_name = model_name
        self.gm = gm
        self.radius = radius
        self.n_max = n_max
        self.m_max = m_max
        self.data = data
        self.tide_system = tide_system
        self.normalization = normalization

    @property
    def is_normalized(self) -> bool:
        """Whether the coefficients are fully normalized."""
        return self.normalization == "fully_normalized"

    @classmethod
    def from_zonals(cls, jn: tuple[float, ...] = (J2, J3, J4)) -> GravityModel:
        """Build an unnormalized zonal-only model in the canonical unit system.

        Args:
            jn: Zonal coefficients ``(J2, J3, ...)``.  ``C_n0 = -J_n``.

        Returns:
            GravityModel: Model of degree ``len(jn) + 1`` and order 0.

        Examples:
            ```python
            from orbprop.dynamics import GravityModel
            model = GravityModel.from_zonals()
            model.get(2, 0)  # (-J2, 0.0)
            ```
        """
        n_max = len(jn) + 1
        data = np.zeros((n_max + 1, n_max + 1), dtype=np.float64)
        data[0, 0] = 1.0
        for n, j in enumerate(jn, start=2):
            data[n, 0] = -j
        return cls(
            model_name="zonal",
            gm=GM_KM3_SEC2 * 1.0e9,
            radius=KM_PER_DU * 1.0e3,
            n_max=n_max,
            m_max=n_max,
            data=data,
            normalization="unnormalized",
        )

    @classmethod
    def from_file(cls, filepath: str | Path) -> GravityModel:
        """Load a gravity model from a GFC format file.

        Args:
            filepath: Path to the ``.gfc`` file.

        Returns:
            GravityModel: Loaded gravity model.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If required header fields are missing.
        """
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"Gravity model file not found: {filepath}")
        with open(filepath) as f:
            return cls._parse_gfc(f)

    def get(self, n: int, m: int) -> tuple[float, float]:
        """Retrieve the (C_nm, S_nm) coefficients for degree *n*, order *m*.

        Raises:
            ConfigurationError: If (n, m) exceeds the model bounds.
        """
        if n > self.n_max or m > self.m_max or m > n:
            raise ConfigurationError(
                f"Requested (n={n}, m={m}) exceeds model bounds "
                f"(n_max={self.n_max}, m_max={self.m_max})."
            )
        if m == 0:
            return float(self.data[n, m]), 0.0
        return float(self.data[n, m]), float(self.data[m - 1, n])

    @classmethod
    def _parse_gfc(cls, fileobj) -> GravityModel:
        """Parse an ICGEM GFC format stream."""
        model_name = "Unknown"
        gm = 0.0
        radius = 0.0
        n_max = 0
        tide_system = "unknown"
        normalization = "fully_normalized"

        in_header = True
        lines = iter(fileobj)
        for line in lines:
            line = line.strip()
            if line.startswith("end_of_head"):
                in_header = False
                break

            parts = line.split()
            if len(parts) < 2:
                continue

            key = parts[0].lower()
            value = parts[-1]
            if key == "modelname":
                model_name = value
            elif key == "earth_gravity_constant":
                gm = _fortran_float(value)
            elif key == "radius":
                radius = _fortran_float(value)
            elif key == "max_degree":
                n_max = int(value)
            elif key == "tide_system":
                tide_system = value
            elif key in ("norm", "normalization"):
                normalization = value

        if in_header:
            raise ConfigurationError("GFC file missing 'end_of_head' marker.")
        if gm == 0.0:
            raise ConfigurationError("GFC header missing 'earth_gravity_constant'.")
        if radius == 0.0:
            raise ConfigurationError("GFC header missing 'radius'.")
        if n_max == 0:
            raise ConfigurationError("GFC header missing 'max_degree'.")

        data = np.zeros((n_max + 1, n_max + 1), dtype=np.float64)
        for line in lines:
            parts = line.split()
            if not parts or parts[0] != "gfc":
                continue
            # gfc  n  m  C  S  [sig_C  sig_S]
            n = int(parts[1])
            m = int(parts[2])
            if n <= n_max and m <= n_max:
                data[n, m] = _fortran_float(parts[3])
                if m > 0:
                    data[m - 1, n] = _fortran_float(parts[4])

        logger.debug("Parsed gravity model %s to degree %d", model_name, n_max)
        return cls(
            model_name=model_name,
            gm=gm,
            radius=radius,
            n_max=n_max,
            m_max=n_max,
            data=data,
            tide_system=tide_system,
            normalization=normalization,
        )

    def __repr__(self) -> str:
        return (
            f"GravityModel(name={self.model_name!r}, "
            f"n_max={self.n_max}, m_max={self.m_max}, "
            f"gm={self.gm:.6e}, radius={self.radius:.1f})"
        )


def _fortran_float(text: str) -> float:
    return float(text.replace("D", "e").replace("d", "e"))


# ---------------------------------------------------------------------------
# Spherical harmonic gravity
# ---------------------------------------------------------------------------


def _factorial_product(n: int, m: int) -> float:
    """Compute (n-m)!/(n+m)! without full factorials."""
    p = 1.0
    for i in range(n - m + 1, n + m + 1):
        p /= i
    return p


def _spherical_harmonics(
    r_bf: Array,
    model: GravityModel,
    n_max: int,
    m_max: int,
    r_ref: float,
    gm: float,
) -> Array:
    """V/W recursion for the body-fixed acceleration of a harmonic field.

    Args:
        r_bf: Body-fixed position, shape ``(3,)``.
        model: Coefficient source.
        n_max: Maximum degree evaluated.
        m_max: Maximum order evaluated.
        r_ref: Reference radius, same unit as *r_bf*.
        gm: Gravitational parameter, consistent with *r_ref*.

    Returns:
        Body-fixed acceleration, shape ``(3,)``.
    """
    CS = model.data
    r_sqr = jnp.dot(r_bf, r_bf)
    rho = r_ref * r_ref / r_sqr

    # Normalized coordinates
    x0 = r_ref * r_bf[0] / r_sqr
    y0 = r_ref * r_bf[1] / r_sqr
    z0 = r_ref * r_bf[2] / r_sqr

    size = n_max + 2
    V = jnp.zeros((size, size), dtype=r_bf.dtype)
    W = jnp.zeros((size, size), dtype=r_bf.dtype)

    # Zonal terms V(n,0); W(n,0) = 0
    V = V.at[0, 0].set(r_ref / jnp.sqrt(r_sqr))
    V = V.at[1, 0].set(z0 * V[0, 0])
    for n in range(2, size):
        V = V.at[n, 0].set(
            ((2.0 * n - 1.0) * z0 * V[n - 1, 0] - (n - 1.0) * rho * V[n - 2, 0]) / n
        )

    # Tesseral and sectorial terms
    for m in range(1, min(m_max + 2, size)):
        V = V.at[m, m].set(
            (2.0 * m - 1.0) * (x0 * V[m - 1, m - 1] - y0 * W[m - 1, m - 1])
        )
        W = W.at[m, m].set(
            (2.0 * m - 1.0) * (x0 * W[m - 1, m - 1] + y0 * V[m - 1, m - 1])
        )
        if m + 1 < size:
            V = V.at[m + 1, m].set((2.0 * m + 1.0) * z0 * V[m, m])
            W = W.at[m + 1, m].set((2.0 * m + 1.0) * z0 * W[m, m])
        for n in range(m + 2, size):
            V = V.at[n, m].set(
                ((2.0 * n - 1.0) * z0 * V[n - 1, m]
                 - (n + m - 1.0) * rho * V[n - 2, m]) / (n - m)
            )
            W = W.at[n, m].set(
                ((2.0 * n - 1.0) * z0 * W[n - 1, m]
                 - (n + m - 1.0) * rho * W[n - 2, m]) / (n - m)
            )

    ax = ay = az = jnp.zeros((), dtype=r_bf.dtype)
    for m in range(m_max + 1):
        for n in range(m, n_max + 1):
            if model.is_normalized:
                kron = 1.0 if m == 0 else 0.0
                N = math.sqrt((2.0 - kron) * (2.0 * n + 1.0) * _factorial_product(n, m))
            else:
                N = 1.0
            if m == 0:
                C = N * CS[n, 0]
                ax = ax - C * V[n + 1, 1]
                ay = ay - C * W[n + 1, 1]
                az = az - (n + 1.0) * C * V[n + 1, 0]
            else:
                C = N * CS[n, m]
                S = N * CS[m - 1, n]
                fac = 0.5 * (n - m + 1.0) * (n - m + 2.0)
                ax = ax + (
                    0.5 * (-C * V[n + 1, m + 1] - S * W[n + 1, m + 1])
                    + fac * (C * V[n + 1, m - 1] + S * W[n + 1, m - 1])
                )
                ay = ay + (
                    0.5 * (-C * W[n + 1, m + 1] + S * V[n + 1, m + 1])
                    + fac * (-C * W[n + 1, m - 1] + S * V[n + 1, m - 1])
                )
                az = az + (n - m + 1.0) * (-C * V[n + 1, m] - S * W[n + 1, m])

    return (gm / (r_ref * r_ref)) * jnp.array([ax, ay, az])


class GravitySphericalHarmonics:
    """General central-body gravity from a spherical harmonic model.

    Supports the predictor skip: a ``CORRECTOR`` evaluation stores the
    non-central part of the field (full field minus point mass); a
    ``PREDICTOR`` evaluation made while a stored value exists recomputes
    only the point-mass term and adds the stored part back.  The stored
    part is refreshed by every corrector pass, so the approximation it
    introduces lasts for one predictor evaluation.

    Args:
        model: Coefficient source.
        degree: Maximum degree evaluated.
        order: Maximum order evaluated (``order <= degree``).

    Raises:
        ConfigurationError: If *degree* / *order* exceed the model.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbprop.dynamics import EvalMethod, GravityModel, GravitySphericalHarmonics
        grav = GravitySphericalHarmonics(GravityModel.from_zonals(), 4, 0)
        a = grav.acceleration(jnp.array([1.1, 0.0, 0.2]), EvalMethod.CORRECTOR)
        ```
    """

    def __init__(self, model: GravityModel, degree: int, order: int = 0):
        if degree < 0 or order < 0 or order > degree:
            raise ConfigurationError(
                f"Invalid degree/order ({degree}, {order}): need 0 <= order <= degree."
            )
        if degree > model.n_max or order > model.m_max:
            raise ConfigurationError(
                f"Requested ({degree}, {order}) exceeds model "
                f"{model.model_name} (n_max={model.n_max}, m_max={model.m_max})."
            )
        self._model = model
        self._degree = int(degree)
        self._order = int(order)
        self._gm = model.gm * DU_PER_M**3 * SEC_PER_TU**2
        self._radius = model.radius * DU_PER_M
        self._cached = None

    @property
    def degree(self) -> int:
        return self._degree

    @property
    def order(self) -> int:
        return self._order

    @property
    def has_cache(self) -> bool:
        """Whether a corrector evaluation is available for predictor reuse."""
        return self._cached is not None

    def clear_cache(self) -> None:
        """Drop the stored non-central acceleration."""
        self._cached = None

    def acceleration(
        self, pos_f: ArrayLike, method: EvalMethod = EvalMethod.PREDICTOR
    ) -> Array:
        """Gravitational acceleration at a body-fixed position.

        Args:
            pos_f: Body-fixed position [DU], shape ``(3,)``.
            method: ``PREDICTOR`` reuses the stored non-central part if
                available; ``CORRECTOR`` always evaluates in full.

        Returns:
            Body-fixed acceleration components [DU/TU^2], shape ``(3,)``.
        """
        r = jnp.asarray(pos_f, dtype=get_dtype())[:3]
        central = accel_point_mass(r, self._gm)
        if method is EvalMethod.PREDICTOR and self._cached is not None:
            return central + self._cached

        full = _spherical_harmonics(
            r, self._model, self._degree, self._order, self._radius, self._gm
        )
        if method is EvalMethod.CORRECTOR:
            self._cached = full - central
        return full

    def __repr__(self) -> str:
        return (
            f"GravitySphericalHarmonics(model={self._model.model_name!r}, "
            f"degree={self._degree}, order={self._order})"
        )
