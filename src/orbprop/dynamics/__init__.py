"""Acceleration providers and the equations-of-motion composer.

Central-body gravity (body-fixed in, body-fixed out):

- :class:`GravityJn`: zonal harmonics through J4
- :class:`GravitySphericalHarmonics`: general field from a :class:`GravityModel`

Perturbations (inertial in, inertial out):

- :class:`ThirdBodyGravity`, :class:`SunGravity`
- :class:`SrpSpherical`

All quantities are in canonical units (DU, TU).
"""

from orbprop.dynamics._types import CentralBodyGravity, EvalMethod, ForceModel
from orbprop.dynamics.eom import EquationsOfMotion
from orbprop.dynamics.gravity import (
    MAX_JN_DEGREE,
    GravityJn,
    GravityModel,
    GravitySphericalHarmonics,
    accel_point_mass,
)
from orbprop.dynamics.srp import SrpSpherical, srp_shadowed
from orbprop.dynamics.third_body import SunGravity, ThirdBodyGravity, accel_third_body

__all__ = [
    # Interfaces
    "CentralBodyGravity",
    "EvalMethod",
    "ForceModel",
    # Central body
    "MAX_JN_DEGREE",
    "GravityJn",
    "GravityModel",
    "GravitySphericalHarmonics",
    "accel_point_mass",
    # Perturbations
    "SrpSpherical",
    "SunGravity",
    "ThirdBodyGravity",
    "accel_third_body",
    "srp_shadowed",
    # Composer
    "EquationsOfMotion",
]
