"""
orbprop is a numerical orbit propagation core implemented in JAX: central-body
and perturbing force models composed into equations of motion, advanced by
fixed-step, time-regularized and multistep integrators.
"""

from .constants import (
    DU_PER_AU,
    DU_PER_KM,
    GM,
    GM_MOON,
    GM_SUN,
    J2,
    J3,
    J4,
    KM_PER_DU,
    MIN_PER_TU,
    P_SUN,
    RE,
    SEC_PER_TU,
    TU_PER_MIN,
)

from .config import set_dtype, get_dtype, get_multistep_tolerances
from .errors import (
    OrbpropError,
    ConfigurationError,
    OutOfRangeError,
    NonconvergenceError,
)
from .duration import Duration
from .epoch import Epoch

from .frames import (
    FrameConverter,
    InertialFrame,
    EarthRotationFrame,
)

from .ephemerides import (
    EphemFrame,
    Ephemeris,
    SunEphemeris,
    MoonEphemeris,
    FixedEphemeris,
)

from .regularize import Regularization, SundmanRegularization

from .dynamics import (
    EvalMethod,
    CentralBodyGravity,
    ForceModel,
    GravityJn,
    GravityModel,
    GravitySphericalHarmonics,
    ThirdBodyGravity,
    SunGravity,
    SrpSpherical,
    EquationsOfMotion,
)

from .integrators import (
    Integrator,
    MultistepConfig,
    StepDirection,
    StepResult,
    rk4_step,
    Rk4,
    Rk4s,
    Adams4,
    GaussJackson,
)

__all__ = [
    # Constants
    "DU_PER_AU",
    "DU_PER_KM",
    "GM",
    "GM_MOON",
    "GM_SUN",
    "J2",
    "J3",
    "J4",
    "KM_PER_DU",
    "MIN_PER_TU",
    "P_SUN",
    "RE",
    "SEC_PER_TU",
    "TU_PER_MIN",
    # Config
    "set_dtype",
    "get_dtype",
    "get_multistep_tolerances",
    # Errors
    "OrbpropError",
    "ConfigurationError",
    "OutOfRangeError",
    "NonconvergenceError",
    # Time
    "Duration",
    "Epoch",
    # Frames
    "FrameConverter",
    "InertialFrame",
    "EarthRotationFrame",
    # Ephemerides
    "EphemFrame",
    "Ephemeris",
    "SunEphemeris",
    "MoonEphemeris",
    "FixedEphemeris",
    # Regularization
    "Regularization",
    "SundmanRegularization",
    # Dynamics
    "EvalMethod",
    "CentralBodyGravity",
    "ForceModel",
    "GravityJn",
    "GravityModel",
    "GravitySphericalHarmonics",
    "ThirdBodyGravity",
    "SunGravity",
    "SrpSpherical",
    "EquationsOfMotion",
    # Integrators
    "Integrator",
    "MultistepConfig",
    "StepDirection",
    "StepResult",
    "rk4_step",
    "Rk4",
    "Rk4s",
    "Adams4",
    "GaussJackson",
]
