"""
The `constants` module defines the canonical unit system and the physical
constants used by the propagation core.

Distances are in DU (the Earth radius of the gravity model), times in TU
(chosen so that the Earth's gravitational parameter is exactly 1).  All
force models work in DU and TU; constants expressed in SI units are kept
alongside their canonical counterparts for conversions at the boundary.
"""

import math

from jax.numpy import pi as PI

# Mathematical Constants
"""
Constant to convert degrees to radians. Equal to 2pi/360. Units: *rad/deg*
"""
DEG2RAD = 2.0 * PI / 360.0

"""
Constant to convert arcseconds to radians. Equal to 2pi/(360*3600). Units: *rad/as*
"""
AS2RAD = 2.0 * PI / 360.0 / 3600.0

# Time Constants
"""
Julian Date of the J2000.0 epoch (2000-01-01 12:00:00 TT). Units: *days*
"""
JD_J2000 = 2451545.0

"""
Offset between Julian Date and Modified Julian Date. Units: *days*
"""
JD_MJD_OFFSET = 2400000.5

"""
Seconds per day. Units: *s/day*
"""
SEC_PER_DAY = 86400.0

"""
Minutes per day. Units: *min/day*
"""
MIN_PER_DAY = 1440.0

# Earth Constants
"""
Earth's gravitational parameter. Units: *km^3/s^2*

References:

1. GGM05s Gravity Model
"""
GM_KM3_SEC2 = 398600.4415

"""
Equatorial radius of the gravity model, which defines the distance unit.
Units: *km/DU*

References:

1. GGM05s Gravity Model
"""
KM_PER_DU = 6378.1363

"""
Earth axial rotation rate. Units: *rad/s*

References:

1. D. Vallado, *Fundamentals of Astrodynamics and Applications (4th Ed.)*, p. 222, 2010
"""
OMEGA_EARTH_RAD_SEC = 7292115.0e-11

"""
Unnormalized zonal harmonic coefficients. Units: *dimensionless*

References:

1. EGM96 Gravity Model
"""
J2 = 1.082626173852223e-03
J3 = -2.532410518567722e-06
J4 = -1.619897599916973e-06

# Canonical Units
"""
Metres per distance unit. Units: *m/DU*
"""
M_PER_DU = 1000.0 * KM_PER_DU
DU_PER_M = 1.0 / M_PER_DU
DU_PER_KM = 1.0 / KM_PER_DU

"""
Seconds per time unit, chosen so that GM = 1 DU^3/TU^2. Units: *s/TU*
"""
SEC_PER_TU = math.sqrt(KM_PER_DU * KM_PER_DU * KM_PER_DU / GM_KM3_SEC2)
MIN_PER_TU = SEC_PER_TU / 60.0
DAY_PER_TU = SEC_PER_TU / SEC_PER_DAY
TU_PER_SEC = 1.0 / SEC_PER_TU
TU_PER_MIN = 1.0 / MIN_PER_TU
TU_PER_DAY = 1.0 / DAY_PER_TU

"""
Earth's gravitational parameter and reference radius in canonical units.
"""
GM = 1.0
RE = 1.0

"""
Earth axial rotation rate. Units: *rad/TU*
"""
OMEGA_EARTH = OMEGA_EARTH_RAD_SEC * SEC_PER_TU

# Sun Constants
"""
Gravitational parameter of the Sun, TCB-compatible value. Units: *DU^3/TU^2*

References:

1. P. Gerard and B. Luzum, *IERS Technical Note 36*, 2010
"""
GM_SUN = 1.32712442099e20 * DU_PER_M * DU_PER_M * DU_PER_M * SEC_PER_TU * SEC_PER_TU

"""
Astronomical Unit. Units: *DU*

References:

1. P. Gerard and B. Luzum, *IERS Technical Note 36*, 2010
"""
DU_PER_AU = 1.49597870700e11 * DU_PER_M

"""
Nominal solar radiation pressure at 1 AU. Units: *N/m^2*
"""
P_SUN = 4.57e-6

# Moon Constants
"""
Gravitational parameter of the Moon, from the Earth/Moon mass ratio.
Units: *DU^3/TU^2*

References:

1. JPL DE430 Ephemerides
"""
GM_MOON = GM / 81.3005690699
