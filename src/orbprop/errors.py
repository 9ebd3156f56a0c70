"""Exception taxonomy for orbprop.

Three failure classes surface to the caller that drives an integrator:

- :class:`ConfigurationError`: invalid construction parameters.  Raised
  immediately when a provider, composer, or integrator is built.
- :class:`OutOfRangeError`: a collaborator (frame conversion, ephemeris)
  was queried outside the time span it supports.
- :class:`NonconvergenceError`: the multistep corrector did not converge.

Configuration and range errors also derive from ``ValueError`` and
nonconvergence from ``RuntimeError`` so callers catching the built-in
types keep working.  Nothing in orbprop retries on any of these.
"""

from __future__ import annotations


class OrbpropError(Exception):
    """Base class for all orbprop errors."""


class ConfigurationError(OrbpropError, ValueError):
    """Invalid parameters supplied when constructing an object."""


class OutOfRangeError(OrbpropError, ValueError):
    """A time-dependent collaborator was queried outside its valid span."""


class NonconvergenceError(OrbpropError, RuntimeError):
    """An iterative algorithm failed to converge.

    Raised by the multistep integrator when the corrector does not reduce
    its convergence test below tolerance within the allowed number of
    passes.  The integrator's state is left at the last accepted step.
    """
