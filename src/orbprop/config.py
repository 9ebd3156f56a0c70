"""Module-wide floating-point precision.

Every array orbprop builds is cast with :func:`get_dtype`.  The default is
``jnp.float32``; selecting ``jnp.float64`` also turns on JAX's 64-bit mode.
Set the precision before building force models or integrators, since
providers cast at evaluation time and a mixed setup mixes dtypes.

Tolerances that depend on the precision (epoch equality, the multistep
corrector and its local error test) are looked up per dtype here so that
each precision gets thresholds it can actually meet.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp

_VALID_DTYPES = (jnp.float16, jnp.bfloat16, jnp.float32, jnp.float64)

# Epoch equality tolerance [s], keyed by dtype name
_EPOCH_EQ_TOLERANCE = {
    "float64": 1e-9,
    "float32": 1e-2,
    "float16": 10.0,
    "bfloat16": 10.0,
}

# (corrector_tol, error_tol) on the scaled state, keyed by dtype name
_MULTISTEP_TOLERANCES = {
    "float64": (1e-12, 1e-9),
    "float32": (1e-5, 1e-4),
    "float16": (1e-2, 1e-1),
    "bfloat16": (1e-2, 1e-1),
}

_dtype = jnp.float32


def set_dtype(dtype) -> None:
    """Select the float dtype used throughout orbprop.

    Args:
        dtype: ``jnp.float16``, ``jnp.bfloat16``, ``jnp.float32`` or
            ``jnp.float64``.

    Raises:
        ValueError: If *dtype* is not one of the supported float types.
    """
    global _dtype
    if dtype not in _VALID_DTYPES:
        raise ValueError(
            f"Unsupported dtype {dtype}. Must be one of: "
            f"jnp.float16, jnp.bfloat16, jnp.float32, jnp.float64"
        )
    if dtype == jnp.float64:
        jax.config.update("jax_enable_x64", True)
    _dtype = dtype


def get_dtype():
    """Return the active float dtype (default ``jnp.float32``)."""
    return _dtype


def get_epoch_eq_tolerance() -> float:
    """Tolerance for :class:`~orbprop.epoch.Epoch` equality, in seconds.

    ``1e-9`` s in float64, ``1e-2`` s in float32 and ``10`` s in the
    half-precision types.
    """
    return _EPOCH_EQ_TOLERANCE[jnp.dtype(_dtype).name]


def get_multistep_tolerances() -> tuple[float, float]:
    """Default multistep tolerances for the active dtype.

    Returns:
        ``(corrector_tol, error_tol)``: ``(1e-12, 1e-9)`` in float64,
        ``(1e-5, 1e-4)`` in float32 and ``(1e-2, 1e-1)`` in the
        half-precision types.
    """
    return _MULTISTEP_TOLERANCES[jnp.dtype(_dtype).name]
