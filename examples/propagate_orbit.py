# /// script
# requires-python = ">=3.11"
# dependencies = ["typer>=0.9.0", "orbprop"]
#
# [tool.uv.sources]
# orbprop = { path = ".." }
# ///
"""Propagate a single Earth orbit with a selectable integrator and force model.

Builds an equations-of-motion composer from zonal gravity (J2..J4) and
optional Sun, Moon and solar radiation pressure perturbations, then advances
it with fixed-step RK4, time-regularized RK4, 4th-order Adams-Bashforth-Moulton
or the Gauss-Jackson multistep integrator.  Initial conditions are given in km and km/s and the final state
is reported in the same units.

Requires orbprop to be installed (``uv pip install -e .`` from the repo root).

Usage:
    uv run examples/propagate_orbit.py [OPTIONS]

Examples:
    # One day of a LEO orbit with the multistep integrator
    uv run examples/propagate_orbit.py --duration 1440

    # Highly eccentric orbit with the regularized integrator
    uv run examples/propagate_orbit.py --integrator rk4s --rx 7000 --vy 9.5

    # Two-body + J2 only
    uv run examples/propagate_orbit.py --degree 2 --no-sun --no-moon --no-srp
"""

import enum
import logging
import time
from typing import Annotated

import jax.numpy as jnp
import typer

from orbprop import (
    Adams4,
    DU_PER_KM,
    GM_MOON,
    KM_PER_DU,
    SEC_PER_TU,
    Duration,
    EarthRotationFrame,
    Epoch,
    EquationsOfMotion,
    GaussJackson,
    GravityJn,
    MoonEphemeris,
    MultistepConfig,
    NonconvergenceError,
    Rk4,
    Rk4s,
    SrpSpherical,
    SunEphemeris,
    SunGravity,
    ThirdBodyGravity,
    set_dtype,
)

set_dtype(jnp.float64)


class IntegratorKind(enum.StrEnum):
    """Integrator used for the propagation."""

    rk4 = "rk4"
    rk4s = "rk4s"
    adams4 = "adams4"
    gj = "gj"


def main(
    integrator: Annotated[
        IntegratorKind, typer.Option(help="Integrator to use")
    ] = IntegratorKind.gj,
    jd: Annotated[float, typer.Option(help="Initial Julian date (UTC)")] = 2460310.5,
    rx: Annotated[float, typer.Option(help="Initial x position [km]")] = 7000.0,
    ry: Annotated[float, typer.Option(help="Initial y position [km]")] = 0.0,
    rz: Annotated[float, typer.Option(help="Initial z position [km]")] = 0.0,
    vx: Annotated[float, typer.Option(help="Initial x velocity [km/s]")] = 0.0,
    vy: Annotated[float, typer.Option(help="Initial y velocity [km/s]")] = 6.5,
    vz: Annotated[float, typer.Option(help="Initial z velocity [km/s]")] = 3.8,
    duration: Annotated[float, typer.Option(help="Propagation duration [min]")] = 180.0,
    step: Annotated[float, typer.Option(help="Initial step [min] (rk4, adams4, gj)")] = 1.0,
    degree: Annotated[int, typer.Option(help="Zonal gravity degree (0-4)")] = 4,
    sun: Annotated[bool, typer.Option(help="Enable Sun gravity")] = True,
    moon: Annotated[bool, typer.Option(help="Enable Moon gravity")] = True,
    srp: Annotated[bool, typer.Option(help="Enable solar radiation pressure")] = True,
    cr: Annotated[float, typer.Option(help="Reflectivity coefficient (0-2)")] = 1.3,
    aom: Annotated[float, typer.Option(help="Area-to-mass ratio [m^2/kg]")] = 0.01,
    verbose: Annotated[bool, typer.Option(help="Log integrator events")] = False,
) -> None:
    """Propagate one orbit and print the final state."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    epc0 = Epoch(jd)
    vel_scale = DU_PER_KM * SEC_PER_TU
    x0 = jnp.array([rx * DU_PER_KM, ry * DU_PER_KM, rz * DU_PER_KM,
                    vx * vel_scale, vy * vel_scale, vz * vel_scale])

    # ── Force model ──────────────────────────────────────────────────────
    frame = EarthRotationFrame()
    eom = EquationsOfMotion(GravityJn(degree), frame)
    sun_ephem = SunEphemeris(frame_converter=frame)
    if sun:
        eom.add_force_model(SunGravity(sun_ephem))
    if moon:
        eom.add_force_model(ThirdBodyGravity(GM_MOON, MoonEphemeris(frame_converter=frame)))
    if srp:
        eom.add_force_model(SrpSpherical(cr, aom, sun_ephem))
    print(f"Force model: {eom}")

    # ── Integrator ───────────────────────────────────────────────────────
    dt = Duration.from_minutes(step)
    if integrator == IntegratorKind.rk4:
        prop = Rk4(eom, dt, epc0, x0)
    elif integrator == IntegratorKind.rk4s:
        prop = Rk4s(eom, epc0, x0)
    elif integrator == IntegratorKind.adams4:
        prop = Adams4(eom, dt, epc0, x0)
    else:
        prop = GaussJackson(eom, dt, epc0, x0, MultistepConfig())

    # ── Propagate ────────────────────────────────────────────────────────
    target = epc0 + Duration.from_minutes(duration)
    n_steps = 0
    t_start = time.perf_counter()
    try:
        while bool(prop.time() < target):
            prop.advance()
            n_steps += 1
    except NonconvergenceError as exc:
        print(f"Propagation stopped: {exc}")
    elapsed = time.perf_counter() - t_start

    x = prop.state()
    r_km = x[:3] * KM_PER_DU
    v_kms = x[3:6] / vel_scale
    reached = float((prop.time() - epc0).minutes)
    print(f"Integrator: {integrator.value}, {n_steps} steps in {elapsed:.1f}s")
    print(f"  Reached t = {reached:.3f} min ({eom.evaluation_count} force evaluations)")
    print(f"  Position [km]:   {[round(float(c), 3) for c in r_km]}")
    print(f"  Velocity [km/s]: {[round(float(c), 6) for c in v_kms]}")
    print(f"  Altitude [km]:   {float(jnp.linalg.norm(r_km)) - KM_PER_DU:.3f}")


if __name__ == "__main__":
    typer.run(main)
