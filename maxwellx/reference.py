"""Non-symplectic reference integration with diffrax.

Integrates the same semi-discrete system as the symplectic integrator, as a
first-order ODE in y = (E, B), with a fixed step. Used to measure the
splitting schemes' order of accuracy.
"""
from __future__ import annotations

import math

import diffrax as dfx
import equinox as eqx

from .errors import InvalidArgument

SOLVERS = {
    "tsit5": dfx.Tsit5,
    "dopri5": dfx.Dopri5,
    "dopri8": dfx.Dopri8,
    "bosh3": dfx.Bosh3,
    "heun": dfx.Heun,
    "euler": dfx.Euler,
}


def make_solver(name: str):
    try:
        return SOLVERS[name.lower()]()
    except KeyError:
        raise InvalidArgument(f"Unknown reference solver: {name!r}. Valid: {list(SOLVERS)}") from None


def reference_solve(system, t1: float, dt: float, solver: str = "dopri8"):
    """Integrate ``system.state`` from its time to ``t1``; returns (e, b) at ``t1``.

    The system's state is not modified.
    """
    state = system.state
    t0 = float(state.t)
    if not t1 > t0:
        raise InvalidArgument(f"t1={t1} must be greater than the current time {t0}")
    if not dt > 0:
        raise InvalidArgument(f"dt must be positive, got {dt}")

    def vector_field(t, y, args):
        e, b = y
        return system.e_rate(t, b, e), system.b_rate(e)

    slv = make_solver(solver)
    term = dfx.ODETerm(vector_field)
    max_steps = math.ceil((t1 - t0) / dt) + 16

    @eqx.filter_jit
    def solve(y0):
        return dfx.diffeqsolve(
            term, slv, t0=t0, t1=t1, dt0=dt, y0=y0,
            saveat=dfx.SaveAt(t1=True),
            stepsize_controller=dfx.ConstantStepSize(),
            max_steps=max_steps,
        )

    sol = solve((state.e, state.b))
    e, b = sol.ys
    return e[-1], b[-1]
