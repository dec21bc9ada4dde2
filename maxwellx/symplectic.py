"""Symplectic splitting integrator for the (B, E) pair.

One step of order ``k`` is a sequence of sub-steps. Sub-step ``i`` first
kicks E with weight ``b[i]`` using the field system evaluated at the current
B, then drifts B with weight ``a[i]`` using the curl operator applied to the
freshly updated E. The fields are never advanced from the same time level,
which keeps long-run energy error bounded.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

from .errors import InvalidArgument
from .operators import Capability, check_vector, require
from .types import FieldState


@dataclass(frozen=True)
class SplittingCoefficients:
    order: int
    a: tuple[float, ...]  # drift weights (B update)
    b: tuple[float, ...]  # kick weights (E update)

    @property
    def stages(self) -> int:
        return len(self.a)


def splitting_coefficients(order: int) -> SplittingCoefficients:
    if order == 1:
        return SplittingCoefficients(1, (1.0,), (1.0,))
    if order == 2:
        return SplittingCoefficients(2, (0.5, 0.5), (0.0, 1.0))
    if order == 3:
        return SplittingCoefficients(3, (2.0 / 3.0, -2.0 / 3.0, 1.0), (7.0 / 24.0, 0.75, -1.0 / 24.0))
    if order == 4:
        cbrt2 = 2.0 ** (1.0 / 3.0)
        a0 = (2.0 + cbrt2 + 1.0 / cbrt2) / 6.0
        a1 = (1.0 - cbrt2 - 1.0 / cbrt2) / 6.0
        w = 1.0 / (2.0 - cbrt2)
        w0 = 1.0 / (1.0 - 2.0 ** (2.0 / 3.0))
        return SplittingCoefficients(4, (a0, a1, a1, a0), (0.0, w, w0, w))
    raise InvalidArgument(f"symplectic order must be 1, 2, 3 or 4, got {order!r}")


class SymplecticIntegrator:
    def __init__(self, order: int = 1):
        self.coefficients = splitting_coefficients(order)
        self.curl_operator = None
        self.field_system = None

    @property
    def order(self) -> int:
        return self.coefficients.order

    @property
    def is_bound(self) -> bool:
        return self.curl_operator is not None

    def init(self, curl_operator, field_system) -> "SymplecticIntegrator":
        """Bind the curl operator (dB/dt = curl_operator @ E) and the field system."""
        require(curl_operator, Capability.APPLY | Capability.ACCUMULATE, "curl operator")
        if field_system is None:
            raise InvalidArgument("field_system must not be None")
        self.curl_operator = curl_operator
        self.field_system = field_system
        return self

    def step(self, state: FieldState, dt: float) -> FieldState:
        """Advance ``state`` by ``dt``; the record is updated and also returned."""
        if not self.is_bound:
            raise RuntimeError("SymplecticIntegrator.step called before init()")
        if not math.isfinite(dt):
            raise InvalidArgument(f"dt must be finite, got {dt}")
        system = self.field_system
        curl = self.curl_operator
        for a_i, b_i in zip(self.coefficients.a, self.coefficients.b):
            if b_i != 0.0:
                system.set_time(state.t)
                if system.is_explicit:
                    de = system.apply(state.b, state.e)
                else:
                    de = system.implicit_solve(b_i * dt, state.b, state.e)
                de = check_vector(de, state.e.shape[0], "field system dE")
                state.e = state.e + (b_i * dt) * de
            state.b = curl.accumulate_apply(state.e, state.b, a_i * dt)
            state.t = state.t + a_i * dt
        return state
