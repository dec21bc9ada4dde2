from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import jax
import numpy as np


@dataclass
class FieldState:
    e: jax.Array  # edge-tangential electric field
    b: jax.Array  # cell magnetic flux density
    t: float = 0.0

    def copy(self) -> "FieldState":
        return FieldState(e=self.e, b=self.b, t=float(self.t))


@dataclass(frozen=True)
class StepPlan:
    step_count: int
    step_size: float
    duration: float
    max_stable_step: float

    @property
    def end_time(self) -> float:
        return self.step_count * self.step_size


@dataclass
class RunResult:
    steps_taken: int
    plan: StepPlan
    capped: bool
    t: np.ndarray       # (steps_taken+1,)
    energy: np.ndarray  # (steps_taken+1,)
    state: FieldState
    meta: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class FieldSystem(Protocol):
    state: FieldState

    @property
    def is_explicit(self) -> bool: ...

    def get_curl_operator(self): ...

    def get_e_field(self) -> jax.Array: ...

    def get_b_field(self) -> jax.Array: ...

    def get_energy(self) -> float: ...

    def get_maximum_stable_step(self) -> float: ...

    def set_time(self, t: float) -> None: ...

    def sync_derived_fields(self) -> None: ...

    def apply(self, b: jax.Array, e: jax.Array) -> jax.Array: ...

    def implicit_solve(self, dt: float, b: jax.Array, e: jax.Array) -> jax.Array: ...

    def rebuild(self) -> None: ...


@runtime_checkable
class DiagnosticsSink(Protocol):
    def record(self, step_index: int, state: FieldState, energy: float) -> None: ...

    def close(self) -> None: ...
