"""Diagnostics sinks fed by the time loop after every step.

A sink only reads the state it is handed; nothing flows back into the loop.
"""
from __future__ import annotations

import os

import numpy as np

from .errors import InvalidArgument
from .pretty import info_line
from .types import FieldState


def relative_drift(energy) -> np.ndarray:
    """(W(t) - W(0)) / W(0); zeros when the initial energy vanishes."""
    energy = np.asarray(energy, dtype=float)
    if energy.size == 0 or energy[0] == 0.0:
        return np.zeros_like(energy)
    return (energy - energy[0]) / energy[0]


class EnergyHistory:
    def __init__(self):
        self._steps: list[int] = []
        self._t: list[float] = []
        self._energy: list[float] = []

    def record(self, step_index: int, state: FieldState, energy: float) -> None:
        self._steps.append(int(step_index))
        self._t.append(float(state.t))
        self._energy.append(float(energy))

    def close(self) -> None:
        pass

    @property
    def steps(self) -> np.ndarray:
        return np.asarray(self._steps, dtype=int)

    @property
    def t(self) -> np.ndarray:
        return np.asarray(self._t)

    @property
    def energy(self) -> np.ndarray:
        return np.asarray(self._energy)

    def relative_drift(self) -> np.ndarray:
        return relative_drift(self.energy)


class ConsoleEnergy:
    """Prints ``Energy: <value>`` every ``every`` steps (step 0 included)."""

    def __init__(self, every: int = 1):
        if every < 1:
            raise InvalidArgument(f"print interval must be >= 1, got {every}")
        self.every = int(every)

    def record(self, step_index: int, state: FieldState, energy: float) -> None:
        if step_index % self.every == 0:
            info_line(f"Energy:  {energy:.6e}  (step {step_index}, t={state.t:.6e})")

    def close(self) -> None:
        pass


class SnapshotWriter:
    """Keeps every ``save_every``-th field pair; ``close()`` writes them to ``path``."""

    def __init__(self, path: str, save_every: int = 1, meta: dict | None = None):
        if save_every < 1:
            raise InvalidArgument(f"save_every must be >= 1, got {save_every}")
        self.path = path
        self.save_every = int(save_every)
        self.meta = dict(meta or {})
        self._steps: list[int] = []
        self._t: list[float] = []
        self._e: list[np.ndarray] = []
        self._b: list[np.ndarray] = []
        self._energy: list[float] = []
        self.written: str | None = None

    def record(self, step_index: int, state: FieldState, energy: float) -> None:
        if step_index % self.save_every != 0:
            return
        self._steps.append(int(step_index))
        self._t.append(float(state.t))
        self._e.append(np.asarray(state.e))
        self._b.append(np.asarray(state.b))
        self._energy.append(float(energy))

    def __len__(self) -> int:
        return len(self._steps)

    def close(self) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        np.savez_compressed(
            self.path,
            step=np.asarray(self._steps, dtype=int),
            t=np.asarray(self._t),
            E=np.stack(self._e) if self._e else np.zeros((0, 0)),
            B=np.stack(self._b) if self._b else np.zeros((0, 0)),
            energy=np.asarray(self._energy),
            meta=self.meta,
        )
        self.written = self.path
