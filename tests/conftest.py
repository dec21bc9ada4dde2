# tests/conftest.py
import os

# (Best-effort) keep tests deterministic and lightweight
os.environ.setdefault("XLA_PYTHON_CLIENT_PREALLOCATE", "false")
os.environ.setdefault("JAX_PLATFORM_NAME", "cpu")

import pytest
import numpy as np

import matplotlib
matplotlib.use("Agg")  # no GUI in CI

import maxwellx  # noqa: F401  (enables x64)
from maxwellx.grid import Grid2D
from maxwellx.maxwell import MaxwellSystem
from maxwellx.sources import MaterialConfig, SourceConfig

# normalised units: c = 1, so times and lengths share a scale
UNIT = MaterialConfig(epsilon0=1.0, mu0=1.0)
PEC = ("left", "right", "bottom", "top")


@pytest.fixture(scope="session")
def rng():
    return np.random.default_rng(0)


@pytest.fixture
def make_cavity():
    """Factory for a PEC cavity seeded with a TE (m, n) mode."""
    def _make(nx=8, ny=8, lx=1.0, ly=1.0, mode=(1, 1), materials=UNIT, **kwargs):
        system = MaxwellSystem(
            Grid2D(nx, ny, lx, ly),
            materials=materials,
            source=SourceConfig(problem=-1),
            dirichlet=PEC,
            **kwargs,
        )
        system.set_initial_condition("cavity_mode", amp=1.0, mode=mode)
        return system
    return _make


@pytest.fixture
def cavity(make_cavity):
    return make_cavity()
