"""Material profiles, current sources and boundary drives.

All coefficient functions are vectorised over an ``(N, 2)`` array of points
and return JAX arrays, so they can be evaluated once per assembly (materials)
or once per right-hand-side evaluation (time-dependent sources).
"""
from __future__ import annotations

from dataclasses import dataclass

import jax.numpy as jnp
import numpy as np

from .constants import epsilon_0, mu_0
from .errors import InvalidArgument


# -------------------- profile records --------------------
@dataclass(frozen=True)
class DielectricSphere:
    center: tuple[float, float]
    radius: float
    permittivity: float  # relative


@dataclass(frozen=True)
class MagneticShell:
    center: tuple[float, float]
    inner_radius: float
    outer_radius: float
    permeability: float  # relative


@dataclass(frozen=True)
class ConductiveSphere:
    center: tuple[float, float]
    radius: float
    conductivity: float  # S/m


@dataclass(frozen=True)
class VoltaicPile:
    axis_start: tuple[float, float]
    axis_end: tuple[float, float]
    radius: float
    magnitude: float
    frequency: float


@dataclass(frozen=True)
class CurrentRing:
    """Annulus of azimuthal current around an out-of-plane axis through ``center``."""

    center: tuple[float, float]
    inner_radius: float
    outer_radius: float
    current: float
    frequency: float


@dataclass(frozen=True)
class MaterialConfig:
    epsilon0: float = epsilon_0
    mu0: float = mu_0
    dielectric_sphere: DielectricSphere | None = None
    magnetic_shell: MagneticShell | None = None
    conductive_sphere: ConductiveSphere | None = None

    def __post_init__(self):
        if not (self.epsilon0 > 0 and self.mu0 > 0):
            raise InvalidArgument("epsilon0 and mu0 must be positive")

    @property
    def wave_speed(self) -> float:
        return 1.0 / (self.epsilon0 * self.mu0) ** 0.5


@dataclass(frozen=True)
class SourceConfig:
    problem: int = 0            # 0: plane-wave drive, 1: Gaussian-modulated drive, else none
    frequency: float = 750.0e6  # Hz, boundary drive
    voltaic_pile: VoltaicPile | None = None
    current_ring: CurrentRing | None = None

    @property
    def has_current(self) -> bool:
        return self.voltaic_pile is not None or self.current_ring is not None


# -------------------- materials --------------------
def _distance(x, center):
    return jnp.linalg.norm(x - jnp.asarray(center, dtype=x.dtype), axis=1)


def epsilon(x, materials: MaterialConfig):
    eps = jnp.full(x.shape[0], materials.epsilon0)
    ds = materials.dielectric_sphere
    if ds is not None:
        eps = jnp.where(_distance(x, ds.center) <= ds.radius, ds.permittivity * materials.epsilon0, eps)
    return eps


def mu(x, materials: MaterialConfig):
    out = jnp.full(x.shape[0], materials.mu0)
    ms = materials.magnetic_shell
    if ms is not None:
        r = _distance(x, ms.center)
        out = jnp.where((r >= ms.inner_radius) & (r <= ms.outer_radius), ms.permeability * materials.mu0, out)
    return out


def sigma(x, materials: MaterialConfig):
    out = jnp.zeros(x.shape[0])
    cs = materials.conductive_sphere
    if cs is not None:
        out = jnp.where(_distance(x, cs.center) <= cs.radius, cs.conductivity, out)
    return out


# -------------------- currents --------------------
def voltaic_pile(x, t, vp: VoltaicPile):
    """Polarisation current along the pile axis inside a cylinder of radius ``vp.radius``."""
    a_np = np.asarray(vp.axis_end, dtype=float) - np.asarray(vp.axis_start, dtype=float)
    h2 = float(a_np @ a_np)
    if h2 == 0.0:
        return jnp.zeros_like(x)
    a = jnp.asarray(a_np)
    xu = x - jnp.asarray(vp.axis_start, dtype=x.dtype)
    xa = xu @ a
    xp = jnp.linalg.norm(xu - (xa / h2)[:, None] * a[None, :], axis=1)
    inside = (xa >= 0.0) & (xa <= h2) & (xp <= vp.radius)
    p = (vp.magnitude / h2**0.5) * a
    return jnp.where(inside[:, None], p[None, :], 0.0) * jnp.sin(2.0 * jnp.pi * vp.frequency * t)


def current_ring(x, t, cr: CurrentRing):
    ra, rb = sorted((cr.inner_radius, cr.outer_radius))
    if rb == ra:
        return jnp.zeros_like(x)
    rel = x - jnp.asarray(cr.center, dtype=x.dtype)
    r = jnp.linalg.norm(rel, axis=1)
    inside = (r >= ra) & (r <= rb)
    ju = jnp.stack([-rel[:, 1], rel[:, 0]], axis=1)
    j = jnp.where(inside[:, None], (cr.current / (rb - ra)) * ju, 0.0)
    return j * jnp.sin(2.0 * jnp.pi * cr.frequency * t)


def current_density(x, t, source: SourceConfig):
    """(N, 2) total current density of every enabled source."""
    j = jnp.zeros_like(x)
    if source.voltaic_pile is not None:
        j = j + voltaic_pile(x, t, source.voltaic_pile)
    if source.current_ring is not None:
        j = j + current_ring(x, t, source.current_ring)
    return j


# -------------------- boundary drive --------------------
def dedt_boundary(x, t, source: SourceConfig, materials: MaterialConfig):
    """(N, 2) prescribed dE/dt on driven boundary edges (wave travelling along +x)."""
    omega = 2.0 * jnp.pi * source.frequency
    arg = omega * (t - x[:, 0] / materials.wave_speed)
    if source.problem == 0:
        ey = omega * jnp.cos(arg)
    elif source.problem == 1:
        ey = omega * jnp.exp(-0.25 * arg**2) * (jnp.cos(arg) + 0.25 * arg * jnp.sin(arg))
    else:
        ey = jnp.zeros(x.shape[0])
    return jnp.stack([jnp.zeros_like(ey), ey], axis=1)
