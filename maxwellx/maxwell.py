"""Semi-discrete Maxwell system on a :class:`~maxwellx.grid.Grid2D`.

    dB/dt = -C E
    M_eps dE/dt = C^T M_muinv B - M_sigma E - J(t)

E lives on edges, B on cells, all mass matrices are diagonal. Edges on the
Dirichlet sides are essential: their rows of M_eps are replaced by identity
rows and their time derivative is prescribed by the boundary drive.
"""
from __future__ import annotations

from typing import Callable, Sequence

import jax
import jax.numpy as jnp
import numpy as np

from .errors import InvalidArgument
from .grid import SIDES, Grid2D
from .operators import Product, Transposed, check_vector
from .sources import (
    MaterialConfig,
    SourceConfig,
    current_density,
    dedt_boundary,
    epsilon,
    mu,
    sigma,
)
from .sparse import SparseMatrix
from .types import FieldState

# factorisations kept for implicit kicks; a step uses at most three kick weights
IMPLICIT_CACHE_SIZE = 4


class MaxwellSystem:
    def __init__(
        self,
        grid: Grid2D,
        materials: MaterialConfig | None = None,
        source: SourceConfig | None = None,
        dirichlet: Sequence[str] = (),
        cfl_safety: float = 0.95,
        power_tol: float = 1e-6,
        power_maxiter: int = 1000,
    ):
        for side in dirichlet:
            if side not in SIDES:
                raise InvalidArgument(f"Unknown side: {side!r}. Valid: {list(SIDES)}")
        if not 0.0 < cfl_safety <= 1.0:
            raise InvalidArgument(f"cfl_safety must be in (0, 1], got {cfl_safety}")
        self.grid = grid
        self.materials = materials or MaterialConfig()
        self.source = source or SourceConfig()
        self.dirichlet = tuple(dirichlet)
        self.cfl_safety = float(cfl_safety)
        self.power_tol = float(power_tol)
        self.power_maxiter = int(power_maxiter)

        self.state = FieldState(
            e=jnp.zeros(grid.n_edges),
            b=jnp.zeros(grid.n_cells),
            t=0.0,
        )
        self.time = 0.0
        self.derived: dict[str, jax.Array] = {}
        self.rebuild()
        self.sync_derived_fields()

    # -------------------- assembly --------------------
    def rebuild(self) -> None:
        """Reassemble every operator from grid + materials.

        Field arrays are kept; cached inverses and the stability bound are
        dropped.
        """
        g = self.grid
        area = g.cell_area
        x_e = g.edge_coordinates()
        x_c = g.cell_coordinates()

        ess = g.essential_mask(self.dirichlet)
        self._x_edges = x_e
        self._tangents = g.edge_tangents()
        self._essential = jnp.asarray(ess)
        self._area = area

        self.curl = g.curl()
        self._neg_curl = self.curl.scaled(-1.0)

        eps_w = np.asarray(epsilon(x_e, self.materials)) * area
        self._eps_weights = jnp.asarray(eps_w)
        eps_diag = np.where(ess, 0.0, eps_w)
        self.m_eps = SparseMatrix.diags(eps_diag)
        self.n_essential = self.m_eps.eliminate_zero_rows()

        sig_diag = np.where(ess, 0.0, np.asarray(sigma(x_e, self.materials)) * area)
        self.m_sigma = SparseMatrix.diags(sig_diag)
        self._lossy = bool(np.any(sig_diag > 0.0))

        self.m_muinv = SparseMatrix.diags(area / np.asarray(mu(x_c, self.materials)))

        self._m_eps_inv = self.m_eps.invert()
        self._implicit_inverses: dict[float, object] = {}
        self._dt_max: float | None = None
        self._driven = bool(ess.any()) and self.source.problem in (0, 1)

    # -------------------- FieldSystem interface --------------------
    @property
    def is_explicit(self) -> bool:
        return not self._lossy

    def get_curl_operator(self) -> SparseMatrix:
        """Operator P with dB/dt = P E, i.e. the negative curl."""
        return self._neg_curl

    def get_e_field(self) -> jax.Array:
        return self.state.e

    def get_b_field(self) -> jax.Array:
        return self.state.b

    def set_time(self, t: float) -> None:
        self.time = float(t)

    def _rhs(self, t, b, e):
        # C^T M_muinv B - M_sigma E - J(t)
        rhs = self._neg_curl.apply_transpose(self.m_muinv.apply(b))
        rhs = -rhs
        if self._lossy:
            rhs = self.m_sigma.accumulate_apply(e, rhs, -1.0)
        if self.source.has_current:
            j = current_density(self._x_edges, t, self.source)
            rhs = rhs - self._area * jnp.sum(j * self._tangents, axis=1)
        return jnp.where(self._essential, 0.0, rhs)

    def _essential_rate(self, t, de):
        if not self._driven:
            return jnp.where(self._essential, 0.0, de)
        drive = dedt_boundary(self._x_edges, t, self.source, self.materials)
        return jnp.where(self._essential, jnp.sum(drive * self._tangents, axis=1), de)

    def e_rate(self, t, b, e):
        """dE/dt at time ``t`` (explicit form, used by the reference integrator too)."""
        b = check_vector(b, self.grid.n_cells, "b")
        e = check_vector(e, self.grid.n_edges, "e")
        return self._essential_rate(t, self._m_eps_inv.apply(self._rhs(t, b, e)))

    def b_rate(self, e):
        return self._neg_curl.apply(e)

    def apply(self, b, e) -> jax.Array:
        return self.e_rate(self.time, b, e)

    def implicit_solve(self, dt: float, b, e) -> jax.Array:
        """dE from (M_eps + dt M_sigma) dE = C^T M_muinv B - M_sigma E - J."""
        b = check_vector(b, self.grid.n_cells, "b")
        e = check_vector(e, self.grid.n_edges, "e")
        key = float(dt)
        inv = self._implicit_inverses.get(key)
        if inv is None:
            if len(self._implicit_inverses) >= IMPLICIT_CACHE_SIZE:
                # drop the oldest stage weight
                self._implicit_inverses.pop(next(iter(self._implicit_inverses)))
            a_diag = np.asarray(self.m_eps.diagonal()) + key * np.asarray(self.m_sigma.diagonal())
            inv = SparseMatrix.diags(a_diag).invert()
            self._implicit_inverses[key] = inv
        return self._essential_rate(self.time, inv.apply(self._rhs(self.time, b, e)))

    def get_energy_components(self) -> tuple[float, float]:
        e, b = self.state.e, self.state.b
        electric = 0.5 * float(jnp.dot(e, self._eps_weights * e))
        magnetic = 0.5 * float(jnp.dot(b, self.m_muinv.apply(b)))
        return electric, magnetic

    def get_energy(self) -> float:
        electric, magnetic = self.get_energy_components()
        return electric + magnetic

    def get_maximum_stable_step(self) -> float:
        """Leapfrog bound safety * 2 / sqrt(rho(M_eps^-1 C^T M_muinv C)) on free dofs."""
        if self._dt_max is None:
            rho = self.spectral_radius()
            if rho <= 0.0:
                raise InvalidArgument("curl-curl operator has no positive eigenvalue on the free dofs")
            self._dt_max = self.cfl_safety * 2.0 / rho**0.5
        return self._dt_max

    def spectral_radius(self) -> float:
        free = ~self._essential
        op = Product(self._m_eps_inv, Transposed(self.curl), self.m_muinv, self.curl)

        v = jax.random.uniform(jax.random.PRNGKey(0), (self.grid.n_edges,), minval=0.5, maxval=1.5)
        v = jnp.where(free, v, 0.0)
        v = v / jnp.linalg.norm(v)
        rho = 0.0
        for _ in range(self.power_maxiter):
            w = jnp.where(free, op.apply(v), 0.0)
            rho_new = float(jnp.linalg.norm(w))
            if rho_new == 0.0:
                return 0.0
            v = w / rho_new
            if abs(rho_new - rho) <= self.power_tol * rho_new:
                rho = rho_new
                break
            rho = rho_new
        return rho

    def sync_derived_fields(self) -> None:
        e_cell = self.grid.cell_average_e(self.state.e)
        self.derived = {
            "e_cell": e_cell,
            "e_magnitude": jnp.linalg.norm(e_cell, axis=1),
            "bz": self.state.b,
        }

    # -------------------- initial conditions --------------------
    def set_initial_fields(
        self,
        e_fn: Callable[[jax.Array], jax.Array] | None = None,
        b_fn: Callable[[jax.Array], jax.Array] | None = None,
    ) -> None:
        """Sample ``e_fn`` (vector field, (N, 2)) on edges and ``b_fn`` ((N,)) on cells."""
        if e_fn is not None:
            ev = jnp.asarray(e_fn(self._x_edges))
            self.state.e = jnp.sum(ev * self._tangents, axis=1)
        if b_fn is not None:
            self.state.b = jnp.asarray(b_fn(self.grid.cell_coordinates()), dtype=jnp.float64).reshape(-1)
        self.sync_derived_fields()

    def set_initial_condition(self, kind: str = "zero", amp: float = 1.0, mode: Sequence[int] = (1, 1)) -> None:
        kind = kind.lower()
        self.state.e = jnp.zeros(self.grid.n_edges)
        self.state.b = jnp.zeros(self.grid.n_cells)
        if kind == "zero":
            self.sync_derived_fields()
            return
        if kind == "cavity_mode":
            m, n = (int(k) for k in mode)
            lx, ly = self.grid.lx, self.grid.ly

            def bz(x):
                return amp * jnp.cos(m * jnp.pi * x[:, 0] / lx) * jnp.cos(n * jnp.pi * x[:, 1] / ly)

            self.set_initial_fields(b_fn=bz)
            return
        raise InvalidArgument(f"Unknown initial-condition kind: {kind!r}. Valid: ['zero', 'cavity_mode']")
