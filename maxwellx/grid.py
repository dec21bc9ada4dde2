"""Uniform 2-D staggered (Yee) grid for the TE polarisation.

Unknowns:
  Ex on horizontal edges, index  j*nx + i          for i < nx,  j <= ny
  Ey on vertical edges,   index  n_ex + j*(nx+1) + i  for i <= nx, j < ny
  Bz on cells,            index  j*nx + i          for i < nx,  j < ny
"""
from __future__ import annotations

from dataclasses import dataclass

import jax.numpy as jnp
import numpy as np

from .errors import InvalidArgument
from .sparse import SparseMatrix

SIDES = ("left", "right", "bottom", "top")


@dataclass(frozen=True)
class Grid2D:
    nx: int
    ny: int
    lx: float = 1.0
    ly: float = 1.0

    def __post_init__(self):
        if self.nx < 1 or self.ny < 1:
            raise InvalidArgument(f"grid needs at least one cell per direction, got {self.nx}x{self.ny}")
        if not (self.lx > 0 and self.ly > 0):
            raise InvalidArgument(f"grid extents must be positive, got lx={self.lx}, ly={self.ly}")

    @property
    def dx(self) -> float:
        return self.lx / self.nx

    @property
    def dy(self) -> float:
        return self.ly / self.ny

    @property
    def cell_area(self) -> float:
        return self.dx * self.dy

    @property
    def n_ex(self) -> int:
        return self.nx * (self.ny + 1)

    @property
    def n_ey(self) -> int:
        return (self.nx + 1) * self.ny

    @property
    def n_edges(self) -> int:
        return self.n_ex + self.n_ey

    @property
    def n_cells(self) -> int:
        return self.nx * self.ny

    # ---- index helpers (vectorised) ----
    def ex_index(self, i, j):
        return np.asarray(j) * self.nx + np.asarray(i)

    def ey_index(self, i, j):
        return self.n_ex + np.asarray(j) * (self.nx + 1) + np.asarray(i)

    def cell_index(self, i, j):
        return np.asarray(j) * self.nx + np.asarray(i)

    # ---- coordinates ----
    def edge_coordinates(self) -> jnp.ndarray:
        """(n_edges, 2) midpoints, Ex block first."""
        ix, jx = np.meshgrid(np.arange(self.nx), np.arange(self.ny + 1))
        ex = np.stack([(ix.ravel() + 0.5) * self.dx, jx.ravel() * self.dy], axis=1)
        iy, jy = np.meshgrid(np.arange(self.nx + 1), np.arange(self.ny))
        ey = np.stack([iy.ravel() * self.dx, (jy.ravel() + 0.5) * self.dy], axis=1)
        return jnp.asarray(np.concatenate([ex, ey], axis=0))

    def edge_tangents(self) -> jnp.ndarray:
        t = np.zeros((self.n_edges, 2))
        t[: self.n_ex, 0] = 1.0
        t[self.n_ex:, 1] = 1.0
        return jnp.asarray(t)

    def cell_coordinates(self) -> jnp.ndarray:
        ic, jc = np.meshgrid(np.arange(self.nx), np.arange(self.ny))
        return jnp.asarray(np.stack([(ic.ravel() + 0.5) * self.dx, (jc.ravel() + 0.5) * self.dy], axis=1))

    # ---- boundaries ----
    def boundary_edges(self, side: str) -> np.ndarray:
        """Boolean mask over edges tangential to ``side``."""
        mask = np.zeros(self.n_edges, dtype=bool)
        if side == "bottom":
            mask[self.ex_index(np.arange(self.nx), 0)] = True
        elif side == "top":
            mask[self.ex_index(np.arange(self.nx), self.ny)] = True
        elif side == "left":
            mask[self.ey_index(0, np.arange(self.ny))] = True
        elif side == "right":
            mask[self.ey_index(self.nx, np.arange(self.ny))] = True
        else:
            raise InvalidArgument(f"Unknown side: {side!r}. Valid: {list(SIDES)}")
        return mask

    def essential_mask(self, sides) -> np.ndarray:
        mask = np.zeros(self.n_edges, dtype=bool)
        for side in sides:
            mask |= self.boundary_edges(side)
        return mask

    # ---- operators ----
    def curl(self) -> SparseMatrix:
        """Discrete curl C (cells x edges): (Ey_r - Ey_l)/dx - (Ex_t - Ex_b)/dy."""
        i, j = np.meshgrid(np.arange(self.nx), np.arange(self.ny))
        i, j = i.ravel(), j.ravel()
        cell = self.cell_index(i, j)
        rows = np.concatenate([cell] * 4)
        cols = np.concatenate([
            self.ey_index(i + 1, j),
            self.ey_index(i, j),
            self.ex_index(i, j + 1),
            self.ex_index(i, j),
        ])
        n = cell.shape[0]
        vals = np.concatenate([
            np.full(n, 1.0 / self.dx),
            np.full(n, -1.0 / self.dx),
            np.full(n, -1.0 / self.dy),
            np.full(n, 1.0 / self.dy),
        ])
        return SparseMatrix.from_triplets(rows, cols, vals, (self.n_cells, self.n_edges))

    # ---- field reconstruction ----
    def cell_average_e(self, e) -> jnp.ndarray:
        """(n_cells, 2) cell-centred E from the edge values."""
        e = jnp.asarray(e)
        ex = e[: self.n_ex].reshape(self.ny + 1, self.nx)
        ey = e[self.n_ex:].reshape(self.ny, self.nx + 1)
        ex_c = 0.5 * (ex[:-1, :] + ex[1:, :])
        ey_c = 0.5 * (ey[:, :-1] + ey[:, 1:])
        return jnp.stack([ex_c.ravel(), ey_c.ravel()], axis=1)

    def as_image(self, cell_values) -> np.ndarray:
        """(ny, nx) array for plotting cell data."""
        return np.asarray(cell_values).reshape(self.ny, self.nx)
