"""Inverse operators.

An inverse never keeps a reference to its source matrix. It copies what it
needs (LU factors, reciprocal diagonal, CSR snapshot) and records the
source's revision counter, so later edits of the source leave the inverse
consistent with the matrix it was built from. ``is_stale(source)`` tells a
caller that the source has changed since.
"""
from __future__ import annotations

from dataclasses import dataclass

import equinox as eqx
import jax
import jax.numpy as jnp
import jax.scipy.linalg as jsl
import jax.scipy.sparse.linalg as jspla

from .errors import DimensionMismatch, InvalidArgument
from .operators import LINEAR_MAP, OperatorKind, _OperatorBase
from .sparse import CSRArrays


@dataclass(frozen=True)
class InverseRecord:
    size: int
    method: str
    tol: float | None
    maxiter: int | None
    source_revision: int


class _InverseBase(_OperatorBase):
    kind = OperatorKind.INVERSE
    capabilities = LINEAR_MAP

    def __init__(self, source, method: str, tol=None, maxiter=None):
        if source.height != source.width:
            raise DimensionMismatch(f"cannot invert a non-square {source.shape} operator")
        super().__init__(source.height, source.width)
        self.record = InverseRecord(
            size=source.height,
            method=method,
            tol=tol,
            maxiter=maxiter,
            source_revision=getattr(source, "revision", 0),
        )

    def is_stale(self, source) -> bool:
        return getattr(source, "revision", 0) != self.record.source_revision

    def __repr__(self) -> str:
        return f"{type(self).__name__}(size={self.record.size}, method={self.record.method!r})"


# -------------------- dense --------------------
@jax.jit
def _lu_solve(lu, piv, b):
    return jsl.lu_solve((lu, piv), b)


@jax.jit
def _lu_solve_t(lu, piv, b):
    return jsl.lu_solve((lu, piv), b, trans=1)


class DenseInverse(_InverseBase):
    """Exact inverse of a dense matrix via LU with partial pivoting."""

    def __init__(self, source):
        super().__init__(source, "lu")
        self._lu, self._piv = jsl.lu_factor(source.to_dense())

    def _matvec(self, x):
        return _lu_solve(self._lu, self._piv, x)

    def _rmatvec(self, x):
        return _lu_solve_t(self._lu, self._piv, x)


# -------------------- diagonal --------------------
class DiagonalInverse(_InverseBase):
    """Reciprocal of a diagonal matrix."""

    def __init__(self, source):
        super().__init__(source, "diagonal")
        diag = source.diagonal()
        if bool(jnp.any(diag == 0.0)):
            raise InvalidArgument("diagonal matrix has a zero on its diagonal and is singular")
        self._inv_diag = 1.0 / diag

    @property
    def inverse_diagonal(self) -> jax.Array:
        return self._inv_diag

    def _matvec(self, x):
        return self._inv_diag * x

    def _rmatvec(self, x):
        return self._inv_diag * x


# -------------------- Krylov --------------------
KRYLOV_METHODS = {
    "cg": jspla.cg,
    "bicgstab": jspla.bicgstab,
    "gmres": jspla.gmres,
}


class _Jacobi(eqx.Module):
    inv_diag: jax.Array

    def __call__(self, r):
        return self.inv_diag * r


@eqx.filter_jit
def _krylov_solve(csr: CSRArrays, precond: _Jacobi, b, method: str, tol: float, maxiter, transpose: bool):
    op = csr.rmatvec if transpose else csr.matvec
    x, _ = KRYLOV_METHODS[method](op, b, tol=tol, maxiter=maxiter, M=precond)
    return x


class KrylovInverse(_InverseBase):
    """Approximate inverse: Jacobi-preconditioned Krylov solve per application.

    ``cg`` assumes a symmetric positive definite source; use ``bicgstab`` or
    ``gmres`` otherwise. The solve stops at ``tol`` (relative residual) or
    ``maxiter`` iterations without reporting non-convergence, as JAX's solvers
    do.
    """

    def __init__(self, source, method: str = "cg", tol: float = 1e-10, maxiter: int | None = None):
        if method not in KRYLOV_METHODS:
            raise InvalidArgument(f"Unknown Krylov method: {method!r}. Valid: {list(KRYLOV_METHODS)}")
        if not tol > 0:
            raise InvalidArgument("tol must be positive")
        super().__init__(source, method, tol=float(tol), maxiter=maxiter)
        self._csr = source.arrays
        diag = self._csr.diagonal()
        self._precond = _Jacobi(jnp.where(diag != 0.0, 1.0 / jnp.where(diag != 0.0, diag, 1.0), 1.0))

    def _solve(self, b, transpose: bool):
        r = self.record
        return _krylov_solve(self._csr, self._precond, b, r.method, r.tol, r.maxiter, transpose)

    def _matvec(self, x):
        return self._solve(x, False)

    def _rmatvec(self, x):
        return self._solve(x, True)
