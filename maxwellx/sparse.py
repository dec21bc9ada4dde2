"""Compressed-sparse-row matrices.

The sparsity pattern (``indptr``/``indices``) is fixed once a matrix is
finalized; only the stored values change afterwards. Host-side copies of the
pattern are kept in numpy for element lookups, the values live in a JAX
array and every product goes through ``jax.ops.segment_sum``.
"""
from __future__ import annotations

from dataclasses import dataclass

import equinox as eqx
import jax
import jax.numpy as jnp
import numpy as np

from .errors import DimensionMismatch, InvalidArgument, OutOfRange, StructuralError
from .operators import LINEAR_MAP, Capability, OperatorKind, _OperatorBase, check_index


class CSRArrays(eqx.Module):
    """Immutable CSR bundle; safe to capture in jitted code and inverse snapshots."""

    indices: jax.Array
    row_ids: jax.Array
    data: jax.Array
    height: int = eqx.field(static=True)
    width: int = eqx.field(static=True)

    def matvec(self, x: jax.Array) -> jax.Array:
        return jax.ops.segment_sum(self.data * x[self.indices], self.row_ids, num_segments=self.height)

    def rmatvec(self, y: jax.Array) -> jax.Array:
        return jax.ops.segment_sum(self.data * y[self.row_ids], self.indices, num_segments=self.width)

    def diagonal(self) -> jax.Array:
        on_diag = self.indices == self.row_ids
        n = min(self.height, self.width)
        return jax.ops.segment_sum(jnp.where(on_diag, self.data, 0.0), self.row_ids, num_segments=self.height)[:n]


@eqx.filter_jit
def _csr_matvec(csr: CSRArrays, x: jax.Array) -> jax.Array:
    return csr.matvec(x)


@eqx.filter_jit
def _csr_rmatvec(csr: CSRArrays, y: jax.Array) -> jax.Array:
    return csr.rmatvec(y)


@dataclass(frozen=True)
class RowView:
    """Column indices and values of one stored row.

    ``is_view`` is always False: the arrays are copies, writing to them never
    reaches the matrix.
    """

    columns: jax.Array
    values: jax.Array
    is_view: bool = False


class SparseMatrix(_OperatorBase):
    kind = OperatorKind.SPARSE
    capabilities = Capability.ELEM | LINEAR_MAP | Capability.INVERT | Capability.SPARSE

    def __init__(self, indptr, indices, data, shape: tuple[int, int]):
        height, width = (int(s) for s in shape)
        indptr = np.asarray(indptr, dtype=np.int64)
        indices = np.asarray(indices, dtype=np.int64)
        data = np.asarray(data, dtype=np.float64)
        if height < 0 or width < 0:
            raise InvalidArgument(f"negative shape {shape}")
        if indptr.shape != (height + 1,) or indptr[0] != 0 or np.any(np.diff(indptr) < 0):
            raise StructuralError("indptr must be non-decreasing, start at 0 and have height+1 entries")
        if indices.shape != data.shape or indices.shape[0] != indptr[-1]:
            raise StructuralError(f"indices/data length must equal nnz={indptr[-1]}")
        if indices.size and (indices.min() < 0 or indices.max() >= width):
            raise OutOfRange("column index outside matrix width")
        row_ids = np.repeat(np.arange(height, dtype=np.int64), np.diff(indptr))
        # rows must be sorted by column for element lookups
        order = np.lexsort((indices, row_ids))
        indices, data = indices[order], data[order]
        if np.any((np.diff(indices) == 0) & (np.diff(row_ids) == 0)):
            raise StructuralError("duplicate (row, column) entries in CSR input")
        super().__init__(height, width)
        self._indptr = indptr
        self._indices = indices
        self._csr = CSRArrays(
            indices=jnp.asarray(indices),
            row_ids=jnp.asarray(row_ids),
            data=jnp.asarray(data),
            height=height,
            width=width,
        )
        self.revision = 0

    # ---- construction ----
    @classmethod
    def from_triplets(cls, rows, cols, vals, shape: tuple[int, int]) -> "SparseMatrix":
        """Build from coordinate triplets; duplicates are summed, explicit zeros kept."""
        height, width = (int(s) for s in shape)
        rows = np.asarray(rows, dtype=np.int64).ravel()
        cols = np.asarray(cols, dtype=np.int64).ravel()
        vals = np.asarray(vals, dtype=np.float64).ravel()
        if not (rows.shape == cols.shape == vals.shape):
            raise DimensionMismatch("rows, cols and vals must have the same length")
        if rows.size and (rows.min() < 0 or rows.max() >= height or cols.min() < 0 or cols.max() >= width):
            raise OutOfRange(f"triplet index outside shape {(height, width)}")
        indptr = np.zeros(height + 1, dtype=np.int64)
        if rows.size == 0:
            return cls(indptr, rows, vals, (height, width))
        key = rows * width + cols
        order = np.argsort(key, kind="stable")
        key, vals = key[order], vals[order]
        uniq, start = np.unique(key, return_index=True)
        summed = np.add.reduceat(vals, start)
        urows, ucols = uniq // width, uniq % width
        np.add.at(indptr, urows + 1, 1)
        return cls(np.cumsum(indptr), ucols, summed, (height, width))

    @classmethod
    def from_dense(cls, dense, keep_diagonal: bool = False) -> "SparseMatrix":
        dense = np.asarray(dense, dtype=np.float64)
        if dense.ndim != 2:
            raise DimensionMismatch(f"from_dense expects a 2-D array, got ndim={dense.ndim}")
        mask = dense != 0.0
        if keep_diagonal:
            n = min(dense.shape)
            mask[np.arange(n), np.arange(n)] = True
        rows, cols = np.nonzero(mask)
        return cls.from_triplets(rows, cols, dense[rows, cols], dense.shape)

    @classmethod
    def diags(cls, values) -> "SparseMatrix":
        """Square diagonal matrix; every diagonal position is stored, zeros included."""
        values = np.asarray(values, dtype=np.float64).ravel()
        n = values.shape[0]
        return cls(np.arange(n + 1), np.arange(n), values, (n, n))

    # ---- structure ----
    @property
    def nnz(self) -> int:
        return int(self._indptr[-1])

    def non_zero_count(self) -> int:
        return self.nnz

    @property
    def indptr(self) -> np.ndarray:
        return self._indptr.copy()

    @property
    def indices(self) -> np.ndarray:
        return self._indices.copy()

    @property
    def data(self) -> jax.Array:
        return self._csr.data

    @property
    def arrays(self) -> CSRArrays:
        """Current immutable snapshot (pattern + values)."""
        return self._csr

    def is_diagonal(self) -> bool:
        return bool(np.all(self._indices == np.repeat(np.arange(self.height), np.diff(self._indptr))))

    def diagonal(self) -> jax.Array:
        return self._csr.diagonal()

    def _position(self, i: int, j: int) -> int | None:
        lo, hi = self._indptr[i], self._indptr[i + 1]
        k = lo + int(np.searchsorted(self._indices[lo:hi], j))
        if k < hi and self._indices[k] == j:
            return int(k)
        return None

    # ---- element access ----
    def __getitem__(self, key) -> float:
        i, j = check_index(key, self.shape)
        k = self._position(i, j)
        return 0.0 if k is None else float(self._csr.data[k])

    def __setitem__(self, key, value) -> None:
        i, j = check_index(key, self.shape)
        k = self._position(i, j)
        if k is None:
            raise StructuralError(f"({i}, {j}) is not in the sparsity pattern")
        self._set_data(self._csr.data.at[k].set(float(value)))

    def _set_data(self, data: jax.Array) -> None:
        self._csr = eqx.tree_at(lambda c: c.data, self._csr, data)
        self.revision += 1

    def row_view(self, row: int) -> RowView:
        if not 0 <= row < self.height:
            raise OutOfRange(f"row {row} outside [0, {self.height})")
        lo, hi = int(self._indptr[row]), int(self._indptr[row + 1])
        return RowView(columns=jnp.asarray(self._indices[lo:hi]), values=self._csr.data[lo:hi])

    # ---- products ----
    def _matvec(self, x):
        return _csr_matvec(self._csr, x)

    def _rmatvec(self, x):
        return _csr_rmatvec(self._csr, x)

    def to_dense(self) -> jax.Array:
        dense = jnp.zeros(self.shape, dtype=jnp.float64)
        return dense.at[self._csr.row_ids, self._csr.indices].add(self._csr.data)

    # ---- derived matrices ----
    def scaled(self, scale: float) -> "SparseMatrix":
        out = SparseMatrix(self._indptr, self._indices, np.asarray(self._csr.data) * float(scale), self.shape)
        return out

    def transpose(self) -> "SparseMatrix":
        rows = np.repeat(np.arange(self.height), np.diff(self._indptr))
        return SparseMatrix.from_triplets(self._indices, rows, np.asarray(self._csr.data), (self.width, self.height))

    def copy(self) -> "SparseMatrix":
        return self.scaled(1.0)

    # ---- structural edits ----
    def eliminate_zero_rows(self, threshold: float = 1e-12) -> int:
        """Turn every row whose L1 norm is <= threshold into an identity row.

        All candidate rows are checked for a stored diagonal before any value
        changes; a missing diagonal raises StructuralError and leaves the
        matrix untouched. Returns the number of rows rewritten.
        """
        if self.height != self.width:
            raise StructuralError(f"eliminate_zero_rows needs a square matrix, got {self.shape}")
        data = np.array(self._csr.data)
        row_l1 = np.zeros(self.height)
        np.add.at(row_l1, np.asarray(self._csr.row_ids), np.abs(data))
        rows = np.nonzero(row_l1 <= threshold)[0]
        if rows.size == 0:
            return 0
        diag_pos = [self._position(int(r), int(r)) for r in rows]
        missing = [int(r) for r, k in zip(rows, diag_pos) if k is None]
        if missing:
            raise StructuralError(f"rows without a stored diagonal cannot be eliminated: {missing[:10]}")
        for r, k in zip(rows, diag_pos):
            data[self._indptr[r]:self._indptr[r + 1]] = 0.0
            data[k] = 1.0
        self._set_data(jnp.asarray(data))
        return int(rows.size)

    def invert(self, method: str = "auto", tol: float = 1e-10, maxiter: int | None = None):
        """Inverse operator; exact for diagonal matrices, Krylov otherwise."""
        from .inverse import DiagonalInverse, KrylovInverse

        if self.height != self.width:
            raise DimensionMismatch(f"cannot invert a non-square {self.shape} matrix")
        if method == "auto":
            if self.is_diagonal():
                return DiagonalInverse(self)
            method = "cg"
        if method == "diagonal":
            return DiagonalInverse(self)
        return KrylovInverse(self, method=method, tol=tol, maxiter=maxiter)


class SparseBuilder:
    """Accumulates entries row by row until :meth:`finalize`."""

    def __init__(self, height: int, width: int | None = None):
        self.height = int(height)
        self.width = int(height if width is None else width)
        self._rows: list[dict[int, float]] = [dict() for _ in range(self.height)]
        self._finalized = False

    def _check(self, i: int, j: int) -> None:
        if self._finalized:
            raise StructuralError("builder already finalized")
        if not (0 <= i < self.height and 0 <= j < self.width):
            raise OutOfRange(f"({i}, {j}) outside shape {(self.height, self.width)}")

    def add(self, i: int, j: int, value: float) -> None:
        self._check(i, j)
        row = self._rows[i]
        row[j] = row.get(j, 0.0) + float(value)

    def set(self, i: int, j: int, value: float) -> None:
        self._check(i, j)
        self._rows[i][j] = float(value)

    def finalize(self, skip_zeros: bool = False) -> SparseMatrix:
        """Freeze the pattern. ``skip_zeros`` drops zero entries except diagonals."""
        rows, cols, vals = [], [], []
        for i, row in enumerate(self._rows):
            for j, v in row.items():
                if skip_zeros and v == 0.0 and i != j:
                    continue
                rows.append(i)
                cols.append(j)
                vals.append(v)
        self._finalized = True
        return SparseMatrix.from_triplets(rows, cols, vals, (self.height, self.width))
