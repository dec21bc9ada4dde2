import jax.numpy as jnp
import numpy as np
import pytest

from maxwellx.errors import DimensionMismatch, InvalidArgument
from maxwellx.inverse import DenseInverse, DiagonalInverse, KrylovInverse
from maxwellx.operators import Capability, DenseMatrix, OperatorKind, has_capability
from maxwellx.sparse import SparseMatrix


def _laplacian_1d(n):
    main = 2.0 * np.ones(n)
    off = -1.0 * np.ones(n - 1)
    return np.diag(main) + np.diag(off, 1) + np.diag(off, -1)


def test_dense_inverse_solves(rng):
    a = rng.standard_normal((5, 5)) + 5.0 * np.eye(5)
    inv = DenseMatrix(a).invert()
    assert isinstance(inv, DenseInverse)
    assert inv.kind is OperatorKind.INVERSE
    assert not has_capability(inv, Capability.ELEM)
    x = rng.standard_normal(5)
    assert jnp.allclose(a @ np.asarray(inv.apply(x)), x, atol=1e-12)
    assert jnp.allclose(a.T @ np.asarray(inv.apply_transpose(x)), x, atol=1e-12)
    assert inv.record.method == "lu"
    assert inv.record.size == 5


def test_non_square_dense_inverse_rejected():
    with pytest.raises(DimensionMismatch):
        DenseMatrix(np.ones((2, 3))).invert()


def test_diagonal_inverse_is_exact():
    D = SparseMatrix.diags([2.0, 4.0, -8.0])
    inv = D.invert()
    assert isinstance(inv, DiagonalInverse)
    assert jnp.array_equal(inv.apply(jnp.array([2.0, 4.0, -8.0])), jnp.ones(3))


def test_singular_diagonal_rejected():
    with pytest.raises(InvalidArgument):
        SparseMatrix.diags([1.0, 0.0]).invert()


@pytest.mark.parametrize("method", ["cg", "bicgstab", "gmres"])
def test_krylov_inverse_on_spd_matrix(method, rng):
    a = _laplacian_1d(12) + 0.1 * np.eye(12)
    inv = SparseMatrix.from_dense(a).invert(method=method, tol=1e-12, maxiter=500)
    assert isinstance(inv, KrylovInverse)
    b = rng.standard_normal(12)
    x = np.asarray(inv.apply(b))
    assert np.linalg.norm(a @ x - b) <= 1e-8 * np.linalg.norm(b)


@pytest.mark.parametrize("method", ["bicgstab", "gmres"])
def test_krylov_inverse_non_symmetric_transpose(method, rng):
    a = _laplacian_1d(8) + np.diag(0.5 * np.ones(7), 1) + 2.0 * np.eye(8)
    inv = SparseMatrix.from_dense(a).invert(method=method, tol=1e-12, maxiter=500)
    b = rng.standard_normal(8)
    assert np.allclose(a @ np.asarray(inv.apply(b)), b, atol=1e-8)
    assert np.allclose(a.T @ np.asarray(inv.apply_transpose(b)), b, atol=1e-8)


def test_unknown_krylov_method():
    with pytest.raises(InvalidArgument):
        SparseMatrix.from_dense(_laplacian_1d(3)).invert(method="jacobi-magic")


def test_inverse_is_a_snapshot_and_detects_staleness():
    A = SparseMatrix.diags([1.0, 2.0])
    inv = A.invert()
    assert not inv.is_stale(A)
    A[1, 1] = 4.0
    assert inv.is_stale(A)
    # the inverse still represents the matrix it was built from
    assert jnp.allclose(inv.apply(jnp.array([1.0, 2.0])), jnp.array([1.0, 1.0]))

    D = DenseMatrix(np.eye(2))
    dinv = D.invert()
    D[0, 1] = 3.0
    assert dinv.is_stale(D)
    assert jnp.allclose(dinv.apply(jnp.array([1.0, 1.0])), jnp.array([1.0, 1.0]))


def test_eliminate_zero_rows_marks_inverse_stale():
    A = SparseMatrix.diags([0.0, 2.0])
    A[0, 0] = 0.0
    A.eliminate_zero_rows()
    inv = A.invert()
    assert not inv.is_stale(A)
    assert jnp.allclose(inv.apply(jnp.array([3.0, 4.0])), jnp.array([3.0, 2.0]))
