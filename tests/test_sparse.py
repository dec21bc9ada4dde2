import jax.numpy as jnp
import numpy as np
import pytest

from maxwellx.errors import DimensionMismatch, OutOfRange, StructuralError
from maxwellx.operators import Capability, OperatorKind, has_capability
from maxwellx.sparse import SparseBuilder, SparseMatrix


def _with_zero_row():
    # row 1 stores entries (including its diagonal) that are all zero
    rows = [0, 0, 1, 1, 1, 2]
    cols = [0, 1, 0, 1, 2, 2]
    vals = [2.0, 1.0, 0.0, 0.0, 0.0, 3.0]
    return SparseMatrix.from_triplets(rows, cols, vals, (3, 3))


def test_from_triplets_sums_duplicates_and_keeps_zeros():
    A = SparseMatrix.from_triplets([0, 0, 1, 1], [1, 1, 0, 1], [1.0, 2.5, 0.0, 4.0], (2, 2))
    assert A.kind is OperatorKind.SPARSE
    assert has_capability(A, Capability.SPARSE | Capability.ELEM)
    assert A.nnz == 3
    assert A.non_zero_count() == 3
    assert np.allclose(A.to_dense(), [[0.0, 3.5], [0.0, 4.0]])


def test_from_triplets_out_of_range():
    with pytest.raises(OutOfRange):
        SparseMatrix.from_triplets([0, 2], [0, 0], [1.0, 1.0], (2, 2))


def test_element_access_inside_and_outside_pattern():
    A = SparseMatrix.from_dense(np.array([[1.0, 0.0], [0.0, 2.0]]))
    assert A[0, 1] == 0.0
    A[1, 1] = 5.0
    assert A[1, 1] == 5.0
    with pytest.raises(StructuralError):
        A[0, 1] = 1.0
    with pytest.raises(OutOfRange):
        A[2, 0]
    with pytest.raises(OutOfRange):
        A[0, -1] = 1.0


def test_row_view_is_a_copy():
    A = _with_zero_row()
    rv = A.row_view(0)
    assert rv.is_view is False
    assert list(np.asarray(rv.columns)) == [0, 1]
    assert jnp.allclose(rv.values, jnp.array([2.0, 1.0]))
    with pytest.raises(OutOfRange):
        A.row_view(3)


def test_eliminate_zero_rows_sets_identity_row():
    A = _with_zero_row()
    rev = A.revision
    assert A.eliminate_zero_rows() == 1
    assert np.allclose(A.to_dense(), [[2.0, 1.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 3.0]])
    assert A.revision == rev + 1


def test_eliminate_zero_rows_is_idempotent():
    A = _with_zero_row()
    A.eliminate_zero_rows()
    before = np.asarray(A.data).copy()
    rev = A.revision
    assert A.eliminate_zero_rows() == 0
    assert np.array_equal(np.asarray(A.data), before)
    assert A.revision == rev


def test_eliminate_zero_rows_missing_diagonal_changes_nothing():
    # row 0 is eliminable, row 1 is zero but has no stored diagonal
    A = SparseMatrix.from_triplets([0, 1, 2], [0, 0, 2], [0.0, 0.0, 5.0], (3, 3))
    with pytest.raises(StructuralError):
        A.eliminate_zero_rows()
    assert A[0, 0] == 0.0
    assert A.revision == 0


def test_eliminate_zero_rows_requires_square():
    A = SparseMatrix.from_triplets([0], [0], [0.0], (2, 3))
    with pytest.raises(StructuralError):
        A.eliminate_zero_rows()


def test_threshold_is_inclusive():
    A = SparseMatrix.diags([1e-13, 1.0])
    assert A.eliminate_zero_rows(threshold=1e-12) == 1
    assert A[0, 0] == 1.0


def test_builder_finalize_and_skip_zeros():
    b = SparseBuilder(3)
    b.add(0, 0, 1.0)
    b.add(0, 0, 1.0)
    b.add(0, 2, 0.0)
    b.add(1, 1, 0.0)
    b.set(2, 0, 7.0)
    A = b.finalize(skip_zeros=True)
    # off-diagonal zero dropped, diagonal zero kept
    assert A.nnz == 3
    assert A[0, 0] == 2.0 and A[2, 0] == 7.0
    with pytest.raises(StructuralError):
        b.add(0, 0, 1.0)
    with pytest.raises(OutOfRange):
        SparseBuilder(2).add(2, 0, 1.0)


def test_transpose_scaled_and_diagonal(rng):
    dense = rng.standard_normal((4, 3))
    dense[np.abs(dense) < 0.5] = 0.0
    A = SparseMatrix.from_dense(dense)
    assert np.allclose(A.transpose().to_dense(), dense.T)
    assert np.allclose(A.scaled(-2.0).to_dense(), -2.0 * dense)
    D = SparseMatrix.diags([1.0, 0.0, 3.0])
    assert D.is_diagonal()
    assert D.nnz == 3
    assert np.allclose(D.diagonal(), [1.0, 0.0, 3.0])
    assert not A.is_diagonal()


def test_invert_rejects_non_square():
    A = SparseMatrix.from_triplets([0], [0], [1.0], (2, 3))
    with pytest.raises(DimensionMismatch):
        A.invert()


def test_raw_csr_with_unsorted_rows():
    A = SparseMatrix([0, 2, 4], [1, 0, 1, 0], [5.0, 7.0, 0.0, 0.0], (2, 2))
    assert np.allclose(A.to_dense(), [[7.0, 5.0], [0.0, 0.0]])
    assert A[0, 0] == 7.0 and A[0, 1] == 5.0
    assert list(A.indices) == [0, 1, 0, 1]
    A[1, 0] = 0.0
    assert A.eliminate_zero_rows() == 1
    assert np.allclose(A.to_dense(), [[7.0, 5.0], [0.0, 1.0]])


def test_raw_csr_rejects_duplicate_entries():
    with pytest.raises(StructuralError):
        SparseMatrix([0, 2, 2], [1, 1], [1.0, 2.0], (2, 2))
