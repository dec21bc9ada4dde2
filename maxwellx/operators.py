"""Linear-operator algebra shared by every solver-facing matrix.

Operators are described by a small protocol plus two tags:

  - ``kind``          which storage variant backs the operator (dense, sparse,
                      inverse, composite)
  - ``capabilities``  which operations it supports (element access, apply,
                      apply-transpose, accumulate, invert, sparse extras)

Consumers such as the symplectic integrator only check capabilities; they
never depend on the concrete class.

All vectors are 1-D JAX arrays. Shapes are checked eagerly (they are static
under tracing as well), so a wrong-sized vector always raises
:class:`~maxwellx.errors.DimensionMismatch` instead of broadcasting.
"""
from __future__ import annotations

import enum
import operator as _op
from typing import Protocol, runtime_checkable

import jax
import jax.numpy as jnp
import numpy as np

from .errors import DimensionMismatch, InvalidArgument, OutOfRange


class Capability(enum.Flag):
    ELEM = enum.auto()
    APPLY = enum.auto()
    APPLY_TRANSPOSE = enum.auto()
    ACCUMULATE = enum.auto()
    INVERT = enum.auto()
    SPARSE = enum.auto()


LINEAR_MAP = Capability.APPLY | Capability.APPLY_TRANSPOSE | Capability.ACCUMULATE


class OperatorKind(enum.Enum):
    DENSE = "dense"
    SPARSE = "sparse"
    INVERSE = "inverse"
    COMPOSITE = "composite"


@runtime_checkable
class Operator(Protocol):
    """Minimal contract every operator variant satisfies."""

    kind: OperatorKind
    capabilities: Capability

    @property
    def height(self) -> int: ...

    @property
    def width(self) -> int: ...

    def apply(self, x: jax.Array) -> jax.Array: ...

    def apply_transpose(self, x: jax.Array) -> jax.Array: ...

    def accumulate_apply(self, x: jax.Array, y: jax.Array, scale: float = 1.0) -> jax.Array: ...


def has_capability(op, cap: Capability) -> bool:
    caps = getattr(op, "capabilities", None)
    if caps is None:
        return False
    return (caps & cap) == cap


def require(op, cap: Capability, what: str = "operator") -> None:
    """Raise InvalidArgument unless ``op`` advertises every flag in ``cap``."""
    if not has_capability(op, cap):
        raise InvalidArgument(f"{what} lacks capability {cap!r} (has {getattr(op, 'capabilities', None)!r})")


def check_vector(x, n: int, what: str = "x") -> jax.Array:
    x = jnp.asarray(x)
    if x.ndim != 1 or x.shape[0] != n:
        raise DimensionMismatch(f"{what}: expected shape ({n},), got {tuple(x.shape)}")
    return x


def check_index(key, shape: tuple[int, int]) -> tuple[int, int]:
    if not isinstance(key, tuple) or len(key) != 2:
        raise TypeError(f"element access expects a pair (i, j), got {key!r}")
    i, j = _op.index(key[0]), _op.index(key[1])
    h, w = shape
    if not (0 <= i < h and 0 <= j < w):
        raise OutOfRange(f"element ({i}, {j}) outside shape {shape}")
    return i, j


# -------------------- jitted kernels --------------------
@jax.jit
def _axpy(y: jax.Array, scale, z: jax.Array) -> jax.Array:
    return y + scale * z


@jax.jit
def _dense_matvec(A: jax.Array, x: jax.Array) -> jax.Array:
    return A @ x


@jax.jit
def _dense_rmatvec(A: jax.Array, x: jax.Array) -> jax.Array:
    return A.T @ x


# -------------------- shared plumbing --------------------
class _OperatorBase:
    """Shape bookkeeping and the apply/accumulate entry points.

    Subclasses provide ``_matvec`` (and ``_rmatvec`` when they advertise
    APPLY_TRANSPOSE); both receive already-checked vectors.
    """

    kind: OperatorKind
    capabilities: Capability = LINEAR_MAP

    def __init__(self, height: int, width: int):
        self._height = int(height)
        self._width = int(width)

    @property
    def height(self) -> int:
        return self._height

    @property
    def width(self) -> int:
        return self._width

    @property
    def shape(self) -> tuple[int, int]:
        return (self._height, self._width)

    def _matvec(self, x: jax.Array) -> jax.Array:
        raise NotImplementedError

    def _rmatvec(self, x: jax.Array) -> jax.Array:
        raise NotImplementedError

    def apply(self, x) -> jax.Array:
        """y = A x"""
        return self._matvec(check_vector(x, self._width, "apply: x"))

    def apply_transpose(self, x) -> jax.Array:
        """y = A^T x"""
        return self._rmatvec(check_vector(x, self._height, "apply_transpose: x"))

    def accumulate_apply(self, x, y, scale: float = 1.0) -> jax.Array:
        """Return y + scale * A x."""
        x = check_vector(x, self._width, "accumulate_apply: x")
        y = check_vector(y, self._height, "accumulate_apply: y")
        return _axpy(y, scale, self._matvec(x))

    def accumulate_apply_transpose(self, x, y, scale: float = 1.0) -> jax.Array:
        """Return y + scale * A^T x."""
        x = check_vector(x, self._height, "accumulate_apply_transpose: x")
        y = check_vector(y, self._width, "accumulate_apply_transpose: y")
        return _axpy(y, scale, self._rmatvec(x))

    def __matmul__(self, x) -> jax.Array:
        return self.apply(x)

    def to_dense(self) -> jax.Array:
        eye = jnp.eye(self._width, dtype=jnp.float64)
        return jax.vmap(self._matvec, in_axes=1, out_axes=1)(eye)

    def format(self, width: int = 4) -> str:
        return format_matrix(self, width=width)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(shape={self.shape}, kind={self.kind.value})"


def format_matrix(op, width: int = 4) -> str:
    """Row-by-row text dump, ``width`` entries per line."""
    if width < 1:
        raise InvalidArgument("width must be >= 1")
    dense = np.asarray(op.to_dense())
    lines = []
    for i, row in enumerate(dense):
        lines.append(f"[row {i}]")
        for k in range(0, row.shape[0], width):
            lines.append("  " + " ".join(f"{v: .6e}" for v in row[k:k + width]))
    return "\n".join(lines)


# -------------------- dense variant --------------------
class DenseMatrix(_OperatorBase):
    """Row-major dense matrix with mutable element access."""

    kind = OperatorKind.DENSE
    capabilities = Capability.ELEM | LINEAR_MAP | Capability.INVERT

    def __init__(self, data):
        arr = jnp.asarray(data, dtype=jnp.float64)
        if arr.ndim != 2:
            raise DimensionMismatch(f"DenseMatrix expects a 2-D array, got ndim={arr.ndim}")
        super().__init__(*arr.shape)
        self._data = arr
        self.revision = 0

    @classmethod
    def zeros(cls, height: int, width: int | None = None) -> "DenseMatrix":
        return cls(jnp.zeros((height, height if width is None else width)))

    @classmethod
    def identity(cls, n: int) -> "DenseMatrix":
        return cls(jnp.eye(n))

    def __getitem__(self, key) -> float:
        i, j = check_index(key, self.shape)
        return float(self._data[i, j])

    def __setitem__(self, key, value) -> None:
        i, j = check_index(key, self.shape)
        self._data = self._data.at[i, j].set(float(value))
        self.revision += 1

    def _matvec(self, x):
        return _dense_matvec(self._data, x)

    def _rmatvec(self, x):
        return _dense_rmatvec(self._data, x)

    def to_dense(self) -> jax.Array:
        return self._data

    def invert(self):
        """Exact inverse through an LU factorisation of the current values."""
        from .inverse import DenseInverse

        return DenseInverse(self)


# -------------------- composites --------------------
class Transposed(_OperatorBase):
    kind = OperatorKind.COMPOSITE

    def __init__(self, op):
        require(op, Capability.APPLY | Capability.APPLY_TRANSPOSE, "Transposed operand")
        super().__init__(op.width, op.height)
        self.op = op

    def _matvec(self, x):
        return self.op._rmatvec(x)

    def _rmatvec(self, x):
        return self.op._matvec(x)


class Scaled(_OperatorBase):
    kind = OperatorKind.COMPOSITE

    def __init__(self, op, scale: float):
        require(op, Capability.APPLY, "Scaled operand")
        super().__init__(op.height, op.width)
        self.op = op
        self.scale = float(scale)
        if not has_capability(op, Capability.APPLY_TRANSPOSE):
            self.capabilities = Capability.APPLY | Capability.ACCUMULATE

    def _matvec(self, x):
        return self.scale * self.op._matvec(x)

    def _rmatvec(self, x):
        return self.scale * self.op._rmatvec(x)


class Product(_OperatorBase):
    """Apply-only product ``ops[0] @ ops[1] @ ... @ ops[-1]``."""

    kind = OperatorKind.COMPOSITE

    def __init__(self, *ops):
        if not ops:
            raise InvalidArgument("Product needs at least one operand")
        for k, op in enumerate(ops):
            require(op, Capability.APPLY, f"Product operand {k}")
        for left, right in zip(ops[:-1], ops[1:]):
            if left.width != right.height:
                raise DimensionMismatch(
                    f"Product: cannot chain {left.height}x{left.width} with {right.height}x{right.width}"
                )
        super().__init__(ops[0].height, ops[-1].width)
        self.ops = tuple(ops)
        if not all(has_capability(op, Capability.APPLY_TRANSPOSE) for op in ops):
            self.capabilities = Capability.APPLY | Capability.ACCUMULATE

    def _matvec(self, x):
        for op in reversed(self.ops):
            x = op._matvec(x)
        return x

    def _rmatvec(self, x):
        for op in self.ops:
            x = op._rmatvec(x)
        return x
