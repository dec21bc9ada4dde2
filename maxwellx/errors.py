"""Error taxonomy shared by the operator algebra, integrator and quantizer."""
from __future__ import annotations


class MaxwellxError(Exception):
    """Base class for every error raised by maxwellx."""


class DimensionMismatch(MaxwellxError, ValueError):
    """Operator applied to a vector of the wrong length."""


class OutOfRange(MaxwellxError, IndexError):
    """Element access outside the declared shape."""


class StructuralError(MaxwellxError, RuntimeError):
    """Structural edit touching a position outside the sparsity pattern."""


class InvalidArgument(MaxwellxError, ValueError):
    """Argument outside its admissible domain (e.g. non-positive duration)."""
