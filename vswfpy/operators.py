"""Scattering operators consumed by the moment and field code.

The scattering operator itself (T-matrix, multiple-scattering solver, ...)
is supplied by the caller. Anything with an ``apply(CoefficientSet) ->
CoefficientSet`` method works; :class:`MatrixOperator` wraps a dense matrix
acting on packed ``[a; b]`` coefficients.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import numpy as np
import scipy.sparse as sp

from vswfpy.basis import Basis
from vswfpy.coefficients import CoefficientSet
from vswfpy.ensemble import Ensemble
from vswfpy.errors import InvariantViolation
from vswfpy.functions.misc import nmax_from_length

log = logging.getLogger(__name__)


@runtime_checkable
class ScatteringOperator(Protocol):
    def apply(self, cs: CoefficientSet) -> CoefficientSet: ...


class MatrixOperator:
    """Linear map over packed coefficients.

    Parameters
    ----------
    matrix:
        Square matrix of size ``2 modes``, dense or ``scipy.sparse``. The
        upper half of the rows produces ``a``, the lower half ``b``.
    basis:
        Basis of the produced coefficients.
    """

    def __init__(self, matrix, basis: Basis | str = Basis.OUTGOING):
        matrix = matrix.toarray() if sp.issparse(matrix) else np.asarray(matrix, dtype=complex)
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1] or matrix.shape[0] % 2:
            raise InvariantViolation(
                f"Operator matrix must be square with an even size, got {matrix.shape}"
            )
        self.nmax = nmax_from_length(matrix.shape[0] // 2)
        self.matrix = matrix
        self.basis = Basis(basis)

    def apply(self, cs: CoefficientSet) -> CoefficientSet:
        cs = cs.resize(self.nmax)
        return cs.apply_matrix(self.matrix).with_basis(self.basis)

    def __repr__(self) -> str:
        return f"MatrixOperator(nmax={self.nmax}, basis={self.basis.value})"


def scatter(operator: ScatteringOperator, beam):
    """Scattered beam for every member of ``beam``.

    The beam is resized to ``operator.nmax`` when the operator declares one.
    """
    if isinstance(beam, Ensemble):
        return beam.map(lambda child: scatter(operator, child))
    nmax = getattr(operator, "nmax", None)
    if nmax is not None:
        beam = beam.resize(nmax)
    log.debug("Scattering %s with %s", beam, operator)
    return operator.apply(beam)
