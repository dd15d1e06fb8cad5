import numpy as np
import numpy.testing as npt
import pytest
import scipy.sparse as sp

from vswfpy.basis import Basis
from vswfpy.coefficients import CoefficientSet
from vswfpy.ensemble import Ensemble
from vswfpy.errors import InvariantViolation
from vswfpy.functions.misc import mode_count
from vswfpy.moments import force
from vswfpy.operators import MatrixOperator, ScatteringOperator, scatter


def _random_set(nmax, beams=1, seed=0, **kwargs):
    rng = np.random.default_rng(seed)
    shape = (mode_count(nmax), beams)
    a = rng.normal(size=shape) + 1j * rng.normal(size=shape)
    b = rng.normal(size=shape) + 1j * rng.normal(size=shape)
    return CoefficientSet(a, b, **kwargs)


def test_matrix_operator_protocol():
    operator = MatrixOperator(np.eye(2 * mode_count(2)))
    assert isinstance(operator, ScatteringOperator)
    assert operator.nmax == 2
    assert operator.basis is Basis.OUTGOING

    with pytest.raises(InvariantViolation):
        MatrixOperator(np.eye(7))
    with pytest.raises(InvariantViolation):
        MatrixOperator(np.ones((16, 8)))


def test_scatter_resizes_to_operator_order():
    operator = MatrixOperator(sp.identity(2 * mode_count(3), format="csr"))
    cs = _random_set(2)
    scattered = scatter(operator, cs)
    assert scattered.nmax == 3
    assert scattered.basis is Basis.OUTGOING
    npt.assert_array_equal(scattered.a[: mode_count(2)], cs.a)

    ensemble = scatter(operator, Ensemble([cs, cs * 2], "incoherent"))
    assert ensemble.array_type.value == "incoherent"
    npt.assert_array_equal(ensemble[1].a[: mode_count(2)], 2 * cs.a)


def test_force_with_operator():
    cs = _random_set(3)
    identity = MatrixOperator(np.eye(2 * mode_count(3)))
    npt.assert_allclose(force(cs, identity), 0, atol=1e-12)

    absorber = MatrixOperator(np.zeros((2 * mode_count(3), 2 * mode_count(3))))
    npt.assert_allclose(force(cs, absorber), force(cs), atol=1e-12)
