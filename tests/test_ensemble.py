import numpy as np
import numpy.testing as npt
import pytest

from vswfpy.basis import ArrayType
from vswfpy.coefficients import CoefficientSet
from vswfpy.ensemble import (
    Ensemble,
    coherent_sum,
    concatenate,
    contains_incoherent,
    flatten,
    superpose,
)
from vswfpy.errors import InvariantViolation
from vswfpy.functions.misc import mode_count


def _random_set(nmax, beams=1, seed=0, **kwargs):
    rng = np.random.default_rng(seed)
    shape = (mode_count(nmax), beams)
    a = rng.normal(size=shape) + 1j * rng.normal(size=shape)
    b = rng.normal(size=shape) + 1j * rng.normal(size=shape)
    return CoefficientSet(a, b, **kwargs)


def test_coherent_ensemble_rejects_incoherent_descendants():
    incoherent = Ensemble([_random_set(2), _random_set(2, seed=1)], "incoherent")
    with pytest.raises(InvariantViolation):
        Ensemble([_random_set(2), incoherent], "coherent")

    nested = Ensemble([incoherent])
    assert contains_incoherent(nested)
    with pytest.raises(InvariantViolation):
        Ensemble([nested], "coherent")

    with pytest.raises(InvariantViolation):
        Ensemble([_random_set(2, array_type="incoherent")], "coherent")

    # the reverse nesting is allowed
    coherent = Ensemble([_random_set(2), _random_set(2, seed=1)], "coherent")
    assert not contains_incoherent(Ensemble([coherent], "incoherent").children[0])


def test_array_alias():
    assert Ensemble([_random_set(1)], "array").array_type is ArrayType.INDEPENDENT
    with pytest.raises(ValueError):
        Ensemble([_random_set(1)], "sideways")


def test_members_must_be_beams():
    with pytest.raises(TypeError):
        Ensemble([np.zeros(3)])


def test_power_follows_array_type():
    first = _random_set(2, seed=1)
    second = _random_set(3, seed=2)
    members = [first, second]

    independent = Ensemble(members)
    npt.assert_allclose(independent.power, [first.power, second.power])

    incoherent = Ensemble(members, "incoherent")
    assert incoherent.power == pytest.approx(first.power + second.power)

    coherent = Ensemble(members, "coherent")
    assert coherent.power == pytest.approx((first + second).power)


def test_superpose():
    first = _random_set(2, seed=1)
    second = _random_set(2, seed=2)
    summed = superpose(first, second)
    assert isinstance(summed, CoefficientSet)
    npt.assert_allclose(summed.a, first.a + second.a)

    left = Ensemble([first], "coherent")
    right = Ensemble([second, first], "coherent")
    merged = left + right
    assert merged.array_type is ArrayType.COHERENT
    assert len(merged) == 3

    mixed = superpose(Ensemble([first]), second)
    assert mixed.array_type is ArrayType.COHERENT
    assert len(mixed) == 2
    assert isinstance(first + Ensemble([second]), Ensemble)

    with pytest.raises(InvariantViolation):
        superpose(Ensemble([first], "incoherent"), second)


def test_concatenate():
    first = _random_set(2, seed=1)
    second = _random_set(3, beams=2, seed=2)
    joined = concatenate(first, second)
    assert isinstance(joined, CoefficientSet)
    assert joined.n_beams == 3
    assert joined.nmax == 3

    ensembles = concatenate(Ensemble([first]), Ensemble([second, first]))
    assert isinstance(ensembles, Ensemble)
    assert len(ensembles) == 3

    mixed = concatenate(first, Ensemble([second], "coherent"))
    assert isinstance(mixed, Ensemble)
    assert mixed.array_type is ArrayType.INDEPENDENT
    assert len(mixed) == 2


def test_concatenate_sets_with_different_wavenumbers():
    first = _random_set(2, wavenumber=1.0)
    second = _random_set(2, seed=1, wavenumber=2.0)
    joined = concatenate(first, second)
    assert isinstance(joined, Ensemble)
    assert joined.array_type is ArrayType.INDEPENDENT
    assert joined[0] is first
    assert joined[1] is second

    outgoing = concatenate(first, _random_set(2, basis="outgoing", wavenumber=1.0))
    assert isinstance(outgoing, Ensemble)
    assert len(outgoing) == 2


def test_indexing_and_replace():
    members = [_random_set(3, seed=i) for i in range(3)]
    ensemble = Ensemble(members, "incoherent")

    assert ensemble[1] is members[1]
    sub = ensemble[1:]
    assert isinstance(sub, Ensemble)
    assert sub.array_type is ArrayType.INCOHERENT
    assert len(ensemble[[0, 2]]) == 2

    small = _random_set(1, seed=9)
    replaced = ensemble.replace(0, small)
    assert replaced[0].nmax == 3
    npt.assert_array_equal(replaced[0].a[:3], small.a)
    assert ensemble[0] is members[0]

    with pytest.raises(InvariantViolation):
        ensemble.replace(0, _random_set(4))


def test_folds():
    first = _random_set(2, seed=1)
    second = _random_set(2, seed=2)
    third = _random_set(1, seed=3)
    tree = Ensemble([first, Ensemble([second, third], "coherent")])

    assert flatten(tree) == [first, second, third]
    assert tree.nmax == 2

    total = coherent_sum(tree)
    npt.assert_allclose(total.a, (first + second + third).a)
    assert total.n_beams == 1


def test_resize_and_scale_map_members():
    ensemble = Ensemble([_random_set(1), _random_set(2, seed=1)], "coherent")
    grown = ensemble.resize(4)
    assert [member.nmax for member in grown] == [4, 4]
    assert grown.array_type is ArrayType.COHERENT

    doubled = 2 * ensemble
    npt.assert_allclose(doubled[1].a, 2 * ensemble[1].a)
