import numpy as np
import numpy.testing as npt
import pytest

from vswfpy.basis import Basis
from vswfpy.coefficients import CoefficientSet
from vswfpy.ensemble import Ensemble
from vswfpy.errors import BasisError, InvariantViolation
from vswfpy.fields import (
    NearFieldCache,
    far_field,
    intensity,
    near_field,
    near_field_rtp,
)
from vswfpy.functions.misc import mode_count, spherical_to_cartesian_field, xyz2rtp
from vswfpy.functions.spherical_functions_trigon import spherical_harmonics


def _random_set(nmax, beams=1, seed=0, **kwargs):
    rng = np.random.default_rng(seed)
    shape = (mode_count(nmax), beams)
    a = rng.normal(size=shape) + 1j * rng.normal(size=shape)
    b = rng.normal(size=shape) + 1j * rng.normal(size=shape)
    return CoefficientSet(a, b, **kwargs)


def _plane_wave(nmax):
    """x-polarized plane wave travelling along +z, unit amplitude."""
    a = []
    b = []
    for n in range(1, nmax + 1):
        _, y_theta, y_phi = spherical_harmonics(n, np.array([0.0]), np.array([0.0]))
        norm = 1 / np.sqrt(n * (n + 1))
        a.append(4 * np.pi * norm * 1j**n * np.conj(y_phi[:, 0]))
        b.append(-4 * np.pi * norm * 1j ** (n + 1) * np.conj(y_theta[:, 0]))
    return CoefficientSet(np.concatenate(a), np.concatenate(b))


def _points(count=15, radius=0.5, seed=4):
    rng = np.random.default_rng(seed)
    return rng.uniform(-radius, radius, size=(3, count))


def test_far_field_of_regular_set_is_rejected():
    with pytest.raises(BasisError):
        far_field(_random_set(2), np.array([[0.5], [0.1]]))

    mixed = Ensemble([_random_set(2, basis="outgoing"), _random_set(2)])
    with pytest.raises(BasisError):
        far_field(mixed, np.array([[0.5], [0.1]]))


def test_plane_wave_near_field():
    cs = _plane_wave(14)
    points = _points(radius=0.2)
    e_field, _ = near_field(cs, points)
    k = 2 * np.pi
    expected = np.zeros((3, points.shape[1]), dtype=complex)
    expected[0] = np.exp(1j * k * points[2])
    npt.assert_allclose(e_field, expected, atol=1e-8)


def test_near_field_at_origin_is_finite():
    cs = _plane_wave(6)
    e_field, h_field = near_field(cs, np.zeros((3, 1)))
    assert np.all(np.isfinite(e_field))
    assert np.all(np.isfinite(h_field))
    npt.assert_allclose(e_field[:, 0], [1, 0, 0], atol=1e-10)


@pytest.mark.parametrize("basis", [Basis.OUTGOING, Basis.INCOMING])
def test_far_field_is_near_field_asymptote(basis):
    cs = _random_set(3, basis=basis)
    theta = np.array([0.3, 1.2, 2.2])
    phi = np.array([0.1, -2.0, 1.5])
    kr = 2 * np.pi * 2000.0
    rtp = np.stack([np.full(3, kr / (2 * np.pi)), theta, phi])

    e_near, h_near = near_field_rtp(cs, rtp)
    e_far, h_far = far_field(cs, np.stack([theta, phi]))

    direction = 1 if basis is Basis.OUTGOING else -1
    scale = 2 * kr * np.exp(-1j * direction * kr)
    assert not np.any(e_far[0])
    tolerance = 1e-2 * np.abs(e_far).max()
    npt.assert_allclose(scale * e_near[1:], e_far[1:], atol=tolerance)
    npt.assert_allclose(scale * h_near[1:], h_far[1:], atol=tolerance)


def test_far_field_accepts_three_row_directions():
    cs = _random_set(2, basis="outgoing")
    angles = np.array([[0.4, 1.0], [0.2, 2.0]])
    e_2, _ = far_field(cs, angles)
    e_3, _ = far_field(cs, np.vstack([np.ones(2), angles]))
    npt.assert_array_equal(e_2, e_3)

    e_cart, _ = far_field(cs, angles, coord="cartesian")
    npt.assert_allclose(e_cart, spherical_to_cartesian_field(e_2, *angles))


def test_near_field_coordinate_conventions():
    cs = _random_set(3)
    points = _points()
    r, theta, phi = xyz2rtp(points)
    e_cart, _ = near_field(cs, points)
    e_sph, _ = near_field_rtp(cs, np.stack([r, theta, phi]))
    npt.assert_allclose(e_cart, spherical_to_cartesian_field(e_sph, theta, phi), atol=1e-12)

    with pytest.raises(ValueError):
        near_field(cs, points, coord="cylindrical")


def test_cached_near_field_is_identical():
    points = _points()
    cache = NearFieldCache(points, nmax=4)
    for seed in range(3):
        cs = _random_set(3, seed=seed)
        e_plain, h_plain = near_field(cs, points)
        e_cached, h_cached = near_field(cs, cache=cache)
        npt.assert_array_equal(e_cached, e_plain)
        npt.assert_array_equal(h_cached, h_plain)


def test_cache_rejects_incompatible_sets():
    points = _points()
    cache = NearFieldCache(points, nmax=2)
    with pytest.raises(InvariantViolation):
        near_field(_random_set(3), cache=cache)
    with pytest.raises(BasisError):
        near_field(_random_set(2, basis="outgoing"), cache=cache)
    with pytest.raises(InvariantViolation):
        near_field(_random_set(2, wavenumber=3.0), cache=cache)
    with pytest.raises(InvariantViolation):
        near_field(_random_set(2), points + 1.0, cache=cache)


def test_near_field_shapes_follow_array_type():
    points = _points(count=7)
    first = _random_set(2, seed=1)
    second = _random_set(2, seed=2)

    independent, _ = near_field(Ensemble([first, second]), points)
    assert independent.shape == (2, 3, 7)

    coherent, _ = near_field(Ensemble([first, second], "coherent"), points)
    summed, _ = near_field(first + second, points)
    assert coherent.shape == (3, 7)
    npt.assert_allclose(coherent, summed, atol=1e-12)

    stacked = CoefficientSet(
        np.hstack([first.a, second.a]), np.hstack([first.b, second.b])
    )
    per_beam, _ = near_field(stacked, points)
    npt.assert_allclose(per_beam, independent, atol=1e-12)


def test_intensity_combination():
    points = _points(count=5)
    first = _random_set(2, seed=1)
    second = _random_set(2, seed=2)
    e_first, _ = near_field(first, points)
    e_second, _ = near_field(second, points)
    i_first = np.sum(np.abs(e_first) ** 2, axis=0)
    i_second = np.sum(np.abs(e_second) ** 2, axis=0)

    npt.assert_allclose(
        intensity(Ensemble([first, second], "incoherent"), points), i_first + i_second
    )
    npt.assert_allclose(
        intensity(Ensemble([first, second], "coherent"), points),
        np.sum(np.abs(e_first + e_second) ** 2, axis=0),
    )
    npt.assert_allclose(
        intensity(Ensemble([first, second]), points), np.stack([i_first, i_second])
    )
