import numpy as np
import numpy.testing as npt
import pytest

from vswfpy.basis import Basis
from vswfpy.errors import InvariantViolation
from vswfpy.functions.misc import (
    combined_index,
    combined_index_inverse,
    ka2nmax,
    mode_count,
    mode_indices,
    nmax2ka,
    nmax_from_length,
    rtp2xyz,
    xyz2rtp,
)
from vswfpy.functions.special import spherical_bessel
from vswfpy.functions.spherical_functions_trigon import spherical_harmonics
from vswfpy.functions.wigner import sphere_quadrature


def test_combined_index_bijection():
    for n in range(1, 15):
        for m in range(-n, n + 1):
            assert combined_index_inverse(combined_index(n, m)) == (n, m)


def test_mode_indices_cover_every_row():
    n, m = mode_indices(4)
    assert len(n) == mode_count(4) == 24
    npt.assert_array_equal(combined_index(n, m), np.arange(1, 25))
    assert n[0] == 1 and m[0] == -1
    assert n[-1] == 4 and m[-1] == 4


@pytest.mark.parametrize("length,nmax", [(0, 0), (3, 1), (8, 2), (15, 3), (120, 10)])
def test_nmax_from_length(length, nmax):
    assert nmax_from_length(length) == nmax


@pytest.mark.parametrize("length", [1, 5, 9, 14])
def test_nmax_from_length_rejects_invalid_lengths(length):
    with pytest.raises(InvariantViolation):
        nmax_from_length(length)


def test_nmax2ka_inverts_truncation_rule():
    nmax = np.arange(1, 40)
    ka = nmax2ka(nmax)
    npt.assert_allclose(ka + 3 * np.cbrt(ka), nmax, rtol=1e-12)
    assert ka2nmax(1.0) == 4
    assert ka2nmax(2.5) == 7


def test_coordinate_round_trip():
    rng = np.random.default_rng(0)
    xyz = rng.normal(size=(3, 20))
    npt.assert_allclose(rtp2xyz(*xyz2rtp(xyz)), xyz, atol=1e-14)


def test_spherical_harmonics_orthonormal():
    nmax = 6
    theta, phi, weights = sphere_quadrature(nmax + 1, 2 * nmax + 1)
    y = np.vstack([spherical_harmonics(n, theta, phi)[0] for n in range(1, nmax + 1)])
    gram = (np.conj(y) * weights) @ y.T
    npt.assert_allclose(gram, np.eye(mode_count(nmax)), atol=1e-12)


def test_spherical_harmonics_negative_orders():
    theta = np.array([0.3, 1.1, 2.5])
    phi = np.array([0.2, -1.4, 3.0])
    n = 4
    y, _, _ = spherical_harmonics(n, theta, phi)
    for m in range(1, n + 1):
        npt.assert_allclose(y[n - m], (-1) ** m * np.conj(y[n + m]), atol=1e-14)


def test_spherical_harmonic_derivatives():
    n = 5
    m = np.arange(-n, n + 1)[:, np.newaxis]
    theta = np.array([0.4, 1.2, 2.7])
    phi = np.array([0.1, 2.0, -0.8])
    h = 1e-6

    y, y_theta, y_phi = spherical_harmonics(n, theta, phi)
    y_plus, _, _ = spherical_harmonics(n, theta + h, phi)
    y_minus, _, _ = spherical_harmonics(n, theta - h, phi)

    npt.assert_allclose(y_theta, (y_plus - y_minus) / (2 * h), atol=1e-7)
    npt.assert_allclose(y_phi, 1j * m * y / np.sin(theta), atol=1e-12)


def test_spherical_harmonics_finite_on_poles():
    theta = np.array([0.0, np.pi])
    phi = np.array([0.7, 0.7])
    y, y_theta, y_phi = spherical_harmonics(3, theta, phi)
    for values in (y, y_theta, y_phi):
        assert np.all(np.isfinite(values))
    # only |m| = 1 survives in the angular derivatives on the axis
    assert np.abs(y_phi[3 + 1, 0]) > 0
    npt.assert_allclose(y_phi[[0, 1, 3, 5, 6]], 0, atol=1e-14)


@pytest.mark.parametrize("basis", list(Basis))
def test_radial_derivative(basis):
    n = 3
    x = np.array([0.5, 2.0, 7.5])
    h = 1e-6
    z, dz = spherical_bessel(n, x, basis)
    z_plus, _ = spherical_bessel(n, x + h, basis)
    z_minus, _ = spherical_bessel(n, x - h, basis)
    expected = z / x + (z_plus - z_minus) / (2 * h)
    npt.assert_allclose(dz, expected, rtol=1e-6, atol=1e-8)


def test_hankel_bases_split_regular():
    n = 2
    x = np.array([0.3, 1.0, 4.0])
    regular, d_regular = spherical_bessel(n, x, Basis.REGULAR)
    outgoing, d_outgoing = spherical_bessel(n, x, Basis.OUTGOING)
    incoming, d_incoming = spherical_bessel(n, x, Basis.INCOMING)
    npt.assert_allclose(outgoing + incoming, regular, atol=1e-14)
    npt.assert_allclose(d_outgoing + d_incoming, d_regular, atol=1e-13)
