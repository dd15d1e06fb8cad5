"""Near- and far-field evaluation of VSWF expansions.

With ``N_n = 1 / sqrt(n(n+1))``, radial function ``z_n`` and its derivative
``dz_n = (1/kr) d(kr z_n)/d(kr)``, a set with coefficients ``a`` (M modes)
and ``b`` (N modes) produces

.. math::
    E_r = \\sum N_n \\frac{n(n+1)}{kr} z_n Y\\, b, \\quad
    E_\\theta = \\sum N_n (z_n Y_\\phi a + dz_n Y_\\theta b), \\quad
    E_\\phi = \\sum N_n (-z_n Y_\\theta a + dz_n Y_\\phi b),

and ``H`` follows from the same sums with ``a`` and ``b`` exchanged,
multiplied by ``-i``.

Far fields keep the angular dependence of the ``e^{\\pm ikr}/kr`` asymptote
of the Hankel functions. Regular expansions have no far field.

References
----------
The VSWF field formulas follow :cite:`Mishchenko-2002-ID6`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from vswfpy.basis import Basis
from vswfpy.coefficients import CoefficientSet
from vswfpy.config import get_settings
from vswfpy.ensemble import combine
from vswfpy.errors import BasisError, InvariantViolation
from vswfpy.functions.misc import spherical_to_cartesian_field, xyz2rtp
from vswfpy.functions.special import spherical_bessel
from vswfpy.functions.spherical_functions_trigon import spherical_harmonics

log = logging.getLogger(__name__)

_I_POWERS = np.array([1, 1j, -1, -1j])


def _degree_rows(n: int) -> slice:
    return slice((n - 1) * (n + 1), n * (n + 2))


def _basis_terms(n: int, kr: np.ndarray, theta: np.ndarray, phi: np.ndarray, basis: Basis):
    z_n, dz_n = spherical_bessel(n, kr, basis)
    y, y_theta, y_phi = spherical_harmonics(n, theta, phi)
    return z_n, dz_n, y, y_theta, y_phi


def _finalize(values: np.ndarray, theta, phi, coord: str):
    """Split stacked ``(E, H)`` results and convert coordinates."""
    match coord:
        case "spherical":
            pass
        case "cartesian":
            values = spherical_to_cartesian_field(
                np.moveaxis(values, -1, 0), theta, phi
            )
            values = np.moveaxis(values, 0, -1)
        case _:
            raise ValueError(f"Unknown coordinate convention {coord!r}")
    e_field, h_field = values[0], values[1]
    if e_field.shape[-1] == 1:
        return e_field[..., 0], h_field[..., 0]
    return np.moveaxis(e_field, -1, 0), np.moveaxis(h_field, -1, 0)


@dataclass
class NearFieldCache:
    """Radial functions and spherical harmonics for a fixed point grid.

    Evaluating several coefficient sets at the same points can reuse these
    values. Results are identical to an uncached evaluation.

    Parameters
    ----------
    points:
        Cartesian points of shape ``(3, N)``, or spherical ``(r, theta, phi)``
        when ``spherical`` is set.
    nmax:
        Largest degree covered by the cache.
    basis:
        Radial function family.
    wavenumber:
        Wavenumber in the medium, defaults to the configured value.
    spherical:
        Whether ``points`` are spherical coordinates.
    """

    points: np.ndarray
    nmax: int
    basis: Basis = Basis.REGULAR
    wavenumber: float | None = None
    spherical: bool = False
    kr: np.ndarray = field(init=False, repr=False)
    theta: np.ndarray = field(init=False, repr=False)
    phi: np.ndarray = field(init=False, repr=False)
    terms: dict = field(init=False, repr=False)

    def __post_init__(self):
        self.points = np.array(self.points, dtype=float)
        self.basis = Basis(self.basis)
        if self.wavenumber is None:
            self.wavenumber = get_settings().default_wavenumber
        r, self.theta, self.phi = _spherical_points(self.points, self.spherical)
        self.kr = _scaled_radius(r, self.wavenumber)
        self.terms = {
            n: _basis_terms(n, self.kr, self.theta, self.phi, self.basis)
            for n in range(1, self.nmax + 1)
        }
        log.debug("Cached near-field terms for %d points up to nmax %d", len(self.kr), self.nmax)

    def check(self, cs: CoefficientSet) -> None:
        if cs.basis is not self.basis:
            raise BasisError(
                f"Cache holds {self.basis.value} terms, set is {cs.basis.value}"
            )
        if cs.nmax > self.nmax:
            raise InvariantViolation(
                f"Cache covers nmax {self.nmax}, set has nmax {cs.nmax}"
            )
        if not np.isclose(abs(cs.wavenumber), abs(self.wavenumber)):
            raise InvariantViolation(
                f"Cache wavenumber {self.wavenumber} differs from set wavenumber {cs.wavenumber}"
            )


def _spherical_points(points: np.ndarray, spherical: bool):
    points = np.asarray(points, dtype=float)
    if points.ndim != 2 or points.shape[0] != 3:
        raise InvariantViolation(f"Points must have shape (3, N), got {points.shape}")
    if spherical:
        return points[0], points[1], points[2]
    return xyz2rtp(points)


def _scaled_radius(r: np.ndarray, wavenumber: float) -> np.ndarray:
    kr = np.abs(wavenumber) * np.asarray(r, dtype=float)
    # the origin is a removable singularity of the regular fields
    return np.where(kr == 0, get_settings().zero_radius, kr)


def _near_field_leaf(cs: CoefficientSet, kr, theta, phi, cache: NearFieldCache | None):
    if cache is not None:
        cache.check(cs)
    points = len(kr)
    fields = np.zeros((2, 3, points, cs.n_beams), dtype=complex)
    kr_col = kr[:, np.newaxis]

    for n in cs.occupied_degrees():
        n = int(n)
        if cache is not None:
            z_n, dz_n, y, y_theta, y_phi = cache.terms[n]
        else:
            z_n, dz_n, y, y_theta, y_phi = _basis_terms(n, kr, theta, phi, cs.basis)
        rows = _degree_rows(n)
        norm = 1 / np.sqrt(n * (n + 1))
        z_col = z_n[:, np.newaxis]
        dz_col = dz_n[:, np.newaxis]

        for out, (p, q) in enumerate(((cs.a[rows], cs.b[rows]), (cs.b[rows], cs.a[rows]))):
            fields[out, 0] += norm * n * (n + 1) / kr_col * z_col * (y.T @ q)
            fields[out, 1] += norm * (z_col * (y_phi.T @ p) + dz_col * (y_theta.T @ q))
            fields[out, 2] += norm * (-z_col * (y_theta.T @ p) + dz_col * (y_phi.T @ q))

    fields[1] *= -1j
    return fields


def near_field_rtp(beam, points=None, *, coord: str = "spherical", cache: NearFieldCache | None = None):
    """Near fields at spherical points ``(r, theta, phi)``.

    Parameters
    ----------
    beam:
        :class:`CoefficientSet` or :class:`~vswfpy.ensemble.Ensemble`.
    points:
        Spherical coordinates of shape ``(3, N)``. May be omitted when a
        ``cache`` is given.
    coord:
        ``"spherical"`` (default) or ``"cartesian"`` output components.
    cache:
        Optional :class:`NearFieldCache` for the same points.

    Returns
    -------
    E, H:
        Shape ``(3, N)`` for a single or coherent beam, ``(beams, 3, N)``
        otherwise.
    """
    return _near_field(beam, points, spherical=True, coord=coord, cache=cache)


def near_field(beam, points=None, *, coord: str = "cartesian", cache: NearFieldCache | None = None):
    """Near fields at cartesian points of shape ``(3, N)``.

    See :func:`near_field_rtp` for the remaining parameters.
    """
    return _near_field(beam, points, spherical=False, coord=coord, cache=cache)


def _near_field(beam, points, *, spherical: bool, coord: str, cache: NearFieldCache | None):
    if cache is not None:
        if points is not None and (
            cache.spherical != spherical
            or np.shape(points) != cache.points.shape
            or not np.array_equal(points, cache.points)
        ):
            raise InvariantViolation("Points do not match the cached grid")
        kr, theta, phi = cache.kr, cache.theta, cache.phi
    else:
        if points is None:
            raise InvariantViolation("Points are required without a cache")
        r, theta, phi = _spherical_points(points, spherical)
        kr = None

    def evaluate(cs: CoefficientSet):
        scaled = kr if kr is not None else _scaled_radius(r, cs.wavenumber)
        return _near_field_leaf(cs, scaled, theta, phi, cache)

    values = combine(evaluate, beam, incoherent_sum=False)
    return _finalize(values, theta, phi, coord)


def _far_field_leaf(cs: CoefficientSet, theta, phi):
    match cs.basis:
        case Basis.REGULAR:
            raise BasisError("Regular wavefunctions go to zero in the far field")
        case Basis.INCOMING:
            direction = 1
        case Basis.OUTGOING:
            direction = -1

    fields = np.zeros((2, 3, len(theta), cs.n_beams), dtype=complex)
    for n in cs.occupied_degrees():
        n = int(n)
        _, y_theta, y_phi = spherical_harmonics(n, theta, phi)
        rows = _degree_rows(n)
        norm = 1 / np.sqrt(n * (n + 1))
        phase_m = _I_POWERS[(direction * (n + 1)) % 4]
        phase_n = _I_POWERS[(direction * n) % 4]

        for out, (p, q) in enumerate(((cs.a[rows], cs.b[rows]), (cs.b[rows], cs.a[rows]))):
            p = phase_m * p
            q = phase_n * q
            fields[out, 1] += norm * (y_phi.T @ p + y_theta.T @ q)
            fields[out, 2] += norm * (-(y_theta.T @ p) + y_phi.T @ q)

    fields[1] *= -1j
    return fields


def far_field(beam, directions, *, coord: str = "spherical"):
    """Far-field angular amplitudes.

    Parameters
    ----------
    beam:
        Outgoing or incoming :class:`CoefficientSet`, or an ensemble of them.
    directions:
        ``(theta, phi)`` of shape ``(2, N)`` or ``(r, theta, phi)`` of shape
        ``(3, N)``; the radius is ignored.
    coord:
        ``"spherical"`` (default, radial component zero) or ``"cartesian"``.

    Returns
    -------
    E, H:
        Shape ``(3, N)`` for a single or coherent beam, ``(beams, 3, N)``
        otherwise.

    Raises
    ------
    BasisError
        For regular expansions.
    """
    directions = np.asarray(directions, dtype=float)
    if directions.ndim != 2 or directions.shape[0] not in (2, 3):
        raise InvariantViolation(
            f"Directions must have shape (2, N) or (3, N), got {directions.shape}"
        )
    theta, phi = directions[-2], directions[-1]
    values = combine(lambda cs: _far_field_leaf(cs, theta, phi), beam, incoherent_sum=False)
    return _finalize(values, theta, phi, coord)


def intensity(beam, points) -> np.ndarray:
    """Electric field intensity ``|E|^2`` at cartesian points.

    Coherent beams are summed before squaring, incoherent intensities are
    added, independent beams give one row per beam.
    """
    r, theta, phi = _spherical_points(points, False)

    def evaluate(cs: CoefficientSet):
        values = _near_field_leaf(cs, _scaled_radius(r, cs.wavenumber), theta, phi, None)
        return np.sum(np.abs(values[0]) ** 2, axis=0)

    values = combine(evaluate, beam)
    if values.shape[-1] == 1:
        return values[..., 0]
    return np.moveaxis(values, -1, 0)
