"""Axial translation matrices.

A set translated by ``z`` along the z axis has coefficients

.. math::
    a' = A a + B b, \\qquad b' = B a + A b.

Translation along z preserves the order ``m``. For each ``m`` the
``(n, n')`` blocks of ``A`` and ``B`` are sums over the addition-theorem
degrees ``|n - n'| <= p <= n + n'``

.. math::
    A_{nn'} = N_n N_{n'} i^{n-n'} \\sum_p (2p+1)\\,(-i\\,\\mathrm{sgn}\\,z)^p\\,
    z_p(k|z|)\\, G^{A}_{p,nn'},

with ``G_p`` the projection of ``P_p(cos theta)`` onto the products of the
angular functions ``pi`` and ``tau`` (``pi pi' + tau tau'`` for ``A``,
``pi tau' + tau pi'`` for ``B``). ``G^A_p`` vanishes unless ``p + n + n'``
is even, ``G^B_p`` unless it is odd. The sum is restricted to those terms
explicitly: Hankel functions grow like ``(2p-1)!! / x^(p+1)``, so rounding
residue of the projections beyond ``n + n'`` would otherwise swamp every
entry.

``z_p`` is ``j_p`` for regular expansions, which gives the regular to
regular map ``E'(r) = E(r - z e_z)`` everywhere. Outgoing and incoming
expansions use ``h1_p / 2`` and ``h2_p / 2``. They re-expand the field about
the displaced origin as a *regular* expansion, valid for ``r < |z|``.

References
----------
The addition theorem for vector spherical wave functions is described in
:cite:`Mishchenko-2002-ID6`.
"""

from __future__ import annotations

import logging
from time import time

import numpy as np

from vswfpy.basis import Basis
from vswfpy.functions.misc import combined_index, mode_count
from vswfpy.functions.special import radial_kind, spherical_bessel_kind
from vswfpy.functions.spherical_functions_trigon import legendre_normalized_trigon

log = logging.getLogger(__name__)

_I_POWERS = np.array([1, 1j, -1, -1j])


def translation_coefficients(pmax: int, kz: float, basis: Basis) -> np.ndarray:
    """Radial weights ``(2p+1) (-i sgn z)^p z_p(k|z|)`` for ``p <= pmax``."""
    p = np.arange(pmax + 1)
    sign = -1 if kz > 0 else 1
    phase = _I_POWERS[(sign * p) % 4]
    kind = radial_kind(basis)
    radial = spherical_bessel_kind(p, abs(kz), kind)
    if kind != "j":
        radial = radial / 2
    return (2 * p + 1) * phase * radial


def _degree_windows(ns: np.ndarray, pmax: int):
    """Masks of the ``p`` admitted by the ``A`` and ``B`` blocks."""
    p = np.arange(pmax + 1)[np.newaxis, np.newaxis, :]
    n_i = ns[:, np.newaxis, np.newaxis]
    n_j = ns[np.newaxis, :, np.newaxis]
    window = (p >= np.abs(n_i - n_j)) & (p <= n_i + n_j)
    even = (p + n_i + n_j) % 2 == 0
    return window & even, window & ~even


def translate_z_matrices(nmax: int, kz: float, basis: Basis = Basis.REGULAR):
    """Axial translation matrices.

    Parameters
    ----------
    nmax:
        Truncation order of both input and output.
    kz:
        Displacement times wavenumber.
    basis:
        Basis of the translated set, selects the radial kernel.

    Returns
    -------
    A, B:
        Complex matrices of shape ``(nmax(nmax+2), nmax(nmax+2))``. They
        produce regular coefficients for every input basis. An entry does
        not depend on ``nmax`` beyond rounding.
    """
    size = mode_count(nmax)
    if kz == 0:
        return np.eye(size, dtype=complex), np.zeros((size, size), dtype=complex)

    start = time()
    pmax = 2 * nmax
    nodes, w = np.polynomial.legendre.leggauss(2 * nmax + 1)
    theta = np.arccos(nodes)
    weighted_legendre = 2 * np.pi * w[:, np.newaxis] * np.polynomial.legendre.legvander(nodes, pmax)
    radial = translation_coefficients(pmax, kz, basis)

    pis = {}
    taus = {}
    for n in range(1, nmax + 1):
        _, pis[n], taus[n] = legendre_normalized_trigon(n, theta)

    a_mat = np.zeros((size, size), dtype=complex)
    b_mat = np.zeros((size, size), dtype=complex)
    for m in range(-nmax, nmax + 1):
        am = abs(m)
        ns = np.arange(max(1, am), nmax + 1)
        pi = np.sign(m) * np.array([pis[n][am] for n in ns])
        tau = np.array([taus[n][am] for n in ns])

        overlap = np.einsum("iw,jw,wp->ijp", pi, pi, weighted_legendre) + np.einsum(
            "iw,jw,wp->ijp", tau, tau, weighted_legendre
        )
        cross = np.einsum("iw,jw,wp->ijp", pi, tau, weighted_legendre) + np.einsum(
            "iw,jw,wp->ijp", tau, pi, weighted_legendre
        )
        even, odd = _degree_windows(ns, pmax)
        overlap = np.where(even, overlap, 0) @ radial
        cross = -1j * (np.where(odd, cross, 0) @ radial)

        norm = 1 / np.sqrt(ns * (ns + 1))
        norm = norm[:, np.newaxis] * norm[np.newaxis, :]
        diff = ns[:, np.newaxis] - ns[np.newaxis, :]

        rows = combined_index(ns, m) - 1
        a_mat[np.ix_(rows, rows)] = norm * _I_POWERS[diff % 4] * overlap
        b_mat[np.ix_(rows, rows)] = norm * _I_POWERS[(diff + 1) % 4] * cross

    log.debug(
        "Translation matrices for nmax = %d, kz = %f took %f s",
        nmax,
        kz,
        time() - start,
    )
    return a_mat, b_mat
